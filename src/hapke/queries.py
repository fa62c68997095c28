"""Read-side projections of orders for customers and vendors."""

import math
from datetime import datetime
from typing import Any, Callable

from .config import LifecycleThresholds
from .models import Order, _isoformat, _utc_now
from .order_store import OrderRepository


def eta_minutes(order: Order, now: datetime, total_minutes: float) -> int:
    """Minutes left until delivery, counting down from receipt; 0 once delivered."""
    if order.delivered_at is not None:
        return 0
    elapsed = (now - order.received_at).total_seconds() / 60
    remaining = math.ceil(total_minutes - elapsed)
    return remaining if remaining > 0 else 0


class OrderQueries:
    """Builds status and detail views of stored orders."""

    def __init__(
        self,
        repository: OrderRepository,
        thresholds: LifecycleThresholds | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.repository = repository
        # Same total the automatic lifecycle uses for the final step
        self.total_minutes = (thresholds or LifecycleThresholds()).total_delivery_minutes
        self._clock = clock

    def eta(self, order: Order) -> int:
        return eta_minutes(order, self._clock(), self.total_minutes)

    def status_view(self, order: Order) -> dict[str, Any]:
        return {
            "orderId": order.order_number,
            "status": order.status.value,
            "etaMinutes": self.eta(order),
            "steps": [step.to_dict() for step in order.steps()],
        }

    def detail_view(self, order: Order) -> dict[str, Any]:
        return {
            "orderId": order.order_number,
            "status": order.status.value,
            "total": float(order.total),
            "createdAt": _isoformat(order.created_at),
            "etaMinutes": self.eta(order),
            "items": [item.to_dict() for item in order.items],
            "steps": [step.to_dict() for step in order.steps()],
        }

    def get_order_status(self, order_number: str, customer_id: str) -> dict[str, Any]:
        """
        Current status, ETA and timeline of a customer's order.

        Raises:
            OrderNotFoundError: If the customer has no order with that number.
        """
        return self.status_view(self.repository.find_by_number(order_number, customer_id))

    def get_order_detail(self, order_number: str, customer_id: str) -> dict[str, Any]:
        """
        Status view plus total and line items.

        Raises:
            OrderNotFoundError: If the customer has no order with that number.
        """
        return self.detail_view(self.repository.find_by_number(order_number, customer_id))

    def list_customer_orders(self, customer_id: str) -> list[dict[str, Any]]:
        return [self.detail_view(o) for o in self.repository.list_for_customer(customer_id)]

    def list_vendor_orders(self, vendor_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Latest orders of a vendor, in full, with ETA."""
        views = []
        for order in self.repository.list_for_vendor(vendor_id, limit=limit):
            view = order.to_dict()
            view["etaMinutes"] = self.eta(order)
            views.append(view)
        return views
