"""Order creation flow."""

import logging
from dataclasses import dataclass

from .catalog import price_items
from .config import Settings
from .errors import (
    EmptyOrderError,
    PaymentReferenceMissingError,
    VendorConfigurationMissingError,
    VendorNotFoundError,
)
from .lifecycle import OrderLifecycle
from .models import Order, OrderItemInput, order_total
from .order_store import OrderRepository
from .payments import PaymentGateway

logger = logging.getLogger(__name__)


@dataclass
class NewOrder:
    """What a customer submits to place an order."""

    items: list[OrderItemInput]
    payment_id: str
    vendor_id: str | None = None


class OrderService:
    """Creates paid orders and hands them to the lifecycle."""

    def __init__(
        self,
        settings: Settings,
        repository: OrderRepository,
        payments: PaymentGateway,
        lifecycle: OrderLifecycle,
    ):
        self.settings = settings
        self.repository = repository
        self.payments = payments
        self.lifecycle = lifecycle

    def resolve_vendor(self, requested: str | None) -> str:
        """
        Pick the order's vendor: the requested one, else the configured fallback.

        Raises:
            VendorConfigurationMissingError: If neither is available.
            VendorNotFoundError: If the vendor is not registered.
        """
        vendor_id = (requested or "").strip() or (self.settings.fallback_vendor_id or "").strip()
        if not vendor_id:
            logger.error("No vendor given and no fallback vendor configured")
            raise VendorConfigurationMissingError()
        if not self.repository.vendor_exists(vendor_id):
            raise VendorNotFoundError(vendor_id)
        return vendor_id

    def create_order(self, customer_id: str, request: NewOrder) -> Order:
        """
        Verify payment and store a new order at RECEIVED.

        Raises:
            EmptyOrderError: If no items were submitted.
            PaymentReferenceMissingError: If the payment reference is blank.
            VendorConfigurationMissingError: If no vendor can be resolved.
            VendorNotFoundError: If the vendor is not registered.
            UnknownMenuItemError: If an item can't be priced.
            PaymentNotCompletedError: If the payment is not paid.
            PaymentLookupError: If the payment provider can't be reached.
        """
        if not request.items:
            raise EmptyOrderError()
        payment_id = (request.payment_id or "").strip()
        if not payment_id:
            raise PaymentReferenceMissingError()
        vendor_id = self.resolve_vendor(request.vendor_id)

        menu = self.repository.menu_items(vendor_id, [str(i.id) for i in request.items])
        priced = price_items(request.items, menu)
        total = order_total(priced)

        self.payments.ensure_paid(payment_id, total)

        order = self.repository.create(
            customer_id=customer_id,
            vendor_id=vendor_id,
            payment_id=payment_id,
            items=priced,
            total=total,
        )
        logger.info(
            "Order %s created for user %s at vendor %s (total %s)",
            order.order_number,
            customer_id,
            vendor_id,
            total,
        )

        self.lifecycle.trigger_now()
        return order
