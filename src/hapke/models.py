"""Data models for hapke."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
import uuid

CENT = Decimal("0.01")


def _utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _generate_id() -> str:
    """Generate a new internal order ID."""
    return str(uuid.uuid4())


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Round a currency value to whole cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    """Order lifecycle states, in delivery order."""

    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED = "DELIVERED"


STATUS_FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
)

# Status -> name of the timestamp attribute stamped when the status is reached
STATUS_TIMESTAMPS: dict[OrderStatus, str] = {
    OrderStatus.RECEIVED: "received_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.ON_THE_WAY: "on_the_way_at",
    OrderStatus.DELIVERED: "delivered_at",
}


def next_status(current: OrderStatus) -> OrderStatus | None:
    """Return the only status reachable from ``current``, or None if terminal."""
    index = STATUS_FLOW.index(current)
    if index + 1 < len(STATUS_FLOW):
        return STATUS_FLOW[index + 1]
    return None


@dataclass(frozen=True)
class OrderItemInput:
    """An item as requested by the client, before pricing."""

    id: str
    qty: int


@dataclass(frozen=True)
class PricedItem:
    """A requested item with its name and unit price resolved."""

    id: str
    name: str
    qty: int
    price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.qty


def order_total(items: list[PricedItem]) -> Decimal:
    """Sum of unit price x quantity, rounded to cents."""
    return to_money(sum((item.subtotal for item in items), Decimal("0")))


@dataclass
class OrderLineItem:
    """A line of an order, snapshotted at order time."""

    menu_item_id: str
    product_name: str
    qty: int
    unit_price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.menu_item_id,
            "productName": self.product_name,
            "name": self.product_name,
            "qty": self.qty,
            "unitPrice": float(self.unit_price),
        }


@dataclass
class Step:
    """One entry of an order's status timeline."""

    name: OrderStatus
    at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name.value, "at": _isoformat(self.at)}


@dataclass
class Order:
    """A customer order and its lifecycle timestamps."""

    id: str
    order_number: str
    customer_id: str
    vendor_id: str | None
    payment_id: str
    total: Decimal
    status: OrderStatus
    received_at: datetime
    preparing_at: datetime | None = None
    on_the_way_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime = field(default_factory=_utc_now)
    items: list[OrderLineItem] = field(default_factory=list)

    def timestamp_for(self, status: OrderStatus) -> datetime | None:
        return getattr(self, STATUS_TIMESTAMPS[status])

    def steps(self) -> list[Step]:
        """Timeline of all four statuses with the time each was reached."""
        return [Step(name=s, at=self.timestamp_for(s)) for s in STATUS_FLOW]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.customer_id,
            "vendorId": self.vendor_id,
            "paymentId": self.payment_id,
            "total": float(self.total),
            "status": self.status.value,
            "receivedAt": _isoformat(self.received_at),
            "preparingAt": _isoformat(self.preparing_at),
            "onTheWayAt": _isoformat(self.on_the_way_at),
            "deliveredAt": _isoformat(self.delivered_at),
            "createdAt": _isoformat(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


@dataclass
class PaymentAmount:
    value: str
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "currency": self.currency}


@dataclass
class PaymentResult:
    """Outcome of a payment status lookup. Never persisted."""

    payment_id: str
    status: str
    method: str | None = None
    amount: PaymentAmount | None = None
    simulated: bool = False

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    def to_dict(self) -> dict[str, Any]:
        return {
            "paymentId": self.payment_id,
            "status": self.status,
            "method": self.method,
            "amount": self.amount.to_dict() if self.amount else None,
            "simulated": self.simulated,
        }


@dataclass
class CreatedPayment:
    """A payment freshly created at the provider."""

    payment_id: str
    checkout_url: str | None
    success_url: str
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "paymentId": self.payment_id,
            "checkoutUrl": self.checkout_url,
            "successUrl": self.success_url,
            "status": self.status,
        }


@dataclass
class TickResult:
    """Number of orders moved by one lifecycle pass, per target status."""

    preparing: int = 0
    on_the_way: int = 0
    delivered: int = 0

    @property
    def total(self) -> int:
        return self.preparing + self.on_the_way + self.delivered

    def to_dict(self) -> dict[str, int]:
        return {
            "preparing": self.preparing,
            "on_the_way": self.on_the_way,
            "delivered": self.delivered,
        }
