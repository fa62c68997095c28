"""Order storage for hapke."""

import logging
import threading
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from .catalog import CatalogEntry
from .db import (
    Database,
    MenuItemRecord,
    OrderItemRecord,
    OrderRecord,
    VendorRecord,
    from_storage,
    to_storage,
)
from .errors import DuplicateOrderNumberError, OrderNotFoundError
from .models import (
    STATUS_TIMESTAMPS,
    Order,
    OrderLineItem,
    OrderStatus,
    PricedItem,
    _generate_id,
    _utc_now,
    to_money,
)

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3


class OrderNumberGenerator:
    """Issues ``ORD-<epoch millis>`` numbers, strictly increasing per process.

    Two calls within the same millisecond get consecutive values, so a
    single process never repeats a number. Cross-process uniqueness is left
    to the unique constraint on ``orders.order_number``.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            millis = int(self._clock() * 1000)
            if millis <= self._last:
                millis = self._last + 1
            self._last = millis
        return f"ORD-{millis}"


def _is_order_number_conflict(error: IntegrityError) -> bool:
    return "order_number" in str(error.orig)


def _record_to_order(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        order_number=record.order_number,
        customer_id=record.user_id,
        vendor_id=record.vendor_id,
        payment_id=record.payment_id,
        total=to_money(record.total),
        status=OrderStatus(record.status),
        received_at=from_storage(record.received_at),
        preparing_at=from_storage(record.preparing_at),
        on_the_way_at=from_storage(record.on_the_way_at),
        delivered_at=from_storage(record.delivered_at),
        created_at=from_storage(record.created_at),
        items=[
            OrderLineItem(
                menu_item_id=item.menu_item_id,
                product_name=item.product_name,
                qty=item.qty,
                unit_price=to_money(item.unit_price),
            )
            for item in record.items
        ],
    )


class OrderRepository:
    """Reads and writes orders, their items, and status timestamps."""

    def __init__(
        self,
        database: Database,
        number_generator: Callable[[], str] | None = None,
    ):
        self.database = database
        self.next_order_number = number_generator or OrderNumberGenerator()

    # -------------------- writes --------------------

    def create(
        self,
        customer_id: str,
        vendor_id: str,
        payment_id: str,
        items: list[PricedItem],
        total: Decimal,
        received_at: datetime | None = None,
    ) -> Order:
        """
        Insert an order at RECEIVED together with all of its items.

        The order and its items are written in one transaction. A collision on
        the order number is retried with a fresh number.

        Raises:
            DuplicateOrderNumberError: If every attempt collided.
            IntegrityError: If any other constraint is violated.
        """
        received_at = received_at or _utc_now()
        order_number = ""
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            order_number = self.next_order_number()
            record = OrderRecord(
                id=_generate_id(),
                order_number=order_number,
                user_id=customer_id,
                vendor_id=vendor_id,
                payment_id=payment_id,
                total=to_money(total),
                status=OrderStatus.RECEIVED.value,
                received_at=to_storage(received_at),
                created_at=to_storage(_utc_now()),
                items=[
                    OrderItemRecord(
                        position=position,
                        menu_item_id=item.id,
                        product_name=item.name,
                        qty=item.qty,
                        unit_price=to_money(item.price),
                    )
                    for position, item in enumerate(items)
                ],
            )
            try:
                with self.database.session() as session, session.begin():
                    session.add(record)
            except IntegrityError as e:
                if not _is_order_number_conflict(e):
                    raise
                logger.warning(
                    "Order number %s already taken (attempt %d)", order_number, attempt
                )
                continue
            return self.get_by_id(record.id)

        raise DuplicateOrderNumberError(order_number, MAX_CREATE_ATTEMPTS)

    def advance(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        at: datetime,
        vendor_id: str | None = None,
    ) -> bool:
        """
        Move one order from ``expected`` to ``target`` and stamp the timestamp.

        A single conditional UPDATE: nothing changes unless the order is still
        in ``expected`` (and owned by ``vendor_id`` when given).

        Returns:
            True if the order was updated.
        """
        stmt = (
            update(OrderRecord)
            .where(OrderRecord.id == order_id)
            .where(OrderRecord.status == expected.value)
            .values(
                {
                    "status": target.value,
                    STATUS_TIMESTAMPS[target]: to_storage(at),
                }
            )
            .execution_options(synchronize_session=False)
        )
        if vendor_id is not None:
            stmt = stmt.where(OrderRecord.vendor_id == vendor_id)
        with self.database.session() as session, session.begin():
            result = session.execute(stmt)
        return result.rowcount == 1

    def advance_aged(
        self,
        expected: OrderStatus,
        target: OrderStatus,
        received_before: datetime,
        at: datetime,
    ) -> int:
        """
        Move every order in ``expected`` received at or before ``received_before``.

        Returns:
            Number of orders advanced.
        """
        stmt = (
            update(OrderRecord)
            .where(OrderRecord.status == expected.value)
            .where(OrderRecord.received_at <= to_storage(received_before))
            .values(
                {
                    "status": target.value,
                    STATUS_TIMESTAMPS[target]: to_storage(at),
                }
            )
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session, session.begin():
            result = session.execute(stmt)
        return result.rowcount or 0

    # -------------------- reads --------------------

    def get_by_id(self, order_id: str) -> Order:
        """
        Get an order by internal ID.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        with self.database.session() as session:
            record = session.scalar(
                select(OrderRecord)
                .options(selectinload(OrderRecord.items))
                .where(OrderRecord.id == order_id)
            )
            if record is None:
                raise OrderNotFoundError(order_id)
            return _record_to_order(record)

    def find_by_number(self, order_number: str, customer_id: str) -> Order:
        """
        Get an order by order number, scoped to its customer.

        Raises:
            OrderNotFoundError: If no order with that number belongs to the customer.
        """
        with self.database.session() as session:
            record = session.scalar(
                select(OrderRecord)
                .options(selectinload(OrderRecord.items))
                .where(OrderRecord.order_number == order_number)
                .where(OrderRecord.user_id == customer_id)
            )
            if record is None:
                raise OrderNotFoundError(order_number)
            return _record_to_order(record)

    def list_for_customer(self, customer_id: str) -> list[Order]:
        """List a customer's orders, newest first."""
        with self.database.session() as session:
            records = session.scalars(
                select(OrderRecord)
                .options(selectinload(OrderRecord.items))
                .where(OrderRecord.user_id == customer_id)
                .order_by(OrderRecord.created_at.desc(), OrderRecord.order_number.desc())
            ).all()
            return [_record_to_order(r) for r in records]

    def list_for_vendor(self, vendor_id: str, limit: int = 50) -> list[Order]:
        """List a vendor's most recently received orders."""
        with self.database.session() as session:
            records = session.scalars(
                select(OrderRecord)
                .options(selectinload(OrderRecord.items))
                .where(OrderRecord.vendor_id == vendor_id)
                .order_by(OrderRecord.received_at.desc(), OrderRecord.order_number.desc())
                .limit(limit)
            ).all()
            return [_record_to_order(r) for r in records]

    # -------------------- vendors --------------------

    def vendor_exists(self, vendor_id: str) -> bool:
        with self.database.session() as session:
            return session.get(VendorRecord, vendor_id) is not None

    def menu_items(self, vendor_id: str, item_ids: list[str]) -> dict[str, CatalogEntry]:
        """Menu entries of a vendor for the given item IDs, keyed by item ID."""
        if not item_ids:
            return {}
        with self.database.session() as session:
            records = session.scalars(
                select(MenuItemRecord)
                .where(MenuItemRecord.vendor_id == vendor_id)
                .where(MenuItemRecord.id.in_(set(item_ids)))
            ).all()
            return {
                r.id: CatalogEntry(name=r.name, price=to_money(r.price)) for r in records
            }

    def add_vendor(
        self,
        vendor_id: str,
        name: str,
        menu: dict[str, CatalogEntry] | None = None,
    ) -> None:
        """Register a vendor (and optionally its menu) if it doesn't exist yet."""
        with self.database.session() as session, session.begin():
            vendor = session.get(VendorRecord, vendor_id)
            if vendor is None:
                vendor = VendorRecord(id=vendor_id, name=name)
                session.add(vendor)
            known = {m.id for m in vendor.menu_items}
            for item_id, entry in (menu or {}).items():
                if item_id in known:
                    continue
                vendor.menu_items.append(
                    MenuItemRecord(id=item_id, name=entry.name, price=to_money(entry.price))
                )
