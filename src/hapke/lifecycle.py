"""Order lifecycle state machine.

Orders move RECEIVED -> PREPARING -> ON_THE_WAY -> DELIVERED and never skip
a step. Two triggers drive the machine:

- the automatic tick, which advances orders by their age since receipt
  (total order age, not time spent in the current status);
- a vendor request, which may only ask for the single next status.

Both apply their change as a conditional update on the expected prior status,
so a tick and a vendor request racing on the same order cannot skip a step.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from .config import LifecycleThresholds
from .errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    StatusRequiredError,
    UnknownStatusError,
)
from .models import Order, OrderStatus, TickResult, _utc_now, next_status
from .order_store import OrderRepository

logger = logging.getLogger(__name__)

# Forward order: an overdue order passes through every step in one tick,
# each with its own timestamp, and a second tick finds nothing left to do.
AUTOMATIC_STEPS: tuple[tuple[OrderStatus, OrderStatus, str], ...] = (
    (OrderStatus.RECEIVED, OrderStatus.PREPARING, "preparing_after"),
    (OrderStatus.PREPARING, OrderStatus.ON_THE_WAY, "on_the_way_after"),
    (OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED, "delivered_after"),
)


def parse_status(raw: Optional[str]) -> OrderStatus:
    """
    Turn a client-supplied status string into an OrderStatus.

    Raises:
        StatusRequiredError: If no status was given.
        UnknownStatusError: If the value is not a known status.
    """
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        raise StatusRequiredError()
    try:
        return OrderStatus(raw)
    except ValueError:
        raise UnknownStatusError(str(raw))


class OrderLifecycle:
    """Applies automatic and vendor-requested status transitions."""

    def __init__(
        self,
        repository: OrderRepository,
        thresholds: LifecycleThresholds | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.repository = repository
        self.thresholds = thresholds or LifecycleThresholds()
        self._clock = clock

    def tick(self, now: datetime | None = None) -> TickResult:
        """Advance every order whose age passed the threshold of its next step."""
        now = now or self._clock()
        result = TickResult()
        for expected, target, threshold_name in AUTOMATIC_STEPS:
            threshold = getattr(self.thresholds, threshold_name)
            moved = self.repository.advance_aged(
                expected, target, received_before=now - threshold, at=now
            )
            setattr(result, target.name.lower(), moved)
        if result.total:
            logger.info("Lifecycle tick advanced orders: %s", result.to_dict())
        else:
            logger.debug("Lifecycle tick: nothing to advance")
        return result

    def trigger_now(self) -> TickResult:
        """Run a tick immediately, outside the ticker schedule."""
        return self.tick()

    def vendor_transition(
        self,
        vendor_id: str,
        order_id: str,
        requested: Optional[str],
    ) -> Order:
        """
        Move a vendor's order to the requested status.

        Raises:
            StatusRequiredError: If no status was given.
            UnknownStatusError: If the status is not a known value.
            OrderNotFoundError: If the order is missing or belongs to another vendor.
            InvalidTransitionError: If the status is not the single next step,
                including when a tick advanced the order in the meantime.
        """
        target = parse_status(requested)

        order = self.repository.get_by_id(order_id)
        if order.vendor_id != vendor_id:
            raise OrderNotFoundError(order_id)

        allowed = next_status(order.status)
        if target != allowed:
            raise InvalidTransitionError(order.status.value, target.value)

        applied = self.repository.advance(
            order.id, expected=order.status, target=target, at=self._clock(), vendor_id=vendor_id
        )
        if not applied:
            current = self.repository.get_by_id(order.id)
            raise InvalidTransitionError(current.status.value, target.value)

        logger.info(
            "Vendor %s moved order %s from %s to %s",
            vendor_id,
            order.order_number,
            order.status.value,
            target.value,
        )
        return self.repository.get_by_id(order.id)


class OrderTicker:
    """Background thread running lifecycle ticks on a fixed interval."""

    def __init__(self, lifecycle: OrderLifecycle, interval: float = 60.0) -> None:
        self.lifecycle = lifecycle
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="OrderTicker", daemon=True)
        self._thread.start()
        logger.info("Order ticker started (interval %.0fs)", self.interval)

    def stop(self, join: bool = True) -> None:
        self._stop_event.set()
        if join and self._thread is not None:
            self._thread.join()
        self._thread = None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> TickResult | None:
        """Run one tick; a failure is logged and reported as None."""
        try:
            return self.lifecycle.tick()
        except Exception:
            logger.exception("Failed to progress orders")
            return None

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.run_once()
