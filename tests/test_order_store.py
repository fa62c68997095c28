"""Tests for OrderRepository."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from hapke.errors import DuplicateOrderNumberError, OrderNotFoundError
from hapke.models import OrderStatus, _utc_now
from hapke.order_store import OrderNumberGenerator, OrderRepository

from .conftest import OTHER_VENDOR_ID, VENDOR_ID, place_order


class TestOrderNumberGenerator:
    def test_format(self):
        generate = OrderNumberGenerator(clock=lambda: 1700000000.123)
        assert generate() == "ORD-1700000000123"

    def test_same_millisecond_still_unique(self):
        generate = OrderNumberGenerator(clock=lambda: 1700000000.0)
        numbers = [generate() for _ in range(5)]

        assert len(set(numbers)) == 5
        assert numbers == sorted(numbers)

    def test_clock_going_backwards_stays_increasing(self):
        ticks = iter([2.0, 1.0])
        generate = OrderNumberGenerator(clock=lambda: next(ticks))

        assert generate() == "ORD-2000"
        assert generate() == "ORD-2001"


class TestCreate:
    def test_creates_order_with_items(self, repository):
        order = place_order(repository)

        assert order.order_number.startswith("ORD-")
        assert order.status == OrderStatus.RECEIVED
        assert order.received_at is not None
        assert order.preparing_at is None
        assert order.on_the_way_at is None
        assert order.delivered_at is None
        assert order.vendor_id == VENDOR_ID
        assert [(i.menu_item_id, i.qty) for i in order.items] == [("p1", 2), ("p2", 3)]

    def test_total_matches_items(self, repository):
        order = place_order(repository)

        expected = sum(i.unit_price * i.qty for i in order.items)
        assert order.total == expected == Decimal("28.05")

    def test_snapshots_names_and_prices(self, repository):
        order = place_order(repository)

        assert order.items[0].product_name == "Pizza Funghi"
        assert order.items[0].unit_price == Decimal("10.50")

    def test_retries_on_order_number_collision(self, database):
        numbers = iter(["ORD-1", "ORD-1", "ORD-2"])
        repository = OrderRepository(database, number_generator=lambda: next(numbers))
        repository.add_vendor(VENDOR_ID, "Pizzeria Uno")

        first = place_order(repository)
        second = place_order(repository)

        assert first.order_number == "ORD-1"
        assert second.order_number == "ORD-2"
        assert len(repository.list_for_vendor(VENDOR_ID)) == 2

    def test_gives_up_after_repeated_collisions(self, database):
        repository = OrderRepository(database, number_generator=lambda: "ORD-7")
        repository.add_vendor(VENDOR_ID, "Pizzeria Uno")
        place_order(repository)

        with pytest.raises(DuplicateOrderNumberError):
            place_order(repository)

        # The failed attempts left no partial order or items behind
        assert len(repository.list_for_vendor(VENDOR_ID)) == 1

    def test_other_constraint_violation_is_not_retried(self, database, monkeypatch):
        issued = []

        def next_number():
            issued.append(f"ORD-{len(issued) + 1}")
            return issued[-1]

        repository = OrderRepository(database, number_generator=next_number)
        repository.add_vendor(VENDOR_ID, "Pizzeria Uno")
        monkeypatch.setattr("hapke.order_store._generate_id", lambda: "same-id")
        place_order(repository)

        with pytest.raises(IntegrityError):
            place_order(repository)

        assert issued == ["ORD-1", "ORD-2"]


class TestFind:
    def test_find_by_number_for_owner(self, repository):
        order = place_order(repository, customer_id="alice")

        found = repository.find_by_number(order.order_number, "alice")
        assert found.id == order.id

    def test_find_by_number_other_owner_not_found(self, repository):
        order = place_order(repository, customer_id="alice")

        with pytest.raises(OrderNotFoundError):
            repository.find_by_number(order.order_number, "bob")

    def test_get_by_id_missing(self, repository):
        with pytest.raises(OrderNotFoundError):
            repository.get_by_id("does-not-exist")

    def test_list_for_vendor_newest_first(self, repository):
        old = place_order(repository, minutes_ago=30)
        new = place_order(repository, minutes_ago=1)
        place_order(repository, vendor_id=OTHER_VENDOR_ID)

        orders = repository.list_for_vendor(VENDOR_ID)
        assert [o.id for o in orders] == [new.id, old.id]

    def test_list_for_vendor_limit(self, repository):
        for minutes in range(5):
            place_order(repository, minutes_ago=minutes)

        assert len(repository.list_for_vendor(VENDOR_ID, limit=3)) == 3

    def test_list_for_customer(self, repository):
        place_order(repository, customer_id="alice")
        place_order(repository, customer_id="alice")
        place_order(repository, customer_id="bob")

        assert len(repository.list_for_customer("alice")) == 2


class TestAdvance:
    def test_advance_stamps_status_and_timestamp(self, repository):
        order = place_order(repository)
        at = _utc_now()

        assert repository.advance(order.id, OrderStatus.RECEIVED, OrderStatus.PREPARING, at)

        updated = repository.get_by_id(order.id)
        assert updated.status == OrderStatus.PREPARING
        assert abs(updated.preparing_at - at) < timedelta(milliseconds=1)

    def test_advance_requires_expected_status(self, repository):
        order = place_order(repository)

        changed = repository.advance(
            order.id, OrderStatus.PREPARING, OrderStatus.ON_THE_WAY, _utc_now()
        )

        assert changed is False
        unchanged = repository.get_by_id(order.id)
        assert unchanged.status == OrderStatus.RECEIVED
        assert unchanged.on_the_way_at is None

    def test_advance_scoped_to_vendor(self, repository):
        order = place_order(repository)

        changed = repository.advance(
            order.id,
            OrderStatus.RECEIVED,
            OrderStatus.PREPARING,
            _utc_now(),
            vendor_id=OTHER_VENDOR_ID,
        )

        assert changed is False
        assert repository.get_by_id(order.id).status == OrderStatus.RECEIVED

    def test_advance_aged_only_matches_old_orders(self, repository):
        old = place_order(repository, minutes_ago=5)
        fresh = place_order(repository, minutes_ago=0)
        now = _utc_now()

        moved = repository.advance_aged(
            OrderStatus.RECEIVED,
            OrderStatus.PREPARING,
            received_before=now - timedelta(minutes=2),
            at=now,
        )

        assert moved == 1
        assert repository.get_by_id(old.id).status == OrderStatus.PREPARING
        assert repository.get_by_id(fresh.id).status == OrderStatus.RECEIVED


class TestVendors:
    def test_vendor_exists(self, repository):
        assert repository.vendor_exists(VENDOR_ID)
        assert not repository.vendor_exists("ghost")

    def test_menu_items_scoped_to_vendor(self, repository):
        menu = repository.menu_items(VENDOR_ID, ["p1", "unknown"])
        assert set(menu) == {"p1"}
        assert menu["p1"].price == Decimal("10.50")

        assert repository.menu_items(OTHER_VENDOR_ID, ["p1"]) == {}

    def test_add_vendor_is_idempotent(self, repository):
        repository.add_vendor(VENDOR_ID, "Pizzeria Uno")
        assert len(repository.menu_items(VENDOR_ID, ["p1", "p2"])) == 2
