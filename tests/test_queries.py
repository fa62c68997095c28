"""Tests for the order read views."""

from datetime import timedelta

import pytest

from hapke.config import LifecycleThresholds
from hapke.errors import OrderNotFoundError
from hapke.models import OrderStatus
from hapke.queries import OrderQueries, eta_minutes

from .conftest import OTHER_VENDOR_ID, VENDOR_ID, place_order


@pytest.fixture
def queries(repository, settings):
    return OrderQueries(repository, settings.thresholds)


class TestEta:
    def test_fresh_order_full_countdown(self, repository):
        order = place_order(repository)
        assert eta_minutes(order, order.received_at, 25) == 25

    def test_rounds_remaining_up(self, repository):
        order = place_order(repository)
        now = order.received_at + timedelta(minutes=10, seconds=30)
        assert eta_minutes(order, now, 25) == 15

    def test_floors_at_zero(self, repository):
        order = place_order(repository)
        now = order.received_at + timedelta(minutes=40)
        assert eta_minutes(order, now, 25) == 0

    def test_zero_once_delivered(self, repository, lifecycle):
        order = place_order(repository)
        for status in ("PREPARING", "ON_THE_WAY", "DELIVERED"):
            order = lifecycle.vendor_transition(VENDOR_ID, order.id, status)

        assert eta_minutes(order, order.received_at, 25) == 0

    def test_uses_lifecycle_delivery_threshold(self, repository):
        thresholds = LifecycleThresholds(delivered_after=timedelta(minutes=40))
        queries = OrderQueries(repository, thresholds)
        order = place_order(repository)

        assert queries.total_minutes == 40
        assert queries.eta(order) in (39, 40)


class TestGetOrderStatus:
    def test_status_view(self, repository, queries):
        order = place_order(repository, customer_id="alice", minutes_ago=5)

        view = queries.get_order_status(order.order_number, "alice")

        assert view["orderId"] == order.order_number
        assert view["status"] == "RECEIVED"
        assert view["etaMinutes"] == 20
        assert [s["name"] for s in view["steps"]] == [
            "RECEIVED",
            "PREPARING",
            "ON_THE_WAY",
            "DELIVERED",
        ]
        assert view["steps"][0]["at"] is not None
        assert all(s["at"] is None for s in view["steps"][1:])

    def test_other_customer_not_found(self, repository, queries):
        order = place_order(repository, customer_id="alice")

        with pytest.raises(OrderNotFoundError) as exc_info:
            queries.get_order_status(order.order_number, "mallory")
        assert exc_info.value.order_ref == order.order_number

    def test_unknown_number_not_found(self, queries):
        with pytest.raises(OrderNotFoundError):
            queries.get_order_status("ORD-0", "alice")

    def test_reflects_tick(self, repository, queries, lifecycle):
        order = place_order(repository, customer_id="alice", minutes_ago=3)
        lifecycle.tick()

        view = queries.get_order_status(order.order_number, "alice")
        assert view["status"] == OrderStatus.PREPARING.value
        assert view["steps"][1]["at"] is not None


class TestGetOrderDetail:
    def test_detail_view(self, repository, queries):
        order = place_order(repository, customer_id="alice")

        view = queries.get_order_detail(order.order_number, "alice")

        assert view["total"] == 28.05
        assert view["createdAt"].endswith("Z")
        assert view["items"][0] == {
            "id": "p1",
            "productName": "Pizza Funghi",
            "name": "Pizza Funghi",
            "qty": 2,
            "unitPrice": 10.5,
        }

    def test_other_customer_not_found(self, repository, queries):
        order = place_order(repository, customer_id="alice")

        with pytest.raises(OrderNotFoundError):
            queries.get_order_detail(order.order_number, "bob")


class TestLists:
    def test_vendor_orders(self, repository, queries):
        mine = place_order(repository)
        place_order(repository, vendor_id=OTHER_VENDOR_ID)

        views = queries.list_vendor_orders(VENDOR_ID)

        assert [v["id"] for v in views] == [mine.id]
        assert views[0]["status"] == "RECEIVED"
        assert "etaMinutes" in views[0]

    def test_customer_orders(self, repository, queries):
        place_order(repository, customer_id="alice")
        place_order(repository, customer_id="bob")

        views = queries.list_customer_orders("alice")
        assert len(views) == 1
        assert views[0]["status"] == "RECEIVED"
