"""Pytest fixtures for hapke tests."""

import tempfile
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from hapke.catalog import CatalogEntry
from hapke.config import Settings
from hapke.db import Database
from hapke.lifecycle import OrderLifecycle
from hapke.models import PricedItem, _utc_now, order_total
from hapke.order_store import OrderRepository

VENDOR_ID = "vendor-1"
OTHER_VENDOR_ID = "vendor-2"

MENU = {
    "p1": CatalogEntry(name="Pizza Funghi", price=Decimal("10.50")),
    "p2": CatalogEntry(name="Cola", price=Decimal("2.35")),
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir):
    """Settings on a fresh SQLite file, with the ticker off."""
    return Settings(
        database_url=f"sqlite:///{temp_dir / 'hapke.db'}",
        fallback_vendor_id=VENDOR_ID,
        payment_api_key="test_key",
        payment_api_base="https://payments.test/v2",
        ticker_enabled=False,
    )


@pytest.fixture
def database(settings):
    """Database with all tables created."""
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def repository(database):
    """Repository with two vendors registered."""
    repo = OrderRepository(database)
    repo.add_vendor(VENDOR_ID, "Pizzeria Uno", menu=MENU)
    repo.add_vendor(OTHER_VENDOR_ID, "Sushi Twee")
    return repo


@pytest.fixture
def lifecycle(repository, settings):
    return OrderLifecycle(repository, settings.thresholds)


def make_items() -> list[PricedItem]:
    return [
        PricedItem(id="p1", name="Pizza Funghi", qty=2, price=Decimal("10.50")),
        PricedItem(id="p2", name="Cola", qty=3, price=Decimal("2.35")),
    ]


def place_order(
    repository: OrderRepository,
    minutes_ago: float = 0,
    customer_id: str = "user-1",
    vendor_id: str = VENDOR_ID,
):
    """Store an order received ``minutes_ago`` minutes in the past."""
    items = make_items()
    return repository.create(
        customer_id=customer_id,
        vendor_id=vendor_id,
        payment_id="simulated-payment-test",
        items=items,
        total=order_total(items),
        received_at=_utc_now() - timedelta(minutes=minutes_ago),
    )
