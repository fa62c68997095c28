"""Tests for the CLI."""

import json

import pytest

from hapke.catalog import DEFAULT_CATALOG
from hapke.cli import DEMO_VENDOR_ID, main
from hapke.config import Settings
from hapke.db import Database
from hapke.models import OrderStatus
from hapke.order_store import OrderRepository

from .conftest import place_order


@pytest.fixture
def cli_env(temp_dir, monkeypatch):
    """Point the CLI at a temporary database."""
    url = f"sqlite:///{temp_dir / 'cli.db'}"
    monkeypatch.setenv("HAPKE_DATABASE_URL", url)
    monkeypatch.delenv("DEMO_VENDOR_ID", raising=False)
    return url


def open_repository(url: str) -> OrderRepository:
    database = Database(url)
    database.create_all()
    return OrderRepository(database)


class TestCLI:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: hapke" in capsys.readouterr().out

    def test_init_db(self, cli_env, temp_dir, capsys):
        assert main(["init-db"]) == 0

        assert (temp_dir / "cli.db").exists()
        assert "Initialized database" in capsys.readouterr().out

    def test_seed_registers_demo_vendor(self, cli_env, capsys):
        assert main(["seed"]) == 0

        repository = open_repository(cli_env)
        assert repository.vendor_exists(DEMO_VENDOR_ID)
        assert len(repository.menu_items(DEMO_VENDOR_ID, list(DEFAULT_CATALOG))) == len(
            DEFAULT_CATALOG
        )
        out = capsys.readouterr().out
        assert "DEMO_VENDOR_ID=demo-vendor" in out

    def test_seed_twice_is_harmless(self, cli_env):
        assert main(["seed", "--vendor-id", "v9"]) == 0
        assert main(["seed", "--vendor-id", "v9"]) == 0

    def test_tick_advances_orders(self, cli_env, capsys):
        repository = open_repository(cli_env)
        repository.add_vendor("v1", "Test")
        order = place_order(repository, vendor_id="v1", minutes_ago=3)

        assert main(["tick", "--json"]) == 0

        counts = json.loads(capsys.readouterr().out)
        assert counts == {"preparing": 1, "on_the_way": 0, "delivered": 0}
        assert repository.get_by_id(order.id).status == OrderStatus.PREPARING

    def test_orders_for_vendor(self, cli_env, capsys):
        repository = open_repository(cli_env)
        repository.add_vendor("v1", "Test")
        order = place_order(repository, vendor_id="v1")

        assert main(["orders", "--vendor", "v1"]) == 0

        out = capsys.readouterr().out
        assert "Orders (1)" in out
        assert order.order_number in out
        assert "EUR 28.05" in out

    def test_orders_for_user_json(self, cli_env, capsys):
        repository = open_repository(cli_env)
        repository.add_vendor("v1", "Test")
        place_order(repository, vendor_id="v1", customer_id="alice")

        assert main(["orders", "--user", "alice", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert len(data) == 1
        assert data[0]["status"] == "RECEIVED"

    def test_orders_requires_owner(self, cli_env, capsys):
        assert main(["orders"]) == 1
        assert "--vendor or --user" in capsys.readouterr().err


class TestSettingsFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DEMO_VENDOR_ID", " vendor-x ")
        monkeypatch.setenv("HAPKE_PAYMENT_TIMEOUT", "3.5")
        monkeypatch.setenv("HAPKE_TICKER_ENABLED", "false")

        settings = Settings.from_env()

        assert settings.fallback_vendor_id == "vendor-x"
        assert settings.payment_timeout == 3.5
        assert settings.ticker_enabled is False

    def test_defaults(self, monkeypatch):
        for name in ("DEMO_VENDOR_ID", "MOLLIE_API_KEY", "HAPKE_TICK_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.fallback_vendor_id is None
        assert settings.payment_api_key is None
        assert settings.tick_interval == 60.0
        assert settings.thresholds.total_delivery_minutes == 25
