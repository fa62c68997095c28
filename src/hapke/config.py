"""Runtime configuration for hapke."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

# Local data directory within the hapke project
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{_default_data_dir / 'hapke.db'}"

DEFAULT_PAYMENT_API_BASE = "https://api.mollie.com/v2"
DEFAULT_PUBLIC_URL = "https://hapke-backend.onrender.com"
SIMULATED_PAYMENT_PREFIX = "simulated-payment-"


@dataclass(frozen=True)
class LifecycleThresholds:
    """Order age (since receipt) at which each automatic step fires."""

    preparing_after: timedelta = timedelta(minutes=2)
    on_the_way_after: timedelta = timedelta(minutes=10)
    delivered_after: timedelta = timedelta(minutes=25)

    @property
    def total_delivery_minutes(self) -> float:
        """Total delivery time used for ETA countdowns."""
        return self.delivered_after.total_seconds() / 60


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_str(name: str) -> str | None:
    value = (os.environ.get(name) or "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to every component at startup."""

    database_url: str = DEFAULT_DATABASE_URL
    fallback_vendor_id: str | None = None
    payment_api_key: str | None = None
    payment_api_base: str = DEFAULT_PAYMENT_API_BASE
    payment_timeout: float = 10.0
    simulated_payment_prefix: str = SIMULATED_PAYMENT_PREFIX
    success_url_base: str | None = None
    webhook_url: str | None = None
    public_url: str = DEFAULT_PUBLIC_URL
    tick_interval: float = 60.0
    ticker_enabled: bool = True
    thresholds: LifecycleThresholds = field(default_factory=LifecycleThresholds)
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = (
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from process environment variables."""
        return cls(
            database_url=_env_str("HAPKE_DATABASE_URL") or DEFAULT_DATABASE_URL,
            fallback_vendor_id=_env_str("DEMO_VENDOR_ID"),
            payment_api_key=_env_str("MOLLIE_API_KEY"),
            payment_api_base=_env_str("MOLLIE_API_BASE") or DEFAULT_PAYMENT_API_BASE,
            payment_timeout=float(_env_str("HAPKE_PAYMENT_TIMEOUT") or 10.0),
            success_url_base=_env_str("PAYMENTS_SUCCESS_URL_BASE"),
            webhook_url=_env_str("PAYMENTS_WEBHOOK_URL"),
            public_url=_env_str("RENDER_EXTERNAL_URL") or DEFAULT_PUBLIC_URL,
            tick_interval=float(_env_str("HAPKE_TICK_INTERVAL") or 60.0),
            ticker_enabled=_env_bool("HAPKE_TICKER_ENABLED", True),
            log_level=_env_str("HAPKE_LOG_LEVEL") or "INFO",
        )
