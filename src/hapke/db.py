"""Relational schema and database access for hapke.

Timestamps are stored as naive UTC datetimes and converted back to aware
UTC datetimes when records are mapped to domain models.
"""

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
    select,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

from .models import OrderStatus


class Base(DeclarativeBase):
    pass


class VendorRecord(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    menu_items: Mapped[list["MenuItemRecord"]] = relationship(
        back_populates="vendor", cascade="all, delete-orphan"
    )


class MenuItemRecord(Base):
    __tablename__ = "vendor_menu_items"

    vendor_id: Mapped[str] = mapped_column(ForeignKey("vendors.id"), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    vendor: Mapped[VendorRecord] = relationship(back_populates="menu_items")


class OrderRecord(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vendor_id: Mapped[str | None] = mapped_column(
        ForeignKey("vendors.id"), nullable=True, index=True
    )
    payment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=OrderStatus.RECEIVED.value, index=True
    )
    received_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    preparing_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    on_the_way_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    items: Mapped[list["OrderItemRecord"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemRecord.position",
    )


class OrderItemRecord(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    menu_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped[OrderRecord] = relationship(back_populates="items")


def to_storage(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC for storage."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime | None) -> datetime | None:
    """Convert a stored naive UTC datetime to an aware one."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Database:
    """Owns the SQLAlchemy engine and session factory."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args: dict = {}
        if url.startswith("sqlite"):
            # The ticker thread and request threads share the engine
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, echo=echo, connect_args=connect_args)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @staticmethod
    def _ensure_sqlite_dir(url: str) -> None:
        prefix = "sqlite:///"
        if not url.startswith(prefix):
            return
        path = url[len(prefix):]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def create_all(self) -> None:
        """Create all tables that don't exist yet."""
        self._ensure_sqlite_dir(self.url)
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def order_count(self) -> int:
        with self.session() as session:
            return session.scalar(select(func.count()).select_from(OrderRecord)) or 0

    def dispose(self) -> None:
        self.engine.dispose()
