"""FastAPI REST API for hapke orders and payments."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .catalog import price_items
from .config import Settings
from .db import Database
from .errors import (
    DuplicateOrderNumberError,
    EmptyOrderError,
    HapkeError,
    InvalidTransitionError,
    OrderNotFoundError,
    PaymentCreationError,
    PaymentLookupError,
    PaymentNotCompletedError,
    PaymentProviderNotConfiguredError,
    PaymentReferenceMissingError,
    StatusRequiredError,
    UnknownMenuItemError,
    UnknownStatusError,
    VendorConfigurationMissingError,
    VendorNotFoundError,
)
from .lifecycle import OrderLifecycle, OrderTicker
from .log import setup_logging
from .models import OrderItemInput
from .order_store import OrderRepository
from .orders import NewOrder, OrderService
from .payments import PaymentGateway
from .queries import OrderQueries


# --- Pydantic Schemas ---


class OrderItemSchema(BaseModel):
    id: str = Field(..., min_length=1)
    qty: int = Field(default=1, ge=1)


class CreateOrderRequest(BaseModel):
    """Request body for placing an order."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[OrderItemSchema] = Field(..., min_length=1)
    payment_id: str = Field(..., alias="paymentId", min_length=1)
    restaurant_id: Optional[str] = Field(None, alias="restaurantId")


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[OrderItemSchema] = Field(default_factory=list)
    method: Optional[str] = None
    email: Optional[str] = None
    restaurant_id: Optional[str] = Field(None, alias="restaurantId")


class StepSchema(BaseModel):
    name: str
    at: Optional[str]


class OrderLineSchema(BaseModel):
    id: str
    productName: str
    name: str
    qty: int
    unitPrice: float


class OrderStatusResponse(BaseModel):
    orderId: str
    status: str
    etaMinutes: int
    steps: list[StepSchema]


class OrderDetailResponse(OrderStatusResponse):
    total: float
    createdAt: str
    items: list[OrderLineSchema]


class OrderListResponse(BaseModel):
    orders: list[OrderDetailResponse]
    count: int


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


class BlockedResponse(BaseModel):
    result: str = "blocked"
    reason: str


# --- Services ---


@dataclass
class Services:
    """Components wired together for one application instance."""

    settings: Settings
    database: Database
    repository: OrderRepository
    payments: PaymentGateway
    lifecycle: OrderLifecycle
    queries: OrderQueries
    orders: OrderService
    ticker: OrderTicker

    @classmethod
    def build(
        cls,
        settings: Settings,
        database: Database | None = None,
        payments: PaymentGateway | None = None,
    ) -> "Services":
        database = database or Database(settings.database_url)
        repository = OrderRepository(database)
        payments = payments or PaymentGateway(settings)
        lifecycle = OrderLifecycle(repository, settings.thresholds)
        return cls(
            settings=settings,
            database=database,
            repository=repository,
            payments=payments,
            lifecycle=lifecycle,
            queries=OrderQueries(repository, settings.thresholds),
            orders=OrderService(settings, repository, payments, lifecycle),
            ticker=OrderTicker(lifecycle, interval=settings.tick_interval),
        )


def get_services(request: Request) -> Services:
    """Get the Services of the running app."""
    return request.app.state.services


def current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated customer ID, set by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unknown user")
    return x_user_id.strip()


def current_vendor_id(x_vendor_id: Optional[str] = Header(None)) -> str:
    """Authenticated vendor ID, set by the upstream auth layer."""
    if not x_vendor_id or not x_vendor_id.strip():
        raise HTTPException(status_code=401, detail="Unknown vendor")
    return x_vendor_id.strip()


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    PaymentNotCompletedError: 400,
    PaymentLookupError: 502,
    PaymentProviderNotConfiguredError: 400,
    PaymentCreationError: 400,
    PaymentReferenceMissingError: 400,
    VendorConfigurationMissingError: 500,
    VendorNotFoundError: 400,
    UnknownMenuItemError: 400,
    EmptyOrderError: 400,
    OrderNotFoundError: 404,
    InvalidTransitionError: 409,
    UnknownStatusError: 400,
    StatusRequiredError: 400,
    DuplicateOrderNumberError: 500,
}

# The vendor status endpoint reports every refusal as a "blocked" result
VENDOR_BLOCK_STATUS_CODES: dict[type, int] = {
    StatusRequiredError: 400,
    UnknownStatusError: 400,
    OrderNotFoundError: 400,
    InvalidTransitionError: 409,
}


async def hapke_error_handler(request: Request, exc: HapkeError) -> JSONResponse:
    """Map HapkeError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- App ---


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    payments: PaymentGateway | None = None,
) -> FastAPI:
    """Build the FastAPI app with its own services."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)
    services = Services.build(settings, database=database, payments=payments)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.database.create_all()
        if settings.ticker_enabled:
            services.ticker.start()
        try:
            yield
        finally:
            services.ticker.stop()
            services.payments.close()

    app = FastAPI(
        title="hapke API",
        description="REST API for Hapke orders and payments",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HapkeError, hapke_error_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/health")
    def health_check(services: Services = Depends(get_services)):
        """Health check endpoint."""
        try:
            return {
                "status": "ok",
                "order_count": services.database.order_count(),
                "ticker_running": services.ticker.is_alive(),
            }
        except Exception as e:
            return {
                "status": "error",
                "detail": str(e),
            }

    # --- Customer Orders ---

    @app.post("/api/orders", response_model=OrderDetailResponse, status_code=201)
    def create_order(
        request: CreateOrderRequest,
        user_id: str = Depends(current_user_id),
        services: Services = Depends(get_services),
    ):
        """Place an order paid with ``paymentId``."""
        order = services.orders.create_order(
            user_id,
            NewOrder(
                items=[OrderItemInput(id=i.id, qty=i.qty) for i in request.items],
                payment_id=request.payment_id,
                vendor_id=request.restaurant_id,
            ),
        )
        return services.queries.detail_view(order)

    @app.get("/api/orders", response_model=OrderListResponse)
    def list_orders(
        user_id: str = Depends(current_user_id),
        services: Services = Depends(get_services),
    ):
        orders = services.queries.list_customer_orders(user_id)
        return {"orders": orders, "count": len(orders)}

    @app.get("/api/orders/{order_number}/status", response_model=OrderStatusResponse)
    def get_order_status(
        order_number: str,
        user_id: str = Depends(current_user_id),
        services: Services = Depends(get_services),
    ):
        return services.queries.get_order_status(order_number, user_id)

    @app.get("/api/orders/{order_number}", response_model=OrderDetailResponse)
    def get_order(
        order_number: str,
        user_id: str = Depends(current_user_id),
        services: Services = Depends(get_services),
    ):
        return services.queries.get_order_detail(order_number, user_id)

    # --- Vendor Orders ---

    @app.get("/api/vendor/orders")
    def list_vendor_orders(
        vendor_id: str = Depends(current_vendor_id),
        services: Services = Depends(get_services),
    ):
        """Latest 50 orders of the calling vendor."""
        orders = services.queries.list_vendor_orders(vendor_id)
        return {"orders": orders, "count": len(orders)}

    @app.patch("/api/vendor/orders/{order_id}/status")
    def update_vendor_order_status(
        order_id: str,
        request: Optional[StatusUpdateRequest] = None,
        vendor_id: str = Depends(current_vendor_id),
        services: Services = Depends(get_services),
    ):
        """
        Move one of the vendor's orders to its next status.

        Refusals come back as ``{"result": "blocked", "reason": ...}``.
        """
        requested = request.status if request is not None else None
        try:
            services.lifecycle.vendor_transition(vendor_id, order_id, requested)
        except tuple(VENDOR_BLOCK_STATUS_CODES) as e:
            return JSONResponse(
                status_code=VENDOR_BLOCK_STATUS_CODES[type(e)],
                content=BlockedResponse(reason=e.reason).model_dump(),
            )
        return {"result": "updated"}

    # --- Payments ---

    @app.post("/api/payments", status_code=201)
    def create_payment(
        request: CreatePaymentRequest,
        services: Services = Depends(get_services),
    ):
        """Create a payment at the provider for the given items."""
        menu = {}
        if request.restaurant_id:
            menu = services.repository.menu_items(
                request.restaurant_id, [i.id for i in request.items]
            )
        items = price_items([OrderItemInput(id=i.id, qty=i.qty) for i in request.items], menu)
        payment = services.payments.create_payment(
            items, method=request.method, email=request.email
        )
        return payment.to_dict()

    @app.get("/api/payments/{payment_id}")
    def get_payment(payment_id: str, services: Services = Depends(get_services)):
        return services.payments.get_payment_status(payment_id).to_dict()


app = create_app()
