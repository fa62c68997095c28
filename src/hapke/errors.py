"""Custom exceptions for hapke."""


class HapkeError(Exception):
    """Base exception for all hapke errors."""

    reason: str | None = None


class PaymentNotCompletedError(HapkeError):
    """Raised when a payment is not in the 'paid' state."""

    reason = "payment_not_completed"

    def __init__(self, payment_id: str, status: str):
        self.payment_id = payment_id
        self.status = status
        super().__init__(f"Payment {payment_id} has status {status}")


class PaymentLookupError(HapkeError):
    """Raised when the payment provider could not be queried."""

    reason = "payment_lookup_failed"

    def __init__(self, payment_id: str, cause: str):
        self.payment_id = payment_id
        self.cause = cause
        super().__init__(f"Payment lookup failed for {payment_id}: {cause}")


class PaymentProviderNotConfiguredError(HapkeError):
    """Raised when no payment provider API key is configured."""

    reason = "payment_provider_missing"

    def __init__(self):
        super().__init__("Payment provider API key is not configured")


class PaymentCreationError(HapkeError):
    """Raised when the payment provider rejects a new payment."""

    reason = "payment_creation_failed"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Payment creation failed: {detail}")


class VendorConfigurationMissingError(HapkeError):
    """Raised when an order has no vendor and no fallback vendor is configured."""

    reason = "vendor_configuration_missing"

    def __init__(self):
        super().__init__("No vendor given and no fallback vendor configured")


class VendorNotFoundError(HapkeError):
    """Raised when the requested vendor doesn't exist."""

    reason = "vendor_not_found"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor not found: {vendor_id}")


class UnknownMenuItemError(HapkeError):
    """Raised when an ordered item has no price in the vendor menu or catalog."""

    reason = "item_unknown"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Unknown menu item: {item_id}")


class OrderNotFoundError(HapkeError):
    """Raised when an order doesn't exist or isn't owned by the caller.

    Both cases share this error so that callers cannot probe for
    orders belonging to someone else.
    """

    reason = "order_not_found"

    def __init__(self, order_ref: str):
        self.order_ref = order_ref
        super().__init__(f"Order not found: {order_ref}")


class InvalidTransitionError(HapkeError):
    """Raised when a status change is not the single allowed next step."""

    reason = "transition_invalid"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current} to {requested}")


class UnknownStatusError(HapkeError):
    """Raised when a status string is not a known order status."""

    reason = "status_invalid"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unknown order status: {status}")


class StatusRequiredError(HapkeError):
    """Raised when a status update request carries no status."""

    reason = "status_missing"

    def __init__(self):
        super().__init__("Status is required")


class DuplicateOrderNumberError(HapkeError):
    """Raised when no unique order number could be stored."""

    reason = "order_number_conflict"

    def __init__(self, order_number: str, attempts: int):
        self.order_number = order_number
        self.attempts = attempts
        super().__init__(
            f"Order number {order_number} still collides after {attempts} attempts"
        )


class EmptyOrderError(HapkeError):
    """Raised when an order is submitted without any items."""

    reason = "items_empty"

    def __init__(self):
        super().__init__("An order needs at least one item")


class PaymentReferenceMissingError(HapkeError):
    """Raised when an order is submitted without a payment reference."""

    reason = "payment_id_missing"

    def __init__(self):
        super().__init__("A payment reference is required")
