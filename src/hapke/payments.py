"""Payment provider adapter (Mollie-compatible REST API)."""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import (
    PaymentCreationError,
    PaymentLookupError,
    PaymentNotCompletedError,
    PaymentProviderNotConfiguredError,
)
from .models import CENT, CreatedPayment, PaymentAmount, PaymentResult, PricedItem, order_total

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = CENT


class PaymentGateway:
    """Looks up and creates payments at the external provider."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None):
        """
        Initialize PaymentGateway.

        Args:
            settings: Runtime settings (API key, base URL, timeout, prefixes).
            client: Override HTTP client (for testing).
        """
        self.settings = settings
        self.simulated_prefix = settings.simulated_payment_prefix
        self._client = client
        if not settings.payment_api_key:
            logger.warning("MOLLIE_API_KEY not set; real payments cannot be verified")

    @property
    def configured(self) -> bool:
        return bool(self.settings.payment_api_key)

    def _http(self) -> httpx.Client:
        if not self.configured:
            raise PaymentProviderNotConfiguredError()
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.settings.payment_api_base,
                headers={"Authorization": f"Bearer {self.settings.payment_api_key}"},
                timeout=self.settings.payment_timeout,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def is_simulated(self, payment_id: str) -> bool:
        return payment_id.startswith(self.simulated_prefix)

    def get_payment_status(self, payment_id: str) -> PaymentResult:
        """
        Fetch the current status of a payment.

        Simulated references are always paid and never reach the provider.

        Raises:
            PaymentProviderNotConfiguredError: If no API key is configured.
            PaymentLookupError: On timeout, transport failure or an error response.
        """
        if self.is_simulated(payment_id):
            return PaymentResult(
                payment_id=payment_id,
                status="paid",
                method="test-pay-later",
                amount=None,
                simulated=True,
            )

        client = self._http()
        try:
            response = client.get(f"/payments/{quote(payment_id, safe='')}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch payment %s: %s", payment_id, e)
            raise PaymentLookupError(payment_id, str(e)) from e

        amount = None
        raw_amount = data.get("amount")
        if isinstance(raw_amount, dict) and raw_amount.get("value") is not None:
            amount = PaymentAmount(
                value=str(raw_amount["value"]),
                currency=str(raw_amount.get("currency", "EUR")),
            )
        return PaymentResult(
            payment_id=payment_id,
            status=str(data.get("status", "unknown")),
            method=data.get("method"),
            amount=amount,
            simulated=False,
        )

    def ensure_paid(self, payment_id: str, expected_amount: Decimal) -> PaymentResult:
        """
        Require a payment to be in the 'paid' state.

        A confirmed amount that differs from the expected one is only logged;
        provider rounding must not block an otherwise paid order.

        Raises:
            PaymentNotCompletedError: If the payment is not paid.
        """
        payment = self.get_payment_status(payment_id)
        if not payment.is_paid:
            raise PaymentNotCompletedError(payment_id, payment.status)

        if payment.amount is not None:
            expected = Decimal(expected_amount).quantize(CENT)
            try:
                confirmed = Decimal(payment.amount.value)
            except InvalidOperation:
                confirmed = None
            if confirmed is not None and not confirmed.is_finite():
                confirmed = None
            if confirmed is not None and abs(confirmed - expected) > AMOUNT_TOLERANCE:
                logger.warning(
                    "Payment amount mismatch for %s: expected %s, got %s",
                    payment_id,
                    expected,
                    confirmed,
                )
        return payment

    def create_payment(
        self,
        items: list[PricedItem],
        method: str | None = None,
        email: str | None = None,
    ) -> CreatedPayment:
        """
        Create a payment for the given items and return its checkout link.

        Raises:
            PaymentProviderNotConfiguredError: If no API key is configured.
            PaymentCreationError: If the provider rejects the payment.
        """
        client = self._http()
        total = order_total(items)
        amount = total if total > 0 else CENT

        body: dict = {
            "amount": {"value": f"{amount:.2f}", "currency": "EUR"},
            "description": f"Hapke order {uuid.uuid4().hex[:8]}",
            "redirectUrl": self.success_base_url(),
            "webhookUrl": self.webhook_url(),
            "metadata": {
                "email": email,
                "items": [
                    {"id": i.id, "name": i.name, "qty": i.qty, "price": f"{i.price:.2f}"}
                    for i in items
                ],
            },
        }
        if (method or "").lower() == "ideal":
            body["method"] = "ideal"

        try:
            response = client.post("/payments", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response) or str(e)
            logger.error(
                "Failed to create payment: status=%s body=%s",
                e.response.status_code,
                e.response.text,
            )
            raise PaymentCreationError(detail) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to create payment: %s", e)
            raise PaymentCreationError(str(e)) from e

        payment_id = data["id"]
        success_url = self.success_url(payment_id)
        try:
            client.patch(
                f"/payments/{quote(payment_id, safe='')}",
                json={"redirectUrl": success_url},
            ).raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to update redirect URL for payment %s: %s", payment_id, e)

        checkout = (data.get("_links") or {}).get("checkout") or {}
        return CreatedPayment(
            payment_id=payment_id,
            checkout_url=checkout.get("href"),
            success_url=success_url,
            status=str(data.get("status", "open")),
        )

    def success_base_url(self) -> str:
        if self.settings.success_url_base:
            return self.settings.success_url_base
        return f"{self.settings.public_url.rstrip('/')}/payments/success"

    def success_url(self, payment_id: str) -> str:
        base = self.success_base_url()
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}id={quote(payment_id, safe='')}"

    def webhook_url(self) -> str:
        if self.settings.webhook_url:
            return self.settings.webhook_url
        return f"{self.settings.public_url.rstrip('/')}/payments/webhook"


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("detail")
        return str(detail) if detail else None
    return None
