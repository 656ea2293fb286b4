"""
Paystack client: payment-link creation and transaction lookup.

Amounts are sent in minor units (pesewas). Failures surface as
``PaymentError`` and are never retried; payment confirmation by webhook is
out of scope, ``verify_payment`` is a read-only lookup.
"""

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from invoicing.config import settings
from invoicing.exceptions import PaymentError
from invoicing.schemas.invoice import InvoiceResponse

logger = structlog.get_logger()

PAYMENT_CHANNELS = ["mobile_money", "card", "bank_transfer"]

# Module-level singleton, reuses TLS connections across calls
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    return _http_client


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def build_reference(invoice_id: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"INV-{invoice_id[:8]}-{now_ms}"


def whatsapp_share_url(phone: str, customer_name: str, payment_url: str) -> str:
    number = "".join(phone.split()).lstrip("+")
    message = f"Hi {customer_name}, here's your invoice payment link: {payment_url}"
    return f"https://wa.me/{number}?text={quote(message, safe='')}"


@dataclass
class PaymentLink:
    authorization_url: str
    reference: str
    access_code: Optional[str] = None


class PaystackClient:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self._http = http

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, fallback_error: str, **kwargs) -> dict:
        client = self._http or get_http_client()
        try:
            response = await client.request(
                method, f"{self.base_url}{path}", headers=self.headers, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.error("paystack_network_error", path=path, error=str(exc))
            raise PaymentError(fallback_error) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or fallback_error
            logger.error(
                "paystack_request_failed",
                path=path,
                status_code=response.status_code,
                message=message,
            )
            raise PaymentError(message)
        return body.get("data") or {}

    async def initialize_payment(
        self,
        *,
        email: str,
        amount: float,
        reference: str,
        callback_url: str,
        metadata: dict,
        currency: Optional[str] = None,
    ) -> dict:
        payload = {
            "email": email,
            "amount": to_minor_units(amount),
            "currency": currency or settings.CURRENCY,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
            "channels": PAYMENT_CHANNELS,
        }
        data = await self._request(
            "POST", "/transaction/initialize", "Payment initialization failed", json=payload
        )
        logger.info("paystack_payment_initialized", reference=reference, amount=payload["amount"])
        return data

    async def verify_payment(self, reference: str) -> dict:
        return await self._request(
            "GET", f"/transaction/verify/{quote(reference, safe='')}", "Payment verification failed"
        )

    async def create_payment_link(
        self,
        invoice: InvoiceResponse,
        email: str,
        callback_url: Optional[str] = None,
    ) -> PaymentLink:
        reference = build_reference(invoice.id)
        data = await self.initialize_payment(
            email=email,
            amount=invoice.total_amount,
            reference=reference,
            callback_url=callback_url or settings.PAYMENT_CALLBACK_URL,
            metadata={"invoice_id": invoice.id, "customer_name": invoice.customer_name},
            currency=invoice.currency,
        )
        authorization_url = data.get("authorization_url")
        if not authorization_url:
            logger.error("paystack_missing_authorization_url", reference=reference)
            raise PaymentError("Payment gateway returned no authorization URL")
        return PaymentLink(
            authorization_url=authorization_url,
            reference=data.get("reference") or reference,
            access_code=data.get("access_code"),
        )


paystack_client = PaystackClient()
