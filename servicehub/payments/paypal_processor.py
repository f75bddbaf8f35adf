# servicehub/payments/paypal_processor.py
"""
PayPal adapter for the payment processor template (REST Orders v2).

An order is created with intent CAPTURE, then captured. The OAuth2
client-credentials token is cached until shortly before it expires.
Every write carries a ``PayPal-Request-Id`` so that a repeated call
returns the original order or capture instead of creating a new one.
"""

from datetime import datetime, timezone
import logging
import time
from typing import Any, Callable, Dict, List, Optional
import uuid

import httpx

from ..core.config import settings
from ..core.exceptions import ServiceException, TransientServiceException
from ..schemas.payment import NextAction, PaymentData, PaymentIntent, PaymentResult
from .processor import PaymentProcessor

logger = logging.getLogger(__name__)

PAYMENT_SOURCE = "servicehub"
TOKEN_EXPIRY_MARGIN_SECONDS = 60
ZERO_DECIMAL_CURRENCIES = {"JPY"}
ACTION_ISSUES = {"PAYER_ACTION_REQUIRED", "ORDER_NOT_APPROVED"}


def format_amount(amount: float, currency: str) -> str:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return str(int(round(amount)))
    return f"{amount:.2f}"


def find_link(links: List[Dict[str, Any]], *rels: str) -> Optional[str]:
    for rel in rels:
        for link in links or []:
            if link.get("rel") == rel and link.get("href"):
                return link["href"]
    return None


def _error_issue(body: Dict[str, Any]) -> tuple[Optional[str], str]:
    details = body.get("details") or []
    issue = details[0].get("issue") if details else None
    description = (details[0].get("description") if details else None) or body.get("message")
    return issue, description or body.get("name") or "PayPal request failed"


class PayPalPaymentProcessor(PaymentProcessor):
    processor_name = "paypal"
    display_name = "PayPal"
    supported_currencies = ("EUR", "USD", "GBP", "CAD", "AUD", "JPY")
    supported_countries = ("FR", "US", "GB", "CA", "AU", "JP", "DE", "ES", "IT")

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if client_id is None:
            client_id = settings.paypal_client_id
        if client_secret is None and settings.paypal_client_secret is not None:
            client_secret = settings.paypal_client_secret.get_secret_value()
        self._client_id = client_id or None
        self._client_secret = client_secret or None
        self.base_url = (base_url or settings.paypal_base_url).rstrip("/")
        self._transport = transport
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def is_enabled(self) -> bool:
        return bool(self._client_id and self._client_secret)

    # HTTP plumbing

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds or settings.gateway_timeout_seconds or None,
            transport=self._transport,
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request; transport failures and 5xx answers are transient."""
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise TransientServiceException(
                f"PayPal request failed: {exc}", code="PAYPAL_UNAVAILABLE"
            ) from exc

        if response.status_code >= 500:
            raise TransientServiceException(
                f"PayPal returned {response.status_code}",
                status_code=response.status_code,
                code="PAYPAL_UNAVAILABLE",
                details={"path": path, "debug_id": response.headers.get("paypal-debug-id")},
            )
        return response

    async def _get_access_token(self) -> str:
        if self._access_token and self._clock() < self._token_expires_at:
            return self._access_token
        if not self.is_enabled():
            raise ServiceException("PayPal credentials are not configured", code="PAYPAL_ERROR")

        response = await self._send(
            "POST",
            "/v1/oauth2/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            raise ServiceException(
                f"PayPal authentication failed ({response.status_code})",
                code="PAYPAL_AUTH_ERROR",
            )
        body = response.json()
        self._access_token = body["access_token"]
        expires_in = float(body.get("expires_in", 0))
        self._token_expires_at = self._clock() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        return self._access_token

    async def _authorized(
        self, method: str, path: str, *, request_id: str, json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        token = await self._get_access_token()
        response = await self._send(
            method,
            path,
            json=json if json is not None else {},
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "PayPal-Request-Id": request_id,
                "Prefer": "return=representation",
            },
        )
        if response.status_code == 401:
            # Token revoked or expired early
            self._access_token = None
            raise ServiceException("PayPal rejected the access token", code="PAYPAL_AUTH_ERROR")
        return response

    # Pipeline steps

    async def before_payment(self, data: PaymentData) -> None:
        await super().before_payment(data)
        self.ensure_currency_supported(data.currency)
        logger.debug(
            "PayPal-specific pre-payment checks passed", extra={"currency": data.currency}
        )

    async def create_payment(self, data: PaymentData) -> PaymentIntent:
        logger.debug(
            "Creating PayPal order", extra={"amount": data.amount, "currency": data.currency}
        )
        currency = data.currency.upper()
        purchase_unit: Dict[str, Any] = {
            "amount": {"currency_code": currency, "value": format_amount(data.amount, currency)},
            "custom_id": data.customer_id,
        }
        if data.description:
            purchase_unit["description"] = data.description[:127]

        response = await self._authorized(
            "POST",
            "/v2/checkout/orders",
            request_id=data.idempotency_key or str(uuid.uuid4()),
            json={
                "intent": "CAPTURE",
                "purchase_units": [purchase_unit],
                "payment_source": {"paypal": {"vault_id": data.payment_method_id}},
            },
        )
        body = response.json()
        if response.status_code not in (200, 201):
            _, description = _error_issue(body)
            logger.error(
                f"PayPal order creation failed: {description}",
                extra={"status_code": response.status_code, "currency": currency},
            )
            raise ServiceException(
                f"PayPal order creation failed: {description}",
                code="PAYPAL_ERROR",
                details={"status_code": response.status_code},
            )

        order_id = body["id"]
        return PaymentIntent(
            id=order_id,
            amount=data.amount,
            currency=currency,
            status=body.get("status", "CREATED"),
            client_secret=order_id,
            metadata={
                **data.metadata,
                "source": PAYMENT_SOURCE,
                "processor": self.processor_name,
                "created_at": datetime.now(timezone.utc).isoformat(),
                "approve_url": find_link(body.get("links", []), "payer-action", "approve"),
            },
        )

    async def confirm_payment(self, intent: PaymentIntent, data: PaymentData) -> PaymentResult:
        logger.debug("Capturing PayPal order", extra={"payment_intent_id": intent.id})
        request_id = f"{data.idempotency_key or intent.id}:capture"
        response = await self._authorized(
            "POST", f"/v2/checkout/orders/{intent.id}/capture", request_id=request_id
        )
        body = response.json()

        if response.status_code in (200, 201):
            return self._result_from_order(intent, body)

        issue, description = _error_issue(body)
        if issue in ACTION_ISSUES:
            return PaymentResult.action_required(
                intent.id, NextAction(type="payer_action", url=intent.metadata.get("approve_url"))
            )

        logger.warning(
            f"PayPal capture declined: {description}",
            extra={"payment_intent_id": intent.id, "issue": issue},
        )
        return PaymentResult.failure(description, payment_intent_id=intent.id)

    def _result_from_order(self, intent: PaymentIntent, order: Dict[str, Any]) -> PaymentResult:
        status = order.get("status")
        if status == "PAYER_ACTION_REQUIRED":
            url = find_link(order.get("links", []), "payer-action", "approve")
            return PaymentResult.action_required(
                intent.id,
                NextAction(type="payer_action", url=url or intent.metadata.get("approve_url")),
            )
        if status != "COMPLETED":
            return PaymentResult.failure(f"Payment status: {status}", payment_intent_id=intent.id)

        captures = [
            capture
            for unit in order.get("purchase_units", [])
            for capture in (unit.get("payments") or {}).get("captures", [])
        ]
        capture = captures[0] if captures else {}
        if capture.get("status") == "DECLINED":
            return PaymentResult.failure("Payment declined", payment_intent_id=intent.id)
        return PaymentResult(
            success=True, payment_intent_id=intent.id, transaction_id=capture.get("id", "")
        )
