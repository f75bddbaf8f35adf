# servicehub/payments/stripe_processor.py
"""
Stripe adapter for the payment processor template.

SDK calls are blocking and run in a worker thread so the event loop keeps
serving other requests while Stripe answers.
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

import stripe

from ..core.config import settings
from ..core.exceptions import ServiceException, TransientServiceException
from ..schemas.payment import NextAction, PaymentData, PaymentIntent, PaymentResult
from .processor import PaymentProcessor

logger = logging.getLogger(__name__)

PAYMENT_SOURCE = "servicehub"


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a StripeObject or a plain mapping."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def translate_stripe_error(exc: "stripe.StripeError", action: str) -> ServiceException:
    """Classify a non-card Stripe error: 5xx and connection failures are transient."""
    message = f"Stripe {action} failed: {exc.user_message or str(exc)}"
    http_status = getattr(exc, "http_status", None)
    if isinstance(exc, stripe.APIConnectionError) or (
        isinstance(http_status, int) and http_status >= 500
    ):
        return TransientServiceException(
            message,
            status_code=http_status,
            code="STRIPE_UNAVAILABLE",
            details={"stripe_code": getattr(exc, "code", None)},
        )
    return ServiceException(
        message,
        code="STRIPE_ERROR",
        details={"stripe_code": getattr(exc, "code", None), "http_status": http_status},
    )


class StripePaymentProcessor(PaymentProcessor):
    processor_name = "stripe"
    display_name = "Stripe"
    supported_currencies = ("EUR", "USD", "GBP", "CAD", "AUD")
    supported_countries = ("FR", "US", "GB", "CA", "AU", "DE", "ES", "IT")

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_version: Optional[str] = None,
        return_url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if api_key is None and settings.stripe_secret_key is not None:
            api_key = settings.stripe_secret_key.get_secret_value()
        self._api_key = api_key or None
        self.api_version = api_version or settings.stripe_api_version
        self.return_url = return_url

    def is_enabled(self) -> bool:
        return bool(self._api_key)

    def _request_options(self) -> Dict[str, Any]:
        return {"api_key": self._api_key, "stripe_version": self.api_version}

    async def before_payment(self, data: PaymentData) -> None:
        await super().before_payment(data)
        self.ensure_currency_supported(data.currency)
        logger.debug(
            "Stripe-specific pre-payment checks passed", extra={"currency": data.currency}
        )

    async def create_payment(self, data: PaymentData) -> PaymentIntent:
        logger.debug(
            "Creating Stripe payment intent",
            extra={"amount": data.amount, "currency": data.currency},
        )
        params: Dict[str, Any] = {
            "amount": round(data.amount * 100),
            "currency": data.currency.lower(),
            "customer": data.customer_id,
            "metadata": {
                **{key: str(value) for key, value in data.metadata.items()},
                "source": PAYMENT_SOURCE,
                "processor": self.processor_name,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "automatic_payment_methods": {"enabled": True},
            "confirmation_method": "manual",
            "capture_method": "automatic",
            **self._request_options(),
        }
        if data.description:
            params["description"] = data.description
        if data.idempotency_key:
            params["idempotency_key"] = data.idempotency_key

        try:
            stripe_intent = await asyncio.to_thread(stripe.PaymentIntent.create, **params)
        except stripe.StripeError as exc:
            logger.error(
                f"Stripe error creating payment intent: {str(exc)}",
                extra={"amount": data.amount, "currency": data.currency},
            )
            raise translate_stripe_error(exc, "payment intent creation") from exc

        return PaymentIntent(
            id=_field(stripe_intent, "id"),
            amount=_field(stripe_intent, "amount") / 100,
            currency=_field(stripe_intent, "currency"),
            status=_field(stripe_intent, "status"),
            client_secret=_field(stripe_intent, "client_secret"),
            metadata=dict(_field(stripe_intent, "metadata") or {}),
        )

    async def confirm_payment(self, intent: PaymentIntent, data: PaymentData) -> PaymentResult:
        logger.debug("Confirming Stripe payment", extra={"payment_intent_id": intent.id})
        params: Dict[str, Any] = {
            "payment_method": data.payment_method_id,
            **self._request_options(),
        }
        if self.return_url:
            params["return_url"] = self.return_url
        if data.idempotency_key:
            params["idempotency_key"] = f"{data.idempotency_key}:confirm"

        try:
            confirmed = await asyncio.to_thread(stripe.PaymentIntent.confirm, intent.id, **params)
        except stripe.CardError as exc:
            logger.warning(
                f"Stripe card declined: {exc.user_message or str(exc)}",
                extra={"payment_intent_id": intent.id, "decline_code": exc.code},
            )
            return PaymentResult.failure(
                exc.user_message or str(exc) or "Card error", payment_intent_id=intent.id
            )
        except stripe.StripeError as exc:
            logger.error(
                f"Stripe error confirming payment: {str(exc)}",
                extra={"payment_intent_id": intent.id},
            )
            raise translate_stripe_error(exc, "payment confirmation") from exc

        status = _field(confirmed, "status")
        if status == "requires_action":
            return PaymentResult.action_required(
                intent.id, self._next_action(_field(confirmed, "next_action"))
            )

        if status == "succeeded":
            latest_charge = _field(confirmed, "latest_charge")
            if latest_charge is not None and not isinstance(latest_charge, str):
                latest_charge = _field(latest_charge, "id")
            return PaymentResult(
                success=True,
                payment_intent_id=intent.id,
                transaction_id=latest_charge or "",
            )

        return PaymentResult.failure(f"Payment status: {status}", payment_intent_id=intent.id)

    @staticmethod
    def _next_action(next_action: Any) -> Optional[NextAction]:
        if next_action is None:
            return None
        action_type = _field(next_action, "type") or ""
        url = None
        if action_type == "redirect_to_url":
            url = _field(_field(next_action, "redirect_to_url"), "url")
        return NextAction(type=action_type, url=url or None)
