# servicehub/payments/processor.py
"""
Payment processor template.

``PaymentProcessor.process`` fixes the order of a payment run:

    validate -> before_payment -> create_payment -> confirm_payment
             -> after_payment -> record_metrics -> send_notification

Adapters implement ``create_payment`` / ``confirm_payment`` and may extend
the hooks. ``process`` converts every failure into a failed PaymentResult;
it only raises for errors raised outside the pipeline.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, field
import logging
from typing import Awaitable, List, Optional, TypeVar, final

from ..core.config import settings
from ..core.exceptions import GatewayTimeoutException, UnsupportedCurrencyException, ValidationException
from ..monitoring.prometheus_metrics import MetricsSink, prometheus_metrics
from ..monitoring.sentry import ErrorReporter, default_error_reporter
from ..schemas.payment import PaymentData, PaymentIntent, PaymentResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

_AMOUNT_RANGES = (
    (10, "0-10"),
    (50, "10-50"),
    (100, "50-100"),
    (500, "100-500"),
    (1000, "500-1000"),
)


def get_amount_range(amount: float) -> str:
    """Bucket an amount for metric labels."""
    for upper_bound, label in _AMOUNT_RANGES:
        if amount < upper_bound:
            return label
    return "1000+"


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    enabled: bool
    currencies: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)


class PaymentProcessor(ABC):
    """Template for a gateway-backed payment run."""

    processor_name: str = ""
    display_name: str = ""
    supported_currencies: tuple[str, ...] = ()
    supported_countries: tuple[str, ...] = ()

    def __init__(
        self,
        *,
        metrics: Optional[MetricsSink] = None,
        error_reporter: Optional[ErrorReporter] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.metrics: MetricsSink = metrics or prometheus_metrics
        self.error_reporter: ErrorReporter = error_reporter or default_error_reporter
        resolved_timeout = (
            settings.gateway_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        # A non-positive deadline disables the guard
        self.timeout_seconds: Optional[float] = resolved_timeout if resolved_timeout > 0 else None

    @final
    async def process(self, data: PaymentData) -> PaymentResult:
        """Run the full pipeline; failures come back as ``success=False``."""
        try:
            self.validate(data)
            await self.before_payment(data)
            intent = await self.create_payment_intent(data)
            result = await self.confirm_payment_intent(intent, data)
            await self.after_payment(intent, result)
            self.record_metrics(data, result)
            await self.send_notification(intent, result)
            return result
        except Exception as exc:
            logger.error(
                f"Payment processing failed in {self.processor_name}: {exc}",
                extra={
                    "processor": self.processor_name,
                    "amount": data.amount,
                    "currency": data.currency,
                    "error_type": type(exc).__name__,
                },
            )
            self.error_reporter.capture_exception(
                exc,
                tags={"processor": self.processor_name},
                extra={"amount": data.amount, "currency": data.currency},
            )
            return PaymentResult.failure(str(exc) or "Payment processing failed")

    # Gateway steps, bounded by the per-call deadline

    async def create_payment_intent(self, data: PaymentData) -> PaymentIntent:
        return await self._with_deadline("create_payment", self.create_payment(data))

    async def confirm_payment_intent(self, intent: PaymentIntent, data: PaymentData) -> PaymentResult:
        return await self._with_deadline("confirm_payment", self.confirm_payment(intent, data))

    async def _with_deadline(self, operation: str, awaitable: Awaitable[T]) -> T:
        if self.timeout_seconds is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise GatewayTimeoutException(
                f"{self.processor_name}.{operation}", self.timeout_seconds
            ) from exc

    # Pipeline steps

    def validate(self, data: PaymentData) -> None:
        """Reject structurally invalid payment data before any gateway call."""
        if data.amount <= 0:
            raise ValidationException("Amount must be positive")
        if not data.currency or len(data.currency) != 3:
            raise ValidationException("Invalid currency (must be an ISO 4217 code, e.g. EUR, USD)")
        if not data.customer_id or not data.customer_id.strip():
            raise ValidationException("Customer ID is required")
        if not data.payment_method_id or not data.payment_method_id.strip():
            raise ValidationException("Payment method ID is required")

        logger.debug(
            "Payment data validated", extra={"amount": data.amount, "currency": data.currency}
        )

    async def before_payment(self, data: PaymentData) -> None:
        logger.debug("Preparing payment", extra={"customer_id": data.customer_id})

    @abstractmethod
    async def create_payment(self, data: PaymentData) -> PaymentIntent:
        """Create a pending payment intent on the gateway."""

    @abstractmethod
    async def confirm_payment(self, intent: PaymentIntent, data: PaymentData) -> PaymentResult:
        """
        Confirm ``intent`` on the gateway.

        Declines come back as ``success=False`` and a customer step as
        ``requires_action=True``; only infrastructure failures raise.
        """

    async def after_payment(self, intent: PaymentIntent, result: PaymentResult) -> None:
        if result.success:
            logger.info(
                "Payment completed successfully",
                extra={"payment_intent_id": intent.id, "transaction_id": result.transaction_id},
            )
        else:
            logger.warning(
                "Payment failed",
                extra={"payment_intent_id": intent.id, "error": result.error},
            )

    def record_metrics(self, data: PaymentData, result: PaymentResult) -> None:
        currency = data.currency.lower()
        self.metrics.record_payment(
            currency=currency,
            processor=self.processor_name,
            success=result.success,
            amount_range=get_amount_range(data.amount),
        )
        if result.success:
            self.metrics.record_payment_amount(
                currency=currency, processor=self.processor_name, amount=data.amount
            )

    async def send_notification(self, intent: PaymentIntent, result: PaymentResult) -> None:
        # Delivery belongs to the facades
        if result.success:
            logger.debug(
                "Payment notification step reached",
                extra={"payment_intent_id": intent.id, "transaction_id": result.transaction_id},
            )

    # Provider description

    @abstractmethod
    def is_enabled(self) -> bool:
        """True when the adapter has the credentials it needs."""

    def supports(self, currency: str, country: Optional[str] = None) -> bool:
        if currency.upper() not in self.supported_currencies:
            return False
        return country is None or country.upper() in self.supported_countries

    def ensure_currency_supported(self, currency: str) -> None:
        if currency.upper() not in self.supported_currencies:
            raise UnsupportedCurrencyException(currency, self.display_name or self.processor_name)

    def get_provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.display_name,
            enabled=self.is_enabled(),
            currencies=list(self.supported_currencies),
            countries=list(self.supported_countries),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} processor={self.processor_name!r}>"

