# servicehub/services/payment_service.py
"""
Payment service backed by a payment processor.

Splits the processor pipeline into the two gateway steps the payment facade
drives separately (and retries separately): intent creation and
confirmation of that same intent.
"""

from typing import Any, Dict, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import ServiceException, is_transient_error
from ..infrastructure.cache.memory_cache import MemoryCacheBackend
from ..monitoring.sentry import ErrorReporter
from ..payments.processor import PaymentProcessor
from ..schemas.payment import PaymentData, PaymentIntent, PaymentResult
from .base import BaseService


class GatewayPaymentService(BaseService):
    """
    Payment service contract on top of a PaymentProcessor.

    Created intents stay confirmable until they reach a final outcome or
    their TTL runs out. Intents awaiting customer action and intents whose
    confirmation failed transiently remain open so the same intent can be
    confirmed again; a non-transient confirmation error closes the intent.
    """

    KEY_PREFIX = "payment_intent"

    def __init__(
        self,
        processor: PaymentProcessor,
        error_reporter: Optional[ErrorReporter] = None,
        *,
        intent_store: Optional[MemoryCacheBackend] = None,
        intent_ttl: Optional[int] = None,
    ):
        super().__init__(error_reporter=error_reporter)
        self.processor = processor
        self._open_intents = intent_store if intent_store is not None else MemoryCacheBackend()
        self.intent_ttl = intent_ttl if intent_ttl is not None else settings.payment_intent_ttl_seconds

    def _key(self, intent_id: str) -> str:
        return f"{self.KEY_PREFIX}:{intent_id}"

    async def _remember(self, intent: PaymentIntent, data: PaymentData) -> None:
        await self._open_intents.purge_expired()
        await self._open_intents.set(
            self._key(intent.id),
            {"intent": intent.model_dump(mode="json"), "data": data.model_dump(mode="json")},
            ttl=self.intent_ttl,
        )

    async def _recall(self, intent_id: str) -> Optional[Tuple[PaymentIntent, PaymentData]]:
        stored = await self._open_intents.get(self._key(intent_id))
        if stored is None:
            return None
        return PaymentIntent.model_validate(stored["intent"]), PaymentData.model_validate(stored["data"])

    async def _forget(self, intent_id: str) -> None:
        await self._open_intents.delete(self._key(intent_id))

    @BaseService.measure_operation("create_payment_intent")
    async def create_payment_intent(
        self,
        amount: float,
        currency: str,
        customer_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        payment_method_id: str = "",
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        data = PaymentData(
            amount=amount,
            currency=currency,
            customer_id=customer_id,
            payment_method_id=payment_method_id,
            description=description,
            idempotency_key=idempotency_key,
            metadata=dict(metadata or {}),
        )
        self.processor.validate(data)
        await self.processor.before_payment(data)
        intent = await self.processor.create_payment_intent(data)
        await self._remember(intent, data)
        self.logger.info(
            f"Created payment intent {intent.id}",
            extra={"processor": self.processor.processor_name, "payment_intent_id": intent.id},
        )
        return intent

    @BaseService.measure_operation("confirm_payment_intent")
    async def confirm_payment_intent(self, intent_id: str, payment_method_id: str) -> PaymentResult:
        """
        Confirm a previously created intent.

        Raises:
            ServiceException: the intent was not created through this service,
                was already settled or has expired
        """
        pending = await self._recall(intent_id)
        if pending is None:
            raise ServiceException(
                f"Unknown payment intent {intent_id}",
                code="PAYMENT_INTENT_NOT_FOUND",
                details={"payment_intent_id": intent_id},
            )
        intent, data = pending
        if payment_method_id and payment_method_id != data.payment_method_id:
            data = data.model_copy(update={"payment_method_id": payment_method_id})

        try:
            result = await self.processor.confirm_payment_intent(intent, data)
        except Exception as exc:
            if not is_transient_error(exc):
                await self._forget(intent_id)
            raise
        await self.processor.after_payment(intent, result)
        self.processor.record_metrics(data, result)
        if not result.requires_action:
            await self._forget(intent_id)
        return result

    async def open_intent_count(self) -> int:
        """Number of intents still confirmable, expired ones excluded."""
        await self._open_intents.purge_expired()
        return len(self._open_intents)
