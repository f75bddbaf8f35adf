# servicehub/facades/payment_facade.py
"""
Payment orchestration facade.

One call drives a full payment: create the intent, confirm it, record the
transaction, then best-effort invoice and customer notification. Callers
always get a PaymentFacadeResult back; nothing is raised outward.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union
import uuid

from ..core.config import settings
from ..core.enums import BackoffKind, NotificationChannel, NotificationPriority, ServiceType
from ..core.exceptions import ValidationException, is_transient_error
from ..interceptors import RetryPolicy, ValidationRule, logged, run_with_retry, validated
from ..interceptors.retry import Sleep
from ..monitoring.sentry import ErrorReporter
from ..schemas.collaborators import (
    ChannelSpec,
    InvoiceItem,
    InvoiceSpec,
    NotificationSpec,
    TransactionSpec,
)
from ..schemas.payment import PaymentFacadeData, PaymentFacadeResult, PaymentIntent, PaymentResult
from ..services.base import BaseService
from ..services.collaborators import (
    InvoiceServiceProtocol,
    NotificationServiceProtocol,
    PaymentServiceProtocol,
    TransactionServiceProtocol,
    record_id,
)

PaymentRequest = Union[PaymentFacadeData, Mapping[str, Any]]


def default_payment_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.payment_retry_max_attempts,
        base_delay=settings.payment_retry_base_delay,
        backoff=BackoffKind.EXPONENTIAL,
        backoff_multiplier=settings.payment_retry_backoff_multiplier,
        should_retry=is_transient_error,
    )


def transient_only(policy: RetryPolicy) -> RetryPolicy:
    """Restrict ``policy`` to network/server-class errors."""
    caller_predicate = policy.should_retry
    if caller_predicate is is_transient_error:
        return policy
    return policy.with_overrides(
        should_retry=lambda exc: is_transient_error(exc) and caller_predicate(exc)
    )


def _request_field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


class PaymentFacade(BaseService):
    """
    Orchestrates payment intent, confirmation, transaction, invoice and notification.

    Gateway sub-steps are retried on transient errors only. Intent creation
    carries one idempotency key per facade call, and confirmation is retried
    against the intent already created, so a retry never opens a second
    intent or charge.
    """

    def __init__(
        self,
        payment_service: PaymentServiceProtocol,
        transaction_service: TransactionServiceProtocol,
        invoice_service: InvoiceServiceProtocol,
        notification_service: NotificationServiceProtocol,
        *,
        error_reporter: Optional[ErrorReporter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        locale: Optional[str] = None,
    ):
        super().__init__(error_reporter=error_reporter)
        self.payment_service = payment_service
        self.transaction_service = transaction_service
        self.invoice_service = invoice_service
        self.notification_service = notification_service
        self.retry_policy = transient_only(retry_policy or default_payment_retry_policy())
        self.locale = locale or settings.default_locale
        self._sleep = sleep

    async def execute(self, data: PaymentRequest) -> PaymentFacadeResult:
        return await self.process_payment(data)

    @BaseService.measure_operation("process_payment")
    async def process_payment(self, data: PaymentRequest) -> PaymentFacadeResult:
        """Process a complete payment; every outcome is a PaymentFacadeResult."""
        try:
            return await self._process_payment(data)
        except Exception as exc:
            return self._failure(exc, data)

    async def process_simple_payment(
        self,
        amount: float,
        currency: str,
        customer_id: str,
        payment_method_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PaymentFacadeResult:
        """Payment without invoice or notification (top-ups, internal charges)."""
        return await self.process_payment(
            {
                "amount": amount,
                "currency": currency,
                "customer_id": customer_id,
                "payment_method_id": payment_method_id,
                "payer_id": customer_id,
                "beneficiary_id": customer_id,
                "service_type": ServiceType.HEALTH,
                "service_id": "default",
                "description": f"Payment of {amount} {currency}",
                "create_invoice": False,
                "send_notification": False,
                "metadata": dict(metadata or {}),
            }
        )

    @logged(level="info", report_errors=False)
    @validated(ValidationRule(0, PaymentFacadeData, "data"))
    async def _process_payment(self, data: PaymentFacadeData) -> PaymentFacadeResult:
        self.logger.info(
            "Processing payment via PaymentFacade",
            extra={
                "amount": data.amount,
                "currency": data.currency,
                "service_type": data.service_type.value,
            },
        )

        intent = await self._create_intent(data)
        result = await self._confirm_intent(intent, data)

        if result.requires_action:
            self.logger.info(
                "Payment requires customer action", extra={"payment_intent_id": intent.id}
            )
            next_action = result.next_action if result.next_action and result.next_action.url else None
            return PaymentFacadeResult(
                success=False,
                requires_action=True,
                payment_intent_id=intent.id,
                next_action=next_action,
            )

        if not result.success:
            self.logger.warning(
                "Payment confirmation failed",
                extra={"payment_intent_id": intent.id, "error": result.error},
            )
            return PaymentFacadeResult(
                success=False,
                payment_intent_id=intent.id,
                error=result.error or "Payment confirmation failed",
            )

        transaction = await self.transaction_service.create_transaction(
            TransactionSpec(
                payer_id=data.payer_id,
                beneficiary_id=data.beneficiary_id,
                amount=data.amount,
                currency=data.currency,
                service_type=data.service_type,
                service_id=data.service_id,
                description=data.description,
                metadata={
                    **data.metadata,
                    "payment_intent_id": intent.id,
                    "gateway_transaction_id": result.transaction_id,
                },
            )
        )
        transaction_id = record_id(transaction) or result.transaction_id

        invoice_id = None
        if data.create_invoice:
            invoice_id = await self._create_invoice(data, intent, transaction_id)
        if data.send_notification:
            await self._notify_customer(data, intent, transaction_id)

        self.logger.info(
            "Payment processed successfully via PaymentFacade",
            extra={
                "payment_intent_id": intent.id,
                "transaction_id": transaction_id,
                "invoice_id": invoice_id,
            },
        )
        return PaymentFacadeResult(
            success=True,
            payment_intent_id=intent.id,
            transaction_id=transaction_id,
            invoice_id=invoice_id,
        )

    async def _create_intent(self, data: PaymentFacadeData) -> PaymentIntent:
        return await run_with_retry(
            self.payment_service.create_payment_intent,
            data.amount,
            data.currency,
            data.customer_id,
            {
                **data.metadata,
                "payer_id": data.payer_id,
                "beneficiary_id": data.beneficiary_id,
                "service_type": data.service_type.value,
                "service_id": data.service_id,
            },
            payment_method_id=data.payment_method_id,
            description=data.description,
            idempotency_key=f"pay_{uuid.uuid4().hex}",
            policy=self.retry_policy,
            operation="PaymentFacade.create_payment_intent",
            sleep=self._sleep,
        )

    async def _confirm_intent(self, intent: PaymentIntent, data: PaymentFacadeData) -> PaymentResult:
        return await run_with_retry(
            self.payment_service.confirm_payment_intent,
            intent.id,
            data.payment_method_id,
            policy=self.retry_policy,
            operation="PaymentFacade.confirm_payment_intent",
            sleep=self._sleep,
        )

    async def _create_invoice(
        self, data: PaymentFacadeData, intent: PaymentIntent, transaction_id: Optional[str]
    ) -> Optional[str]:
        try:
            invoice = await self.invoice_service.create_invoice(
                InvoiceSpec(
                    user_id=data.payer_id,
                    transaction_id=transaction_id or "",
                    amount=data.amount,
                    currency=data.currency,
                    items=[
                        InvoiceItem(
                            description=data.description,
                            quantity=1,
                            unit_price=data.amount,
                            total=data.amount,
                        )
                    ],
                    due_date=datetime.now(timezone.utc),
                    metadata={
                        **data.metadata,
                        "payment_intent_id": intent.id,
                        "transaction_id": transaction_id,
                    },
                )
            )
        except Exception as exc:
            self.logger.error(
                f"Failed to create invoice: {exc}",
                extra={"transaction_id": transaction_id, "payment_intent_id": intent.id},
            )
            return None
        return record_id(invoice)

    async def _notify_customer(
        self, data: PaymentFacadeData, intent: PaymentIntent, transaction_id: Optional[str]
    ) -> None:
        try:
            await self.notification_service.send_notification(
                NotificationSpec(
                    recipient=data.customer_id,
                    type="PAYMENT_SUCCESS",
                    template="payment_success",
                    channels=[
                        ChannelSpec(type=NotificationChannel.EMAIL, priority=NotificationPriority.HIGH),
                        ChannelSpec(
                            type=NotificationChannel.IN_APP, priority=NotificationPriority.MEDIUM
                        ),
                    ],
                    locale=self.locale,
                    priority=NotificationPriority.HIGH,
                    data={
                        "amount": data.amount,
                        "currency": data.currency,
                        "description": data.description,
                        "transaction_id": transaction_id,
                        "payment_intent_id": intent.id,
                    },
                )
            )
        except Exception as exc:
            self.logger.error(
                f"Failed to send payment notification: {exc}",
                extra={"transaction_id": transaction_id, "payment_intent_id": intent.id},
            )

    def _failure(self, exc: Exception, data: Any) -> PaymentFacadeResult:
        service_type = _request_field(data, "service_type")
        tags = {
            "facade": "PaymentFacade",
            "operation": "process_payment",
            "currency": _request_field(data, "currency"),
            "service_type": getattr(service_type, "value", service_type),
        }
        context = {
            "amount": _request_field(data, "amount"),
            "customer_id": _request_field(data, "customer_id"),
        }
        self.logger.error(
            f"Error processing payment via PaymentFacade: {exc}",
            extra={"error_type": type(exc).__name__, **tags, **context},
        )
        # Validation failures were already reported by the validation interceptor
        if not isinstance(exc, ValidationException):
            self.error_reporter.capture_exception(exc, tags=tags, extra=context)
        return PaymentFacadeResult(success=False, error=str(exc) or "Payment processing failed")
