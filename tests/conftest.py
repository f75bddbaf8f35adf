# tests/conftest.py
"""
Shared fixtures and collaborator fakes.

Every external collaborator of the facades (booking, payment, transaction,
invoice and notification services) has an in-memory fake here, together
with a recording error reporter, an injectable sleep and a manual clock.
"""

import os

# Settings must not pick up a developer .env or a real Sentry/Redis.
os.environ.setdefault("CI", "true")
os.environ["IS_TESTING"] = "true"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("REDIS_URL", None)

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from servicehub.core.enums import BackoffKind, BookingStatus, ServiceType
from servicehub.core.exceptions import is_transient_error
from servicehub.facades.booking_facade import BookingFacade
from servicehub.facades.payment_facade import PaymentFacade
from servicehub.infrastructure.cache.memory_cache import MemoryCacheBackend
from servicehub.infrastructure.cache.tiered import TieredCache
from servicehub.interceptors.retry import RetryPolicy
from servicehub.schemas.booking import Booking, BookingSpec
from servicehub.schemas.collaborators import InvoiceSpec, NotificationSpec, TransactionSpec
from servicehub.schemas.payment import PaymentIntent, PaymentResult

APPOINTMENT = datetime(2030, 5, 17, 9, 30, tzinfo=timezone.utc)


class RecordingReporter:
    def __init__(self) -> None:
        self.captured: List[Dict[str, Any]] = []

    def capture_exception(self, error, *, tags=None, extra=None) -> None:
        self.captured.append({"error": error, "tags": dict(tags or {}), "extra": dict(extra or {})})


class RecordingMetrics:
    def __init__(self) -> None:
        self.payments: List[Dict[str, Any]] = []
        self.amounts: List[Dict[str, Any]] = []

    def record_payment(self, *, currency: str, processor: str, success: bool, amount_range: str) -> None:
        self.payments.append(
            {"currency": currency, "processor": processor, "success": success, "amount_range": amount_range}
        )

    def record_payment_amount(self, *, currency: str, processor: str, amount: float) -> None:
        self.amounts.append({"currency": currency, "processor": processor, "amount": amount})


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBookingService:
    def __init__(self) -> None:
        self.created: List[BookingSpec] = []
        self.status_updates: List[tuple] = []
        self.create_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None

    async def create_booking(self, spec: BookingSpec) -> Booking:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(spec)
        return Booking(
            id=f"booking-{len(self.created)}",
            requester_id=spec.requester_id,
            provider_id=spec.provider_id,
            service_id=spec.service_id,
            service_type=spec.service_type,
            appointment_date=spec.appointment_date,
            timeslot=spec.timeslot,
            consultation_mode=spec.consultation_mode,
            status=BookingStatus.PENDING,
        )

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> None:
        if self.status_error is not None:
            raise self.status_error
        self.status_updates.append((booking_id, status))


class FakePaymentService:
    """
    Scripted payment service.

    ``create_outcomes`` / ``confirm_outcomes`` are consumed one per call; an
    exception instance is raised, anything else is returned. When a script
    runs out the last default applies (a fresh intent / a success).
    """

    def __init__(self) -> None:
        self.create_outcomes: List[Any] = []
        self.confirm_outcomes: List[Any] = []
        self.create_calls: List[Dict[str, Any]] = []
        self.confirm_calls: List[tuple] = []

    async def create_payment_intent(
        self,
        amount,
        currency,
        customer_id,
        metadata=None,
        *,
        payment_method_id="",
        description=None,
        idempotency_key=None,
    ) -> PaymentIntent:
        self.create_calls.append(
            {
                "amount": amount,
                "currency": currency,
                "customer_id": customer_id,
                "metadata": dict(metadata or {}),
                "payment_method_id": payment_method_id,
                "description": description,
                "idempotency_key": idempotency_key,
            }
        )
        if self.create_outcomes:
            outcome = self.create_outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return PaymentIntent(
            id="pi_1", amount=amount, currency=currency, status="requires_confirmation"
        )

    async def confirm_payment_intent(self, intent_id: str, payment_method_id: str) -> PaymentResult:
        self.confirm_calls.append((intent_id, payment_method_id))
        if self.confirm_outcomes:
            outcome = self.confirm_outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return PaymentResult(success=True, payment_intent_id=intent_id, transaction_id="ch_1")


class FakeTransactionService:
    def __init__(self) -> None:
        self.created: List[TransactionSpec] = []
        self.error: Optional[Exception] = None

    async def create_transaction(self, spec: TransactionSpec) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.created.append(spec)
        return {"id": f"txn-{len(self.created)}"}


class FakeInvoiceService:
    def __init__(self) -> None:
        self.created: List[InvoiceSpec] = []
        self.error: Optional[Exception] = None

    async def create_invoice(self, spec: InvoiceSpec) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.created.append(spec)
        return {"id": f"inv-{len(self.created)}"}


class FakeNotificationService:
    def __init__(self) -> None:
        self.sent: List[NotificationSpec] = []
        self.attempts: List[NotificationSpec] = []
        self.error: Optional[Exception] = None

    async def send_notification(self, spec: NotificationSpec) -> None:
        self.attempts.append(spec)
        if self.error is not None:
            raise self.error
        self.sent.append(spec)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def memory_cache(clock: ManualClock) -> MemoryCacheBackend:
    return MemoryCacheBackend(clock=clock)


@pytest.fixture
def memory_only_cache(memory_cache: MemoryCacheBackend) -> TieredCache:
    return TieredCache(primary=None, secondary=memory_cache)


@pytest.fixture
def booking_service() -> FakeBookingService:
    return FakeBookingService()


@pytest.fixture
def payment_service() -> FakePaymentService:
    return FakePaymentService()


@pytest.fixture
def transaction_service() -> FakeTransactionService:
    return FakeTransactionService()


@pytest.fixture
def invoice_service() -> FakeInvoiceService:
    return FakeInvoiceService()


@pytest.fixture
def notification_service() -> FakeNotificationService:
    return FakeNotificationService()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=3,
        base_delay=0.1,
        backoff=BackoffKind.EXPONENTIAL,
        backoff_multiplier=2.0,
        should_retry=is_transient_error,
    )


@pytest.fixture
def payment_facade(
    payment_service: FakePaymentService,
    transaction_service: FakeTransactionService,
    invoice_service: FakeInvoiceService,
    notification_service: FakeNotificationService,
    reporter: RecordingReporter,
    retry_policy: RetryPolicy,
    sleep: RecordingSleep,
) -> PaymentFacade:
    return PaymentFacade(
        payment_service,
        transaction_service,
        invoice_service,
        notification_service,
        error_reporter=reporter,
        retry_policy=retry_policy,
        sleep=sleep,
    )


@pytest.fixture
def booking_facade(
    booking_service: FakeBookingService,
    payment_facade: PaymentFacade,
    notification_service: FakeNotificationService,
    reporter: RecordingReporter,
) -> BookingFacade:
    return BookingFacade(
        booking_service, payment_facade, notification_service, error_reporter=reporter
    )


@pytest.fixture
def payment_request() -> Dict[str, Any]:
    return {
        "amount": 50.0,
        "currency": "eur",
        "customer_id": "cus_123",
        "payment_method_id": "pm_card_visa",
        "payer_id": "user-requester",
        "beneficiary_id": "user-provider",
        "service_type": ServiceType.HEALTH,
        "service_id": "svc-42",
        "description": "Teleconsultation",
    }


@pytest.fixture
def booking_request() -> Dict[str, Any]:
    return {
        "requester_id": "user-requester",
        "provider_id": "user-provider",
        "service_id": "svc-42",
        "service_type": "HEALTH",
        "appointment_date": APPOINTMENT,
        "timeslot": "09:30-10:00",
        "consultation_mode": "IN_PERSON",
        "payment": {"amount": 100.0, "currency": "EUR", "payment_method_id": "pm_card_visa"},
    }
