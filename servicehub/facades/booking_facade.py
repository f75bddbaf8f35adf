# servicehub/facades/booking_facade.py
"""
Booking orchestration facade.

Steps:
1. Create the booking (always, independent of payment)
2. Run the payment through PaymentFacade when payment data is supplied
3. Notify requester and provider (best effort, independently)
"""

from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from ..core.config import settings
from ..core.enums import BookingStatus, NotificationChannel, NotificationPriority
from ..core.exceptions import ValidationException
from ..interceptors import ValidationRule, logged, validated
from ..monitoring.sentry import ErrorReporter
from ..schemas.booking import (
    Booking,
    BookingFacadeData,
    BookingFacadeResult,
    BookingPaymentData,
    BookingSpec,
)
from ..schemas.collaborators import ChannelSpec, NotificationSpec
from ..schemas.payment import PaymentFacadeData, PaymentFacadeResult
from ..services.base import BaseService
from ..services.collaborators import BookingServiceProtocol, NotificationServiceProtocol
from .payment_facade import PaymentFacade

BookingRequest = Union[BookingFacadeData, Mapping[str, Any]]


def _request_field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


class BookingFacade(BaseService):
    def __init__(
        self,
        booking_service: BookingServiceProtocol,
        payment_facade: PaymentFacade,
        notification_service: NotificationServiceProtocol,
        *,
        error_reporter: Optional[ErrorReporter] = None,
        locale: Optional[str] = None,
    ):
        super().__init__(error_reporter=error_reporter)
        self.booking_service = booking_service
        self.payment_facade = payment_facade
        self.notification_service = notification_service
        self.locale = locale or settings.default_locale

    async def execute(self, data: BookingRequest) -> BookingFacadeResult:
        return await self.create_booking_with_payment(data)

    @BaseService.measure_operation("create_booking_with_payment")
    async def create_booking_with_payment(self, data: BookingRequest) -> BookingFacadeResult:
        """Create a booking, optionally pay for it, and notify both parties."""
        try:
            return await self._create_booking(data)
        except Exception as exc:
            return self._failure(exc, data)

    async def create_booking_without_payment(self, data: BookingRequest) -> BookingFacadeResult:
        """Free booking, or payment deferred to a later step."""
        if isinstance(data, BaseModel):
            payload = data.model_dump()
        else:
            payload = dict(data)
        payload["payment"] = None
        return await self.create_booking_with_payment(payload)

    @logged(level="info", report_errors=False)
    @validated(ValidationRule(0, BookingFacadeData, "data"))
    async def _create_booking(self, data: BookingFacadeData) -> BookingFacadeResult:
        self.logger.info(
            "Creating booking via BookingFacade",
            extra={
                "requester_id": data.requester_id,
                "provider_id": data.provider_id,
                "service_id": data.service_id,
                "service_type": data.service_type.value,
                "has_payment": data.payment is not None,
            },
        )

        created = await self.booking_service.create_booking(self._booking_spec(data))
        booking = created if isinstance(created, Booking) else Booking.model_validate(created)

        payment_result: Optional[PaymentFacadeResult] = None
        error: Optional[str] = None
        if data.payment is not None:
            payment_result, status = await self._settle_payment(data, data.payment, booking)
            if status == BookingStatus.FAILED:
                error = payment_result.error or "Payment failed"
            try:
                await self.booking_service.update_booking_status(booking.id, status)
            except Exception as exc:
                # The payment outcome stands; the booking keeps its stored status
                error = self._status_update_failed(exc, booking, status)
            else:
                booking = booking.model_copy(update={"status": status})

        notifications_sent = await self._notify_parties(data, booking, payment_result)

        self.logger.info(
            "Booking processed via BookingFacade",
            extra={
                "booking_id": booking.id,
                "booking_status": booking.status.value,
                "payment_success": payment_result.success if payment_result else None,
                "notifications_sent": notifications_sent,
            },
        )
        return BookingFacadeResult(
            success=error is None,
            booking=booking,
            payment_result=payment_result,
            error=error,
            notifications_sent=notifications_sent,
        )

    def _booking_spec(self, data: BookingFacadeData) -> BookingSpec:
        return BookingSpec(
            requester_id=data.requester_id,
            provider_id=data.provider_id,
            service_id=data.service_id,
            service_type=data.service_type,
            appointment_date=data.appointment_date,
            timeslot=data.timeslot,
            consultation_mode=(
                data.consultation_mode.to_booking_mode() if data.consultation_mode else None
            ),
            recipient=data.recipient,
            metadata=dict(data.metadata),
        )

    async def _settle_payment(
        self, data: BookingFacadeData, payment: BookingPaymentData, booking: Booking
    ) -> Tuple[PaymentFacadeResult, BookingStatus]:
        """Run the payment and derive the booking status from its outcome."""
        try:
            result = await self.payment_facade.process_payment(
                PaymentFacadeData(
                    amount=payment.amount,
                    currency=payment.currency,
                    customer_id=data.requester_id,
                    payment_method_id=payment.payment_method_id,
                    payer_id=data.requester_id,
                    beneficiary_id=data.provider_id,
                    service_type=data.service_type,
                    service_id=data.service_id,
                    description=f"Payment for booking {booking.id}",
                    metadata={**data.metadata, "booking_id": booking.id},
                    create_invoice=payment.create_invoice,
                    # A combined booking notification is sent afterwards
                    send_notification=False,
                )
            )
        except Exception as exc:
            self.logger.error(
                f"Payment processing failed in BookingFacade: {exc}",
                extra={"booking_id": booking.id, "error_type": type(exc).__name__},
            )
            self.error_reporter.capture_exception(
                exc,
                tags={"facade": "BookingFacade", "operation": "process_payment"},
                extra={"booking_id": booking.id},
            )
            return (
                PaymentFacadeResult(success=False, error=str(exc) or "Payment processing failed"),
                BookingStatus.FAILED,
            )

        if result.requires_action:
            return result, BookingStatus.PENDING
        if not result.success:
            return result, BookingStatus.FAILED
        return result, BookingStatus.CONFIRMED

    def _status_update_failed(self, exc: Exception, booking: Booking, status: BookingStatus) -> str:
        self.logger.error(
            f"Failed to update booking {booking.id} to {status.value}: {exc}",
            extra={
                "booking_id": booking.id,
                "target_status": status.value,
                "error_type": type(exc).__name__,
            },
        )
        self.error_reporter.capture_exception(
            exc,
            tags={
                "facade": "BookingFacade",
                "operation": "update_booking_status",
                "booking_id": booking.id,
                "target_status": status.value,
            },
            extra={"booking_id": booking.id},
        )
        return f"Failed to update booking status to {status.value}: {exc}"

    async def _notify_parties(
        self,
        data: BookingFacadeData,
        booking: Booking,
        payment_result: Optional[PaymentFacadeResult],
    ) -> int:
        """Send the requester and provider notifications; returns how many went through."""
        appointment_date = booking.appointment_date.isoformat()
        payment_summary = None
        if payment_result is not None and payment_result.success and data.payment is not None:
            payment_summary = {
                "transaction_id": payment_result.transaction_id,
                "amount": data.payment.amount,
                "currency": data.payment.currency,
            }

        notifications = [
            NotificationSpec(
                recipient=data.requester_id,
                type="BOOKING_CONFIRMED",
                template="booking_confirmation",
                channels=[
                    ChannelSpec(type=NotificationChannel.EMAIL, priority=NotificationPriority.HIGH),
                    ChannelSpec(type=NotificationChannel.IN_APP, priority=NotificationPriority.MEDIUM),
                ],
                locale=self.locale,
                priority=NotificationPriority.HIGH,
                data={
                    "booking": {
                        "id": booking.id,
                        "provider_id": data.provider_id,
                        "service_id": data.service_id,
                        "appointment_date": appointment_date,
                        "timeslot": data.timeslot,
                        "status": booking.status.value,
                    },
                    "payment": payment_summary,
                },
            ),
            NotificationSpec(
                recipient=data.provider_id,
                type="BOOKING_RECEIVED",
                template="booking_received",
                channels=[
                    ChannelSpec(type=NotificationChannel.EMAIL, priority=NotificationPriority.MEDIUM),
                    ChannelSpec(type=NotificationChannel.IN_APP, priority=NotificationPriority.HIGH),
                ],
                locale=self.locale,
                priority=NotificationPriority.MEDIUM,
                data={
                    "booking": {
                        "id": booking.id,
                        "requester_id": data.requester_id,
                        "appointment_date": appointment_date,
                        "timeslot": data.timeslot,
                        "status": booking.status.value,
                    },
                },
            ),
        ]

        sent = 0
        for notification in notifications:
            try:
                await self.notification_service.send_notification(notification)
            except Exception as exc:
                self.logger.error(
                    f"Failed to send {notification.type} notification: {exc}",
                    extra={"booking_id": booking.id, "recipient": notification.recipient},
                )
                continue
            sent += 1
        return sent

    def _failure(self, exc: Exception, data: Any) -> BookingFacadeResult:
        service_type = _request_field(data, "service_type")
        context = {
            "requester_id": _request_field(data, "requester_id"),
            "provider_id": _request_field(data, "provider_id"),
            "service_id": _request_field(data, "service_id"),
        }
        tags = {
            "facade": "BookingFacade",
            "operation": "create_booking_with_payment",
            "service_type": getattr(service_type, "value", service_type),
        }
        self.logger.error(
            f"Error creating booking via BookingFacade: {exc}",
            extra={"error_type": type(exc).__name__, **tags, **context},
        )
        # Validation failures were already reported by the validation interceptor
        if not isinstance(exc, ValidationException):
            self.error_reporter.capture_exception(exc, tags=tags, extra=context)
        return BookingFacadeResult(success=False, error=str(exc) or "Booking creation failed")
