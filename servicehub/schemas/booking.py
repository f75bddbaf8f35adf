"""Booking schemas: the booking record, the facade request and its result."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field, field_validator

from servicehub.core.enums import BookingStatus, ConsultationMode, ServiceType

from ._strict_base import StrictModel, StrictRequestModel
from .payment import PaymentFacadeResult


def _require_text(value: str, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(message)
    return value.strip()


class Booking(StrictModel):
    """Booking as returned by the booking service."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str
    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[str] = Field(
        default=None, description="Booking-side mode: 'cabinet' or 'video'"
    )
    status: BookingStatus = BookingStatus.PENDING


class BookingSpec(StrictModel):
    """Creation request handed to the booking service."""

    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[str] = None
    recipient: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BookingPaymentData(StrictRequestModel):
    amount: float
    currency: str
    payment_method_id: str
    create_invoice: bool = True

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be 3 characters")
        return v.upper()

    @field_validator("payment_method_id")
    @classmethod
    def _payment_method_id(cls, v: str) -> str:
        return _require_text(v, "Payment method ID is required")


class BookingFacadeData(StrictRequestModel):
    """Request accepted by BookingFacade.create_booking_with_payment."""

    requester_id: str
    provider_id: str
    service_id: str
    service_type: ServiceType
    appointment_date: datetime
    timeslot: Optional[str] = None
    consultation_mode: Optional[ConsultationMode] = None
    recipient: Optional[str] = Field(default=None, description="Beneficiary of the service")
    payment: Optional[BookingPaymentData] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("requester_id")
    @classmethod
    def _requester_id(cls, v: str) -> str:
        return _require_text(v, "Requester ID is required")

    @field_validator("provider_id")
    @classmethod
    def _provider_id(cls, v: str) -> str:
        return _require_text(v, "Provider ID is required")

    @field_validator("service_id")
    @classmethod
    def _service_id(cls, v: str) -> str:
        return _require_text(v, "Service ID is required")


class BookingFacadeResult(StrictModel):
    success: bool
    booking: Optional[Booking] = None
    payment_result: Optional[PaymentFacadeResult] = None
    error: Optional[str] = None
    notifications_sent: int = 0
