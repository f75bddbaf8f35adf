"""Pydantic request and result envelopes."""

from servicehub.schemas.booking import (
    Booking,
    BookingFacadeData,
    BookingFacadeResult,
    BookingPaymentData,
    BookingSpec,
)
from servicehub.schemas.collaborators import (
    ChannelSpec,
    InvoiceItem,
    InvoiceSpec,
    NotificationSpec,
    TransactionSpec,
)
from servicehub.schemas.payment import (
    NextAction,
    PaymentData,
    PaymentFacadeData,
    PaymentFacadeResult,
    PaymentIntent,
    PaymentResult,
)

__all__ = [
    "Booking",
    "BookingFacadeData",
    "BookingFacadeResult",
    "BookingPaymentData",
    "BookingSpec",
    "ChannelSpec",
    "InvoiceItem",
    "InvoiceSpec",
    "NextAction",
    "NotificationSpec",
    "PaymentData",
    "PaymentFacadeData",
    "PaymentFacadeResult",
    "PaymentIntent",
    "PaymentResult",
    "TransactionSpec",
]
