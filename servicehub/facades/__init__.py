"""Orchestration facades: payment and booking."""

from servicehub.facades.booking_facade import BookingFacade
from servicehub.facades.payment_facade import PaymentFacade, default_payment_retry_policy

__all__ = ["BookingFacade", "PaymentFacade", "default_payment_retry_policy"]
