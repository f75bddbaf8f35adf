"""Payment processor template, gateway adapters and the processor factory."""

from servicehub.payments.factory import PaymentProcessorFactory, parse_provider
from servicehub.payments.paypal_processor import PayPalPaymentProcessor
from servicehub.payments.processor import PaymentProcessor, ProviderInfo, get_amount_range
from servicehub.payments.stripe_processor import StripePaymentProcessor

__all__ = [
    "PayPalPaymentProcessor",
    "PaymentProcessor",
    "PaymentProcessorFactory",
    "ProviderInfo",
    "StripePaymentProcessor",
    "get_amount_range",
    "parse_provider",
]
