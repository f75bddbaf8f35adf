# servicehub/payments/factory.py
"""
Payment processor factory.

Adapters are built lazily from injected builders (the settings-backed
defaults unless overridden) and kept for the lifetime of the factory.
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Union

from ..core.enums import PaymentProvider
from ..core.exceptions import ConfigurationException
from .paypal_processor import PayPalPaymentProcessor
from .processor import PaymentProcessor
from .stripe_processor import StripePaymentProcessor

logger = logging.getLogger(__name__)

ProcessorBuilder = Callable[[], PaymentProcessor]

# Currencies and countries where PayPal is tried before Stripe
PAYPAL_FIRST_CURRENCIES = frozenset({"JPY"})
PAYPAL_FIRST_COUNTRIES = frozenset({"JP"})

DEFAULT_BUILDERS: Dict[PaymentProvider, ProcessorBuilder] = {
    PaymentProvider.STRIPE: StripePaymentProcessor,
    PaymentProvider.PAYPAL: PayPalPaymentProcessor,
}


def parse_provider(provider: Union[str, PaymentProvider]) -> PaymentProvider:
    if isinstance(provider, PaymentProvider):
        return provider
    try:
        return PaymentProvider(str(provider).strip().upper())
    except ValueError:
        raise ConfigurationException(
            f"Unsupported payment provider: {provider}", details={"provider": str(provider)}
        )


class PaymentProcessorFactory:
    def __init__(self, builders: Optional[Mapping[PaymentProvider, ProcessorBuilder]] = None):
        self._builders: Dict[PaymentProvider, ProcessorBuilder] = dict(
            DEFAULT_BUILDERS if builders is None else builders
        )
        self._instances: Dict[PaymentProvider, PaymentProcessor] = {}

    def _get_or_build(self, provider: PaymentProvider) -> Optional[PaymentProcessor]:
        if provider not in self._instances:
            builder = self._builders.get(provider)
            if builder is None:
                return None
            self._instances[provider] = builder()
        return self._instances[provider]

    def create_processor(self, provider: Union[str, PaymentProvider]) -> PaymentProcessor:
        """
        Return the adapter for ``provider``.

        Raises:
            ConfigurationException: unknown provider or missing credentials
        """
        resolved = parse_provider(provider)
        processor = self._get_or_build(resolved)
        if processor is None:
            raise ConfigurationException(
                f"Unsupported payment provider: {resolved.value}",
                details={"provider": resolved.value},
            )
        if not processor.is_enabled():
            raise ConfigurationException(
                f"{processor.display_name} is not configured",
                details={"provider": resolved.value},
            )
        return processor

    def preference_order(self, currency: str, country: Optional[str] = None) -> List[PaymentProvider]:
        """Preferred provider first, the other one as fallback."""
        paypal_first = currency.upper() in PAYPAL_FIRST_CURRENCIES or (
            country is not None and country.upper() in PAYPAL_FIRST_COUNTRIES
        )
        if paypal_first:
            return [PaymentProvider.PAYPAL, PaymentProvider.STRIPE]
        return [PaymentProvider.STRIPE, PaymentProvider.PAYPAL]

    def get_best_processor(self, currency: str, country: Optional[str] = None) -> PaymentProcessor:
        """
        Pick the best configured adapter for a currency (and optional country).

        Raises:
            ConfigurationException: no configured adapter supports the request
        """
        for provider in self.preference_order(currency, country):
            processor = self._get_or_build(provider)
            if processor is None or not processor.is_enabled():
                continue
            if processor.supports(currency, country):
                logger.debug(
                    f"Selected {processor.processor_name} processor",
                    extra={"currency": currency, "country": country},
                )
                return processor

        raise ConfigurationException(
            f"No payment processor available for {currency.upper()}"
            + (f" in {country.upper()}" if country else ""),
            details={"currency": currency, "country": country},
        )

    def get_available_processors(self) -> List[PaymentProcessor]:
        available = []
        for provider in self._builders:
            processor = self._get_or_build(provider)
            if processor is not None and processor.is_enabled():
                available.append(processor)
        return available
