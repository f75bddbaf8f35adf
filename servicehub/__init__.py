"""
servicehub: resilience and transaction orchestration for the services marketplace.

    from servicehub.interceptors import logged, validated, retry, cacheable
    from servicehub.payments import PaymentProcessorFactory
    from servicehub.facades import PaymentFacade, BookingFacade
"""

__version__ = "0.1.0"
