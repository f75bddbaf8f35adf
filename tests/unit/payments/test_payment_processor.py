from __future__ import annotations

import asyncio

import pytest

from servicehub.core.exceptions import GatewayTimeoutException, ServiceException
from servicehub.payments import ProviderInfo, get_amount_range
from servicehub.payments.processor import PaymentProcessor
from servicehub.schemas import PaymentData, PaymentIntent, PaymentResult


class ScriptedProcessor(PaymentProcessor):
    """Records every pipeline step it goes through."""

    processor_name = "scripted"
    display_name = "Scripted"
    supported_currencies = ("EUR", "USD")
    supported_countries = ("FR",)

    def __init__(self, *, confirm_result=None, create_error=None, delay=0.0, **kwargs) -> None:
        super().__init__(**kwargs)
        self.steps = []
        self.confirm_result = confirm_result or PaymentResult(
            success=True, payment_intent_id="pi_1", transaction_id="ch_1"
        )
        self.create_error = create_error
        self.delay = delay

    def validate(self, data):
        self.steps.append("validate")
        super().validate(data)

    async def before_payment(self, data):
        self.steps.append("before_payment")

    async def create_payment(self, data):
        self.steps.append("create_payment")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.create_error is not None:
            raise self.create_error
        return PaymentIntent(id="pi_1", amount=data.amount, currency=data.currency, status="created")

    async def confirm_payment(self, intent, data):
        self.steps.append("confirm_payment")
        return self.confirm_result

    async def after_payment(self, intent, result):
        self.steps.append("after_payment")

    def record_metrics(self, data, result):
        self.steps.append("record_metrics")
        super().record_metrics(data, result)

    async def send_notification(self, intent, result):
        self.steps.append("send_notification")

    def is_enabled(self) -> bool:
        return True


def _payment(**overrides) -> PaymentData:
    values = {
        "amount": 50.0,
        "currency": "EUR",
        "customer_id": "cus_1",
        "payment_method_id": "pm_1",
    }
    values.update(overrides)
    return PaymentData(**values)


class TestProcessTemplate:
    @pytest.mark.asyncio
    async def test_steps_run_in_fixed_order(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(metrics=metrics, error_reporter=reporter)

        result = await processor.process(_payment())

        assert result.success is True
        assert processor.steps == [
            "validate",
            "before_payment",
            "create_payment",
            "confirm_payment",
            "after_payment",
            "record_metrics",
            "send_notification",
        ]

    @pytest.mark.asyncio
    async def test_metrics_are_recorded_with_amount_range(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(metrics=metrics, error_reporter=reporter)

        await processor.process(_payment(amount=75.0))

        assert metrics.payments == [
            {"currency": "eur", "processor": "scripted", "success": True, "amount_range": "50-100"}
        ]
        assert metrics.amounts == [{"currency": "eur", "processor": "scripted", "amount": 75.0}]

    @pytest.mark.asyncio
    async def test_declined_payment_records_failure_without_amount(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(
            metrics=metrics,
            error_reporter=reporter,
            confirm_result=PaymentResult.failure("Card declined", payment_intent_id="pi_1"),
        )

        result = await processor.process(_payment())

        assert result.success is False
        assert result.error == "Card declined"
        assert metrics.payments[0]["success"] is False
        assert metrics.amounts == []

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"amount": 0}, "Amount must be positive"),
            ({"currency": "EURO"}, "Invalid currency"),
            ({"customer_id": "  "}, "Customer ID is required"),
            ({"payment_method_id": ""}, "Payment method ID is required"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_data_fails_before_gateway(self, overrides, message, metrics, reporter) -> None:
        processor = ScriptedProcessor(metrics=metrics, error_reporter=reporter)

        result = await processor.process(_payment(**overrides))

        assert result.success is False
        assert message in result.error
        assert processor.steps == ["validate"]

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_failed_result_and_is_reported(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(
            metrics=metrics,
            error_reporter=reporter,
            create_error=ServiceException("gateway refused", code="GATEWAY_ERROR"),
        )

        result = await processor.process(_payment())

        assert result == PaymentResult(success=False, error="gateway refused")
        assert reporter.captured[0]["tags"] == {"processor": "scripted"}
        assert reporter.captured[0]["extra"] == {"amount": 50.0, "currency": "EUR"}


class TestGatewayDeadline:
    @pytest.mark.asyncio
    async def test_slow_gateway_call_times_out(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(
            metrics=metrics, error_reporter=reporter, delay=0.5, timeout_seconds=0.01
        )

        with pytest.raises(GatewayTimeoutException) as exc_info:
            await processor.create_payment_intent(_payment())

        assert exc_info.value.details == {
            "operation": "scripted.create_payment",
            "timeout_seconds": 0.01,
        }

    @pytest.mark.asyncio
    async def test_timeout_inside_process_is_a_failed_result(self, metrics, reporter) -> None:
        processor = ScriptedProcessor(
            metrics=metrics, error_reporter=reporter, delay=0.5, timeout_seconds=0.01
        )

        result = await processor.process(_payment())

        assert result.success is False
        assert "timed out" in result.error

    def test_non_positive_timeout_disables_deadline(self) -> None:
        assert ScriptedProcessor(timeout_seconds=0).timeout_seconds is None


class TestProviderDescription:
    def test_supports_currency_and_country(self) -> None:
        processor = ScriptedProcessor()

        assert processor.supports("eur")
        assert processor.supports("EUR", "fr")
        assert not processor.supports("JPY")
        assert not processor.supports("EUR", "JP")

    def test_provider_info(self) -> None:
        assert ScriptedProcessor().get_provider_info() == ProviderInfo(
            name="Scripted", enabled=True, currencies=["EUR", "USD"], countries=["FR"]
        )


@pytest.mark.parametrize(
    "amount, bucket",
    [(5, "0-10"), (10, "10-50"), (49.99, "10-50"), (50, "50-100"), (499, "100-500"), (999, "500-1000"), (1000, "1000+")],
)
def test_amount_range_buckets(amount, bucket) -> None:
    assert get_amount_range(amount) == bucket
