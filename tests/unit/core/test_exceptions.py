from __future__ import annotations

import pytest

from servicehub.core.exceptions import (
    BusinessRuleException,
    ConfigurationException,
    GatewayTimeoutException,
    PaymentDeclinedException,
    ServiceException,
    TransientServiceException,
    UnsupportedCurrencyException,
    ValidationException,
    is_network_error,
    is_server_error,
    is_transient_error,
    never_retry_on,
)


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class TestTransientClassification:
    @pytest.mark.parametrize(
        "error",
        [
            ConnectionError("connection reset by peer"),
            TimeoutError(),
            GatewayTimeoutException("stripe.confirm_payment", 30),
            TransientServiceException("upstream unavailable"),
            StatusError(503),
            Exception("ECONNREFUSED 127.0.0.1:6379"),
            Exception("network unreachable"),
        ],
    )
    def test_transient(self, error) -> None:
        assert is_transient_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ValidationException("network field is invalid"),
            PaymentDeclinedException("Card declined"),
            ConfigurationException("Stripe is not configured"),
            ServiceException("timeout policy misconfigured"),
            StatusError(404),
            RuntimeError("unexpected"),
        ],
    )
    def test_not_transient(self, error) -> None:
        assert is_transient_error(error) is False

    def test_service_exception_without_transient_marker_is_not_server_error(self) -> None:
        assert is_server_error(ServiceException("boom")) is False
        assert is_server_error(StatusError(500)) is True

    def test_network_error_by_code(self) -> None:
        error = Exception("failed")
        error.code = "ETIMEDOUT"
        assert is_network_error(error) is True


def test_never_retry_on_matches_name_code_or_message() -> None:
    should_retry = never_retry_on("PaymentDeclinedException", "RATE_LIMITED", "insufficient funds")

    assert should_retry(PaymentDeclinedException("declined")) is False
    assert should_retry(ServiceException("slow down", code="RATE_LIMITED")) is False
    assert should_retry(RuntimeError("insufficient funds on card")) is False
    assert should_retry(TransientServiceException("503")) is True


def test_http_conversion_carries_code_and_details() -> None:
    http_error = UnsupportedCurrencyException("JPY", "Stripe").to_http_exception()

    assert http_error.status_code == 422
    assert http_error.detail == {
        "message": "Currency JPY is not supported by Stripe",
        "code": "UNSUPPORTED_CURRENCY",
        "details": {"currency": "JPY", "processor": "Stripe"},
    }


def test_status_codes_per_category() -> None:
    assert ValidationException("bad").to_http_exception().status_code == 400
    assert TransientServiceException("down").to_http_exception().status_code == 503
    assert ServiceException("failed").to_http_exception().status_code == 500
    assert isinstance(PaymentDeclinedException("no"), BusinessRuleException)


def test_validation_errors_are_exposed_in_details() -> None:
    errors = [{"label": "data", "messages": ["amount: required"]}]

    error = ValidationException("Validation failed", errors=errors)

    assert error.code == "VALIDATION_ERROR"
    assert error.details == {"errors": errors}
