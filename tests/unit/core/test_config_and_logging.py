from __future__ import annotations

import json
import logging

from pydantic import ValidationError
import pytest

from servicehub.core.config import PAYPAL_LIVE_BASE_URL, PAYPAL_SANDBOX_BASE_URL, Settings
from servicehub.core.logging_config import StructuredFormatter, extract_structured_fields


class TestSettings:
    def test_defaults(self) -> None:
        config = Settings()

        assert config.cache_default_ttl == 300
        assert config.payment_retry_max_attempts >= 1
        assert "password" in config.log_sensitive_fields
        assert config.is_testing is True

    def test_environment_variables_are_read(self, monkeypatch) -> None:
        monkeypatch.setenv("PAYMENT_RETRY_MAX_ATTEMPTS", "4")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_env")

        config = Settings()

        assert config.payment_retry_max_attempts == 4
        assert config.log_level == "DEBUG"
        assert config.stripe_enabled is True

    def test_invalid_retry_settings_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(payment_retry_max_attempts=0)
        with pytest.raises(ValidationError):
            Settings(gateway_timeout_seconds=-1)

    def test_paypal_switches(self) -> None:
        assert Settings(paypal_sandbox=True).paypal_base_url == PAYPAL_SANDBOX_BASE_URL
        assert Settings(paypal_sandbox=False).paypal_base_url == PAYPAL_LIVE_BASE_URL
        assert Settings(paypal_client_id="id").paypal_enabled is False
        assert Settings(paypal_client_id="id", paypal_client_secret="secret").paypal_enabled is True

    def test_production_detection(self) -> None:
        assert Settings(environment="production").is_production is True
        assert Settings(environment="staging").is_production is False


class TestStructuredFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("servicehub.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extra_fields_are_emitted(self) -> None:
        payload = json.loads(StructuredFormatter().format(self._record(operation="pay", attempt=2)))

        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "servicehub.test"
        assert payload["operation"] == "pay"
        assert payload["attempt"] == 2

    def test_standard_attributes_are_not_duplicated(self) -> None:
        fields = extract_structured_fields(self._record(call_args=[1]))

        assert fields == {"call_args": [1]}
