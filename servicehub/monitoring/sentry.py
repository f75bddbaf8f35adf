# servicehub/monitoring/sentry.py
"""
Sentry initialization and the error reporter used by interceptors and facades.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional, Protocol

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from servicehub.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TRACES_SAMPLE_RATE = 0.1


def _resolve_environment() -> str | None:
    environment = (os.getenv("ENV") or os.getenv("ENVIRONMENT") or "").strip()
    if environment:
        return environment
    sentry_env = (os.getenv("SENTRY_ENVIRONMENT") or "").strip()
    if sentry_env:
        return sentry_env
    return settings.environment or None


def init_sentry(dsn: Optional[str] = None, environment: Optional[str] = None) -> bool:
    resolved_dsn = (dsn or os.getenv("SENTRY_DSN") or "").strip()
    if not resolved_dsn:
        logger.debug("Sentry disabled: SENTRY_DSN not set")
        return False

    integrations: list[Any] = [
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
    ]

    sentry_sdk.init(
        dsn=resolved_dsn,
        environment=environment or _resolve_environment(),
        integrations=integrations,
        send_default_pii=False,
        traces_sample_rate=DEFAULT_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry initialized")
    return True


def is_sentry_configured() -> bool:
    return sentry_sdk.get_client().is_active()


class ErrorReporter(Protocol):
    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...


class SentryErrorReporter:
    """Forward exceptions to Sentry with contextual tags; always logs locally."""

    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        tag_map = {key: str(value) for key, value in (tags or {}).items()}
        logger.error(
            f"Captured exception: {type(error).__name__}: {error}",
            extra={"error_tags": tag_map, "error_extra": dict(extra or {})},
        )
        if not is_sentry_configured():
            return
        try:
            with sentry_sdk.new_scope() as scope:
                for key, value in tag_map.items():
                    scope.set_tag(key, value)
                for key, value in (extra or {}).items():
                    scope.set_extra(key, value)
                sentry_sdk.capture_exception(error)
        except Exception as exc:
            # Reporting must never break the caller
            logger.debug(f"Sentry capture failed: {exc}")


default_error_reporter = SentryErrorReporter()
