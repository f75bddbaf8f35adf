# servicehub/interceptors/logged.py
"""
Logging interceptor.

Emits start / completed / error events around a unit of work, with elapsed
time and masked arguments, and forwards failures to the error reporter
before re-raising them unchanged.
"""

from functools import wraps
import logging
import time
from typing import Any, Callable, Iterable, Optional, TypeVar, cast

from servicehub.core.config import settings
from servicehub.interceptors._common import (
    ensure_coroutine,
    is_method,
    operation_identity,
    split_receiver,
)
from servicehub.interceptors.masking import mask_sensitive_data
from servicehub.monitoring.sentry import ErrorReporter, default_error_reporter

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def resolve_reporter(explicit: Optional[ErrorReporter], receiver: Any) -> ErrorReporter:
    """Explicit reporter, else the receiver's ``error_reporter``, else the Sentry default."""
    if explicit is not None:
        return explicit
    injected = getattr(receiver, "error_reporter", None) if receiver is not None else None
    return cast(ErrorReporter, injected or default_error_reporter)


def logged(
    level: str = "info",
    *,
    log_args: bool = True,
    log_result: bool = False,
    log_execution_time: bool = True,
    mask_fields: Optional[Iterable[str]] = None,
    report_errors: bool = True,
    reporter: Optional[ErrorReporter] = None,
) -> Callable[[F], F]:
    """
    Decorator adding structured call logging to an async function or method.

    Usage:
        class BookingFacade:
            @logged(level="info", log_result=True)
            async def create_booking_with_payment(self, data): ...

    Args:
        level: Log level for the start and completed events
        log_args: Include (masked) arguments in the events
        log_result: Include the (masked) result in the completed event
        log_execution_time: Include elapsed milliseconds
        mask_fields: Field names to redact; defaults to settings.log_sensitive_fields
        report_errors: Forward failures to the error reporter
        reporter: Error reporter override
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")
    fields = list(mask_fields) if mask_fields is not None else list(settings.log_sensitive_fields)

    def decorator(func: F) -> F:
        ensure_coroutine(func, "logged")
        has_receiver = is_method(func)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            receiver, call_args = split_receiver(has_receiver, args)
            class_name, method_name = operation_identity(func, receiver)
            args_to_log = None
            if log_args:
                args_to_log = mask_sensitive_data(call_args, fields)
                if kwargs:
                    args_to_log = [*args_to_log, mask_sensitive_data(kwargs, fields)]

            logger.log(
                log_level,
                f"{class_name}.{method_name} called",
                extra={
                    "type": "method_call",
                    "class": class_name,
                    "method": method_name,
                    "action": "start",
                    "call_args": args_to_log,
                },
            )

            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                execution_time = round((time.perf_counter() - start_time) * 1000, 2)
                logger.error(
                    f"{class_name}.{method_name} failed after {execution_time}ms: {exc}",
                    extra={
                        "type": "method_error",
                        "class": class_name,
                        "method": method_name,
                        "action": "error",
                        "execution_time_ms": execution_time if log_execution_time else None,
                        "error": {"name": type(exc).__name__, "message": str(exc)},
                        "call_args": args_to_log,
                    },
                )
                if report_errors:
                    resolve_reporter(reporter, receiver).capture_exception(
                        exc,
                        tags={"class": class_name, "method": method_name},
                        extra={"call_args": args_to_log, "execution_time_ms": execution_time},
                    )
                raise

            execution_time = round((time.perf_counter() - start_time) * 1000, 2)
            logger.log(
                log_level,
                f"{class_name}.{method_name} completed in {execution_time}ms",
                extra={
                    "type": "method_call",
                    "class": class_name,
                    "method": method_name,
                    "action": "success",
                    "execution_time_ms": execution_time if log_execution_time else None,
                    "result": mask_sensitive_data(result, fields) if log_result else None,
                },
            )
            return result

        return cast(F, wrapper)

    return decorator
