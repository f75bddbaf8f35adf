# servicehub/interceptors/retry.py
"""
Retry interceptor with fixed, linear or exponential backoff.

The interceptor does not know whether the wrapped work is idempotent; wrap
only steps that are safe to repeat (or that carry an idempotency key).
"""

import asyncio
from dataclasses import dataclass, replace
from functools import wraps
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, cast

from servicehub.core.enums import BackoffKind
from servicehub.interceptors._common import (
    ensure_coroutine,
    is_method,
    operation_identity,
    split_receiver,
)
from servicehub.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[Any]]


def _always(_error: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry settings.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay: Delay unit in seconds (>= 0)
        backoff: fixed | linear | exponential
        backoff_multiplier: Growth factor for linear/exponential backoff
        should_retry: Predicate deciding whether an error is worth another attempt
        on_retry: Callback invoked with (attempt, error) before each retry sleep
        log_retries: Log each attempt outcome
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: BackoffKind = BackoffKind.FIXED
    backoff_multiplier: float = 2.0
    should_retry: Callable[[BaseException], bool] = _always
    on_retry: Optional[Callable[[int, BaseException], Any]] = None
    log_retries: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.backoff_multiplier < 0:
            raise ValueError("backoff_multiplier must be >= 0")
        object.__setattr__(self, "backoff", BackoffKind(self.backoff))

    def with_overrides(self, **overrides: Any) -> "RetryPolicy":
        return replace(self, **overrides) if overrides else self


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """
    Delay in seconds to wait after failed attempt ``attempt`` (1-based).

    fixed:       base
    linear:      base * multiplier * (attempt - 1)
    exponential: base * multiplier ** (attempt - 1)
    """
    if policy.backoff == BackoffKind.EXPONENTIAL:
        delay = policy.base_delay * (policy.backoff_multiplier ** (attempt - 1))
    elif policy.backoff == BackoffKind.LINEAR:
        delay = policy.base_delay * policy.backoff_multiplier * (attempt - 1)
    else:
        delay = policy.base_delay
    return max(0.0, delay)


async def run_with_retry(
    work: Callable[..., Awaitable[R]],
    *args: Any,
    policy: RetryPolicy,
    operation: Optional[str] = None,
    sleep: Sleep = asyncio.sleep,
    **kwargs: Any,
) -> R:
    """Run ``work`` under ``policy``; re-raises the last error unchanged when giving up."""
    name = operation or getattr(work, "__qualname__", repr(work))
    attempt = 1
    while True:
        try:
            result = await work(*args, **kwargs)
        except Exception as error:
            if not policy.should_retry(error):
                if policy.log_retries:
                    logger.warning(
                        "Error not retryable, throwing immediately",
                        extra={"operation": name, "attempt": attempt, "error": str(error)},
                    )
                prometheus_metrics.record_retry(name, "not_retryable")
                raise

            if attempt >= policy.max_attempts:
                if policy.log_retries:
                    logger.error(
                        f"All {policy.max_attempts} retry attempts failed",
                        extra={
                            "operation": name,
                            "total_attempts": policy.max_attempts,
                            "error": str(error),
                        },
                    )
                prometheus_metrics.record_retry(name, "exhausted")
                raise

            delay = compute_delay(policy, attempt)
            if policy.log_retries:
                logger.warning(
                    f"Retry attempt {attempt}/{policy.max_attempts}",
                    extra={
                        "operation": name,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "next_attempt_in": delay,
                        "error": str(error),
                    },
                )
            if policy.on_retry is not None:
                try:
                    policy.on_retry(attempt, error)
                except Exception as callback_error:
                    logger.error(
                        "Error in on_retry callback",
                        extra={
                            "operation": name,
                            "attempt": attempt,
                            "callback_error": str(callback_error),
                        },
                    )
            prometheus_metrics.record_retry(name, "retried")
            await sleep(delay)
            attempt += 1
            continue

        if attempt > 1:
            if policy.log_retries:
                logger.info(
                    f"Retry succeeded after {attempt} attempts",
                    extra={"operation": name, "attempt": attempt, "total_attempts": attempt},
                )
            prometheus_metrics.record_retry(name, "recovered")
        return result


def retry(
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    **overrides: Any,
) -> Callable[[F], F]:
    """
    Decorator retrying an async function or method per ``policy``.

    Usage:
        @retry(max_attempts=3, base_delay=0.5, backoff=BackoffKind.EXPONENTIAL,
               should_retry=is_transient_error)
        async def fetch_rates(self, currency): ...
    """
    resolved = (policy or RetryPolicy()).with_overrides(**overrides)

    def decorator(func: F) -> F:
        ensure_coroutine(func, "retry")
        has_receiver = is_method(func)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            receiver, _ = split_receiver(has_receiver, args)
            class_name, method_name = operation_identity(func, receiver)
            return await run_with_retry(
                func,
                *args,
                policy=resolved,
                operation=f"{class_name}.{method_name}",
                sleep=sleep,
                **kwargs,
            )

        return cast(F, wrapper)

    return decorator
