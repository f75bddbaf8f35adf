# servicehub/interceptors/validation.py
"""
Validation interceptor.

Checks positional arguments against pydantic schemas before the unit of
work runs. Every rule is evaluated; failures are aggregated into one
ValidationException and the work is never invoked.
"""

from dataclasses import dataclass, field
from functools import wraps
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar, cast

from pydantic import TypeAdapter, ValidationError

from servicehub.core.exceptions import ValidationException
from servicehub.interceptors._common import (
    ensure_coroutine,
    is_method,
    operation_identity,
    split_receiver,
)
from servicehub.interceptors.logged import resolve_reporter
from servicehub.monitoring.sentry import ErrorReporter

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ValidationRule:
    """
    Validate the positional argument at ``argument_index`` against ``schema``.

    ``schema`` is anything pydantic can build a TypeAdapter for: a model class,
    an annotated type, a TypedDict. The validated value replaces the argument.
    """

    argument_index: int
    schema: Any
    label: Optional[str] = None
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.argument_index < 0:
            raise ValueError("argument_index must be >= 0")
        object.__setattr__(self, "_adapter", TypeAdapter(self.schema))

    @property
    def name(self) -> str:
        return self.label or f"param{self.argument_index}"

    def validate(self, value: Any) -> Any:
        return self._adapter.validate_python(value)


def format_pydantic_errors(error: ValidationError) -> List[str]:
    messages = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()) if part != "__root__")
        message = issue.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def validate_arguments(
    rules: List[ValidationRule], call_args: List[Any]
) -> tuple[List[Any], List[Dict[str, Any]]]:
    """Run every rule; return the canonicalized arguments and the collected failures."""
    validated_args = list(call_args)
    failures: List[Dict[str, Any]] = []
    for rule in rules:
        if rule.argument_index >= len(validated_args):
            continue
        try:
            validated_args[rule.argument_index] = rule.validate(validated_args[rule.argument_index])
        except ValidationError as exc:
            failures.append(
                {
                    "argument_index": rule.argument_index,
                    "label": rule.name,
                    "messages": format_pydantic_errors(exc),
                }
            )
    return validated_args, failures


def validated(*rules: ValidationRule, reporter: Optional[ErrorReporter] = None) -> Callable[[F], F]:
    """
    Decorator validating positional arguments before the call.

    Usage:
        @validated(ValidationRule(0, PaymentFacadeData, "data"))
        async def process_payment(self, data): ...
    """
    rule_list = list(rules)

    def decorator(func: F) -> F:
        ensure_coroutine(func, "validated")
        has_receiver = is_method(func)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            receiver, call_args = split_receiver(has_receiver, args)
            class_name, method_name = operation_identity(func, receiver)

            validated_args, failures = validate_arguments(rule_list, call_args)
            for failure in failures:
                logger.warning(
                    f"Validation failed for {class_name}.{method_name} - {failure['label']}",
                    extra={
                        "type": "validation_error",
                        "class": class_name,
                        "method": method_name,
                        "param_index": failure["argument_index"],
                        "param_name": failure["label"],
                        "errors": failure["messages"],
                    },
                )

            if failures:
                error_message = "; ".join(
                    f"{failure['label']}: {', '.join(failure['messages'])}" for failure in failures
                )
                validation_error = ValidationException(
                    f"Validation failed: {error_message}", errors=failures
                )
                resolve_reporter(reporter, receiver).capture_exception(
                    validation_error,
                    tags={"class": class_name, "method": method_name, "type": "validation_error"},
                    extra={"validation_errors": failures},
                )
                raise validation_error

            if receiver is not None:
                return await func(receiver, *validated_args, **kwargs)
            return await func(*validated_args, **kwargs)

        return cast(F, wrapper)

    return decorator
