"""Helpers shared by the interceptors: call identity and receiver handling."""

import inspect
from typing import Any, Callable, Optional, Sequence, Tuple, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


def is_method(func: Callable[..., Any]) -> bool:
    """True when ``func`` is a plain function whose first parameter is ``self``/``cls``."""
    if inspect.ismethod(func):
        return False
    try:
        params = list(inspect.signature(func).parameters)
    except (TypeError, ValueError):
        return False
    return bool(params) and params[0] in ("self", "cls")


def split_receiver(has_receiver: bool, args: Sequence[Any]) -> Tuple[Optional[Any], list]:
    """Separate ``self`` from the business arguments."""
    if has_receiver and args:
        return args[0], list(args[1:])
    return None, list(args)


def operation_identity(func: Callable[..., Any], receiver: Optional[Any] = None) -> Tuple[str, str]:
    """Return ``(class_name, method_name)`` for logging and error tags."""
    if receiver is not None:
        return type(receiver).__name__, func.__name__
    qualname = getattr(func, "__qualname__", func.__name__)
    parts = [part for part in qualname.split(".") if part != "<locals>"]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    module = getattr(func, "__module__", "") or ""
    return module.rsplit(".", 1)[-1] or "function", parts[-1]


def ensure_coroutine(func: Callable[..., Any], interceptor: str) -> None:
    if not inspect.iscoroutinefunction(func):
        raise TypeError(f"@{interceptor} can only wrap async callables, got {func!r}")


def chain(*interceptors: Callable[[F], F]) -> Callable[[F], F]:
    """
    Compose interceptors; the first one listed ends up outermost.

    Usage:
        guarded = chain(logged(), validated(rule), retry(policy))(work)
        # == logged()(validated(rule)(retry(policy)(work)))
    """

    def decorator(func: F) -> F:
        wrapped = func
        for interceptor in reversed(interceptors):
            wrapped = interceptor(wrapped)
        return wrapped

    return decorator
