# servicehub/interceptors/cache.py
"""
Cache-aside (read) and cache-invalidate (write) interceptors.

Usage:
    class ProviderDirectory:
        def __init__(self, cache: TieredCache):
            self.cache = cache

        @cacheable(ttl=600)
        async def get_provider(self, provider_id: str) -> dict: ...

        @invalidates_cache("ProviderDirectory:get_provider:*")
        async def update_provider(self, provider_id: str, data: dict) -> dict: ...

The cache is taken from the ``cache`` argument, else from ``self.cache``.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import wraps
import json
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar, cast, get_type_hints

from pydantic import BaseModel, PydanticSchemaGenerationError, TypeAdapter

from servicehub.core.config import settings
from servicehub.infrastructure.cache.tiered import TieredCache
from servicehub.interceptors._common import (
    ensure_coroutine,
    is_method,
    operation_identity,
    split_receiver,
)
from servicehub.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def to_jsonable(value: Any) -> Any:
    """Convert ``value`` into plain JSON types with a stable representation."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return to_jsonable(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((to_jsonable(item) for item in value), key=repr)
    return value


def canonical_json(args: List[Any], kwargs: Optional[Dict[str, Any]] = None) -> str:
    payload: Any = to_jsonable(list(args))
    if kwargs:
        payload = [payload, to_jsonable(kwargs)]
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def build_cache_key(prefix: str, args: List[Any], kwargs: Optional[Dict[str, Any]] = None) -> str:
    """Deterministic key: same prefix and arguments always give the same key."""
    return f"{prefix}:{canonical_json(args, kwargs)}"


def return_type_adapter(func: Callable[..., Any]) -> Optional[TypeAdapter]:
    """Adapter for the declared return type of ``func``; None when it has no usable one."""
    try:
        annotation = get_type_hints(func).get("return")
    except (NameError, TypeError):
        return None
    if annotation is None or annotation is Any or annotation is type(None):
        return None
    try:
        return TypeAdapter(annotation)
    except PydanticSchemaGenerationError:
        return None


def _resolve_cache(explicit: Optional[TieredCache], receiver: Any) -> Optional[TieredCache]:
    if explicit is not None:
        return explicit
    return getattr(receiver, "cache", None) if receiver is not None else None


def cacheable(
    ttl: Optional[int] = None,
    *,
    prefix: Optional[str] = None,
    cache: Optional[TieredCache] = None,
    use_memory_fallback: bool = True,
    model: Any = None,
) -> Callable[[F], F]:
    """
    Cache-aside decorator.

    Args:
        ttl: Time to live in seconds (defaults to settings.cache_default_ttl)
        prefix: Key prefix (defaults to ``Class:method``)
        cache: TieredCache to use (defaults to ``self.cache``)
        use_memory_fallback: Read/write the in-memory store when Redis is down
        model: Type to re-validate cached JSON into (e.g. a pydantic model);
            defaults to the wrapped function's return annotation

    A hit is re-validated so it has the same type a miss returns. Without a
    usable model or return annotation a hit returns the cached JSON as is.
    """
    effective_ttl = settings.cache_default_ttl if ttl is None else ttl
    adapter = TypeAdapter(model) if model is not None else None

    def decorator(func: F) -> F:
        ensure_coroutine(func, "cacheable")
        has_receiver = is_method(func)
        resolved: Dict[str, Optional[TypeAdapter]] = {}

        def hit_adapter() -> Optional[TypeAdapter]:
            if adapter is not None:
                return adapter
            # Resolved on first hit so forward references can be defined later
            if "return" not in resolved:
                resolved["return"] = return_type_adapter(func)
            return resolved["return"]

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            receiver, call_args = split_receiver(has_receiver, args)
            tiered = _resolve_cache(cache, receiver)
            if tiered is None:
                return await func(*args, **kwargs)

            class_name, method_name = operation_identity(func, receiver)
            key_prefix = prefix or f"{class_name}:{method_name}"
            cache_key = build_cache_key(key_prefix, call_args, kwargs)

            hit, cached = await tiered.read(cache_key, use_fallback=use_memory_fallback)
            prometheus_metrics.record_cache_lookup(key_prefix, hit)
            if hit:
                logger.debug(f"Cache hit for {class_name}.{method_name}: {cache_key}")
                hit_type = hit_adapter()
                if hit_type is not None:
                    return hit_type.validate_python(cached)
                return cached

            result = await func(*args, **kwargs)

            if result is not None:
                await tiered.write(
                    cache_key,
                    to_jsonable(result),
                    effective_ttl,
                    use_fallback=use_memory_fallback,
                )
            return result

        return cast(F, wrapper)

    return decorator


def invalidates_cache(pattern: str, *, cache: Optional[TieredCache] = None) -> Callable[[F], F]:
    """
    Decorator clearing keys matching ``pattern`` after the wrapped work succeeds.

    A failed invalidation is logged; it never fails the call or undoes the work.
    """

    def decorator(func: F) -> F:
        ensure_coroutine(func, "invalidates_cache")
        has_receiver = is_method(func)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)

            receiver, _ = split_receiver(has_receiver, args)
            tiered = _resolve_cache(cache, receiver)
            if tiered is not None:
                await tiered.invalidate(pattern)
            return result

        return cast(F, wrapper)

    return decorator
