"""Cross-cutting interceptors wrapping units of work (async callables)."""

from servicehub.interceptors._common import chain
from servicehub.interceptors.cache import build_cache_key, cacheable, invalidates_cache
from servicehub.interceptors.logged import logged
from servicehub.interceptors.masking import MASK_TOKEN, mask_sensitive_data
from servicehub.interceptors.retry import RetryPolicy, compute_delay, retry, run_with_retry
from servicehub.interceptors.validation import ValidationRule, validated

__all__ = [
    "MASK_TOKEN",
    "RetryPolicy",
    "ValidationRule",
    "build_cache_key",
    "cacheable",
    "chain",
    "compute_delay",
    "invalidates_cache",
    "logged",
    "mask_sensitive_data",
    "retry",
    "run_with_retry",
    "validated",
]
