# servicehub/interceptors/masking.py
"""
Redaction of sensitive fields before arguments or results reach the logs.
"""

import dataclasses
from typing import Any, Iterable

from pydantic import BaseModel

MASK_TOKEN = "***MASKED***"


def mask_sensitive_data(data: Any, fields_to_mask: Iterable[str]) -> Any:
    """
    Return a copy of ``data`` with every field named in ``fields_to_mask`` replaced.

    Walks dicts, lists, tuples, sets, pydantic models and dataclasses; field
    names are compared case-insensitively. The input is never mutated.
    """
    lowered = {field.lower() for field in fields_to_mask}
    if not lowered:
        return data
    return _mask(data, lowered)


def _mask(data: Any, fields: set) -> Any:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif dataclasses.is_dataclass(data) and not isinstance(data, type):
        data = dataclasses.asdict(data)

    if isinstance(data, dict):
        return {
            key: MASK_TOKEN if str(key).lower() in fields else _mask(value, fields)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple, set, frozenset)):
        return [_mask(item, fields) for item in data]
    return data
