"""JSON serialization used by content negotiation.

Registered as a baseline service so applications can swap in their own
serializer (anything with ``dumps`` / ``loads``) with a later
``service_config`` fragment.
"""

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any


def _default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, set | frozenset | tuple):
        return list(value)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


class JsonSerializer:
    """Compact JSON with dataclass, datetime, enum and set support."""

    __slots__ = ("content_type",)

    def __init__(self, content_type: str = "application/json") -> None:
        self.content_type = content_type

    def dumps(self, value: Any) -> str:
        return json.dumps(value, default=_default, separators=(",", ":"))

    def loads(self, raw: str | bytes) -> Any:
        return json.loads(raw)
