"""JSON-safe conversion of values carrying arbitrary-precision integers."""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from typing import Any

from pydantic import BaseModel

from src.helpers.constants import MAX_SAFE_INTEGER
from src.helpers.http_models import JsonValue


def serialize(value: Any) -> JsonValue:
    """Recursively convert a value into something json.dumps accepts.

    Integers a JavaScript client can represent exactly stay numbers, larger
    ones become decimal strings. Pydantic models are dumped with their wire
    aliases. Already-serialized values pass through unchanged, so the
    conversion is idempotent.

    Args:
        value: Any object graph of dicts, sequences, models and scalars

    Returns:
        JSON-safe value

    Example:
        >>> serialize({"gasUsed": 21000, "difficulty": 2**64})
        {'gasUsed': 21000, 'difficulty': '18446744073709551616'}
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        return value if abs(value) <= MAX_SAFE_INTEGER else str(value)
    if isinstance(value, BaseModel):
        return serialize(value.model_dump(by_alias=True))
    if isinstance(value, dict):
        return {str(key): serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize(item) for item in value]
    if isinstance(value, Enum):
        return serialize(value.value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return "0x" + value.hex()

    msg = f"Cannot serialize value of type {type(value).__name__}"
    raise TypeError(msg)


def to_json(value: Any) -> str:
    """Serialize and encode a value as a JSON string."""
    return json.dumps(serialize(value))


__all__ = ["serialize", "to_json"]
