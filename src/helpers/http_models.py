"""Type definitions for JSON payloads."""

from typing import Any, TypeAlias


# JSON value type - using Any for the recursive case
# since pyright has trouble with recursive type aliases
JsonValue: TypeAlias = str | int | float | bool | dict[str, Any] | list[Any] | None

__all__ = ["JsonValue"]
