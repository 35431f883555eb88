"""Checked coercion of dynamic tool arguments.

Arguments arrive as a mapping of string to JSON value
(``str | int | float | bool | dict | list | None``).  Tools never assume
a value's shape; they read through :class:`Arguments`, which raises
:class:`~vertext.core.errors.ArgumentError` when a present value cannot
be converted.  Absent (or ``None``) values yield the supplied default.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, TypeVar

from vertext.core.errors import ArgumentError

if TYPE_CHECKING:
    from collections.abc import Mapping

T = TypeVar("T")

JsonValue = str | int | float | bool | dict[str, Any] | list[Any] | None


def clamp(value: T, low: T, high: T) -> T:
    return max(low, min(value, high))  # type: ignore[type-var]


class Arguments:
    """Read-only, type-checked view over a tool's argument mapping."""

    __slots__ = ("_raw",)

    def __init__(self, raw: Mapping[str, Any] | None) -> None:
        self._raw: Mapping[str, Any] = raw or {}

    def __contains__(self, name: str) -> bool:
        return self._raw.get(name) is not None

    def raw(self, name: str) -> JsonValue:
        return self._raw.get(name)

    def get_str(self, name: str, default: str | None = None) -> str | None:
        value = self._raw.get(name)
        if value is None:
            return default
        if isinstance(value, str):
            return value
        raise ArgumentError(name, "string", value)

    def get_float(self, name: str, default: float | None = None) -> float | None:
        value = self._raw.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            raise ArgumentError(name, "number", value)
        if isinstance(value, int | float):
            result = float(value)
        elif isinstance(value, str):
            try:
                result = float(value.strip())
            except ValueError:
                raise ArgumentError(name, "number", value) from None
        else:
            raise ArgumentError(name, "number", value)
        if not math.isfinite(result):
            raise ArgumentError(name, "finite number", value)
        return result

    def get_int(self, name: str, default: int | None = None) -> int | None:
        value = self._raw.get(name)
        if value is None:
            return default
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        number = self.get_float(name)
        if number is None or not number.is_integer():
            raise ArgumentError(name, "integer", value)
        return int(number)

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        value = self._raw.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
        raise ArgumentError(name, "boolean", value)
