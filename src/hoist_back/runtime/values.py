"""
Record value model.

A record maps field names to values drawn from a closed set of variants:
null, bool, int, float, str, list of values, or mapping of str to values.
Anything else is rejected on write so that every table stays valid JSON.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from typing import Any, TypeAlias

from hoist_back.core.errors import InvalidRecord
from hoist_back.specs.query import validate_identifier

Value: TypeAlias = "None | bool | int | float | str | list[Value] | dict[str, Value]"
Record: TypeAlias = dict[str, Any]

# Mirrors what a loosely-typed source would accept as a number, e.g. " 12", "-3.5", "1e3".
_NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def validate_value(value: Any, path: str = "value") -> None:
    """Raise InvalidRecord unless `value` belongs to the record value model."""
    if value is None or isinstance(value, bool | int | str):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidRecord(f"{path}: non-finite float {value!r} cannot be stored")
        return
    if isinstance(value, list | tuple):
        for i, item in enumerate(value):
            validate_value(item, f"{path}[{i}]")
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidRecord(f"{path}: mapping keys must be strings, got {key!r}")
            validate_value(item, f"{path}.{key}")
        return
    raise InvalidRecord(f"{path}: unsupported value type {type(value).__name__}")


def validate_payload(data: Any, operation: str) -> dict[str, Any]:
    """
    Validate insert/update data.

    Args:
        data: Field => value mapping
        operation: "insert" or "update", for error messages

    Returns:
        A plain dict copy of the payload

    Raises:
        InvalidRecord: If the payload is empty, not a mapping, or holds bad values
    """
    if not isinstance(data, Mapping):
        raise InvalidRecord(
            f"{operation.capitalize()} data must be a mapping with field names as keys."
        )
    if not data:
        raise InvalidRecord(
            f"{operation.capitalize()} data cannot be empty. Provide field => value pairs."
        )
    payload: dict[str, Any] = {}
    for key, value in data.items():
        try:
            name = validate_identifier(key, "field name")
        except ValueError as exc:
            raise InvalidRecord(str(exc)) from exc
        validate_value(value, name)
        payload[name] = value
    return payload


def as_number(value: Any) -> int | float | None:
    """Return the numeric reading of a value, or None if it does not parse as a number."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    if isinstance(value, str) and _NUMERIC_PATTERN.match(value):
        text = value.strip()
        if "." in text or "e" in text or "E" in text:
            return float(text)
        return int(text)
    return None


def to_text(value: Any) -> str:
    """Textual form used for lexical comparison and substring matching."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
