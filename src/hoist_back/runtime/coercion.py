"""
Value coercion at the relational boundary.

Write side only:
    dict / list  → JSON text
    bool         → 1 / 0
    None         → NULL
    other scalars pass through

Rows read back are returned exactly as the driver produced them: JSON text
columns stay text and 0/1 columns stay integers. Callers that stored
structured values decode them themselves (see decode_json_fields).
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any


def python_to_db(value: Any) -> Any:
    """Convert one record value to a relational-compatible value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return 1 if value else 0
    elif isinstance(value, dict | list | tuple):
        return json.dumps(value, ensure_ascii=False)
    else:
        return value


def coerce_row(data: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce every value of an insert/update payload."""
    return {k: python_to_db(v) for k, v in data.items()}


def decode_json_fields(row: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """
    Decode JSON text columns of a relational row back into structured values.

    Opt-in helper for callers; the adapter never applies it automatically.
    Fields that are missing, not strings, or not valid JSON are left as-is.
    """
    result = dict(row)
    for field in fields:
        raw = result.get(field)
        if isinstance(raw, str):
            try:
                result[field] = json.loads(raw)
            except json.JSONDecodeError:
                continue
    return result
