"""Normalize raw cell values into JSON-friendly scalars."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any

# Optional minus sign, digits, at most one decimal point followed by digits. Nothing else.
NUMERIC_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")


def coerce_cell(value: Any) -> Any:
    """Type a single cell.

    Rules, in priority order:

    1. Empty string -> ``None``.
    2. A string matching :data:`NUMERIC_PATTERN` -> number. Integral values
       come back as ``int`` (``"0.0"`` -> ``0``), the rest as ``float``.
    3. Anything else is returned unchanged, so ``"19.99.99"`` or
       ``"12abc"`` stay strings.

    Non-string values (numbers, booleans from spreadsheet cells) pass through,
    except dates and times which are rendered as ISO-8601 strings.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if value == "":
            return None
        if NUMERIC_PATTERN.match(value):
            number = float(value)
            return int(number) if number.is_integer() else number
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def clean_header(header: Any, index: int) -> str:
    """Trim a header cell, falling back to ``column_<n>`` for blanks."""
    text = str(header).strip() if header is not None else ""
    return text or f"column_{index + 1}"


def is_blank_row(values: list[Any]) -> bool:
    return all(v is None or (isinstance(v, str) and v.strip() == "") for v in values)
