"""Lenient conversions for loosely typed model output."""

import re
from typing import Any, List, Optional

_NUMBER_PATTERN = re.compile(r"-?\d+(?:[.,]\d+)?")


def coerce_float(value: Any) -> Optional[float]:
    """Convert a model-provided value into a float.

    Accepts numbers and strings such as "12,5 м²" or "area: 7.2". Returns
    None for anything that does not contain a number, never a guess.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        compact = value.replace(" ", "").replace(" ", "")
        match = _NUMBER_PATTERN.search(compact)
        if match:
            return float(match.group(0).replace(",", "."))
    return None


def coerce_int(value: Any) -> Optional[int]:
    number = coerce_float(value)
    if number is None:
        return None
    return int(round(number))


def coerce_str(value: Any) -> Optional[str]:
    """Strip strings and turn empty or placeholder values into None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a", "-"}:
        return None
    return text


def ensure_list(value: Any) -> List[Any]:
    """Wrap a single object into a list; None becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
