import re
from typing import Optional

_DASHES = re.compile(r"[‐‑‒–—―−]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """Canonical form of a room name for comparisons.

    Lowercases, unifies dash variants to "-" and collapses whitespace, so
    "Кухня – гостиная" and "кухня - гостиная" compare equal.
    """
    if not name:
        return ""
    text = _DASHES.sub("-", name.lower())
    text = _WHITESPACE.sub(" ", text)
    return text.strip()
