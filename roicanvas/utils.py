"""Shared utility functions used across roicanvas modules."""
from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, TypeVar

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)

E = TypeVar("E", bound=Enum)


class InvalidTierError(ValueError):
    """A tier or category string outside its closed set."""
    def __init__(self, field: str, value: Any, allowed: list[str]):
        super().__init__(f"Invalid {field} {value!r}; expected one of {', '.join(allowed)}")
        self.field = field
        self.value = value
        self.allowed = allowed


def strip_code_fence(text: str) -> str:
    """Return the body of a markdown code block, or *text* unchanged."""
    m = _FENCE_RE.search(text)
    return m.group(1) if m else text.strip()


def coerce_number(value: Any) -> float:
    """Coerce form or spreadsheet input to a float; anything unusable is 0.

    Accepts thousands separators and a leading currency sign (``"$1,200"``).
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").lstrip("$€£")
        try:
            number = float(text)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Match *value* against an enum's values, ignoring case and surrounding space."""
    if isinstance(value, enum_cls):
        return value
    text = coerce_text(value).lower()
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    raise InvalidTierError(field, value, [m.value for m in enum_cls])
