from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .types import RejectCode


@dataclass(frozen=True, slots=True)
class ParseError(Exception):
    """Handles rejected fields, with additional rejection details from error messages."""
    code: RejectCode            # used to classify the rejection type encountered
    detail: str                 # error message that led to the rejection.


# ASCII only: `str.isdigit()` and `int()` both accept e.g. Arabic-Indic digits.
_INT_RE = re.compile(r"[+-]?[0-9]+")
_FRACTIONAL_RE = re.compile(r"[+-]?[0-9]+\.[0-9]*|[+-]?\.[0-9]+")


def normalize_cell(v: Any) -> Any:
    """Transform pre-parsed cells into normalized shape. Empty text becomes `None`."""
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip()
        return s if s else None
    return v


## -- text / str fields

def parse_required_text(v: Any, *, field: str) -> str:
    """
    Assigns required text needed to parse a successful row.
    Raises on:
    - `None` typed input.
    - empty strings.
    """
    v = normalize_cell(v)
    if v is None:
        raise ParseError(RejectCode.missing_field, f"{field}: missing required text")
    return str(v)


## -- integer fields (`None` raises)

def parse_int(v: Any, *, field: str, allow_fractional: bool = False) -> int:
    """
    Parse integers written with ASCII digits and an optional sign.

    `"12.3"`, `"1e4"` and non-ASCII digits are rejected. With `allow_fractional`
    a decimal literal is accepted and truncated toward zero (`"-3.9"` -> `-3`).
    """
    v = normalize_cell(v)
    if v is None:
        raise ParseError(RejectCode.missing_field, f"{field}: missing required int")
    if isinstance(v, bool):
        raise ParseError(RejectCode.not_numeric, f"{field}: invalid int value {v!r}")
    if isinstance(v, int):
        return v

    s = str(v)
    if _INT_RE.fullmatch(s):
        return int(s)
    if allow_fractional and _FRACTIONAL_RE.fullmatch(s):
        whole = s.split(".", 1)[0]
        # "-.5" and ".5" have no integer part
        if whole in ("", "+", "-"):
            return 0
        return int(whole)
    raise ParseError(RejectCode.not_numeric, f"{field}: invalid int value {v!r}")


def require_non_negative(v: int, *, field: str) -> int:
    """Raise `out_of_range` on negative values."""
    if v < 0:
        raise ParseError(RejectCode.out_of_range, f"{field}: must be >= 0, got {v}")
    return v
