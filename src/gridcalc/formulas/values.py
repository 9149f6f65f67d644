"""Value coercion shared by the evaluator and the built-in functions.

Cell values are ``None`` (empty), ``bool``, ``int``, ``float``, ``str`` or a
``CellError``.  Range arguments arrive as lists of rows.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Iterator

from gridcalc.formulas.errors import ERROR_CODES, CellError

_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")


def is_number(value: Any) -> bool:
    """True for int/float values.  Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(text: str) -> int | float | None:
    """Parse a numeric string, or return None if it is not one.

    Surrounding whitespace is ignored.  Integral text yields an ``int``.
    """
    s = text.strip()
    if not s or not _NUMERIC_RE.match(s):
        return None
    if _INT_RE.match(s):
        return int(s)
    return float(s)


def to_number(value: Any) -> int | float:
    """Coerce a scalar to a number using permissive spreadsheet rules.

    ``True``/``False`` become 1/0, empty and non-numeric text become 0,
    numeric text becomes its value.  Callers check for error sentinels
    before coercing.
    """
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, CellError):
        return 0
    if isinstance(value, str):
        parsed = parse_number(value)
        return 0 if parsed is None else parsed
    return 0


def format_number(value: int | float) -> str:
    """Shortest text form of a number: ``3.0`` renders as ``3``."""
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def to_text(value: Any) -> str:
    """Stringify a scalar for concatenation and text functions."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, CellError):
        return value.value
    if is_number(value):
        return format_number(value)
    return str(value)


def to_bool(value: Any) -> bool:
    """Truthiness of a condition argument.

    Text ``"TRUE"``/``"FALSE"`` is read case-insensitively; other non-empty
    text counts as true.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == "TRUE":
            return True
        if upper in ("FALSE", ""):
            return False
        parsed = parse_number(value)
        if parsed is not None:
            return parsed != 0
        return True
    return bool(value)


def is_blank(value: Any) -> bool:
    return value is None or value == ""


def flatten(args: Iterable[Any]) -> Iterator[Any]:
    """Yield scalars from arguments, descending into range (list) values."""
    for arg in args:
        if isinstance(arg, (list, tuple)):
            yield from flatten(arg)
        else:
            yield arg


def numeric_values(args: Iterable[Any]) -> list[int | float]:
    """Numbers found in *args* after flattening.

    Numeric text counts; booleans, other text, blanks and error
    sentinels are skipped.
    """
    out: list[int | float] = []
    for v in flatten(args):
        if is_number(v):
            out.append(v)
        elif isinstance(v, str) and not isinstance(v, CellError):
            parsed = parse_number(v)
            if parsed is not None:
                out.append(parsed)
    return out


def coerce_literal(raw: Any) -> Any:
    """Convert a stored literal into the value a formula reads.

    Blank becomes ``None``, numeric text becomes a number and an error
    code becomes its sentinel.  Other values pass through.
    """
    if raw is None:
        return None
    if isinstance(raw, CellError):
        return raw
    if isinstance(raw, str):
        if raw == "":
            return None
        if raw in ERROR_CODES:
            return CellError(raw)
        parsed = parse_number(raw)
        if parsed is not None:
            return parsed
    return raw
