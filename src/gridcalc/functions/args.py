"""Argument helpers shared by the built-in function modules."""

from __future__ import annotations

import functools
import re
from typing import Any, Callable

from gridcalc.formulas.errors import CellError, FormulaFunctionError, first_error
from gridcalc.formulas.values import is_number, parse_number, to_text


def scalar_arg(value: Any) -> Any:
    """Collapse a single-cell range to its value; larger ranges are rejected."""
    if isinstance(value, list):
        if len(value) == 1 and isinstance(value[0], list) and len(value[0]) == 1:
            return value[0][0]
        raise FormulaFunctionError("range", "Expected a single value, got a range")
    return value


def number_arg(value: Any) -> int | float:
    """Strict numeric coercion for function arguments.

    Blank is 0, booleans are 1/0 and numeric text is parsed; other text
    raises ``FormulaFunctionError``.
    """
    value = scalar_arg(value)
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str) and not isinstance(value, CellError):
        if value == "":
            return 0
        parsed = parse_number(value)
        if parsed is not None:
            return parsed
    raise FormulaFunctionError("number", f"Expected a number, got {value!r}")


def int_arg(value: Any) -> int:
    """Numeric argument truncated toward zero."""
    return int(number_arg(value))


def text_arg(value: Any) -> str:
    return to_text(scalar_arg(value))


def numeric(fn: Callable) -> Callable:
    """Wrap a function of plain numbers.

    Arguments are collapsed to scalars; the first error sentinel among them
    is returned unchanged, otherwise all arguments are coerced with
    ``number_arg`` before the call.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any) -> Any:
        values = [scalar_arg(a) for a in args]
        err = first_error(*values)
        if err is not None:
            return err
        return fn(*(number_arg(v) for v in values))

    return wrapper


def scalars(fn: Callable) -> Callable:
    """Wrap a function of scalar arguments, returning the first error among them."""

    @functools.wraps(fn)
    def wrapper(*args: Any) -> Any:
        values = [scalar_arg(a) for a in args]
        err = first_error(*values)
        if err is not None:
            return err
        return fn(*values)

    return wrapper


def as_table(value: Any) -> list[list[Any]]:
    """Present any argument as a list of rows."""
    if isinstance(value, list):
        if value and all(isinstance(row, list) for row in value):
            return value
        return [list(value)]
    return [[value]]


# ---------------------------------------------------------------------------
# Criteria (COUNTIF / SUMIF / AVERAGEIF)
# ---------------------------------------------------------------------------

_CRITERIA_OP_RE = re.compile(r"^(<=|>=|<>|=|<|>)?(.*)$", re.DOTALL)


def wildcard_regex(pattern: str, anchored: bool = True) -> re.Pattern:
    """Translate ``*`` / ``?`` wildcards (``~`` escapes) into a regex."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "~" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    body = "".join(out)
    if anchored:
        body = "^" + body + "$"
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def make_criteria(criteria: Any) -> Callable[[Any], bool]:
    """Build a predicate from a COUNTIF-style criterion.

    A number matches equal numbers.  Text may start with a comparison
    operator; numeric operands compare numerically, other operands compare
    as case-insensitive text with ``*`` and ``?`` wildcards for ``=`` and
    ``<>``.  An empty criterion matches blank cells.
    """
    criteria = scalar_arg(criteria)
    if isinstance(criteria, bool):
        return lambda v: isinstance(v, bool) and v == criteria
    if is_number(criteria):
        return lambda v: is_number(v) and v == criteria
    if criteria is None:
        return lambda v: v is None or v == ""

    m = _CRITERIA_OP_RE.match(str(criteria))
    op = m.group(1) or "="
    operand = m.group(2)

    if operand == "" and op in ("=", "<>"):
        if op == "=":
            return lambda v: v is None or v == ""
        return lambda v: not (v is None or v == "")

    target = parse_number(operand)
    if target is not None:
        def numeric_match(v: Any) -> bool:
            if isinstance(v, bool) or isinstance(v, CellError):
                return op == "<>"
            num = v if is_number(v) else (parse_number(v) if isinstance(v, str) else None)
            if num is None:
                return op == "<>"
            return _compare(op, num, target)

        return numeric_match

    upper = operand.upper()
    if upper in ("TRUE", "FALSE") and op in ("=", "<>"):
        flag = upper == "TRUE"
        return lambda v: (isinstance(v, bool) and v == flag) == (op == "=")

    if op in ("=", "<>"):
        regex = wildcard_regex(operand)

        def text_match(v: Any) -> bool:
            hit = isinstance(v, str) and not isinstance(v, CellError) and bool(regex.match(v))
            return hit if op == "=" else not hit

        return text_match

    folded = operand.casefold()

    def text_order(v: Any) -> bool:
        if not isinstance(v, str) or isinstance(v, CellError):
            return False
        return _compare(op, v.casefold(), folded)

    return text_order


def _compare(op: str, a: Any, b: Any) -> bool:
    if op == "=":
        return a == b
    if op == "<>":
        return a != b
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b
