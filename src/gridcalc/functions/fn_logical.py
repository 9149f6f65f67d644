"""Logical formula functions: IF, AND, OR, NOT and friends.

Arguments are evaluated before the call, so IF picks between two already
computed values.  Only IFERROR / IFNA / ISERROR look inside error sentinels.
"""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import CellError, first_error
from gridcalc.formulas.evaluator import compare_values
from gridcalc.formulas.values import flatten, is_blank, is_number, to_bool
from gridcalc.functions.args import int_arg, scalar_arg, scalars
from gridcalc.functions.registry import register_function


def _truth_values(args: tuple) -> list[bool] | CellError:
    """Booleans and numbers among *args*; text and blanks inside ranges are skipped."""
    out: list[bool] = []
    for arg in args:
        if isinstance(arg, list):
            for v in flatten(arg):
                if isinstance(v, CellError):
                    return v
                if isinstance(v, bool) or is_number(v):
                    out.append(bool(v))
        else:
            if isinstance(arg, CellError):
                return arg
            out.append(to_bool(arg))
    if not out:
        return CellError.VALUE
    return out


@register_function("IF", 1, 3)
def fn_if(condition: Any, if_true: Any = True, if_false: Any = False) -> Any:
    """IF(cond, then, else): picks a value; an error condition propagates."""
    condition = scalar_arg(condition)
    if isinstance(condition, CellError):
        return condition
    return if_true if to_bool(condition) else if_false


@register_function("AND", 1)
def fn_and(*args: Any) -> Any:
    """AND(val1, val2, ...): TRUE if all arguments are truthy."""
    values = _truth_values(args)
    if isinstance(values, CellError):
        return values
    return all(values)


@register_function("OR", 1)
def fn_or(*args: Any) -> Any:
    """OR(val1, val2, ...): TRUE if any argument is truthy."""
    values = _truth_values(args)
    if isinstance(values, CellError):
        return values
    return any(values)


@register_function("XOR", 1)
def fn_xor(*args: Any) -> Any:
    """XOR(val1, val2, ...): TRUE if an odd number of arguments are truthy."""
    values = _truth_values(args)
    if isinstance(values, CellError):
        return values
    return sum(values) % 2 == 1


@register_function("NOT", 1, 1)
@scalars
def fn_not(value: Any) -> bool:
    return not to_bool(value)


@register_function("TRUE", 0, 0)
def fn_true() -> bool:
    return True


@register_function("FALSE", 0, 0)
def fn_false() -> bool:
    return False


@register_function("IFERROR", 2, 2)
def fn_iferror(value: Any, fallback: Any) -> Any:
    """IFERROR(value, fallback): fallback when value is any error sentinel."""
    return fallback if isinstance(value, CellError) else value


@register_function("IFNA", 2, 2)
def fn_ifna(value: Any, fallback: Any) -> Any:
    return fallback if value == CellError.NA else value


@register_function("IFS", 2)
def fn_ifs(*args: Any) -> Any:
    """IFS(cond1, val1, cond2, val2, ...): value of the first true condition."""
    if len(args) % 2:
        return CellError.VALUE
    for i in range(0, len(args), 2):
        cond = scalar_arg(args[i])
        if isinstance(cond, CellError):
            return cond
        if to_bool(cond):
            return args[i + 1]
    return CellError.NA


@register_function("SWITCH", 3)
def fn_switch(expression: Any, *cases: Any) -> Any:
    """SWITCH(expr, match1, val1, ..., [default])."""
    expression = scalar_arg(expression)
    if isinstance(expression, CellError):
        return expression
    pairs = len(cases) // 2
    for i in range(pairs):
        candidate = scalar_arg(cases[2 * i])
        if isinstance(candidate, CellError):
            return candidate
        if type(candidate) is type(expression) or (is_number(candidate) and is_number(expression)):
            if compare_values(expression, candidate) == 0:
                return cases[2 * i + 1]
    if len(cases) % 2:
        return cases[-1]
    return CellError.NA


@register_function("CHOOSE", 2)
def fn_choose(index: Any, *values: Any) -> Any:
    """CHOOSE(index, val1, val2, ...): 1-based pick."""
    err = first_error(scalar_arg(index))
    if err is not None:
        return err
    i = int_arg(index)
    if i < 1 or i > len(values):
        return CellError.VALUE
    return values[i - 1]


# ---------------------------------------------------------------------------
# Information
# ---------------------------------------------------------------------------


@register_function("ISERROR", 1, 1)
def fn_iserror(value: Any) -> bool:
    return isinstance(scalar_arg(value), CellError)


@register_function("ISNUMBER", 1, 1)
def fn_isnumber(value: Any) -> bool:
    return is_number(scalar_arg(value))


@register_function("ISTEXT", 1, 1)
def fn_istext(value: Any) -> bool:
    v = scalar_arg(value)
    return isinstance(v, str) and not isinstance(v, CellError) and v != ""


@register_function("ISBLANK", 1, 1)
def fn_isblank(value: Any) -> bool:
    return is_blank(scalar_arg(value))
