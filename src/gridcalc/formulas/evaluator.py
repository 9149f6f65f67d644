"""Tree-walking evaluator for parsed formula expressions.

References are resolved through two callbacks supplied by the caller:
``get_cell(col, row)`` returns a scalar and ``get_range(rng)`` returns a
list of rows.  Error sentinels are ordinary values: every operator returns
the first sentinel among its operands (left first), and function calls
receive sentinels as arguments and decide for themselves.
"""

from __future__ import annotations

import math
import sys
from typing import Any, Callable

from gridcalc.formulas.errors import CellError, first_error
from gridcalc.formulas.nodes import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    Node,
    RangeRef,
    UnaryOp,
)
from gridcalc.formulas.references import CellRange
from gridcalc.formulas.values import is_number, to_number, to_text

CellAccessor = Callable[[int, int], Any]
RangeAccessor = Callable[[CellRange], list]
FunctionCaller = Callable[[str, list], Any]


def evaluate_formula(
    node: Node,
    get_cell: CellAccessor,
    get_range: RangeAccessor,
    call: FunctionCaller | None = None,
) -> Any:
    """Evaluate an expression tree.

    Args:
        node: Root node from ``parse_formula()``.
        get_cell: Returns the value of the cell at ``(col, row)``.
        get_range: Returns a range's values as a list of rows (row-major).
        call: Function dispatcher; defaults to the built-in registry.

    Returns:
        A number, string, boolean, ``None``, ``CellError``, or a list of
        rows when *node* is a bare range.
    """
    if call is None:
        from gridcalc.functions import call_function

        call = call_function
    return _eval(node, get_cell, get_range, call)


def _eval(
    node: Node,
    get_cell: CellAccessor,
    get_range: RangeAccessor,
    call: FunctionCaller,
) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, CellRef):
        return get_cell(node.address.col, node.address.row)
    if isinstance(node, RangeRef):
        return get_range(node.range)
    if isinstance(node, BinaryOp):
        left = _eval(node.left, get_cell, get_range, call)
        right = _eval(node.right, get_cell, get_range, call)
        return apply_binary(node.operator, left, right)
    if isinstance(node, UnaryOp):
        operand = _eval(node.operand, get_cell, get_range, call)
        return apply_unary(node.operator, operand)
    if isinstance(node, FunctionCall):
        args = [_eval(arg, get_cell, get_range, call) for arg in node.args]
        return call(node.name, args)
    raise TypeError(f"Unknown node type: {type(node).__name__}")


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def apply_unary(op: str, operand: Any) -> Any:
    if isinstance(operand, CellError):
        return operand
    if isinstance(operand, list):
        return CellError.VALUE
    if op == "-":
        return -to_number(operand)
    return operand


def apply_binary(op: str, left: Any, right: Any) -> Any:
    """Apply a binary operator to two evaluated operands."""
    err = first_error(left, right)
    if err is not None:
        return err
    if isinstance(left, list) or isinstance(right, list):
        return CellError.VALUE

    if op == "&":
        return to_text(left) + to_text(right)
    if op in _COMPARATORS:
        return _COMPARATORS[op](compare_values(left, right))

    a = to_number(left)
    b = to_number(right)
    if op == "+":
        return _checked(a + b)
    if op == "-":
        return _checked(a - b)
    if op == "*":
        return _checked(a * b)
    if op == "/":
        if b == 0:
            return CellError.DIV0
        return _checked(a / b)
    if op == "^":
        return _power(a, b)
    raise ValueError(f"Unknown operator: {op!r}")


# Integer powers stay exact only while they fit a float mantissa.
_MAX_EXACT_INT = 2**53
_MAX_FLOAT = sys.float_info.max


def _power(base: int | float, exp: int | float) -> Any:
    if base == 0 and exp < 0:
        return CellError.DIV0
    if base < 0 and not (isinstance(exp, int) or exp.is_integer()):
        return CellError.NUM
    # Computed in floats first: an int power has no overflow bound.
    try:
        result = float(base) ** float(exp)
    except OverflowError:
        return CellError.NUM
    checked = _checked(result)
    if (
        isinstance(base, int)
        and isinstance(exp, int)
        and exp >= 0
        and not isinstance(checked, CellError)
        and abs(checked) <= _MAX_EXACT_INT
    ):
        return base ** exp
    return checked


def _checked(value: int | float) -> Any:
    if isinstance(value, float) and (math.isinf(value) or math.isnan(value)):
        return CellError.NUM
    if isinstance(value, int) and abs(value) > _MAX_FLOAT:
        return CellError.NUM
    return value


_COMPARATORS: dict[str, Callable[[int], bool]] = {
    "=": lambda c: c == 0,
    "<>": lambda c: c != 0,
    "<": lambda c: c < 0,
    ">": lambda c: c > 0,
    "<=": lambda c: c <= 0,
    ">=": lambda c: c >= 0,
}


def _kind(value: Any) -> int:
    # number < string < boolean < other
    if is_number(value):
        return 0
    if isinstance(value, str):
        return 1
    if isinstance(value, bool):
        return 2
    return 3


def compare_values(left: Any, right: Any) -> int:
    """Three-way comparison with spreadsheet ordering.

    Strings compare case-insensitively.  Values of different kinds order
    as number < string < boolean < other.  A blank operand takes the
    blank form of the other side (0, ``""`` or FALSE).
    """
    if left is None and right is None:
        return 0
    if left is None:
        left = _blank_like(right)
    elif right is None:
        right = _blank_like(left)

    lk, rk = _kind(left), _kind(right)
    if lk != rk:
        return -1 if lk < rk else 1
    if lk == 1:
        left, right = left.casefold(), right.casefold()
    elif lk == 3:
        return 0 if left == right else (-1 if str(left) < str(right) else 1)
    if left == right:
        return 0
    return -1 if left < right else 1


def _blank_like(value: Any) -> Any:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return ""
    return 0
