"""Math formula functions: aggregates, rounding, trigonometry."""

from __future__ import annotations

import math
import random
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any

from gridcalc.formulas.errors import CellError, FormulaFunctionError
from gridcalc.formulas.evaluator import apply_binary
from gridcalc.formulas.values import flatten, is_blank, numeric_values
from gridcalc.functions.args import number_arg, numeric
from gridcalc.functions.registry import register_function

# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@register_function("SUM", 1)
def fn_sum(*args: Any) -> int | float:
    """SUM(val1, val2, ...): total of numeric values, ranges flattened."""
    return sum(numeric_values(args))


@register_function("AVERAGE", 1)
def fn_average(*args: Any) -> Any:
    """AVERAGE(val1, val2, ...): arithmetic mean; #DIV/0! with no numbers."""
    nums = numeric_values(args)
    if not nums:
        return CellError.DIV0
    return sum(nums) / len(nums)


@register_function("MAX", 1)
def fn_max(*args: Any) -> int | float:
    nums = numeric_values(args)
    return max(nums) if nums else 0


@register_function("MIN", 1)
def fn_min(*args: Any) -> int | float:
    nums = numeric_values(args)
    return min(nums) if nums else 0


@register_function("COUNT", 1)
def fn_count(*args: Any) -> int:
    """COUNT(val1, ...): number of numeric values."""
    return len(numeric_values(args))


@register_function("COUNTA", 1)
def fn_counta(*args: Any) -> int:
    """COUNTA(val1, ...): number of non-empty values of any type."""
    return sum(1 for v in flatten(args) if not is_blank(v))


@register_function("PRODUCT", 1)
def fn_product(*args: Any) -> int | float:
    nums = numeric_values(args)
    return math.prod(nums) if nums else 0


@register_function("SUMPRODUCT", 1)
def fn_sumproduct(*arrays: Any) -> Any:
    """SUMPRODUCT(array1, ...): sum of element-wise products of same-shaped arrays."""
    flat = [list(flatten([a])) for a in arrays]
    size = len(flat[0])
    if any(len(f) != size for f in flat):
        return CellError.VALUE
    total = 0
    for items in zip(*flat):
        prod = 1
        for v in items:
            if isinstance(v, CellError):
                return v
            prod *= v if isinstance(v, (int, float)) and not isinstance(v, bool) else 0
        total += prod
    return total


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


def _round(value: float, digits: int, mode: str) -> float:
    exp = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(float(value))).quantize(exp, rounding=mode))


@register_function("ROUND", 1, 2)
@numeric
def fn_round(value: float, digits: float = 0) -> float:
    """ROUND(number, digits): half away from zero."""
    return _round(value, int(digits), ROUND_HALF_UP)


@register_function("ROUNDUP", 1, 2)
@numeric
def fn_roundup(value: float, digits: float = 0) -> float:
    return _round(value, int(digits), ROUND_UP)


@register_function("ROUNDDOWN", 1, 2)
@numeric
def fn_rounddown(value: float, digits: float = 0) -> float:
    return _round(value, int(digits), ROUND_DOWN)


@register_function("TRUNC", 1, 2)
@numeric
def fn_trunc(value: float, digits: float = 0) -> float:
    return _round(value, int(digits), ROUND_DOWN)


@register_function("INT", 1, 1)
@numeric
def fn_int(value: float) -> int:
    """INT(number): round down to the nearest integer."""
    return math.floor(value)


@register_function("CEILING", 1, 2)
@numeric
def fn_ceiling(value: float, significance: float = 1) -> Any:
    if significance == 0:
        return 0
    if value > 0 and significance < 0:
        return CellError.NUM
    return math.ceil(value / significance) * significance


@register_function("FLOOR", 1, 2)
@numeric
def fn_floor(value: float, significance: float = 1) -> Any:
    if significance == 0:
        return CellError.DIV0
    if value > 0 and significance < 0:
        return CellError.NUM
    return math.floor(value / significance) * significance


@register_function("EVEN", 1, 1)
@numeric
def fn_even(value: float) -> int:
    """EVEN(number): round away from zero to the nearest even integer."""
    n = math.ceil(abs(value))
    if n % 2:
        n += 1
    return n if value >= 0 else -n


@register_function("ODD", 1, 1)
@numeric
def fn_odd(value: float) -> int:
    n = math.ceil(abs(value))
    if n % 2 == 0:
        n += 1
    return n if value >= 0 else -n


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


@register_function("ABS", 1, 1)
@numeric
def fn_abs(value: float) -> float:
    return abs(value)


@register_function("SIGN", 1, 1)
@numeric
def fn_sign(value: float) -> int:
    return (value > 0) - (value < 0)


@register_function("MOD", 2, 2)
@numeric
def fn_mod(number: float, divisor: float) -> Any:
    """MOD(number, divisor): remainder with the sign of the divisor."""
    if divisor == 0:
        return CellError.DIV0
    return number - divisor * math.floor(number / divisor)


@register_function("QUOTIENT", 2, 2)
@numeric
def fn_quotient(numerator: float, denominator: float) -> Any:
    if denominator == 0:
        return CellError.DIV0
    return int(numerator / denominator)


@register_function("POWER", 2, 2)
@numeric
def fn_power(base: float, exponent: float) -> Any:
    return apply_binary("^", base, exponent)


@register_function("SQRT", 1, 1)
@numeric
def fn_sqrt(value: float) -> Any:
    if value < 0:
        return CellError.NUM
    return math.sqrt(value)


@register_function("EXP", 1, 1)
@numeric
def fn_exp(value: float) -> Any:
    try:
        return math.exp(value)
    except OverflowError:
        return CellError.NUM


@register_function("LN", 1, 1)
@numeric
def fn_ln(value: float) -> Any:
    if value <= 0:
        return CellError.NUM
    return math.log(value)


@register_function("LOG", 1, 2)
@numeric
def fn_log(value: float, base: float = 10) -> Any:
    if value <= 0 or base <= 0:
        return CellError.NUM
    if base == 1:
        return CellError.DIV0
    return math.log(value, base)


@register_function("LOG10", 1, 1)
@numeric
def fn_log10(value: float) -> Any:
    if value <= 0:
        return CellError.NUM
    return math.log10(value)


@register_function("FACT", 1, 1)
@numeric
def fn_fact(value: float) -> Any:
    # 171! no longer fits in a float.
    if value < 0 or value > 170:
        return CellError.NUM
    return math.factorial(int(value))


def _integers(name: str, args: tuple) -> list[int]:
    nums: list[int] = []
    for v in flatten(args):
        n = number_arg(v)
        if n < 0:
            raise FormulaFunctionError(name, "Arguments must be non-negative")
        nums.append(int(n))
    return nums


@register_function("GCD", 1)
def fn_gcd(*args: Any) -> Any:
    return math.gcd(*_integers("GCD", args))


@register_function("LCM", 1)
def fn_lcm(*args: Any) -> Any:
    return math.lcm(*_integers("LCM", args))


@register_function("PI", 0, 0)
def fn_pi() -> float:
    return math.pi


@register_function("RAND", 0, 0)
def fn_rand() -> float:
    return random.random()


@register_function("RANDBETWEEN", 2, 2)
@numeric
def fn_randbetween(bottom: float, top: float) -> Any:
    low, high = math.ceil(bottom), math.floor(top)
    if low > high:
        return CellError.NUM
    return random.randint(low, high)


# ---------------------------------------------------------------------------
# Trigonometry
# ---------------------------------------------------------------------------


@register_function("RADIANS", 1, 1)
@numeric
def fn_radians(value: float) -> float:
    return math.radians(value)


@register_function("DEGREES", 1, 1)
@numeric
def fn_degrees(value: float) -> float:
    return math.degrees(value)


@register_function("SIN", 1, 1)
@numeric
def fn_sin(value: float) -> float:
    return math.sin(value)


@register_function("COS", 1, 1)
@numeric
def fn_cos(value: float) -> float:
    return math.cos(value)


@register_function("TAN", 1, 1)
@numeric
def fn_tan(value: float) -> float:
    return math.tan(value)


@register_function("ASIN", 1, 1)
@numeric
def fn_asin(value: float) -> Any:
    if not -1 <= value <= 1:
        return CellError.NUM
    return math.asin(value)


@register_function("ACOS", 1, 1)
@numeric
def fn_acos(value: float) -> Any:
    if not -1 <= value <= 1:
        return CellError.NUM
    return math.acos(value)


@register_function("ATAN", 1, 1)
@numeric
def fn_atan(value: float) -> float:
    return math.atan(value)


@register_function("ATAN2", 2, 2)
@numeric
def fn_atan2(x: float, y: float) -> Any:
    """ATAN2(x, y): angle of the point (x, y); argument order as in spreadsheets."""
    if x == 0 and y == 0:
        return CellError.DIV0
    return math.atan2(y, x)
