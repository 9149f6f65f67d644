"""Statistical formula functions: conditional aggregates, spread, order statistics."""

from __future__ import annotations

import statistics
from collections import Counter
from typing import Any

from gridcalc.formulas.errors import CellError
from gridcalc.formulas.values import flatten, is_blank, is_number, numeric_values
from gridcalc.functions.args import as_table, int_arg, make_criteria, scalar_arg
from gridcalc.functions.registry import register_function


def _cells(value: Any) -> list[Any]:
    return list(flatten(as_table(value)))


def _paired(criteria_range: Any, values_range: Any | None) -> list[tuple[Any, Any]] | None:
    keys = _cells(criteria_range)
    if values_range is None:
        return list(zip(keys, keys))
    values = _cells(values_range)
    if len(values) != len(keys):
        return None
    return list(zip(keys, values))


@register_function("COUNTIF", 2, 2)
def fn_countif(rng: Any, criteria: Any) -> Any:
    """COUNTIF(range, criteria): cells matching a criterion such as ``">5"`` or ``"a*"``."""
    if isinstance(scalar_arg(criteria), CellError):
        return scalar_arg(criteria)
    match = make_criteria(criteria)
    return sum(1 for v in _cells(rng) if match(v))


@register_function("SUMIF", 2, 3)
def fn_sumif(rng: Any, criteria: Any, sum_range: Any = None) -> Any:
    """SUMIF(range, criteria, [sum_range]): ranges must be the same size."""
    if isinstance(scalar_arg(criteria), CellError):
        return scalar_arg(criteria)
    pairs = _paired(rng, sum_range)
    if pairs is None:
        return CellError.VALUE
    match = make_criteria(criteria)
    return sum(v for k, v in pairs if match(k) and is_number(v))


@register_function("AVERAGEIF", 2, 3)
def fn_averageif(rng: Any, criteria: Any, average_range: Any = None) -> Any:
    if isinstance(scalar_arg(criteria), CellError):
        return scalar_arg(criteria)
    pairs = _paired(rng, average_range)
    if pairs is None:
        return CellError.VALUE
    match = make_criteria(criteria)
    nums = [v for k, v in pairs if match(k) and is_number(v)]
    if not nums:
        return CellError.DIV0
    return sum(nums) / len(nums)


@register_function("COUNTBLANK", 1, 1)
def fn_countblank(rng: Any) -> int:
    return sum(1 for v in _cells(rng) if is_blank(v))


@register_function("MEDIAN", 1)
def fn_median(*args: Any) -> Any:
    nums = numeric_values(args)
    if not nums:
        return CellError.NUM
    return statistics.median(nums)


@register_function("MODE", 1)
def fn_mode(*args: Any) -> Any:
    """MODE(val1, ...): most frequent number, first seen on ties; #NA! if none repeats."""
    nums = numeric_values(args)
    counts = Counter(nums)
    best = max(counts.values(), default=0)
    if best < 2:
        return CellError.NA
    for n in nums:
        if counts[n] == best:
            return n
    return CellError.NA


def _spread(args: tuple, fn: Any, minimum: int) -> Any:
    nums = numeric_values(args)
    if len(nums) < minimum:
        return CellError.DIV0
    return fn(nums)


@register_function("STDEV", 1)
def fn_stdev(*args: Any) -> Any:
    """STDEV(val1, ...): sample standard deviation."""
    return _spread(args, statistics.stdev, 2)


@register_function("STDEVP", 1)
def fn_stdevp(*args: Any) -> Any:
    """STDEVP(val1, ...): population standard deviation."""
    return _spread(args, statistics.pstdev, 1)


@register_function("VAR", 1)
def fn_var(*args: Any) -> Any:
    return _spread(args, statistics.variance, 2)


@register_function("VARP", 1)
def fn_varp(*args: Any) -> Any:
    return _spread(args, statistics.pvariance, 1)


def _kth(values: Any, k: Any, largest: bool) -> Any:
    nums = sorted(numeric_values([values]), reverse=largest)
    n = int_arg(k)
    if n < 1 or n > len(nums):
        return CellError.NUM
    return nums[n - 1]


@register_function("LARGE", 2, 2)
def fn_large(values: Any, k: Any) -> Any:
    """LARGE(array, k): k-th largest number."""
    return _kth(values, k, largest=True)


@register_function("SMALL", 2, 2)
def fn_small(values: Any, k: Any) -> Any:
    return _kth(values, k, largest=False)
