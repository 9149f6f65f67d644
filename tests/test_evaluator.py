"""Tests for expression evaluation: coercion, operators, comparisons, errors."""

from __future__ import annotations

from typing import Any

import pytest

from gridcalc.formulas.errors import ERROR_CODES, CellError, describe_error, first_error, is_error
from gridcalc.formulas.evaluator import apply_binary, compare_values, evaluate_formula
from gridcalc.formulas.parser import parse_formula
from gridcalc.formulas.references import CellRange, parse_address
from gridcalc.formulas.values import coerce_literal, to_bool, to_number, to_text


# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────


def _eval(formula: str, cells: dict[str, Any] | None = None) -> Any:
    """Parse and evaluate *formula* against a dict of A1 address -> value."""
    values = {parse_address(k).key: v for k, v in (cells or {}).items()}

    def get_cell(col: int, row: int) -> Any:
        return values.get((col, row))

    def get_range(rng: CellRange) -> list:
        return [
            [values.get((c, r)) for c in range(rng.start.col, rng.end.col + 1)]
            for r in range(rng.start.row, rng.end.row + 1)
        ]

    return evaluate_formula(parse_formula(formula), get_cell, get_range)


# ────────────────────────────────────────────────────────────────
# Arithmetic
# ────────────────────────────────────────────────────────────────


class TestArithmetic:
    def test_precedence(self) -> None:
        assert _eval("=1+2*3") == 7

    def test_parentheses(self) -> None:
        assert _eval("=(1+2)*3") == 9

    def test_right_associative_power(self) -> None:
        assert _eval("=2^3^2") == 512

    def test_unary_minus_before_power(self) -> None:
        assert _eval("=-2^2") == 4

    def test_division(self) -> None:
        assert _eval("=7/2") == pytest.approx(3.5)

    def test_division_by_zero(self) -> None:
        assert _eval("=10/0") == CellError.DIV0

    def test_division_by_blank(self) -> None:
        assert _eval("=10/A1") == CellError.DIV0

    def test_cell_arithmetic(self) -> None:
        assert _eval("=(A1+B1)/2*1.1", {"A1": 100, "B1": 200}) == pytest.approx(165)

    def test_blank_is_zero(self) -> None:
        assert _eval("=A1+5") == 5

    def test_numeric_text_coerced(self) -> None:
        assert _eval('="3"+4') == 7

    def test_non_numeric_text_is_zero(self) -> None:
        assert _eval('="abc"+1') == 1

    def test_booleans_coerced(self) -> None:
        assert _eval("=TRUE+TRUE") == 2

    def test_fractional_power_of_negative(self) -> None:
        assert _eval("=(-8)^0.5") == CellError.NUM

    def test_zero_to_negative_power(self) -> None:
        assert _eval("=0^-1") == CellError.DIV0

    def test_overflow(self) -> None:
        assert _eval("=10.5^400") == CellError.NUM

    def test_integer_power_overflow(self) -> None:
        assert _eval("=10^400") == CellError.NUM
        assert _eval("=(-10)^401") == CellError.NUM

    def test_tower_of_powers_fails_fast(self) -> None:
        """9^(9^9) would be hundreds of millions of digits as an exact int."""
        assert _eval("=9^9^9") == CellError.NUM

    def test_small_integer_power_stays_exact(self) -> None:
        result = _eval("=2^3^2")
        assert result == 512
        assert isinstance(result, int)
        assert _eval("=3^20") == 3**20
        assert _eval("=10^2.5") == pytest.approx(316.227766)

    def test_large_integer_power_is_float(self) -> None:
        result = _eval("=10^300")
        assert isinstance(result, float)
        assert result == pytest.approx(1e300)

    def test_product_beyond_float_range(self) -> None:
        assert _eval("=A1*A1", {"A1": 10**200}) == CellError.NUM

    def test_unary_plus(self) -> None:
        assert _eval("=+A1", {"A1": "x"}) == "x"


# ────────────────────────────────────────────────────────────────
# Concatenation and comparison
# ────────────────────────────────────────────────────────────────


class TestConcat:
    def test_joins_text(self) -> None:
        assert _eval('="a"&"b"') == "ab"

    def test_numbers_stringified(self) -> None:
        assert _eval('=1&2') == "12"
        assert _eval('=1.5&"x"') == "1.5x"

    def test_integral_float_has_no_decimal(self) -> None:
        assert _eval('=(3/1)&""') == "3"

    def test_blank_is_empty(self) -> None:
        assert _eval('="x"&A1') == "x"

    def test_booleans(self) -> None:
        assert _eval('=TRUE&""') == "TRUE"


class TestComparison:
    def test_numbers(self) -> None:
        assert _eval("=1<2") is True
        assert _eval("=2<=2") is True
        assert _eval("=3<>3") is False

    def test_strings_case_insensitive(self) -> None:
        assert _eval('="abc"="ABC"') is True
        assert _eval('="apple"<"Banana"') is True

    def test_cross_type_ordering(self) -> None:
        """number < string < boolean."""
        assert _eval('=5<"a"') is True
        assert _eval('="z"<FALSE') is True
        assert _eval("=1=TRUE") is False

    def test_blank_equals_zero_and_empty(self) -> None:
        assert _eval("=A1=0") is True
        assert _eval('=A1=""') is True

    def test_compare_values_three_way(self) -> None:
        assert compare_values(1, 2) == -1
        assert compare_values("B", "a") == 1
        assert compare_values(None, None) == 0


# ────────────────────────────────────────────────────────────────
# Error propagation
# ────────────────────────────────────────────────────────────────


class TestErrorPropagation:
    def test_ref_error_from_cell(self) -> None:
        assert _eval("=A1+A2", {"A1": CellError.REF, "A2": 1}) == CellError.REF

    def test_left_operand_first(self) -> None:
        assert _eval("=A1+A2", {"A1": CellError.NUM, "A2": CellError.REF}) == CellError.NUM

    def test_error_literal(self) -> None:
        assert _eval("=#REF!+1") == CellError.REF

    def test_unary_propagates(self) -> None:
        assert _eval("=-A1", {"A1": CellError.DIV0}) == CellError.DIV0

    def test_comparison_propagates(self) -> None:
        assert _eval("=A1>0", {"A1": CellError.VALUE}) == CellError.VALUE

    def test_concat_propagates(self) -> None:
        assert _eval('="a"&A1', {"A1": CellError.NA}) == CellError.NA

    def test_unknown_function(self) -> None:
        assert _eval("=NOPE(1)") == CellError.NAME

    def test_wrong_arity(self) -> None:
        assert _eval("=ABS(1, 2)") == CellError.VALUE

    def test_range_in_arithmetic(self) -> None:
        assert _eval("=A1:A2+1", {"A1": 1, "A2": 2}) == CellError.VALUE

    def test_apply_binary_unknown_operator(self) -> None:
        with pytest.raises(ValueError, match="Unknown operator"):
            apply_binary("%", 1, 2)


# ────────────────────────────────────────────────────────────────
# Ranges and values
# ────────────────────────────────────────────────────────────────


class TestRanges:
    def test_bare_range_is_two_dimensional(self) -> None:
        result = _eval("=A1:B2", {"A1": 1, "B1": 2, "A2": 3, "B2": 4})
        assert result == [[1, 2], [3, 4]]

    def test_range_passed_to_function(self) -> None:
        assert _eval("=SUM(A1:B2)", {"A1": 1, "B1": 2, "A2": 3, "B2": 4}) == 10


class TestValueHelpers:
    def test_to_number(self) -> None:
        assert to_number(True) == 1
        assert to_number("") == 0
        assert to_number("2.5") == 2.5
        assert to_number("abc") == 0
        assert to_number(None) == 0

    def test_to_text(self) -> None:
        assert to_text(None) == ""
        assert to_text(2.0) == "2"
        assert to_text(CellError.REF) == "#REF!"

    def test_coerce_literal(self) -> None:
        assert coerce_literal("42") == 42
        assert coerce_literal("1.5") == 1.5
        assert coerce_literal("") is None
        assert coerce_literal("#REF!") is CellError.REF
        assert coerce_literal("hello") == "hello"

    def test_to_bool(self) -> None:
        assert to_bool("true") is True
        assert to_bool("FALSE") is False
        assert to_bool("0") is False
        assert to_bool("yes") is True
        assert to_bool(None) is False
        assert to_bool(2) is True


class TestErrorHelpers:
    def test_sentinels_equal_their_codes(self) -> None:
        assert CellError.DIV0 == "#DIV/0!"
        assert str(CellError.NAME) == "#NAME?"
        assert "#NA!" in ERROR_CODES

    def test_is_error(self) -> None:
        assert is_error(CellError.REF)
        assert not is_error("#REF!")

    def test_first_error(self) -> None:
        assert first_error(1, CellError.NUM, CellError.REF) is CellError.NUM
        assert first_error(1, "x", None) is None

    def test_describe_error(self) -> None:
        assert describe_error("#DIV/0!") == "Division by zero"
        assert describe_error(CellError.CIRC) == "Circular reference detected"
        assert describe_error("#BOGUS!") == "Unknown error"
