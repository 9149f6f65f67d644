"""Tests for the formula parser and reference extraction."""

from __future__ import annotations

import pytest

from gridcalc.formulas.errors import CellError, FormulaParseError
from gridcalc.formulas.nodes import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    RangeRef,
    UnaryOp,
)
from gridcalc.formulas.parser import extract_references, parse_formula
from gridcalc.formulas.references import CellAddress, parse_range


# ────────────────────────────────────────────────────────────────
# Atoms
# ────────────────────────────────────────────────────────────────


class TestAtoms:
    def test_integer(self) -> None:
        assert parse_formula("=42") == Literal(42)

    def test_decimal(self) -> None:
        assert parse_formula("=3.5") == Literal(3.5)

    def test_leading_dot(self) -> None:
        assert parse_formula("=.5") == Literal(0.5)

    def test_string(self) -> None:
        assert parse_formula('="hello"') == Literal("hello")

    def test_string_escape(self) -> None:
        assert parse_formula(r'="say \"hi\""') == Literal('say "hi"')

    def test_booleans(self) -> None:
        assert parse_formula("=TRUE") == Literal(True)
        assert parse_formula("=false") == Literal(False)

    def test_error_literal(self) -> None:
        assert parse_formula("=#REF!") == Literal(CellError.REF)
        assert parse_formula("=#DIV/0!") == Literal(CellError.DIV0)

    def test_empty_formula(self) -> None:
        """'=' alone is an empty string literal."""
        assert parse_formula("=") == Literal("")

    def test_whitespace_skipped(self) -> None:
        assert parse_formula("=  1 +   2 ") == BinaryOp("+", Literal(1), Literal(2))


class TestReferences:
    def test_cell_ref(self) -> None:
        assert parse_formula("=B3") == CellRef(CellAddress(1, 2))

    def test_absolute_ref(self) -> None:
        assert parse_formula("=$B$3") == CellRef(CellAddress(1, 2, True, True))

    def test_lowercase_ref(self) -> None:
        assert parse_formula("=b3") == CellRef(CellAddress(1, 2))

    def test_range_ref(self) -> None:
        assert parse_formula("=A1:C3") == RangeRef(parse_range("A1:C3"))

    def test_invalid_cell_ref(self) -> None:
        with pytest.raises(FormulaParseError, match="Invalid cell reference"):
            parse_formula("=HELLO")

    def test_invalid_range_ref(self) -> None:
        with pytest.raises(FormulaParseError, match="Invalid range reference"):
            parse_formula("=A1:B")


# ────────────────────────────────────────────────────────────────
# Operators
# ────────────────────────────────────────────────────────────────


class TestPrecedence:
    def test_mul_binds_tighter_than_add(self) -> None:
        assert parse_formula("=1+2*3") == BinaryOp(
            "+", Literal(1), BinaryOp("*", Literal(2), Literal(3))
        )

    def test_parentheses(self) -> None:
        assert parse_formula("=(1+2)*3") == BinaryOp(
            "*", BinaryOp("+", Literal(1), Literal(2)), Literal(3)
        )

    def test_power_right_associative(self) -> None:
        assert parse_formula("=2^3^2") == BinaryOp(
            "^", Literal(2), BinaryOp("^", Literal(3), Literal(2))
        )

    def test_subtraction_left_associative(self) -> None:
        assert parse_formula("=10-4-3") == BinaryOp(
            "-", BinaryOp("-", Literal(10), Literal(4)), Literal(3)
        )

    def test_unary_minus(self) -> None:
        assert parse_formula("=-A1") == UnaryOp("-", CellRef(CellAddress(0, 0)))

    def test_unary_binds_tighter_than_power(self) -> None:
        assert parse_formula("=-2^2") == BinaryOp(
            "^", UnaryOp("-", Literal(2)), Literal(2)
        )

    def test_concat_below_additive(self) -> None:
        assert parse_formula('="a"&1+2') == BinaryOp(
            "&", Literal("a"), BinaryOp("+", Literal(1), Literal(2))
        )

    def test_comparison_lowest(self) -> None:
        assert parse_formula("=1+1=2") == BinaryOp(
            "=", BinaryOp("+", Literal(1), Literal(1)), Literal(2)
        )

    @pytest.mark.parametrize("op", ["=", "<>", "<", ">", "<=", ">="])
    def test_comparison_operators(self, op: str) -> None:
        assert parse_formula(f"=A1{op}5") == BinaryOp(op, CellRef(CellAddress(0, 0)), Literal(5))


# ────────────────────────────────────────────────────────────────
# Function calls
# ────────────────────────────────────────────────────────────────


class TestFunctionCalls:
    def test_name_uppercased(self) -> None:
        assert parse_formula("=sum(1, 2)") == FunctionCall("SUM", (Literal(1), Literal(2)))

    def test_no_args(self) -> None:
        assert parse_formula("=PI()") == FunctionCall("PI", ())

    def test_range_arg(self) -> None:
        node = parse_formula("=SUM(A1:A3)")
        assert node == FunctionCall("SUM", (RangeRef(parse_range("A1:A3")),))

    def test_nested(self) -> None:
        node = parse_formula("=IF(A1>0, MAX(A1, 1), 0)")
        assert isinstance(node, FunctionCall)
        assert node.name == "IF"
        assert isinstance(node.args[1], FunctionCall)
        assert node.args[1].name == "MAX"

    def test_name_that_looks_like_a_cell(self) -> None:
        """LOG10( is a function because '(' follows directly."""
        assert parse_formula("=LOG10(100)") == FunctionCall("LOG10", (Literal(100),))

    def test_unknown_function_still_parses(self) -> None:
        assert parse_formula("=NOPE(1)") == FunctionCall("NOPE", (Literal(1),))


# ────────────────────────────────────────────────────────────────
# Syntax errors
# ────────────────────────────────────────────────────────────────


class TestSyntaxErrors:
    @pytest.mark.parametrize(
        "text",
        ["=1+", "=(1+2", "=1+2)", "=SUM(1,", "=1 2", "=@", "=*3", "=A1 B1"],
    )
    def test_rejected(self, text: str) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula(text)

    def test_must_start_with_equals(self) -> None:
        with pytest.raises(FormulaParseError, match="must start with"):
            parse_formula("1+2")

    def test_position_reported(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            parse_formula("=1+@")
        assert exc_info.value.position == 4
        assert "(at position 4)" in str(exc_info.value)


# ────────────────────────────────────────────────────────────────
# Reference extraction
# ────────────────────────────────────────────────────────────────


class TestExtractReferences:
    def test_cells_and_ranges_in_order(self) -> None:
        refs = extract_references(parse_formula("=A1+SUM(B1:B3)*C2"))
        assert refs == [CellAddress(0, 0), parse_range("B1:B3"), CellAddress(2, 1)]

    def test_duplicates_kept(self) -> None:
        refs = extract_references(parse_formula("=A1+A1"))
        assert len(refs) == 2

    def test_literals_only(self) -> None:
        assert extract_references(parse_formula('=1+"x"')) == []

    def test_inside_unary_and_nested_calls(self) -> None:
        refs = extract_references(parse_formula("=-ABS(ROUND(D4, 1))"))
        assert refs == [CellAddress(3, 3)]
