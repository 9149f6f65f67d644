"""Spreadsheet formula parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_formula, extract_references, evaluate_formula
"""

from gridcalc.formulas.errors import (
    ERROR_CODES,
    CellError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRangeError,
    describe_error,
    is_error,
)
from gridcalc.formulas.evaluator import compare_values, evaluate_formula
from gridcalc.formulas.nodes import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    Node,
    RangeRef,
    UnaryOp,
)
from gridcalc.formulas.parser import extract_references, parse_formula
from gridcalc.formulas.references import (
    CellAddress,
    CellRange,
    adjust_formula_refs,
    col_to_letters,
    expand_range,
    format_address,
    format_range,
    letters_to_col,
    parse_address,
    parse_range,
    rewrite_formula_refs,
    shift_address,
    shift_range,
    toggle_absolute,
)

__all__ = [
    "ERROR_CODES",
    "BinaryOp",
    "CellAddress",
    "CellError",
    "CellRange",
    "CellRef",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRangeError",
    "FunctionCall",
    "Literal",
    "Node",
    "RangeRef",
    "UnaryOp",
    "adjust_formula_refs",
    "col_to_letters",
    "compare_values",
    "describe_error",
    "evaluate_formula",
    "expand_range",
    "extract_references",
    "format_address",
    "format_range",
    "is_error",
    "letters_to_col",
    "parse_address",
    "parse_formula",
    "parse_range",
    "rewrite_formula_refs",
    "shift_address",
    "shift_range",
    "toggle_absolute",
]
