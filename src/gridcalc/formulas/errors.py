"""Error types for formula parsing and evaluation.

Two kinds of failure exist.  Exceptions (``FormulaError`` and subclasses)
are raised while turning text into an expression tree and are caught at the
engine boundary.  Error sentinels (``CellError``) are ordinary cell values
that flow through arithmetic and function calls.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class CellError(str, Enum):
    """Spreadsheet error sentinel.

    Members are ``str`` subclasses, so ``CellError.DIV0 == "#DIV/0!"`` holds.
    """

    REF = "#REF!"
    VALUE = "#VALUE!"
    DIV0 = "#DIV/0!"
    NAME = "#NAME?"
    CIRC = "#CIRC!"
    NUM = "#NUM!"
    NULL = "#NULL!"
    NA = "#NA!"

    def __str__(self) -> str:
        return self.value


ERROR_CODES: frozenset[str] = frozenset(e.value for e in CellError)

_ERROR_MESSAGES: dict[CellError, str] = {
    CellError.REF: "Invalid cell reference",
    CellError.VALUE: "Wrong type of argument or operand",
    CellError.DIV0: "Division by zero",
    CellError.NAME: "Unknown function name",
    CellError.CIRC: "Circular reference detected",
    CellError.NUM: "Invalid numeric value",
    CellError.NULL: "Empty intersection of references",
    CellError.NA: "Value not available",
}


def is_error(value: Any) -> bool:
    """Return True if *value* is an error sentinel."""
    return isinstance(value, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first error sentinel among *values*, or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
    return None


def describe_error(code: Any) -> str:
    """Human-readable explanation of an error code, for tooltips and CLI output."""
    try:
        return _ERROR_MESSAGES[CellError(code)]
    except ValueError:
        return "Unknown error"


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: 1-based character position where the error was detected.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaFunctionError(FormulaError):
    """Misuse of a built-in function (bad argument type or value).

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Invalid arguments to {func_name}"
        super().__init__(msg)


class FormulaRangeError(FormulaError):
    """A range reference covers more cells than the engine allows.

    Attributes:
        range_text: The offending range, in A1 notation.
        cells: Number of cells the range covers.
        limit: Configured maximum.
    """

    def __init__(self, range_text: str, cells: int, limit: int) -> None:
        self.range_text = range_text
        self.cells = cells
        self.limit = limit
        super().__init__(
            f"Range {range_text} covers {cells} cells (limit {limit})"
        )
