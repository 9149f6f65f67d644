"""Lark-based parser for spreadsheet formulas.

Supports:
- Numbers (``12``, ``3.5``, ``.5``), double-quoted strings with backslash
  escapes, ``TRUE`` / ``FALSE`` and error literals such as ``#REF!``
- Cell references ``B3`` / ``$B$3`` and ranges ``A1:C9``
- Function calls ``SUM(A1:A3, 4)``; a name is a function only when ``(``
  follows it directly
- Comparison, ``&`` concatenation, arithmetic and right-associative ``^``

The parse tree is transformed into the immutable nodes of
``gridcalc.formulas.nodes``.
"""

from __future__ import annotations

import re
from functools import lru_cache

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError, UnexpectedInput, VisitError

from gridcalc.formulas.errors import CellError, FormulaParseError
from gridcalc.formulas.nodes import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    Node,
    RangeRef,
    UnaryOp,
)
from gridcalc.formulas.references import CellAddress, CellRange, parse_address, parse_range

# LALR(1) grammar.
# Operator precedence (lowest to highest):
#   1. Comparison: = <> < > <= >=
#   2. Concatenation: &
#   3. Addition/subtraction: + -
#   4. Multiplication/division: * /
#   5. Exponentiation: ^ (right-associative, binds looser than unary minus)
#   6. Unary plus/minus: + -
#   7. Atoms: number, string, error, function call, reference, parenthesized expr
GRAMMAR = r"""
start: "=" [expr]

?expr: comparison

?comparison: concat
    | comparison "=" concat   -> eq
    | comparison "<>" concat  -> ne
    | comparison "<" concat   -> lt
    | comparison ">" concat   -> gt
    | comparison "<=" concat  -> le
    | comparison ">=" concat  -> ge

?concat: additive
    | concat "&" additive  -> join

?additive: multiplicative
    | additive "+" multiplicative  -> add
    | additive "-" multiplicative  -> sub

?multiplicative: power
    | multiplicative "*" power  -> mul
    | multiplicative "/" power  -> div

?power: unary
    | unary "^" power  -> pow

?unary: atom
    | "-" unary  -> neg
    | "+" unary  -> pos

?atom: NUMBER                   -> number
    | STRING                    -> string
    | ERROR_CODE                -> error_literal
    | FUNC_NAME "(" [args] ")"  -> func_call
    | IDENT                     -> reference
    | "(" expr ")"

args: expr ("," expr)*

// An identifier directly followed by "(" is a function name.
FUNC_NAME.2: /[A-Za-z$][A-Za-z0-9$:]*(?=\()/

// Cell reference, range reference or boolean; classified after lexing.
IDENT: /[A-Za-z$][A-Za-z0-9$:]*/

NUMBER: /\d+(\.\d+)?|\.\d+/
STRING: /"(\\.|[^"\\])*"/
ERROR_CODE: /#(REF!|VALUE!|DIV\/0!|NAME\?|CIRC!|NUM!|NULL!|NA!)/

%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")

_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

_BOOLEANS = {"TRUE": True, "FALSE": False}


def _binary(op: str):
    def method(self, left: Node, right: Node) -> BinaryOp:
        return BinaryOp(op, left, right)

    return method


@v_args(inline=True)
class _NodeBuilder(Transformer):
    """Turn a Lark parse tree into formula nodes."""

    def start(self, expr: Node | None = None) -> Node:
        if expr is None:
            return Literal("")
        return expr

    eq = _binary("=")
    ne = _binary("<>")
    lt = _binary("<")
    gt = _binary(">")
    le = _binary("<=")
    ge = _binary(">=")
    join = _binary("&")
    add = _binary("+")
    sub = _binary("-")
    mul = _binary("*")
    div = _binary("/")
    pow = _binary("^")

    def neg(self, operand: Node) -> UnaryOp:
        return UnaryOp("-", operand)

    def pos(self, operand: Node) -> UnaryOp:
        return UnaryOp("+", operand)

    def number(self, token: Token) -> Literal:
        text = str(token)
        if "." in text:
            return Literal(float(text))
        return Literal(int(text))

    def string(self, token: Token) -> Literal:
        return Literal(_ESCAPE_RE.sub(r"\1", str(token)[1:-1]))

    def error_literal(self, token: Token) -> Literal:
        return Literal(CellError(str(token)))

    def func_call(self, name: Token, args: list[Node] | None = None) -> FunctionCall:
        return FunctionCall(str(name).upper(), tuple(args or ()))

    def args(self, *exprs: Node) -> list[Node]:
        return list(exprs)

    def reference(self, token: Token) -> Node:
        text = str(token).upper()
        if text in _BOOLEANS:
            return Literal(_BOOLEANS[text])
        if ":" in text:
            rng = parse_range(text)
            if rng is None:
                raise FormulaParseError(f"Invalid range reference: {token}", position=token.column)
            return RangeRef(rng)
        address = parse_address(text)
        if address is None:
            raise FormulaParseError(f"Invalid cell reference: {token}", position=token.column)
        return CellRef(address)


_builder = _NodeBuilder()


@lru_cache(maxsize=4096)
def parse_formula(text: str) -> Node:
    """Parse a formula string (must start with ``=``) into an expression tree.

    Args:
        text: The formula text, e.g. ``"=SUM(A1:A3) * 2"``.

    Returns:
        The root node.  ``"="`` alone yields ``Literal("")``.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=0)
    try:
        tree = _parser.parse(text)
    except UnexpectedInput as exc:
        pos = getattr(exc, "column", None)
        raise FormulaParseError(_first_line(exc), position=pos) from exc
    except LarkError as exc:
        raise FormulaParseError(_first_line(exc)) from exc
    try:
        return _builder.transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, FormulaParseError):
            raise exc.orig_exc from None
        raise


def _first_line(exc: Exception) -> str:
    lines = str(exc).strip().splitlines()
    return lines[0] if lines else type(exc).__name__


def extract_references(node: Node) -> list[CellAddress | CellRange]:
    """Collect every cell and range reference in *node*, in source order.

    Args:
        node: A tree from ``parse_formula()``.

    Returns:
        List of ``CellAddress`` and ``CellRange`` values (duplicates kept).
    """
    refs: list[CellAddress | CellRange] = []
    _collect(node, refs)
    return refs


def _collect(node: Node, refs: list[CellAddress | CellRange]) -> None:
    if isinstance(node, CellRef):
        refs.append(node.address)
    elif isinstance(node, RangeRef):
        refs.append(node.range)
    elif isinstance(node, BinaryOp):
        _collect(node.left, refs)
        _collect(node.right, refs)
    elif isinstance(node, UnaryOp):
        _collect(node.operand, refs)
    elif isinstance(node, FunctionCall):
        for arg in node.args:
            _collect(arg, refs)
    elif not isinstance(node, Literal):
        raise TypeError(f"Unknown node type: {type(node).__name__}")
