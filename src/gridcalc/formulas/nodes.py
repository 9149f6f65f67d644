"""Expression tree produced by the formula parser.

Nodes are immutable and are rebuilt whenever a cell's formula text
changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from gridcalc.formulas.references import CellAddress, CellRange


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class CellRef:
    address: CellAddress


@dataclass(frozen=True)
class RangeRef:
    range: CellRange


@dataclass(frozen=True)
class BinaryOp:
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True)
class UnaryOp:
    operator: str
    operand: Node


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: tuple[Node, ...] = ()


Node = Union[Literal, CellRef, RangeRef, BinaryOp, UnaryOp, FunctionCall]

BINARY_OPERATORS = frozenset(
    {"+", "-", "*", "/", "^", "&", "=", "<>", "<", ">", "<=", ">="}
)
