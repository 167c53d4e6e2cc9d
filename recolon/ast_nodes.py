"""Recolon AST node definitions.

Every node is a Python dataclass carrying ``line`` and ``col`` for
source-location tracking.  A single ``Node`` base class provides
these fields so concrete nodes only declare domain-specific data.

Three fields are filled in by the ownership analyzer rather than the
parser: ``VarDecl.ownership``, ``Variable.moves`` and ``Variable.consumes``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ── Base ────────────────────────────────────────────────────────────────────

@dataclass
class Node:
    """Base class for every AST node."""
    line: int = 0
    col: int = 0


# ── Program ─────────────────────────────────────────────────────────────────

@dataclass
class Program(Node):
    body: list = field(default_factory=list)


# ── Expressions ─────────────────────────────────────────────────────────────

@dataclass
class NumberLiteral(Node):
    value: float = 0.0


@dataclass
class StringLiteral(Node):
    value: str = ""


@dataclass
class BooleanLiteral(Node):
    value: bool = False


@dataclass
class NilLiteral(Node):
    pass


@dataclass
class ArrayLiteral(Node):
    elements: list = field(default_factory=list)


@dataclass
class Variable(Node):
    name: str = ""
    moves: bool = False
    consumes: bool = False


@dataclass
class This(Node):
    pass


@dataclass
class Borrow(Node):
    """Explicit immutable borrow: ``&name``."""
    name: str = ""


@dataclass
class Grouping(Node):
    expression: Any = None


@dataclass
class UnaryOp(Node):
    op: str = ""
    operand: Any = None


@dataclass
class BinaryOp(Node):
    left: Any = None
    op: str = ""
    right: Any = None


@dataclass
class LogicalOp(Node):
    """``and`` / ``or``; the right operand is evaluated lazily."""
    left: Any = None
    op: str = ""
    right: Any = None


@dataclass
class Call(Node):
    callee: Any = None
    args: list = field(default_factory=list)


@dataclass
class FieldAccess(Node):
    object: Any = None
    field_name: str = ""


@dataclass
class IndexAccess(Node):
    object: Any = None
    index: Any = None


@dataclass
class Assign(Node):
    name: str = ""
    value: Any = None


@dataclass
class FieldAssign(Node):
    object: Any = None
    field_name: str = ""
    value: Any = None


@dataclass
class IndexAssign(Node):
    object: Any = None
    index: Any = None
    value: Any = None


# ── Statements ──────────────────────────────────────────────────────────────

@dataclass
class VarDecl(Node):
    name: str = ""
    initializer: Any = None
    ownership: str | None = None


@dataclass
class ExpressionStatement(Node):
    expression: Any = None


@dataclass
class Block(Node):
    body: list = field(default_factory=list)


@dataclass
class IfStatement(Node):
    condition: Any = None
    body: list = field(default_factory=list)
    elifs: list[tuple] = field(default_factory=list)
    else_body: list | None = None


@dataclass
class WhileStatement(Node):
    condition: Any = None
    body: list = field(default_factory=list)


@dataclass
class ForStatement(Node):
    initializer: Any = None
    condition: Any = None
    increment: Any = None
    body: list = field(default_factory=list)


@dataclass
class ForInStatement(Node):
    variable: str = ""
    iterable: Any = None
    body: list = field(default_factory=list)


@dataclass
class ComposeStatement(Node):
    body: list = field(default_factory=list)


@dataclass
class FunctionDecl(Node):
    name: str = ""
    params: list[str] = field(default_factory=list)
    body: list = field(default_factory=list)


@dataclass
class ClassDecl(Node):
    name: str = ""
    kind: str = "class"
    parent: str | None = None
    fields: list[VarDecl] = field(default_factory=list)
    methods: list[FunctionDecl] = field(default_factory=list)


@dataclass
class ReturnStatement(Node):
    value: Any = None


@dataclass
class BreakStatement(Node):
    pass


@dataclass
class ContinueStatement(Node):
    pass
