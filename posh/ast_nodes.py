"""Posh AST node definitions.

Every node is a Python dataclass carrying ``line`` and ``col`` for
source-location tracking.  A single ``Node`` base class provides
these fields so concrete nodes only declare domain-specific data.
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
class InterpolatedString(Node):
    """Double-quoted string with ``$name`` parts (a tuple of StringPart)."""
    parts: tuple = ()


@dataclass
class BooleanLiteral(Node):
    value: bool = False


@dataclass
class NullLiteral(Node):
    pass


@dataclass
class Variable(Node):
    """A ``$name`` reference; *name* may carry a ``global:``-style qualifier."""
    name: str = ""


@dataclass
class BinaryOp(Node):
    left: Any = None
    op: str = ""
    right: Any = None


@dataclass
class UnaryOp(Node):
    op: str = ""
    operand: Any = None


@dataclass
class Argument(Node):
    """One call argument. ``name`` is None for a positional argument."""
    value: Any = None
    name: str | None = None

    @property
    def is_named(self) -> bool:
        return self.name is not None


@dataclass
class Call(Node):
    name: str = ""
    args: list[Argument] = field(default_factory=list)


@dataclass
class MemberAccess(Node):
    object: Any = None
    member: str = ""


@dataclass
class ScriptBlockExpr(Node):
    body: list = field(default_factory=list)


@dataclass
class HashtableLiteral(Node):
    pairs: list[tuple[str, Any]] = field(default_factory=list)


@dataclass
class ArrayLiteral(Node):
    elements: list = field(default_factory=list)


@dataclass
class Pipeline(Node):
    """``stage | stage | ...``. Used both as a statement and as an expression."""
    stages: list = field(default_factory=list)


# ── Statements ──────────────────────────────────────────────────────────────

@dataclass
class ExpressionStatement(Node):
    expression: Any = None


@dataclass
class Assignment(Node):
    target: str = ""
    value: Any = None


@dataclass
class Parameter(Node):
    name: str = ""
    default: Any = None


@dataclass
class FunctionDef(Node):
    name: str = ""
    params: list[Parameter] = field(default_factory=list)
    body: list = field(default_factory=list)


@dataclass
class IfStatement(Node):
    """``if`` with an optional else body; elseif chains nest in ``else_body``."""
    condition: Any = None
    body: list = field(default_factory=list)
    else_body: list | None = None


@dataclass
class ReturnStatement(Node):
    value: Any = None
