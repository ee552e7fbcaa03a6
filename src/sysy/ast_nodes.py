"""AST node definitions for SysY."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sysy.source import Span

# ── References ───────────────────────────────────────────────────


@dataclass(eq=False)
class Reference:
    """A use of a name. The linker fills ``target`` with the declaring node."""

    text: str
    span: Span
    target: VarDef | Param | FuncDef | None = None

    @property
    def resolved(self) -> bool:
        return self.target is not None


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class IntLit:
    value: str
    span: Span


@dataclass(frozen=True)
class FloatLit:
    value: str
    span: Span


@dataclass(frozen=True)
class LVal:
    ref: Reference
    indices: list[Expr]
    span: Span


@dataclass(frozen=True)
class CallExpr:
    ref: Reference
    args: list[Expr]
    span: Span


@dataclass(frozen=True)
class UnaryExpr:
    op: str
    operand: Expr
    span: Span


@dataclass(frozen=True)
class BinaryExpr:
    left: Expr
    op: str
    right: Expr
    span: Span


Expr = Union[IntLit, FloatLit, LVal, CallExpr, UnaryExpr, BinaryExpr]


# ── Declarations ─────────────────────────────────────────────────


@dataclass(frozen=True)
class InitList:
    elements: list[InitVal]
    span: Span


InitVal = Union[Expr, InitList]


@dataclass(frozen=True)
class VarDef:
    name: str
    dims: list[Expr]
    init: InitVal | None
    span: Span
    name_span: Span

    @property
    def is_array(self) -> bool:
        return bool(self.dims)


@dataclass(frozen=True)
class Decl:
    is_const: bool
    btype: str
    defs: list[VarDef]
    span: Span


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Block:
    items: list[BlockItem]
    span: Span


@dataclass(frozen=True)
class AssignStmt:
    target: LVal
    value: Expr
    span: Span


@dataclass(frozen=True)
class ExprStmt:
    expr: Expr | None
    span: Span


@dataclass(frozen=True)
class IfStmt:
    cond: Expr
    then: Stmt
    otherwise: Stmt | None
    span: Span


@dataclass(frozen=True)
class WhileStmt:
    cond: Expr
    body: Stmt
    span: Span


@dataclass(frozen=True)
class BreakStmt:
    span: Span


@dataclass(frozen=True)
class ContinueStmt:
    span: Span


@dataclass(frozen=True)
class ReturnStmt:
    value: Expr | None
    span: Span


Stmt = Union[
    Block, AssignStmt, ExprStmt, IfStmt, WhileStmt,
    BreakStmt, ContinueStmt, ReturnStmt,
]

BlockItem = Union[Decl, Stmt]


# ── Functions and compilation unit ───────────────────────────────


@dataclass(frozen=True)
class Param:
    btype: str
    name: str
    is_array: bool
    dims: list[Expr]  # dimensions after the leading empty []
    span: Span
    name_span: Span


@dataclass(frozen=True)
class FuncDef:
    return_type: str
    name: str
    params: list[Param]
    body: Block
    span: Span
    name_span: Span
    type_span: Span

    @property
    def signature(self) -> str:
        params = ", ".join(
            f"{p.btype} {p.name}" + ("[]" if p.is_array else "") for p in self.params
        )
        return f"{self.return_type} {self.name}({params})"


TopLevel = Union[Decl, FuncDef]


@dataclass(frozen=True)
class CompUnit:
    items: list[TopLevel]
    span: Span

    @property
    def functions(self) -> list[FuncDef]:
        return [item for item in self.items if isinstance(item, FuncDef)]

    @property
    def declarations(self) -> list[Decl]:
        return [item for item in self.items if isinstance(item, Decl)]


Node = Union[CompUnit, TopLevel, VarDef, InitList, Param, Stmt, Expr]


# ── Child access ─────────────────────────────────────────────────


def children(node: Node) -> list[Node]:
    """Direct child nodes in source order."""
    if isinstance(node, CompUnit):
        return list(node.items)
    if isinstance(node, Decl):
        return list(node.defs)
    if isinstance(node, VarDef):
        return [*node.dims, *([node.init] if node.init is not None else [])]
    if isinstance(node, InitList):
        return list(node.elements)
    if isinstance(node, FuncDef):
        return [*node.params, node.body]
    if isinstance(node, Param):
        return list(node.dims)
    if isinstance(node, Block):
        return list(node.items)
    if isinstance(node, AssignStmt):
        return [node.target, node.value]
    if isinstance(node, ExprStmt):
        return [node.expr] if node.expr is not None else []
    if isinstance(node, IfStmt):
        return [node.cond, node.then, *([node.otherwise] if node.otherwise else [])]
    if isinstance(node, WhileStmt):
        return [node.cond, node.body]
    if isinstance(node, ReturnStmt):
        return [node.value] if node.value is not None else []
    if isinstance(node, (BreakStmt, ContinueStmt, IntLit, FloatLit)):
        return []
    if isinstance(node, LVal):
        return list(node.indices)
    if isinstance(node, CallExpr):
        return list(node.args)
    if isinstance(node, UnaryExpr):
        return [node.operand]
    if isinstance(node, BinaryExpr):
        return [node.left, node.right]
    raise TypeError(f"unknown AST node kind: {type(node).__name__}")


def walk(node: Node):
    """Yield ``node`` and all its descendants, pre-order."""
    yield node
    for child in children(node):
        yield from walk(child)
