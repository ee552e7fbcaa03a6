"""Reference linking: resolves every name use to its declaring node.

Function definitions and the runtime library are visible everywhere in the
file. Variables are visible from the end of their own definition to the end
of the enclosing block. A name that cannot be found leaves its reference
slot empty; reporting it is the validators' job.
"""

from __future__ import annotations

import logging

from sysy.ast_nodes import (
    AssignStmt,
    BinaryExpr,
    Block,
    BreakStmt,
    CallExpr,
    CompUnit,
    ContinueStmt,
    Decl,
    Expr,
    ExprStmt,
    FloatLit,
    FuncDef,
    IfStmt,
    InitList,
    InitVal,
    IntLit,
    LVal,
    Param,
    Reference,
    ReturnStmt,
    Stmt,
    UnaryExpr,
    VarDef,
    WhileStmt,
)
from sysy.source import Span
from sysy.symbols import Symbol, SymbolKind, SymbolTable
from sysy.types import int_literal_value

logger = logging.getLogger(__name__)

RUNTIME_FILE = "<runtime>"

# name -> (return type, [(param type, param name, is array)])
_RUNTIME_SIGNATURES: dict[str, tuple[str, list[tuple[str, str, bool]]]] = {
    "getint": ("int", []),
    "getch": ("int", []),
    "getfloat": ("float", []),
    "getarray": ("int", [("int", "a", True)]),
    "getfarray": ("int", [("float", "a", True)]),
    "putint": ("void", [("int", "a", False)]),
    "putch": ("void", [("int", "a", False)]),
    "putfloat": ("void", [("float", "a", False)]),
    "putarray": ("void", [("int", "n", False), ("int", "a", True)]),
    "putfarray": ("void", [("int", "n", False), ("float", "a", True)]),
    "starttime": ("void", []),
    "stoptime": ("void", []),
}


def _runtime_function(name: str) -> FuncDef:
    return_type, params = _RUNTIME_SIGNATURES[name]
    span = Span(RUNTIME_FILE, 1, 1, 1, 1)
    return FuncDef(
        return_type=return_type,
        name=name,
        params=[Param(t, n, arr, [], span, span) for t, n, arr in params],
        body=Block([], span),
        span=span,
        name_span=span,
        type_span=span,
    )


RUNTIME_LIBRARY: dict[str, FuncDef] = {
    name: _runtime_function(name) for name in _RUNTIME_SIGNATURES
}


def is_runtime_function(func: FuncDef) -> bool:
    return func.span.file == RUNTIME_FILE


def literal_dims(dims: list[Expr]) -> tuple[int | None, ...]:
    """Dimension sizes; a non-literal dimension is None."""
    return tuple(
        int_literal_value(d.value) if isinstance(d, IntLit) else None for d in dims
    )


class Linker:
    """Fills reference slots of a CompUnit and builds its symbol table."""

    def __init__(self) -> None:
        self.table = SymbolTable()

    def link(self, unit: CompUnit) -> SymbolTable:
        for func in unit.functions:
            self._define(Symbol(
                func.name, SymbolKind.FUNCTION, func.return_type,
                func.name_span, func,
            ))
        for func in RUNTIME_LIBRARY.values():
            self._define(Symbol(
                func.name, SymbolKind.FUNCTION, func.return_type, func.span, func,
            ))

        for item in unit.items:
            if isinstance(item, Decl):
                self._link_decl(item)
            else:
                self._link_function(item)
        return self.table

    def _define(self, symbol: Symbol) -> None:
        existing = self.table.define(symbol)
        if existing is not None:
            logger.debug("'%s' already defined at %s; keeping the first", symbol.name, existing.span)

    # ── Declarations ─────────────────────────────────────────────

    def _link_decl(self, decl: Decl) -> None:
        for var in decl.defs:
            for dim in var.dims:
                self._link_expr(dim)
            if var.init is not None:
                self._link_init(var.init)
            init_count = len(var.init.elements) if isinstance(var.init, InitList) else None
            self._define(Symbol(
                var.name,
                SymbolKind.ARRAY if var.is_array else SymbolKind.VARIABLE,
                decl.btype,
                var.name_span,
                var,
                dims=literal_dims(var.dims),
                init_count=init_count,
                is_const=decl.is_const,
            ))

    def _link_init(self, init: InitVal) -> None:
        if isinstance(init, InitList):
            for element in init.elements:
                self._link_init(element)
        else:
            self._link_expr(init)

    def _link_function(self, func: FuncDef) -> None:
        self.table.push_scope(func.name)
        for param in func.params:
            for dim in param.dims:
                self._link_expr(dim)
            self._define(Symbol(
                param.name, SymbolKind.PARAMETER, param.btype, param.name_span, param,
                dims=(None, *literal_dims(param.dims)) if param.is_array else (),
            ))
        for item in func.body.items:
            self._link_item(item)
        self.table.pop_scope()

    # ── Statements ───────────────────────────────────────────────

    def _link_item(self, item: Decl | Stmt) -> None:
        if isinstance(item, Decl):
            self._link_decl(item)
        else:
            self._link_stmt(item)

    def _link_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, Block):
            self.table.push_scope("block")
            for item in stmt.items:
                self._link_item(item)
            self.table.pop_scope()
        elif isinstance(stmt, AssignStmt):
            self._link_expr(stmt.target)
            self._link_expr(stmt.value)
        elif isinstance(stmt, ExprStmt):
            if stmt.expr is not None:
                self._link_expr(stmt.expr)
        elif isinstance(stmt, IfStmt):
            self._link_expr(stmt.cond)
            self._link_stmt(stmt.then)
            if stmt.otherwise is not None:
                self._link_stmt(stmt.otherwise)
        elif isinstance(stmt, WhileStmt):
            self._link_expr(stmt.cond)
            self._link_stmt(stmt.body)
        elif isinstance(stmt, ReturnStmt):
            if stmt.value is not None:
                self._link_expr(stmt.value)
        elif isinstance(stmt, (BreakStmt, ContinueStmt)):
            pass
        else:
            raise TypeError(f"unknown statement kind: {type(stmt).__name__}")

    # ── Expressions ──────────────────────────────────────────────

    def _link_expr(self, expr: Expr) -> None:
        if isinstance(expr, LVal):
            self._resolve(expr.ref, want_function=False)
            for index in expr.indices:
                self._link_expr(index)
        elif isinstance(expr, CallExpr):
            self._resolve(expr.ref, want_function=True)
            for arg in expr.args:
                self._link_expr(arg)
        elif isinstance(expr, UnaryExpr):
            self._link_expr(expr.operand)
        elif isinstance(expr, BinaryExpr):
            self._link_expr(expr.left)
            self._link_expr(expr.right)
        elif isinstance(expr, (IntLit, FloatLit)):
            pass
        else:
            raise TypeError(f"unknown expression kind: {type(expr).__name__}")

    def _resolve(self, ref: Reference, *, want_function: bool) -> None:
        if want_function:
            sym = self.table.global_scope.lookup_local(ref.text)
        else:
            sym = self.table.lookup(ref.text)
        if sym is None or (sym.kind == SymbolKind.FUNCTION) != want_function:
            return
        ref.target = sym.node


def link(unit: CompUnit) -> SymbolTable:
    """Link ``unit`` in place and return its symbol table."""
    return Linker().link(unit)
