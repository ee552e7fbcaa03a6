"""Control-flow legality: break and continue must sit inside a loop."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sysy.ast_nodes import (
    AssignStmt,
    Block,
    BreakStmt,
    ContinueStmt,
    Decl,
    ExprStmt,
    FuncDef,
    IfStmt,
    ReturnStmt,
    Stmt,
    WhileStmt,
)
from sysy.errors import Category, ErrorCode

if TYPE_CHECKING:
    from sysy.checker import CheckRegistry, ValidationContext


def check_loop_context(func: FuncDef, ctx: ValidationContext) -> None:
    _check_stmt(func.body, False, ctx)


def _check_stmt(stmt: Stmt | Decl, in_loop: bool, ctx: ValidationContext) -> None:
    if isinstance(stmt, (BreakStmt, ContinueStmt)):
        if not in_loop:
            keyword = "break" if isinstance(stmt, BreakStmt) else "continue"
            ctx.error(
                ErrorCode.INVALID_BREAK_CONTINUE,
                f"'{keyword}' statement can only be used inside a loop.",
                stmt.span,
                Category.CONTROL,
                keyword=keyword,
            )
    elif isinstance(stmt, WhileStmt):
        _check_stmt(stmt.body, True, ctx)
    elif isinstance(stmt, IfStmt):
        _check_stmt(stmt.then, in_loop, ctx)
        if stmt.otherwise is not None:
            _check_stmt(stmt.otherwise, in_loop, ctx)
    elif isinstance(stmt, Block):
        for item in stmt.items:
            _check_stmt(item, in_loop, ctx)
    elif isinstance(stmt, (Decl, AssignStmt, ExprStmt, ReturnStmt)):
        pass
    else:
        raise TypeError(f"unknown statement kind: {type(stmt).__name__}")


def register(registry: CheckRegistry) -> None:
    registry.register(FuncDef, check_loop_context)
