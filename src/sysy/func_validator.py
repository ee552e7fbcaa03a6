"""Function contract checks: call resolution, arity, return shape,
void values and function-name uniqueness."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sysy.ast_nodes import CallExpr, CompUnit, ExprStmt, FuncDef, ReturnStmt
from sysy.errors import Category, ErrorCode
from sysy.types import VOID

if TYPE_CHECKING:
    from sysy.checker import CheckRegistry, ValidationContext


def check_call_target(call: CallExpr, ctx: ValidationContext) -> None:
    if call.ref.resolved:
        return
    ctx.error(
        ErrorCode.UNDEFINED_FUNCTION,
        f"call to undefined function '{call.ref.text}'.",
        call.ref.span,
        Category.FUNCTION,
        functionName=call.ref.text,
    )


def check_call_arity(call: CallExpr, ctx: ValidationContext) -> None:
    target = call.ref.target
    if not isinstance(target, FuncDef):
        return
    expected = len(target.params)
    actual = len(call.args)
    if expected == actual:
        return
    ctx.error(
        ErrorCode.PARAMETER_MISMATCH,
        f"parameter count mismatch. Expected {expected} arguments, "
        f"but the call passes {actual}.",
        call.span,
        Category.FUNCTION,
        functionName=target.name,
        expectedCount=expected,
        actualCount=actual,
    )


def check_void_value(call: CallExpr, ctx: ValidationContext) -> None:
    """A void call may only stand alone as an expression statement."""
    target = call.ref.target
    if not isinstance(target, FuncDef) or target.return_type != VOID:
        return
    if isinstance(ctx.parent_of(call), ExprStmt):
        return
    ctx.error(
        ErrorCode.VOID_ASSIGNMENT,
        "void value cannot be used in an expression or assignment.",
        call.span,
        Category.TYPE,
        functionName=target.name,
    )


def check_return_shape(func: FuncDef, ctx: ValidationContext) -> None:
    """Only returns directly in the function body count."""
    returns = [item for item in func.body.items if isinstance(item, ReturnStmt)]
    if func.return_type != VOID:
        if not returns:
            ctx.error(
                ErrorCode.MISSING_RETURN,
                f"function with return type {func.return_type} is missing a return statement.",
                func.type_span,
                Category.FUNCTION,
                functionName=func.name,
                returnType=func.return_type,
            )
        elif returns[-1].value is None:
            ctx.error(
                ErrorCode.EMPTY_RETURN,
                f"function with return type {func.return_type} must not return empty.",
                returns[-1].span,
                Category.FUNCTION,
                functionName=func.name,
                returnType=func.return_type,
            )
    elif returns and returns[-1].value is not None:
        ctx.error(
            ErrorCode.VOID_RETURN_VALUE,
            "void function must not return a value.",
            returns[-1].span,
            Category.FUNCTION,
            functionName=func.name,
            returnType=func.return_type,
        )


def check_unique_functions(unit: CompUnit, ctx: ValidationContext) -> None:
    seen: set[str] = set()
    for func in unit.functions:
        if func.name in seen:
            ctx.error(
                ErrorCode.DUPLICATE_FUNCTION,
                f"function name '{func.name}' is already defined.",
                func.name_span,
                Category.FUNCTION,
                functionName=func.name,
            )
        seen.add(func.name)


def register(registry: CheckRegistry) -> None:
    registry.register(CompUnit, check_unique_functions)
    registry.register(FuncDef, check_return_shape)
    registry.register(CallExpr, check_call_target)
    registry.register(CallExpr, check_call_arity)
    registry.register(CallExpr, check_void_value)
