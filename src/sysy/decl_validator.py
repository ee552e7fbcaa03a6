"""Declaration and scope checks: unique names, undefined variables,
array bounds, initializer shape and unused locals."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sysy.ast_nodes import Decl, InitList, IntLit, LVal, VarDef
from sysy.errors import Category, ErrorCode
from sysy.types import int_literal_value

if TYPE_CHECKING:
    from sysy.checker import CheckRegistry, ValidationContext


def check_unique_names(decl: Decl, ctx: ValidationContext) -> None:
    """Names within one declaration group must be distinct."""
    seen: set[str] = set()
    for var in decl.defs:
        if var.name in seen:
            ctx.error(
                ErrorCode.DUPLICATE_DECLARATION,
                f"cannot redeclare block-scoped variable '{var.name}'.",
                var.name_span,
                Category.VARIABLE,
                variableName=var.name,
            )
        seen.add(var.name)


def check_reference(lval: LVal, ctx: ValidationContext) -> None:
    if lval.ref.resolved:
        return
    ctx.error(
        ErrorCode.UNDEFINED_VARIABLE,
        f"use of undefined variable '{lval.ref.text}'.",
        lval.ref.span,
        Category.VARIABLE,
        variableName=lval.ref.text,
    )


def check_array_bounds(var: VarDef, ctx: ValidationContext) -> None:
    """The initializer list may not outgrow a literal first dimension."""
    if not var.dims or not isinstance(var.dims[0], IntLit):
        return
    if not isinstance(var.init, InitList):
        return
    declared = int_literal_value(var.dims[0].value)
    actual = len(var.init.elements)
    if actual <= declared:
        return
    ctx.error(
        ErrorCode.ARRAY_SIZE_OVERFLOW,
        f"array {var.name} has more initializer elements than the array size.",
        var.init.span,
        Category.ARRAY,
        arrayName=var.name,
        declaredSize=declared,
        actualSize=actual,
    )


def check_initializer_shape(var: VarDef, ctx: ValidationContext) -> None:
    if var.init is None:
        return
    if var.is_array == isinstance(var.init, InitList):
        return
    shape = "array" if var.is_array else "scalar"
    ctx.error(
        ErrorCode.TYPE_MISMATCH,
        f"type mismatch: variable '{var.name}' expects a {shape} initializer.",
        var.init.span,
        Category.TYPE,
        variableName=var.name,
        shape=shape,
    )


def check_unused_locals(decl: Decl, ctx: ValidationContext) -> None:
    if not ctx.config.unused_variables:
        return
    if ctx.enclosing_function(decl) is None:
        return
    for var in decl.defs:
        if id(var) in ctx.referenced:
            continue
        ctx.warning(
            ErrorCode.UNUSED_VARIABLE,
            f"unused variable '{var.name}'.",
            var.name_span,
            Category.VARIABLE,
            variableName=var.name,
        )


def register(registry: CheckRegistry) -> None:
    registry.register(Decl, check_unique_names)
    registry.register(Decl, check_unused_locals)
    registry.register(VarDef, check_array_bounds)
    registry.register(VarDef, check_initializer_shape)
    registry.register(LVal, check_reference)
