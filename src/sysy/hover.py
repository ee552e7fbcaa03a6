"""Locating the AST node under the cursor and rendering hover text."""

from __future__ import annotations

from lsprotocol import types as lsp

from sysy.ast_nodes import (
    CallExpr,
    CompUnit,
    Decl,
    FloatLit,
    FuncDef,
    IntLit,
    LVal,
    Node,
    Param,
    VarDef,
    children,
    walk,
)
from sysy.source import TextDocument, span_to_range
from sysy.types import INT, UNKNOWN, infer_literal_type

# Identifiers that always display as int
_INT_NAMES = frozenset({"decimal", "octal", "hex"})


# ── Locating ─────────────────────────────────────────────────────


def path_to_offset(root: Node, offset: int, document: TextDocument) -> list[Node]:
    """Nodes from ``root`` down to the innermost one containing ``offset``."""
    pos = document.position_at(offset)
    line, col = pos.line + 1, pos.character + 1
    if not root.span.contains(line, col):
        return []
    path = [root]
    node = root
    while True:
        for child in children(node):
            if child.span.contains(line, col):
                node = child
                path.append(child)
                break
        else:
            return path


def node_at_offset(root: Node, offset: int, document: TextDocument) -> Node | None:
    path = path_to_offset(root, offset, document)
    return path[-1] if path else None


# ── Types ────────────────────────────────────────────────────────


def parent_map(unit: CompUnit) -> dict[int, Node]:
    return {id(child): node for node in walk(unit) for child in children(node)}


def display_type(node: VarDef | Param | FuncDef, parents: dict[int, Node]) -> str:
    """Type shown for a declaration, falling back step by step to 'unknown'."""
    if isinstance(node, Param):
        return node.btype
    if isinstance(node, FuncDef):
        return node.return_type
    decl = parents.get(id(node))
    if isinstance(decl, Decl):
        return decl.btype
    if isinstance(node.init, (IntLit, FloatLit)):
        inferred = infer_literal_type(node.init.value)
        if inferred is not None:
            return inferred
    if node.name in _INT_NAMES:
        return INT
    return UNKNOWN


# ── Rendering ────────────────────────────────────────────────────


def _render_var_def(var: VarDef, parents: dict[int, Node]) -> str:
    type_name = display_type(var, parents)
    decl = parents.get(id(var))
    const = "const " if isinstance(decl, Decl) and decl.is_const else ""
    dims = "[]" * len(var.dims)
    lines = [f"**(variable) {var.name}: {const}{type_name}{dims}**"]
    if var.dims:
        lines.append(f"array with {len(var.dims)} dimension(s)")
    if var.init is not None:
        lines.append("initialized")
    return "\n\n".join(lines)


def _render_param(param: Param) -> str:
    suffix = "[]" if param.is_array else ""
    lines = [f"**(parameter) {param.name}: {param.btype}{suffix}**"]
    if param.is_array:
        lines.append("array parameter")
    return "\n\n".join(lines)


def _render_function(func: FuncDef) -> str:
    lines = [f"**(function) {func.signature}**", f"returns `{func.return_type}`"]
    if func.params:
        lines.append("\n".join(
            f"- {p.name}: {p.btype}" + (" (array)" if p.is_array else "")
            for p in func.params
        ))
    else:
        lines.append("no parameters")
    return "\n\n".join(lines)


def render_hover(node: Node, parents: dict[int, Node]) -> str | None:
    """Markdown for a hoverable node, or None."""
    if isinstance(node, LVal):
        target = node.ref.target
        if isinstance(target, VarDef):
            return _render_var_def(target, parents)
        if isinstance(target, Param):
            return _render_param(target)
        if node.ref.text in _INT_NAMES:
            return f"**(variable) {node.ref.text}: {INT}**"
        return None
    if isinstance(node, CallExpr):
        target = node.ref.target
        return _render_function(target) if isinstance(target, FuncDef) else None
    if isinstance(node, FuncDef):
        return _render_function(node)
    if isinstance(node, VarDef):
        return _render_var_def(node, parents)
    if isinstance(node, Param):
        return _render_param(node)
    return None


def hover(unit: CompUnit, document: TextDocument, position: lsp.Position) -> lsp.Hover | None:
    node = node_at_offset(unit, document.offset_at(position), document)
    if node is None:
        return None
    text = render_hover(node, parent_map(unit))
    if text is None:
        return None
    return lsp.Hover(
        contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=text),
        range=span_to_range(node.span),
    )
