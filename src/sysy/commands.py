"""Deferred repair commands.

Code actions that need a non-local edit carry a command instead of an edit.
The client sends the command back and it runs here against the document
text as it is at execution time. Every executor returns the text edits to
apply, or an empty list when its target can no longer be found.
"""

from __future__ import annotations

import logging
import re
import textwrap
from typing import Any

from lsprotocol import types as lsp

from sysy.ast_nodes import (
    AssignStmt,
    BinaryExpr,
    Block,
    CallExpr,
    Decl,
    FloatLit,
    IntLit,
    LVal,
    Node,
    Param,
    UnaryExpr,
    VarDef,
    walk,
)
from sysy.checker import analyze, parse_source, to_lsp_diagnostic
from sysy.config import SysyConfig
from sysy.edits import (
    adjust_call_edit,
    declaration_line,
    find_matching,
    point,
    range_from_json,
    resize_array_edit,
    return_insertion_edit,
    split_top_level,
)
from sysy.errors import CompileError
from sysy.hover import parent_map
from sysy.linker import link
from sysy.quickfix import (
    ADD_RETURN_STATEMENT,
    ADJUST_PARAMETERS,
    EXTRACT_FUNCTION,
    FIX_ARRAY_SIZE,
    GENERIC_FIX,
    QuickFixEngine,
)
from sysy.source import Span, TextDocument, apply_text_edits
from sysy.types import FLOAT, INT

logger = logging.getLogger(__name__)

RangeArg = lsp.Range | dict[str, Any]

_EXPRESSIONS = (IntLit, FloatLit, LVal, CallExpr, UnaryExpr, BinaryExpr)


# ── Single-target commands ───────────────────────────────────────


def fix_array_size(text: str, array_name: str, rng: RangeArg) -> list[lsp.TextEdit]:
    document = TextDocument("", text)
    line = declaration_line(document, array_name, range_from_json(rng).start.line)
    if line is None:
        logger.debug("fixArraySize: no declaration of '%s' found", array_name)
        return []
    edit = resize_array_edit(document, array_name, line)
    return [edit] if edit is not None else []


def adjust_parameters(text: str, rng: RangeArg, expected_count: int) -> list[lsp.TextEdit]:
    document = TextDocument("", text)
    edit = adjust_call_edit(document, range_from_json(rng), int(expected_count))
    if edit is None:
        logger.debug("adjustParameters: no call to adjust")
        return []
    return [edit]


def add_return_statement(text: str, rng: RangeArg, return_type: str) -> list[lsp.TextEdit]:
    document = TextDocument("", text)
    edit = return_insertion_edit(document, range_from_json(rng), return_type)
    if edit is None:
        logger.debug("addReturnStatement: no function body found")
        return []
    return [edit]


def generic_fix(
    text: str, rng: RangeArg, uri: str = "", config: SysyConfig | None = None
) -> list[lsp.TextEdit]:
    """Re-analyse the text and return the first direct fix touching ``rng``."""
    config = config or SysyConfig()
    target = range_from_json(rng)
    analysis = analyze(text, uri or "<stdin>", config.check)
    diagnostics = [
        to_lsp_diagnostic(d, config.server.source)
        for d in analysis.diagnostics
    ]
    diagnostics = [d for d in diagnostics if _overlaps(d.range, target)]
    document = TextDocument(uri, text)
    engine = QuickFixEngine(refactor=config.refactor)
    for diagnostic in diagnostics:
        for action in engine.actions_for(diagnostic, document):
            if action.edit is not None and action.edit.changes:
                return list(action.edit.changes.get(uri, []))
    logger.debug("genericFix: nothing to fix in range")
    return []


def _overlaps(a: lsp.Range, b: lsp.Range) -> bool:
    a_start = (a.start.line, a.start.character)
    a_end = (a.end.line, a.end.character)
    b_start = (b.start.line, b.start.character)
    b_end = (b.end.line, b.end.character)
    return a_start <= b_end and b_start <= a_end


# ── Extract function ─────────────────────────────────────────────


def _span_offsets(document: TextDocument, span: Span) -> tuple[int, int]:
    start = document.offset_at(lsp.Position(line=span.start_line - 1, character=span.start_col - 1))
    end = document.offset_at(lsp.Position(line=span.end_line - 1, character=span.end_col))
    return start, end


def _declared_type(target: VarDef | Param, parents: dict[int, Node]) -> str:
    if isinstance(target, Param):
        return target.btype
    decl = parents.get(id(target))
    return decl.btype if isinstance(decl, Decl) else INT


def _param_text(
    target: VarDef | Param, parents: dict[int, Node], document: TextDocument
) -> str:
    type_name = _declared_type(target, parents)
    if isinstance(target, Param):
        if not target.is_array:
            return f"{type_name} {target.name}"
        rest = target.dims
    elif target.is_array:
        rest = target.dims[1:]
    else:
        return f"{type_name} {target.name}"
    suffix = "".join(f"[{document.text[slice(*_span_offsets(document, d.span))]}]" for d in rest)
    return f"{type_name} {target.name}[]{suffix}"


def _unique_name(base: str, taken: set[str]) -> str:
    name = base
    n = 1
    while name in taken:
        name = f"{base}{n}"
        n += 1
    return name


def extract_function(
    text: str, rng: RangeArg, uri: str = "", name: str = "extracted"
) -> list[lsp.TextEdit]:
    """Move the selected expression or statements into a new function."""
    document = TextDocument(uri, text)
    selection = range_from_json(rng)
    sel_start = document.offset_at(selection.start)
    sel_end = document.offset_at(selection.end)
    raw = text[sel_start:sel_end]
    if not raw.strip():
        return []
    # Tighten the selection to its non-blank text
    sel_start += len(raw) - len(raw.lstrip())
    sel_end -= len(raw) - len(raw.rstrip())

    try:
        unit = parse_source(text, uri or "<stdin>")
    except CompileError:
        logger.debug("extractFunction: document does not parse")
        return []
    table = link(unit)

    def inside(node: Node) -> bool:
        start, end = _span_offsets(document, node.span)
        return sel_start <= start and end <= sel_end

    func = next(
        (f for f in unit.functions
         if _span_offsets(document, f.span)[0] <= sel_start
         and sel_end <= _span_offsets(document, f.span)[1]),
        None,
    )
    if func is None:
        logger.debug("extractFunction: selection is not inside a function")
        return []

    parents = parent_map(unit)
    local_ids = {id(n) for n in walk(func) if isinstance(n, (VarDef, Param))}
    covered_items: list[Node] = []
    expression: Node | None = None
    for node in walk(func.body):
        if node is func.body or not inside(node):
            continue
        parent = parents.get(id(node))
        if isinstance(parent, Block) and not inside(parent):
            covered_items.append(node)
        elif (expression is None and isinstance(node, _EXPRESSIONS)
              and _span_offsets(document, node.span) == (sel_start, sel_end)
              and not (isinstance(parent, AssignStmt) and parent.target is node)):
            expression = node

    statement_mode = bool(covered_items)
    if not statement_mode and expression is None:
        logger.debug("extractFunction: selection is neither an expression nor statements")
        return []
    if statement_mode:
        first = _span_offsets(document, covered_items[0].span)[0]
        last = max(_span_offsets(document, n.span)[1] for n in covered_items)
        if (first, last) != (sel_start, sel_end):
            logger.debug("extractFunction: selection splits a statement")
            return []
        if re.search(r"\b(return|break|continue)\b", text[sel_start:sel_end]):
            logger.debug("extractFunction: selection leaves the enclosing function or loop")
            return []

    declared_inside = {
        id(n) for n in walk(func) if isinstance(n, VarDef) and inside(n)
    }
    escaping = [
        n for n in walk(func.body)
        if isinstance(n, LVal) and not inside(n) and id(n.ref.target) in declared_inside
    ]
    if escaping:
        logger.debug("extractFunction: '%s' is used after the selection", escaping[0].ref.text)
        return []

    params: list[VarDef | Param] = []
    for node in walk(func.body):
        if not isinstance(node, LVal) or not inside(node):
            continue
        target = node.ref.target
        if not isinstance(target, (VarDef, Param)) or id(target) in declared_inside:
            continue
        if id(target) not in local_ids:
            continue  # global
        if all(p is not target for p in params):
            params.append(target)

    name = _unique_name(name, {sym.name for sym in table.global_scope.all_symbols()})
    param_list = ", ".join(_param_text(p, parents, document) for p in params)
    args = ", ".join(p.name for p in params)
    selected = text[sel_start:sel_end]

    if statement_mode:
        line_start = text.rfind("\n", 0, sel_start) + 1
        if text[line_start:sel_start].strip():
            block = selected
        else:
            block = textwrap.dedent(text[line_start:sel_end])
        body = textwrap.indent(block.strip("\n"), "    ")
        new_function = f"void {name}({param_list}) {{\n{body}\n}}\n\n"
        replacement = f"{name}({args});"
    else:
        uses_float = any(
            isinstance(n, FloatLit)
            or (isinstance(n, LVal) and isinstance(n.ref.target, (VarDef, Param))
                and _declared_type(n.ref.target, parents) == FLOAT)
            for n in walk(expression)
        )
        return_type = FLOAT if uses_float else INT
        new_function = f"{return_type} {name}({param_list}) {{\n    return {selected};\n}}\n\n"
        replacement = f"{name}({args})"

    return [
        lsp.TextEdit(range=point(func.span.start_line - 1, 0), new_text=new_function),
        lsp.TextEdit(
            range=lsp.Range(start=document.position_at(sel_start), end=document.position_at(sel_end)),
            new_text=replacement,
        ),
    ]


# ── Whole-file array repair ──────────────────────────────────────

_ARRAY_DECL_RE = re.compile(
    r"\b([A-Za-z_]\w*)\s*\[\s*(\d+)\s*\]((?:\s*\[[^\]]*\])*)\s*=\s*\{"
)


def fix_array_sizes(text: str) -> tuple[str, list[tuple[str, int, int]]]:
    """Grow every literal first dimension smaller than its initializer.

    Returns the new text and a (name, old size, new size) entry per change.
    """
    document = TextDocument("", text)
    edits: list[lsp.TextEdit] = []
    changes: list[tuple[str, int, int]] = []
    for match in _ARRAY_DECL_RE.finditer(text):
        close = find_matching(text, match.end() - 1)
        if close is None:
            continue
        count = len(split_top_level(text[match.end():close]))
        size = int(match.group(2))
        if count <= size:
            continue
        name = match.group(1)
        edits.append(lsp.TextEdit(
            range=lsp.Range(
                start=document.position_at(match.start()),
                end=document.position_at(match.end(3)),
            ),
            new_text=f"{name}[{count}]{match.group(3)}",
        ))
        changes.append((name, size, count))
    return apply_text_edits(text, edits), changes


# ── Dispatch ─────────────────────────────────────────────────────


def execute_command(
    name: str, arguments: list[Any], text: str, config: SysyConfig | None = None
) -> list[lsp.TextEdit]:
    """Run the command ``name`` with its wire ``arguments`` against ``text``."""
    config = config or SysyConfig()
    if name == FIX_ARRAY_SIZE:
        _uri, array_name, rng = arguments[:3]
        return fix_array_size(text, array_name, rng)
    if name == ADJUST_PARAMETERS:
        _uri, rng, expected = arguments[:3]
        return adjust_parameters(text, rng, int(expected))
    if name == ADD_RETURN_STATEMENT:
        _uri, rng, return_type = arguments[:3]
        return add_return_statement(text, rng, return_type)
    if name == EXTRACT_FUNCTION:
        uri, rng = arguments[:2]
        return extract_function(text, rng, uri, config.refactor.extract_function_name)
    if name == GENERIC_FIX:
        uri, rng = arguments[:2]
        return generic_fix(text, rng, uri, config)
    raise ValueError(f"unknown command: {name}")


COMMANDS = (FIX_ARRAY_SIZE, ADJUST_PARAMETERS, ADD_RETURN_STATEMENT, EXTRACT_FUNCTION, GENERIC_FIX)
