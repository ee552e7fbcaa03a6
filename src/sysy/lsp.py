"""SysY Language Server: pygls-based LSP for .sy files.

Provides diagnostics, hover, go-to-definition, document symbols, quick
fixes, refactorings and the deferred repair commands via stdio transport.
No analysis is cached: every request re-reads the document from the
workspace and analyses it afresh.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer
from pygls.uris import to_fs_path

from sysy import __version__
from sysy.ast_nodes import CallExpr, CompUnit, Decl, FuncDef, LVal, Param, VarDef
from sysy.checker import Analysis, analyze, to_lsp_diagnostic
from sysy.commands import COMMANDS, execute_command
from sysy.config import SysyConfig, config_for
from sysy.hover import hover as hover_at
from sysy.hover import node_at_offset
from sysy.linker import is_runtime_function
from sysy.quickfix import QuickFixEngine
from sysy.source import TextDocument, span_to_range

logger = logging.getLogger(__name__)

_ORIGIN = lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))


# ── Pure helpers ──────────────────────────────────────────────────


def config_for_uri(uri: str) -> SysyConfig:
    path = to_fs_path(uri) if uri.startswith("file:") else None
    return config_for(Path(path) if path else None)


def analyze_document(
    uri: str, source: str, config: SysyConfig | None = None
) -> tuple[Analysis | None, list[lsp.Diagnostic]]:
    """Analyse ``source`` and convert its diagnostics to the wire shape.

    An unexpected failure yields a single ``[internal]`` diagnostic instead
    of propagating into the server loop.
    """
    config = config or SysyConfig()
    try:
        analysis = analyze(source, uri, config.check)
    except Exception as e:
        logger.exception("analysis of %s failed", uri)
        return None, [lsp.Diagnostic(
            range=_ORIGIN,
            severity=lsp.DiagnosticSeverity.Error,
            source=config.server.source,
            message=f"[internal] analysis error: {e}",
        )]
    return analysis, [to_lsp_diagnostic(d, config.server.source) for d in analysis.diagnostics]


def definition_location(
    unit: CompUnit, document: TextDocument, position: lsp.Position
) -> lsp.Location | None:
    """Where the name under ``position`` is declared, if it is a user declaration."""
    node = node_at_offset(unit, document.offset_at(position), document)
    if not isinstance(node, (LVal, CallExpr)):
        return None
    target = node.ref.target
    if target is None:
        return None
    if isinstance(target, FuncDef) and is_runtime_function(target):
        return None
    return lsp.Location(uri=document.uri, range=span_to_range(target.name_span))


def _var_symbol(var: VarDef, decl: Decl) -> lsp.DocumentSymbol:
    kind = lsp.SymbolKind.Constant if decl.is_const else lsp.SymbolKind.Variable
    if var.is_array:
        kind = lsp.SymbolKind.Array
    return lsp.DocumentSymbol(
        name=var.name,
        kind=kind,
        detail=("const " if decl.is_const else "") + decl.btype + "[]" * len(var.dims),
        range=span_to_range(var.span),
        selection_range=span_to_range(var.name_span),
    )


def _param_symbol(param: Param) -> lsp.DocumentSymbol:
    return lsp.DocumentSymbol(
        name=param.name,
        kind=lsp.SymbolKind.Variable,
        detail=param.btype + ("[]" if param.is_array else ""),
        range=span_to_range(param.span),
        selection_range=span_to_range(param.name_span),
    )


def document_symbols(unit: CompUnit) -> list[lsp.DocumentSymbol]:
    """Outline of global declarations and functions, parameters as children."""
    symbols: list[lsp.DocumentSymbol] = []
    for item in unit.items:
        if isinstance(item, Decl):
            symbols.extend(_var_symbol(var, item) for var in item.defs)
        elif isinstance(item, FuncDef):
            symbols.append(lsp.DocumentSymbol(
                name=item.name,
                kind=lsp.SymbolKind.Function,
                detail=item.signature,
                range=span_to_range(item.span),
                selection_range=span_to_range(item.name_span),
                children=[_param_symbol(p) for p in item.params],
            ))
    return symbols


def _arguments(args: tuple[Any, ...]) -> list[Any]:
    """Normalise command arguments to the positional list sent by the client."""
    values = [a for a in args if not isinstance(a, LanguageServer)]
    if len(values) == 1 and isinstance(values[0], list):
        return values[0]
    return values


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "sysy-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)


def _document(uri: str) -> TextDocument:
    return TextDocument(uri, server.workspace.get_text_document(uri).source)


def _publish(uri: str) -> None:
    document = _document(uri)
    _analysis, diagnostics = analyze_document(uri, document.text, config_for_uri(uri))
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=diagnostics,
    ))


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    _publish(params.text_document.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    _publish(params.text_document.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=params.text_document.uri,
        diagnostics=[],
    ))


@server.feature(lsp.TEXT_DOCUMENT_HOVER)
def hover(params: lsp.HoverParams) -> lsp.Hover | None:
    uri = params.text_document.uri
    document = _document(uri)
    analysis, _ = analyze_document(uri, document.text, config_for_uri(uri))
    if analysis is None or analysis.unit is None:
        return None
    return hover_at(analysis.unit, document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
def definition(params: lsp.DefinitionParams) -> lsp.Location | None:
    uri = params.text_document.uri
    document = _document(uri)
    analysis, _ = analyze_document(uri, document.text, config_for_uri(uri))
    if analysis is None or analysis.unit is None:
        return None
    return definition_location(analysis.unit, document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: lsp.DocumentSymbolParams) -> list[lsp.DocumentSymbol]:
    uri = params.text_document.uri
    analysis, _ = analyze_document(uri, _document(uri).text, config_for_uri(uri))
    if analysis is None or analysis.unit is None:
        return []
    return document_symbols(analysis.unit)


@server.feature(
    lsp.TEXT_DOCUMENT_CODE_ACTION,
    lsp.CodeActionOptions(code_action_kinds=[
        lsp.CodeActionKind.QuickFix,
        lsp.CodeActionKind.RefactorExtract,
    ]),
)
def code_action(params: lsp.CodeActionParams) -> list[lsp.CodeAction] | None:
    uri = params.text_document.uri
    config = config_for_uri(uri)
    engine = QuickFixEngine(refactor=config.refactor)
    actions = engine.get_code_actions(
        list(params.context.diagnostics),
        _document(uri),
        selection=params.range,
    )
    return actions if actions else None


def _make_command(name: str):
    def run(*args: Any) -> None:
        arguments = _arguments(args)
        if not arguments:
            logger.error("%s called without arguments", name)
            return
        uri = arguments[0]
        document = _document(uri)
        try:
            edits = execute_command(name, arguments, document.text, config_for_uri(uri))
        except (ValueError, KeyError, TypeError, IndexError):
            logger.exception("%s failed with arguments %r", name, arguments)
            return
        if not edits:
            return
        server.workspace_apply_edit(lsp.ApplyWorkspaceEditParams(
            edit=lsp.WorkspaceEdit(changes={uri: edits}),
            label=name,
        ))

    run.__name__ = name.rsplit(".", 1)[-1]
    return run


for _name in COMMANDS:
    server.command(_name)(_make_command(_name))


# ── Entry point ──────────────────────────────────────────────────


def main() -> None:
    """Start the SysY language server on stdio."""
    server.start_io()
