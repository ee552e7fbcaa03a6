"""Semantic checker for SysY.

The checker walks a linked CompUnit pre-order and, for each node, runs the
checks registered for that node's kind. Checks report through a
ValidationContext created fresh for every run, so checking the same unit
twice yields the same diagnostics in the same order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from lsprotocol import types as lsp

from sysy import decl_validator, flow_validator, func_validator
from sysy.ast_nodes import CallExpr, CompUnit, FuncDef, LVal, Node, children, walk
from sysy.config import CheckConfig
from sysy.errors import (
    Category,
    CompileError,
    Diagnostic,
    DiagnosticLabel,
    ErrorCode,
    Severity,
)
from sysy.lexer import Lexer
from sysy.linker import link
from sysy.messages import ErrorMessageProvider
from sysy.parser import Parser
from sysy.source import Span, span_to_range
from sysy.symbols import SymbolTable

logger = logging.getLogger(__name__)

CheckFn = Callable[[Any, "ValidationContext"], None]


# ── Context ─────────────────────────────────────────────────────


class ValidationContext:
    """Per-run state shared by all checks."""

    def __init__(
        self,
        unit: CompUnit,
        accept: Callable[[Diagnostic], None],
        config: CheckConfig,
        provider: ErrorMessageProvider,
    ) -> None:
        self.unit = unit
        self.config = config
        self._accept = accept
        self._provider = provider
        self._parents: dict[int, Node] = {}
        self.referenced: set[int] = set()
        for node in walk(unit):
            for child in children(node):
                self._parents[id(child)] = node
            if isinstance(node, (LVal, CallExpr)) and node.ref.target is not None:
                self.referenced.add(id(node.ref.target))

    def parent_of(self, node: Node) -> Node | None:
        return self._parents.get(id(node))

    def enclosing_function(self, node: Node) -> FuncDef | None:
        parent = self.parent_of(node)
        while parent is not None:
            if isinstance(parent, FuncDef):
                return parent
            parent = self.parent_of(parent)
        return None

    def error(
        self, code: ErrorCode, message: str, span: Span, category: Category, **data: Any
    ) -> None:
        self._report(Severity.ERROR, code, message, span, category, data)

    def warning(
        self, code: ErrorCode, message: str, span: Span, category: Category, **data: Any
    ) -> None:
        self._report(Severity.WARNING, code, message, span, category, data)

    def _report(
        self,
        severity: Severity,
        code: ErrorCode,
        message: str,
        span: Span,
        category: Category,
        data: dict[str, Any],
    ) -> None:
        if self.config.enrich_messages:
            message = self._provider.safe_enhance(message)
        self._accept(Diagnostic(
            severity=severity,
            code=code,
            message=message,
            labels=[DiagnosticLabel(span=span, message="")],
            category=category,
            data=data,
        ))


# ── Registry ────────────────────────────────────────────────────


class CheckRegistry:
    """Maps node kinds to the checks run on them, in registration order."""

    def __init__(self) -> None:
        self._checks: dict[type, list[CheckFn]] = {}

    def register(self, node_type: type, check: CheckFn) -> None:
        self._checks.setdefault(node_type, []).append(check)

    def checks_for(self, node: Node) -> list[CheckFn]:
        return self._checks.get(type(node), [])


def default_registry() -> CheckRegistry:
    registry = CheckRegistry()
    decl_validator.register(registry)
    func_validator.register(registry)
    flow_validator.register(registry)
    return registry


# ── Checker ─────────────────────────────────────────────────────


class Checker:
    """Runs all registered checks over a linked CompUnit."""

    def __init__(
        self,
        config: CheckConfig | None = None,
        registry: CheckRegistry | None = None,
        provider: ErrorMessageProvider | None = None,
    ) -> None:
        self.config = config or CheckConfig()
        self.registry = registry or default_registry()
        self.provider = provider or ErrorMessageProvider()
        self.diagnostics: list[Diagnostic] = []

    def check(self, unit: CompUnit) -> list[Diagnostic]:
        """Check ``unit``. Raises nothing; returns and stores the diagnostics."""
        self.diagnostics = []
        ctx = ValidationContext(unit, self.diagnostics.append, self.config, self.provider)
        for node in walk(unit):
            for check in self.registry.checks_for(node):
                check(node, ctx)
        return self.diagnostics

    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)


# ── Pipeline ────────────────────────────────────────────────────


@dataclass
class Analysis:
    unit: CompUnit | None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    symbols: SymbolTable | None = None

    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)


def parse_source(source: str, filename: str = "<stdin>") -> CompUnit:
    """Lex and parse ``source``. Raises CompileError on syntax errors."""
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse()


def analyze(
    source: str,
    filename: str = "<stdin>",
    config: CheckConfig | None = None,
    provider: ErrorMessageProvider | None = None,
) -> Analysis:
    """Parse, link and check ``source``."""
    config = config or CheckConfig()
    provider = provider or ErrorMessageProvider()
    try:
        unit = parse_source(source, filename)
    except CompileError as e:
        for diag in e.diagnostics:
            diag.category = provider.safe_category_of(diag.message)
            if config.enrich_messages:
                diag.message = provider.safe_enhance(diag.message)
        return Analysis(unit=None, diagnostics=list(e.diagnostics))
    symbols = link(unit)
    diagnostics = Checker(config, provider=provider).check(unit)
    logger.debug("%s: %d diagnostic(s)", filename, len(diagnostics))
    return Analysis(unit=unit, diagnostics=diagnostics, symbols=symbols)


# ── Wire conversion ─────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.HINT: lsp.DiagnosticSeverity.Hint,
}


def to_lsp_diagnostic(diag: Diagnostic, source: str = "sysy") -> lsp.Diagnostic:
    """Convert a Diagnostic to its LSP wire shape; the payload rides in ``data``."""
    if diag.span is not None:
        rng = span_to_range(diag.span)
    else:
        rng = lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))
    return lsp.Diagnostic(
        range=rng,
        severity=_SEVERITY_MAP[diag.severity],
        code=diag.code.value,
        source=source,
        message=diag.message,
        data={**diag.data, "category": diag.category.value},
    )
