"""Shared test helpers for the SysY test suite."""

from __future__ import annotations

from lsprotocol import types as lsp

from sysy.checker import Checker, parse_source, to_lsp_diagnostic
from sysy.config import CheckConfig
from sysy.errors import Diagnostic, ErrorCode, Severity
from sysy.linker import link


def diagnostics_for(source: str, config: CheckConfig | None = None) -> list[Diagnostic]:
    """Parse, link and check source, returning every diagnostic."""
    unit = parse_source(source, "<test>")
    link(unit)
    return Checker(config).check(unit)


def check(source: str) -> list[Diagnostic]:
    """Check source, asserting no errors. Returns the remaining diagnostics."""
    diags = diagnostics_for(source)
    errors = [d for d in diags if d.severity == Severity.ERROR]
    assert not errors, f"Unexpected errors: {[f'{d.code.value}: {d.message}' for d in errors]}"
    return diags


def check_fails(source: str, error_code: ErrorCode) -> list[Diagnostic]:
    """Check source, asserting the given error code appears."""
    diags = diagnostics_for(source)
    matching = [d for d in diags if d.code == error_code and d.severity == Severity.ERROR]
    assert matching, (
        f"Expected error {error_code.value} but got: "
        f"{[f'{d.code.value}: {d.message}' for d in diags] or 'no diagnostics'}"
    )
    return matching


def check_warns(source: str, warning_code: ErrorCode) -> list[Diagnostic]:
    """Check source, asserting the given warning code appears."""
    diags = diagnostics_for(source)
    matching = [d for d in diags if d.code == warning_code and d.severity == Severity.WARNING]
    assert matching, (
        f"Expected warning {warning_code.value} but got: "
        f"{[f'{d.code.value}: {d.message}' for d in diags] or 'no diagnostics'}"
    )
    return matching


def lsp_diagnostics(source: str, code: ErrorCode | None = None) -> list[lsp.Diagnostic]:
    """Wire-shaped diagnostics for source, optionally filtered by code."""
    diags = diagnostics_for(source)
    if code is not None:
        diags = [d for d in diags if d.code == code]
    return [to_lsp_diagnostic(d) for d in diags]
