"""Tests for the SysY LSP server helpers."""

from __future__ import annotations

from lsprotocol import types as lsp

from sysy.checker import parse_source
from sysy.config import ServerConfig, SysyConfig
from sysy.linker import link
from sysy.lsp import (
    _arguments,
    analyze_document,
    config_for_uri,
    definition_location,
    document_symbols,
    server,
)
from sysy.source import Span, TextDocument, span_to_range

URI = "file:///test.sy"


def linked(source: str):
    unit = parse_source(source, URI)
    link(unit)
    return unit, TextDocument(URI, source)


def rng(sl: int, sc: int, el: int, ec: int) -> lsp.Range:
    return lsp.Range(
        start=lsp.Position(line=sl, character=sc),
        end=lsp.Position(line=el, character=ec),
    )


class TestSpanConversion:
    def test_span_to_range_basic(self):
        r = span_to_range(Span("test.sy", 1, 1, 1, 5))
        assert r == rng(0, 0, 0, 5)

    def test_span_to_range_multiline(self):
        r = span_to_range(Span("test.sy", 5, 3, 7, 10))
        assert r == rng(4, 2, 6, 10)

    def test_span_to_range_single_char(self):
        r = span_to_range(Span("test.sy", 10, 5, 10, 5))
        assert r == rng(9, 4, 9, 5)


class TestAnalyzeDocument:
    def test_valid_source(self):
        analysis, diagnostics = analyze_document(URI, "int main() { return 0; }")
        assert analysis is not None
        assert analysis.unit is not None
        assert diagnostics == []

    def test_semantic_errors(self):
        _, diagnostics = analyze_document(URI, "int main() { break; return y; }")
        assert [d.code for d in diagnostics] == ["invalid-break-continue", "undefined-variable"]
        assert all(d.source == "sysy" for d in diagnostics)

    def test_syntax_error(self):
        analysis, diagnostics = analyze_document(URI, "int a = 1\n")
        assert analysis.unit is None
        assert diagnostics[0].code == "missing-semicolon"
        assert diagnostics[0].range == rng(0, 8, 0, 9)

    def test_configured_source(self):
        config = SysyConfig(server=ServerConfig(source="sysyc"))
        _, diagnostics = analyze_document(URI, "int main() { return y; }", config)
        assert diagnostics[0].source == "sysyc"

    def test_internal_failure_becomes_diagnostic(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("sysy.lsp.analyze", boom)
        analysis, diagnostics = analyze_document(URI, "int main() { return 0; }")
        assert analysis is None
        assert len(diagnostics) == 1
        assert diagnostics[0].message == "[internal] analysis error: boom"
        assert diagnostics[0].severity == lsp.DiagnosticSeverity.Error
        assert diagnostics[0].range == rng(0, 0, 0, 0)


class TestDefinition:
    def test_global_variable(self):
        unit, document = linked("int g = 1;\nint main() { return g; }")
        location = definition_location(unit, document, lsp.Position(line=1, character=20))
        assert location == lsp.Location(uri=URI, range=rng(0, 4, 0, 5))

    def test_user_function(self):
        unit, document = linked("int one() { return 1; }\nint main() { return one(); }")
        location = definition_location(unit, document, lsp.Position(line=1, character=21))
        assert location.range == rng(0, 4, 0, 7)

    def test_parameter(self):
        unit, document = linked("int id(int value) { return value; }")
        location = definition_location(unit, document, lsp.Position(line=0, character=28))
        assert location.range == rng(0, 11, 0, 16)

    def test_runtime_function_has_no_location(self):
        unit, document = linked("int main() { return getint(); }")
        assert definition_location(unit, document, lsp.Position(line=0, character=21)) is None

    def test_unresolved_name(self):
        unit, document = linked("int main() { return y; }")
        assert definition_location(unit, document, lsp.Position(line=0, character=20)) is None

    def test_not_a_name(self):
        unit, document = linked("int main() { return 0; }")
        assert definition_location(unit, document, lsp.Position(line=0, character=20)) is None


class TestDocumentSymbols:
    SOURCE = (
        "const int N = 4;\n"
        "int buf[N];\n"
        "int x;\n"
        "int add(int a, int b[]) { return a; }\n"
    )

    def test_outline(self):
        unit, _ = linked(self.SOURCE)
        symbols = document_symbols(unit)
        assert [s.name for s in symbols] == ["N", "buf", "x", "add"]
        assert [s.kind for s in symbols] == [
            lsp.SymbolKind.Constant,
            lsp.SymbolKind.Array,
            lsp.SymbolKind.Variable,
            lsp.SymbolKind.Function,
        ]
        assert [s.detail for s in symbols] == [
            "const int", "int[]", "int", "int add(int a, int b[])",
        ]

    def test_parameters_are_children(self):
        unit, _ = linked(self.SOURCE)
        func = document_symbols(unit)[-1]
        assert [(c.name, c.detail) for c in func.children] == [("a", "int"), ("b", "int[]")]
        assert func.selection_range == rng(3, 4, 3, 7)

    def test_locals_are_not_listed(self):
        unit, _ = linked("int main() { int hidden = 1; return hidden; }")
        assert [s.name for s in document_symbols(unit)] == ["main"]


class TestCommandArguments:
    def test_server_instance_dropped(self):
        assert _arguments((server, URI, "arr")) == [URI, "arr"]

    def test_single_list_flattened(self):
        assert _arguments(([URI, {"start": {}}],)) == [URI, {"start": {}}]

    def test_no_arguments(self):
        assert _arguments(()) == []


class TestConfigForUri:
    def test_nearest_config_file(self, tmp_path):
        (tmp_path / "sysy.toml").write_text('[server]\nsource = "mine"\n')
        (tmp_path / "src").mkdir()
        uri = (tmp_path / "src" / "main.sy").as_uri()
        assert config_for_uri(uri).server.source == "mine"

    def test_defaults_without_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert config_for_uri("untitled:Untitled-1") == SysyConfig()
