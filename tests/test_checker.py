"""Tests for the SysY semantic checker."""

from __future__ import annotations

from lsprotocol import types as lsp

from sysy.ast_nodes import Decl
from sysy.checker import Checker, CheckRegistry, analyze, parse_source, to_lsp_diagnostic
from sysy.config import CheckConfig
from sysy.errors import Category, ErrorCode, Severity
from sysy.linker import link
from tests.helpers import check, check_fails, check_warns, diagnostics_for


def codes(source: str) -> list[ErrorCode]:
    return [d.code for d in diagnostics_for(source)]


class TestDeclarations:
    def test_duplicate_in_group_reported_once(self):
        diags = check_fails("int a = 1, a = 2, b = 3;", ErrorCode.DUPLICATE_DECLARATION)
        assert len(diags) == 1
        assert diags[0].data == {"variableName": "a"}
        assert diags[0].span.start_col == 12

    def test_same_name_in_separate_groups_not_reported(self):
        check("int a = 1;\nint main() { int a = 2; return a; }")

    def test_undefined_variable(self):
        diags = check_fails("int main() { return y; }", ErrorCode.UNDEFINED_VARIABLE)
        assert diags[0].data["variableName"] == "y"
        assert diags[0].span.start_col == 21
        assert diags[0].category == Category.VARIABLE

    def test_undefined_variable_in_assignment_target(self):
        check_fails("int main() { z = 1; return 0; }", ErrorCode.UNDEFINED_VARIABLE)

    def test_defined_variable_ok(self):
        check("int main() { int x = 1; x = x + 1; return x; }")

    def test_array_size_overflow(self):
        diags = check_fails("int arr[3] = {1,2,3,4,5};", ErrorCode.ARRAY_SIZE_OVERFLOW)
        assert diags[0].data == {"arrayName": "arr", "declaredSize": 3, "actualSize": 5}
        assert diags[0].category == Category.ARRAY

    def test_array_exactly_full_ok(self):
        check("int arr[3] = {1, 2, 3};")

    def test_array_size_in_octal(self):
        diags = check_fails("int arr[010] = {1,2,3,4,5,6,7,8,9};", ErrorCode.ARRAY_SIZE_OVERFLOW)
        assert diags[0].data["declaredSize"] == 8

    def test_only_first_dimension_checked(self):
        check("int m[2][1] = {{1, 2, 3}, {4}};")

    def test_non_literal_dimension_not_checked(self):
        check("const int N = 2;\nint arr[N] = {1, 2, 3};")

    def test_scalar_with_list_initializer(self):
        diags = check_fails("int b = {1};", ErrorCode.TYPE_MISMATCH)
        assert diags[0].data["shape"] == "scalar"

    def test_array_with_scalar_initializer(self):
        diags = check_fails("int a[2] = 1;", ErrorCode.TYPE_MISMATCH)
        assert diags[0].data["shape"] == "array"


class TestUnusedVariables:
    def test_unused_local_warns(self):
        diags = check_warns("int main() { int unused = 1; return 0; }", ErrorCode.UNUSED_VARIABLE)
        assert diags[0].data["variableName"] == "unused"

    def test_used_local_does_not_warn(self):
        assert ErrorCode.UNUSED_VARIABLE not in codes("int main() { int x = 1; return x; }")

    def test_unused_global_does_not_warn(self):
        assert ErrorCode.UNUSED_VARIABLE not in codes("int g;\nint main() { return 0; }")

    def test_can_be_disabled(self):
        diags = diagnostics_for(
            "int main() { int unused = 1; return 0; }",
            CheckConfig(unused_variables=False),
        )
        assert diags == []


class TestFunctions:
    def test_duplicate_function_reported_once(self):
        diags = check_fails(
            "int f() { return 0; }\n"
            "int g() { return 0; }\n"
            "int f() { return 1; }\n",
            ErrorCode.DUPLICATE_FUNCTION,
        )
        assert len(diags) == 1
        assert diags[0].span.start_line == 3
        assert diags[0].data["functionName"] == "f"

    def test_undefined_function(self):
        diags = check_fails("int main() { return nope(); }", ErrorCode.UNDEFINED_FUNCTION)
        assert diags[0].data["functionName"] == "nope"

    def test_runtime_functions_defined(self):
        check("int main() { int n = getint(); putint(n); putch(10); return 0; }")

    def test_parameter_mismatch(self):
        diags = check_fails(
            "int foo(int a, int b, int c) { return a; }\n"
            "int main() { return foo(1, 2); }\n",
            ErrorCode.PARAMETER_MISMATCH,
        )
        assert diags[0].data["expectedCount"] == 3
        assert diags[0].data["actualCount"] == 2
        assert diags[0].data["functionName"] == "foo"

    def test_runtime_parameter_mismatch(self):
        diags = check_fails("int main() { putint(); return 0; }", ErrorCode.PARAMETER_MISMATCH)
        assert diags[0].data["expectedCount"] == 1

    def test_matching_arity_ok(self):
        check("int add(int a, int b) { return a + b; }\nint main() { return add(1, 2); }")

    def test_void_call_as_value(self):
        check_fails(
            "void f() {}\nint main() { int x = f(); return x; }",
            ErrorCode.VOID_ASSIGNMENT,
        )

    def test_void_call_in_expression(self):
        check_fails("void f() {}\nint main() { return 1 + f(); }", ErrorCode.VOID_ASSIGNMENT)

    def test_void_call_statement_ok(self):
        check("void f() {}\nint main() { f(); return 0; }")


class TestReturns:
    def test_missing_return(self):
        diags = check_fails("int f() { int x = 1; }", ErrorCode.MISSING_RETURN)
        assert diags[0].data["returnType"] == "int"
        assert (diags[0].span.start_col, diags[0].span.end_col) == (1, 3)

    def test_nested_return_does_not_count(self):
        check_fails("int f(int a) { if (a) { return 1; } }", ErrorCode.MISSING_RETURN)

    def test_top_level_return_ok(self):
        check("int f(int a) { if (a) return 1; return 0; }")

    def test_void_without_return_ok(self):
        check("void f() { putint(1); }")

    def test_empty_return(self):
        diags = check_fails("float f() { return; }", ErrorCode.EMPTY_RETURN)
        assert diags[0].data["returnType"] == "float"

    def test_void_return_value(self):
        check_fails("void f() { return 1; }", ErrorCode.VOID_RETURN_VALUE)

    def test_void_bare_return_ok(self):
        check("void f() { return; }")


class TestControlFlow:
    def test_break_outside_loop(self):
        diags = check_fails("int main() { break; return 0; }", ErrorCode.INVALID_BREAK_CONTINUE)
        assert diags[0].data["keyword"] == "break"
        assert diags[0].category == Category.CONTROL

    def test_continue_outside_loop(self):
        diags = check_fails(
            "int main() { if (1) continue; return 0; }", ErrorCode.INVALID_BREAK_CONTINUE
        )
        assert diags[0].data["keyword"] == "continue"

    def test_break_inside_loop_ok(self):
        check("int main() { while (1) { break; } return 0; }")

    def test_continue_inside_nested_if_ok(self):
        check("int main() { int i = 0; while (i < 3) { i = i + 1; if (i) continue; } return i; }")

    def test_break_after_loop_reported(self):
        assert codes("int main() { while (1) {} break; return 0; }") == [
            ErrorCode.INVALID_BREAK_CONTINUE,
        ]


class TestCheckerBehaviour:
    SOURCE = (
        "int a = 1, a = 2;\n"
        "int f() { break; }\n"
        "int main() { return g(y); }\n"
    )

    def test_repeated_runs_identical(self):
        unit = parse_source(self.SOURCE, "<test>")
        link(unit)
        checker = Checker()
        first = list(checker.check(unit))
        second = list(checker.check(unit))
        assert first == second
        assert first

    def test_diagnostics_follow_source_order(self):
        assert codes(self.SOURCE) == [
            ErrorCode.DUPLICATE_DECLARATION,
            ErrorCode.MISSING_RETURN,
            ErrorCode.INVALID_BREAK_CONTINUE,
            ErrorCode.UNDEFINED_FUNCTION,
            ErrorCode.UNDEFINED_VARIABLE,
        ]

    def test_has_errors(self):
        unit = parse_source("int main() { break; return 0; }", "<test>")
        link(unit)
        checker = Checker()
        checker.check(unit)
        assert checker.has_errors()

    def test_warnings_are_not_errors(self):
        unit = parse_source("int main() { int x; return 0; }", "<test>")
        link(unit)
        checker = Checker()
        checker.check(unit)
        assert not checker.has_errors()
        assert checker.diagnostics[0].severity == Severity.WARNING

    def test_custom_registry(self):
        seen = []
        registry = CheckRegistry()
        registry.register(Decl, lambda node, ctx: seen.append(node))
        unit = parse_source("int a;\nint b;")
        link(unit)
        assert Checker(registry=registry).check(unit) == []
        assert len(seen) == 2

    def test_messages_enriched_by_default(self):
        diags = check_fails("int main() { return y; }", ErrorCode.UNDEFINED_VARIABLE)
        assert diags[0].message.startswith("use of undefined variable 'y'.")
        assert "\n\nDetails: " in diags[0].message
        assert "Suggestion: " in diags[0].message

    def test_enrichment_can_be_disabled(self):
        diags = diagnostics_for("int main() { return y; }", CheckConfig(enrich_messages=False))
        assert diags[0].message == "use of undefined variable 'y'."


class TestAnalyze:
    def test_clean_source(self):
        analysis = analyze("int main() { return 0; }")
        assert analysis.unit is not None
        assert analysis.symbols is not None
        assert not analysis.has_errors()

    def test_syntax_error_becomes_diagnostic(self):
        analysis = analyze("int a = 1\n")
        assert analysis.unit is None
        assert analysis.has_errors()
        diag = analysis.diagnostics[0]
        assert diag.code == ErrorCode.MISSING_SEMICOLON
        assert diag.category == Category.OTHER
        assert "Details:" in diag.message

    def test_lexer_error_becomes_diagnostic(self):
        analysis = analyze("int a = 1 # 2;")
        assert analysis.diagnostics[0].code == ErrorCode.SYNTAX_ERROR

    def test_non_ascii_digit_becomes_diagnostic(self):
        analysis = analyze("int a[²] = {1, 2};\n")
        assert analysis.unit is None
        assert analysis.diagnostics[0].code == ErrorCode.SYNTAX_ERROR
        assert "'²'" in analysis.diagnostics[0].message


class TestWireConversion:
    def test_lsp_diagnostic_shape(self):
        diag = check_fails("int arr[3] = {1,2,3,4,5};", ErrorCode.ARRAY_SIZE_OVERFLOW)[0]
        wire = to_lsp_diagnostic(diag)
        assert wire.code == "array-size-overflow"
        assert wire.source == "sysy"
        assert wire.severity == lsp.DiagnosticSeverity.Error
        assert wire.data["arrayName"] == "arr"
        assert wire.data["category"] == "ARR"
        assert wire.range.start == lsp.Position(line=0, character=13)
        assert wire.range.end == lsp.Position(line=0, character=24)

    def test_warning_severity(self):
        diag = check_warns("int main() { int x; return 0; }", ErrorCode.UNUSED_VARIABLE)[0]
        assert to_lsp_diagnostic(diag).severity == lsp.DiagnosticSeverity.Warning

    def test_custom_source(self):
        diag = check_fails("int main() { return y; }", ErrorCode.UNDEFINED_VARIABLE)[0]
        assert to_lsp_diagnostic(diag, "mine").source == "mine"
