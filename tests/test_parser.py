"""Tests for the SysY parser and reference linker."""

from __future__ import annotations

import pytest

from sysy.ast_nodes import (
    AssignStmt,
    BinaryExpr,
    Block,
    BreakStmt,
    CallExpr,
    Decl,
    ExprStmt,
    FloatLit,
    FuncDef,
    IfStmt,
    InitList,
    IntLit,
    LVal,
    Param,
    ReturnStmt,
    UnaryExpr,
    VarDef,
    WhileStmt,
    children,
    walk,
)
from sysy.checker import parse_source
from sysy.errors import CompileError, ErrorCode
from sysy.linker import RUNTIME_LIBRARY, is_runtime_function, link, literal_dims
from sysy.source import Span
from sysy.symbols import Symbol, SymbolKind, SymbolTable


def parse(source: str):
    return parse_source(source, "<test>")


def parse_errors(source: str):
    with pytest.raises(CompileError) as exc:
        parse(source)
    return exc.value.diagnostics


def main_body(source: str) -> list:
    unit = parse(source)
    return unit.functions[-1].body.items


class TestDeclarations:
    def test_global_scalar(self):
        unit = parse("int a = 1;")
        decl = unit.items[0]
        assert isinstance(decl, Decl)
        assert decl.btype == "int"
        assert not decl.is_const
        assert decl.defs[0].name == "a"
        assert isinstance(decl.defs[0].init, IntLit)

    def test_const_group(self):
        decl = parse("const float pi = 3.14, e = 2.71;").items[0]
        assert decl.is_const
        assert decl.btype == "float"
        assert [d.name for d in decl.defs] == ["pi", "e"]

    def test_array_with_nested_initializer(self):
        var = parse("int m[2][3] = {{1, 2, 3}, {4, 5, 6}};").items[0].defs[0]
        assert var.is_array
        assert len(var.dims) == 2
        assert isinstance(var.init, InitList)
        assert len(var.init.elements) == 2
        assert isinstance(var.init.elements[0], InitList)

    def test_empty_initializer_list(self):
        var = parse("int a[4] = {};").items[0].defs[0]
        assert var.init.elements == []

    def test_name_span(self):
        var = parse("int value = 1;").items[0].defs[0]
        assert (var.name_span.start_col, var.name_span.end_col) == (5, 9)

    def test_void_variable_rejected(self):
        diags = parse_errors("void x;")
        assert "void" in diags[0].message


class TestFunctions:
    def test_function_definition(self):
        func = parse("int add(int a, int b) { return a + b; }").items[0]
        assert isinstance(func, FuncDef)
        assert func.return_type == "int"
        assert [p.name for p in func.params] == ["a", "b"]
        assert func.signature == "int add(int a, int b)"

    def test_array_parameter(self):
        param = parse("void f(int a[], float m[][4]) {}").items[0].params[1]
        assert isinstance(param, Param)
        assert param.is_array
        assert len(param.dims) == 1

    def test_type_span_covers_return_type(self):
        func = parse("float f() { return 1.0; }").items[0]
        assert (func.type_span.start_col, func.type_span.end_col) == (1, 5)

    def test_function_span_ends_at_closing_brace(self):
        func = parse("int f() {\n  return 0;\n}").items[0]
        assert (func.span.end_line, func.span.end_col) == (3, 1)


class TestStatements:
    def test_assignment(self):
        stmt = main_body("int main() { int a; a = 2; return 0; }")[1]
        assert isinstance(stmt, AssignStmt)
        assert isinstance(stmt.target, LVal)

    def test_indexed_assignment(self):
        stmt = main_body("int main() { int a[3]; a[1] = 2; return 0; }")[1]
        assert isinstance(stmt.target, LVal)
        assert len(stmt.target.indices) == 1

    def test_if_else(self):
        stmt = main_body("int main() { if (1) return 1; else return 0; }")[0]
        assert isinstance(stmt, IfStmt)
        assert isinstance(stmt.then, ReturnStmt)
        assert isinstance(stmt.otherwise, ReturnStmt)

    def test_dangling_else_binds_inner(self):
        stmt = main_body("int main() { if (1) if (0) return 1; else return 2; return 0; }")[0]
        assert stmt.otherwise is None
        assert stmt.then.otherwise is not None

    def test_while_with_break(self):
        stmt = main_body("int main() { while (1) { break; } return 0; }")[0]
        assert isinstance(stmt, WhileStmt)
        assert isinstance(stmt.body, Block)
        assert isinstance(stmt.body.items[0], BreakStmt)

    def test_empty_statement(self):
        stmt = main_body("int main() { ; return 0; }")[0]
        assert isinstance(stmt, ExprStmt)
        assert stmt.expr is None

    def test_call_statement(self):
        stmt = main_body("int main() { putint(1); return 0; }")[0]
        assert isinstance(stmt.expr, CallExpr)

    def test_assign_to_non_lvalue(self):
        diags = parse_errors("int main() { 1 = 2; return 0; }")
        assert "left side of assignment" in diags[0].message


class TestExpressions:
    def expr(self, text: str):
        return main_body(f"int main() {{ return {text}; }}")[0].value

    def test_precedence(self):
        e = self.expr("1 + 2 * 3")
        assert isinstance(e, BinaryExpr)
        assert e.op == "+"
        assert e.right.op == "*"

    def test_left_associative(self):
        e = self.expr("8 - 4 - 2")
        assert e.op == "-"
        assert isinstance(e.left, BinaryExpr)

    def test_logical_precedence(self):
        e = self.expr("a || b && c")
        assert e.op == "||"
        assert e.right.op == "&&"

    def test_relational_below_additive(self):
        e = self.expr("a + 1 < b")
        assert e.op == "<"

    def test_unary(self):
        e = self.expr("-!a")
        assert isinstance(e, UnaryExpr)
        assert e.op == "-"
        assert e.operand.op == "!"

    def test_parentheses(self):
        e = self.expr("(1 + 2) * 3")
        assert e.op == "*"
        assert e.left.op == "+"

    def test_float_literal(self):
        assert isinstance(self.expr("1.5"), FloatLit)

    def test_call_with_arguments(self):
        e = self.expr("f(1, g(2), a[0])")
        assert isinstance(e, CallExpr)
        assert len(e.args) == 3


class TestSyntaxErrors:
    def test_missing_semicolon(self):
        diags = parse_errors("int a = 1\nint b;")
        assert len(diags) == 1
        assert diags[0].code == ErrorCode.MISSING_SEMICOLON
        assert "after '1'" in diags[0].message
        assert (diags[0].span.start_line, diags[0].span.start_col) == (1, 9)

    def test_missing_closing_paren(self):
        diags = parse_errors("int main() { putint(1; return 0; }")
        assert diags[0].code == ErrorCode.UNMATCHED_BRACKETS
        assert diags[0].data["expected"] == ")"

    def test_missing_opening_paren_after_if(self):
        diags = parse_errors("int main() { if 1) return 1; return 0; }")
        assert diags[0].code == ErrorCode.UNMATCHED_BRACKETS
        assert diags[0].data["expected"] == "("
        assert "after 'if'" in diags[0].message

    def test_missing_closing_bracket(self):
        diags = parse_errors("int a[3 = {1};")
        assert diags[0].code == ErrorCode.UNMATCHED_BRACKETS
        assert diags[0].data["expected"] == "]"

    def test_generic_syntax_error(self):
        diags = parse_errors("int main() { return +; }")
        assert diags[0].code == ErrorCode.SYNTAX_ERROR

    def test_recovers_and_reports_several(self):
        diags = parse_errors("int main() { int a = ; int b = ; return 0; }")
        assert len(diags) == 2

    def test_stray_top_level_token(self):
        diags = parse_errors("} int main() { return 0; }")
        assert diags[0].code == ErrorCode.SYNTAX_ERROR


class TestWalk:
    def test_walk_is_preorder(self):
        unit = parse("int main() { int a = 1; return a; }")
        nodes = list(walk(unit))
        assert nodes[0] is unit
        assert isinstance(nodes[1], FuncDef)
        assert isinstance(nodes[2], Block)

    def test_children_of_unknown_kind(self):
        with pytest.raises(TypeError):
            children("not a node")


class TestLinker:
    def test_local_variable_resolves(self):
        unit = parse("int main() { int x = 1; return x; }")
        link(unit)
        body = unit.functions[0].body.items
        var = body[0].defs[0]
        assert body[1].value.ref.target is var

    def test_global_variable_resolves(self):
        unit = parse("int g = 1;\nint main() { return g; }")
        link(unit)
        assert unit.functions[0].body.items[0].value.ref.target is unit.items[0].defs[0]

    def test_parameter_resolves(self):
        unit = parse("int id(int v) { return v; }")
        link(unit)
        func = unit.functions[0]
        assert func.body.items[0].value.ref.target is func.params[0]

    def test_inner_block_shadows(self):
        unit = parse("int main() { int x = 1; { int x = 2; putint(x); } return x; }")
        link(unit)
        body = unit.functions[0].body.items
        outer = body[0].defs[0]
        inner = body[1].items[0].defs[0]
        call = body[1].items[1].expr
        assert call.args[0].ref.target is inner
        assert body[2].value.ref.target is outer

    def test_block_variable_out_of_scope_after_block(self):
        unit = parse("int main() { { int y = 1; } return y; }")
        link(unit)
        assert not unit.functions[0].body.items[1].value.ref.resolved

    def test_variable_not_visible_in_own_initializer(self):
        unit = parse("int main() { int x = x; return 0; }")
        link(unit)
        var = unit.functions[0].body.items[0].defs[0]
        assert not var.init.ref.resolved

    def test_call_before_definition_resolves(self):
        unit = parse("int main() { return g(); }\nint g() { return 1; }")
        link(unit)
        call = unit.functions[0].body.items[0].value
        assert call.ref.target is unit.functions[1]

    def test_runtime_function_resolves(self):
        unit = parse("int main() { return getint(); }")
        link(unit)
        target = unit.functions[0].body.items[0].value.ref.target
        assert target is RUNTIME_LIBRARY["getint"]
        assert is_runtime_function(target)

    def test_user_function_shadows_runtime(self):
        unit = parse("int getint() { return 7; }\nint main() { return getint(); }")
        link(unit)
        target = unit.functions[1].body.items[0].value.ref.target
        assert target is unit.functions[0]
        assert not is_runtime_function(target)

    def test_variable_called_as_function_is_unresolved(self):
        unit = parse("int f = 1;\nint main() { return f(); }")
        link(unit)
        assert not unit.functions[0].body.items[0].value.ref.resolved

    def test_local_cannot_shadow_call_target(self):
        unit = parse("int g() { return 1; }\nint main() { int g = 2; return g(); }")
        link(unit)
        assert unit.functions[1].body.items[1].value.ref.target is unit.functions[0]

    def test_duplicate_in_group_keeps_first(self):
        unit = parse("int main() { int a = 1, a = 2; return a; }")
        link(unit)
        decl = unit.functions[0].body.items[0]
        assert unit.functions[0].body.items[1].value.ref.target is decl.defs[0]

    def test_symbol_table(self):
        unit = parse("const int N = 010;\nint arr[N][0x4];\nint main() { return 0; }")
        table = link(unit)
        n = table.global_scope.lookup_local("N")
        assert n.kind == SymbolKind.VARIABLE
        assert n.is_const
        arr = table.global_scope.lookup_local("arr")
        assert arr.kind == SymbolKind.ARRAY
        assert arr.dims == (None, 4)
        assert table.global_scope.lookup_local("main").kind == SymbolKind.FUNCTION
        assert table.global_scope.lookup_local("putint") is not None

    def test_literal_dims(self):
        var = parse("int a[010][0x10][7];").items[0].defs[0]
        assert literal_dims(var.dims) == (8, 16, 7)

    def test_init_count(self):
        table = link(parse("int a[5] = {1, 2, 3};"))
        assert table.global_scope.lookup_local("a").init_count == 3

    def test_all_parse_tree_vardefs_reachable(self):
        unit = parse("int a;\nint main() { int b; { int c; } return 0; }")
        names = [n.name for n in walk(unit) if isinstance(n, VarDef)]
        assert names == ["a", "b", "c"]


class TestSymbolTable:
    def test_define_keeps_first(self):
        table = link(parse("int a;"))
        scope = table.global_scope
        first = scope.lookup_local("a")
        duplicate = Symbol("a", SymbolKind.VARIABLE, "float", first.span, first.node)
        assert scope.define(duplicate) is first
        assert scope.lookup("a") is first
        assert first.type_name == "int"

    def test_nested_scopes(self):
        table = SymbolTable()
        assert table.global_scope.is_global
        inner = table.push_scope("block")
        assert not inner.is_global
        span = Span("<test>", 1, 1, 1, 1)
        table.define(Symbol("x", SymbolKind.VARIABLE, "int", span, None))
        assert table.lookup("x") is not None
        popped = table.pop_scope()
        assert table.lookup("x") is None
        assert popped is inner
        assert popped.lookup_local("x") is not None

    def test_global_scope_cannot_be_popped(self):
        with pytest.raises(RuntimeError):
            SymbolTable().pop_scope()
