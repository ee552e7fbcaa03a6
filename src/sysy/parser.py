"""Parser for SysY.

Transforms a token stream into an AST using a Pratt expression parser
for expressions and recursive descent for declarations and statements.
"""

from __future__ import annotations

from typing import Any

from sysy.ast_nodes import (
    AssignStmt,
    BinaryExpr,
    Block,
    BlockItem,
    BreakStmt,
    CallExpr,
    CompUnit,
    ContinueStmt,
    Decl,
    Expr,
    ExprStmt,
    FloatLit,
    FuncDef,
    IfStmt,
    InitList,
    InitVal,
    IntLit,
    LVal,
    Param,
    Reference,
    ReturnStmt,
    Stmt,
    TopLevel,
    UnaryExpr,
    VarDef,
    WhileStmt,
)
from sysy.errors import CompileError, Diagnostic, DiagnosticLabel, ErrorCode, Severity
from sysy.source import Span
from sysy.tokens import Token, TokenKind

# ── Binding powers for Pratt parser ─────────────────────────────

# (left_bp, right_bp) for infix operators
_INFIX_BP: dict[TokenKind, tuple[int, int]] = {
    TokenKind.OR: (1, 2),
    TokenKind.AND: (3, 4),
    TokenKind.EQUAL: (5, 6),
    TokenKind.NOT_EQUAL: (5, 6),
    TokenKind.LESS: (7, 8),
    TokenKind.GREATER: (7, 8),
    TokenKind.LESS_EQUAL: (7, 8),
    TokenKind.GREATER_EQUAL: (7, 8),
    TokenKind.PLUS: (9, 10),
    TokenKind.MINUS: (9, 10),
    TokenKind.STAR: (11, 12),
    TokenKind.SLASH: (11, 12),
    TokenKind.PERCENT: (11, 12),
}

_PREFIX_BP = 13  # right bp for unary + - !

_PREFIX_OPS = frozenset({TokenKind.PLUS, TokenKind.MINUS, TokenKind.BANG})
_BASE_TYPES = frozenset({TokenKind.INT, TokenKind.FLOAT})
_RETURN_TYPES = frozenset({TokenKind.INT, TokenKind.FLOAT, TokenKind.VOID})


class Parser:
    """Parses a list of tokens into a SysY AST."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>") -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self.diagnostics: list[Diagnostic] = []

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _previous(self) -> Token:
        if self.pos > 0:
            return self.tokens[self.pos - 1]
        return self._current()

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind, what: str) -> Token:
        if self._current().kind == kind:
            return self._advance()
        tok = self._current()
        self._error(f"expected {what}, got {_describe(tok)}", tok.span)
        raise _ParseError

    def _expect_semicolon(self) -> Span:
        """Consume ';' or report it missing right after the previous token."""
        if self._at(TokenKind.SEMICOLON):
            return self._advance().span
        prev = self._previous()
        self._error(
            f"missing semicolon after '{prev.value}'.", prev.span,
            code=ErrorCode.MISSING_SEMICOLON,
        )
        return prev.span

    def _expect_closing(self, kind: TokenKind, bracket: str) -> Span:
        """Consume a closing bracket or report it missing after the previous token."""
        if self._at(kind):
            return self._advance().span
        prev = self._previous()
        self._error(
            f"unmatched bracket: missing '{bracket}' after '{prev.value}'.", prev.span,
            code=ErrorCode.UNMATCHED_BRACKETS, expected=bracket,
        )
        return prev.span

    def _expect_opening_paren(self, keyword: str) -> None:
        if self._at(TokenKind.LPAREN):
            self._advance()
            return
        tok = self._current()
        self._error(
            f"unmatched bracket: missing '(' after '{keyword}'.", tok.span,
            code=ErrorCode.UNMATCHED_BRACKETS, expected="(",
        )

    def _error(
        self,
        message: str,
        span: Span,
        code: ErrorCode = ErrorCode.SYNTAX_ERROR,
        **data: Any,
    ) -> None:
        self.diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                code=code,
                message=message,
                labels=[DiagnosticLabel(span=span, message="")],
                data=data,
            )
        )

    def _span(self, start: Span, end: Span) -> Span:
        """Build a Span from a start span to an end span."""
        return Span(
            self.filename,
            start.start_line, start.start_col,
            end.end_line, end.end_col,
        )

    def _synchronize(self, *, top_level: bool = False) -> None:
        """Skip tokens until a statement boundary.

        Stops after ';'. Stops before '}' inside a block, so the block can
        close; at top level the stray '}' is consumed.
        """
        while not self._at(TokenKind.EOF):
            if self._at(TokenKind.SEMICOLON):
                self._advance()
                return
            if self._at(TokenKind.RBRACE):
                if top_level:
                    self._advance()
                return
            self._advance()

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> CompUnit:
        """Parse the entire token stream into a CompUnit."""
        items: list[TopLevel] = []

        while not self._at(TokenKind.EOF):
            try:
                items.append(self._parse_top_level())
            except _ParseError:
                self._synchronize(top_level=True)

        end = self._current().span
        span = Span(self.filename, 1, 1, end.end_line, end.end_col)
        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return CompUnit(items=items, span=span)

    def _parse_top_level(self) -> TopLevel:
        tok = self._current()
        if tok.kind == TokenKind.CONST:
            return self._parse_decl()
        if tok.kind in _RETURN_TYPES:
            if (self._peek(1).kind == TokenKind.IDENTIFIER
                    and self._peek(2).kind == TokenKind.LPAREN):
                return self._parse_func_def()
            if tok.kind == TokenKind.VOID:
                self._error("variables cannot have type 'void'", tok.span)
                raise _ParseError
            return self._parse_decl()
        self._error(
            f"expected a declaration or function definition, got {_describe(tok)}",
            tok.span,
        )
        raise _ParseError

    # ── Declarations ─────────────────────────────────────────────

    def _parse_decl(self) -> Decl:
        start = self._current().span
        is_const = False
        if self._at(TokenKind.CONST):
            self._advance()
            is_const = True
        btype = self._parse_btype()
        defs = [self._parse_var_def()]
        while self._at(TokenKind.COMMA):
            self._advance()
            defs.append(self._parse_var_def())
        end = self._expect_semicolon()
        return Decl(is_const, btype.value, defs, self._span(start, end))

    def _parse_btype(self) -> Token:
        tok = self._current()
        if tok.kind in _BASE_TYPES:
            return self._advance()
        self._error(f"expected 'int' or 'float', got {_describe(tok)}", tok.span)
        raise _ParseError

    def _parse_var_def(self) -> VarDef:
        name_tok = self._expect(TokenKind.IDENTIFIER, "a variable name")
        end = name_tok.span
        dims: list[Expr] = []
        while self._at(TokenKind.LBRACKET):
            self._advance()
            dims.append(self._parse_expression(0))
            end = self._expect_closing(TokenKind.RBRACKET, "]")
        init: InitVal | None = None
        if self._at(TokenKind.ASSIGN):
            self._advance()
            init = self._parse_init_val()
            end = init.span
        return VarDef(name_tok.value, dims, init, self._span(name_tok.span, end), name_tok.span)

    def _parse_init_val(self) -> InitVal:
        if not self._at(TokenKind.LBRACE):
            return self._parse_expression(0)
        start = self._advance().span
        elements: list[InitVal] = []
        if not self._at(TokenKind.RBRACE):
            elements.append(self._parse_init_val())
            while self._at(TokenKind.COMMA):
                self._advance()
                elements.append(self._parse_init_val())
        end = self._expect_closing(TokenKind.RBRACE, "}")
        return InitList(elements, self._span(start, end))

    # ── Functions ────────────────────────────────────────────────

    def _parse_func_def(self) -> FuncDef:
        type_tok = self._advance()
        name_tok = self._expect(TokenKind.IDENTIFIER, "a function name")
        self._expect(TokenKind.LPAREN, "'('")
        params: list[Param] = []
        if not self._at(TokenKind.RPAREN):
            params.append(self._parse_param())
            while self._at(TokenKind.COMMA):
                self._advance()
                params.append(self._parse_param())
        self._expect_closing(TokenKind.RPAREN, ")")
        body = self._parse_block()
        return FuncDef(
            return_type=type_tok.value,
            name=name_tok.value,
            params=params,
            body=body,
            span=self._span(type_tok.span, body.span),
            name_span=name_tok.span,
            type_span=type_tok.span,
        )

    def _parse_param(self) -> Param:
        btype = self._parse_btype()
        name_tok = self._expect(TokenKind.IDENTIFIER, "a parameter name")
        end = name_tok.span
        is_array = False
        dims: list[Expr] = []
        if self._at(TokenKind.LBRACKET):
            self._advance()
            end = self._expect_closing(TokenKind.RBRACKET, "]")
            is_array = True
            while self._at(TokenKind.LBRACKET):
                self._advance()
                dims.append(self._parse_expression(0))
                end = self._expect_closing(TokenKind.RBRACKET, "]")
        return Param(btype.value, name_tok.value, is_array, dims,
                     self._span(btype.span, end), name_tok.span)

    # ── Statements ───────────────────────────────────────────────

    def _parse_block(self) -> Block:
        start = self._expect(TokenKind.LBRACE, "'{'").span
        items: list[BlockItem] = []
        while not self._at_any(TokenKind.RBRACE, TokenKind.EOF):
            try:
                items.append(self._parse_block_item())
            except _ParseError:
                self._synchronize()
        end = self._expect_closing(TokenKind.RBRACE, "}")
        return Block(items, self._span(start, end))

    def _parse_block_item(self) -> BlockItem:
        if self._at_any(TokenKind.CONST, TokenKind.INT, TokenKind.FLOAT):
            return self._parse_decl()
        return self._parse_stmt()

    def _parse_stmt(self) -> Stmt:
        tok = self._current()

        if tok.kind == TokenKind.LBRACE:
            return self._parse_block()

        if tok.kind == TokenKind.IF:
            self._advance()
            self._expect_opening_paren("if")
            cond = self._parse_expression(0)
            self._expect_closing(TokenKind.RPAREN, ")")
            then = self._parse_stmt()
            otherwise: Stmt | None = None
            if self._at(TokenKind.ELSE):
                self._advance()
                otherwise = self._parse_stmt()
            end = (otherwise or then).span
            return IfStmt(cond, then, otherwise, self._span(tok.span, end))

        if tok.kind == TokenKind.WHILE:
            self._advance()
            self._expect_opening_paren("while")
            cond = self._parse_expression(0)
            self._expect_closing(TokenKind.RPAREN, ")")
            body = self._parse_stmt()
            return WhileStmt(cond, body, self._span(tok.span, body.span))

        if tok.kind == TokenKind.BREAK:
            self._advance()
            end = self._expect_semicolon()
            return BreakStmt(self._span(tok.span, end))

        if tok.kind == TokenKind.CONTINUE:
            self._advance()
            end = self._expect_semicolon()
            return ContinueStmt(self._span(tok.span, end))

        if tok.kind == TokenKind.RETURN:
            self._advance()
            value: Expr | None = None
            if not self._at(TokenKind.SEMICOLON):
                value = self._parse_expression(0)
            end = self._expect_semicolon()
            return ReturnStmt(value, self._span(tok.span, end))

        if tok.kind == TokenKind.SEMICOLON:
            self._advance()
            return ExprStmt(None, tok.span)

        expr = self._parse_expression(0)
        if self._at(TokenKind.ASSIGN):
            assign_tok = self._advance()
            if not isinstance(expr, LVal):
                self._error("left side of assignment must be a variable", assign_tok.span)
                raise _ParseError
            value = self._parse_expression(0)
            end = self._expect_semicolon()
            return AssignStmt(expr, value, self._span(expr.span, end))
        end = self._expect_semicolon()
        return ExprStmt(expr, self._span(expr.span, end))

    # ── Pratt expression parser ──────────────────────────────────

    def _parse_expression(self, min_bp: int) -> Expr:
        """Parse an expression using Pratt parsing with binding powers."""
        left = self._parse_prefix()

        while True:
            tok = self._current()
            if tok.kind not in _INFIX_BP:
                break
            left_bp, right_bp = _INFIX_BP[tok.kind]
            if left_bp < min_bp:
                break
            self._advance()
            right = self._parse_expression(right_bp)
            left = BinaryExpr(left, tok.value, right, self._span(left.span, right.span))

        return left

    def _parse_prefix(self) -> Expr:
        """Parse a prefix expression (atom or unary operator)."""
        tok = self._current()

        if tok.kind in _PREFIX_OPS:
            self._advance()
            operand = self._parse_expression(_PREFIX_BP)
            return UnaryExpr(tok.value, operand, self._span(tok.span, operand.span))

        if tok.kind == TokenKind.INTEGER_LIT:
            self._advance()
            return IntLit(tok.value, tok.span)

        if tok.kind == TokenKind.FLOAT_LIT:
            self._advance()
            return FloatLit(tok.value, tok.span)

        if tok.kind == TokenKind.LPAREN:
            self._advance()
            expr = self._parse_expression(0)
            self._expect_closing(TokenKind.RPAREN, ")")
            return expr

        if tok.kind == TokenKind.IDENTIFIER:
            if self._peek(1).kind == TokenKind.LPAREN:
                return self._parse_call()
            return self._parse_lval()

        self._error(f"unexpected {_describe(tok)} in expression", tok.span)
        raise _ParseError

    def _parse_call(self) -> CallExpr:
        name_tok = self._advance()
        self._advance()  # (
        args: list[Expr] = []
        if not self._at(TokenKind.RPAREN):
            args.append(self._parse_expression(0))
            while self._at(TokenKind.COMMA):
                self._advance()
                args.append(self._parse_expression(0))
        end = self._expect_closing(TokenKind.RPAREN, ")")
        ref = Reference(name_tok.value, name_tok.span)
        return CallExpr(ref, args, self._span(name_tok.span, end))

    def _parse_lval(self) -> LVal:
        name_tok = self._advance()
        end = name_tok.span
        indices: list[Expr] = []
        while self._at(TokenKind.LBRACKET):
            self._advance()
            indices.append(self._parse_expression(0))
            end = self._expect_closing(TokenKind.RBRACKET, "]")
        ref = Reference(name_tok.value, name_tok.span)
        return LVal(ref, indices, self._span(name_tok.span, end))


def _describe(tok: Token) -> str:
    if tok.kind == TokenKind.EOF:
        return "end of input"
    return f"'{tok.value}'"


class _ParseError(Exception):
    """Internal exception for parser error recovery."""
