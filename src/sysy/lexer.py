"""Lexer for SysY.

Produces a flat token stream from source text. Whitespace and comments are
dropped; every token carries a 1-indexed inclusive span.
"""

from __future__ import annotations

from sysy.errors import CompileError, Diagnostic, DiagnosticLabel, ErrorCode, Severity
from sysy.source import Span
from sysy.tokens import (
    KEYWORDS,
    SINGLE_CHAR_TOKENS,
    TWO_CHAR_OPERATORS,
    Token,
    TokenKind,
)

_HEX_DIGITS = "0123456789abcdefABCDEF"
_DIGITS = "0123456789"


class Lexer:
    """Tokenizes SysY source code."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: list[Token] = []
        self.diagnostics: list[Diagnostic] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in " \t\r\n":
                self._advance()
            elif ch == '/' and self._peek(1) == '/':
                self._skip_line_comment()
            elif ch == '/' and self._peek(1) == '*':
                self._skip_block_comment()
            elif ch in _DIGITS or (ch == '.' and self._peek(1) in _DIGITS):
                self._lex_number()
            elif (ch.isascii() and ch.isalpha()) or ch == '_':
                self._lex_identifier()
            else:
                self._lex_operator_or_punct()

        self._emit(TokenKind.EOF, "", self.line, self.col)

        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _is_ident_char(self) -> bool:
        ch = self.source[self.pos]
        return (ch.isascii() and ch.isalnum()) or ch == '_'

    def _emit(self, kind: TokenKind, value: str, start_line: int, start_col: int) -> Token:
        end_col = self.col - 1 if self.col > 1 else 1
        span = Span(self.filename, start_line, start_col, self.line, end_col)
        tok = Token(kind, value, span)
        self.tokens.append(tok)
        return tok

    def _error(self, message: str, line: int, col: int) -> None:
        span = Span(self.filename, line, col, line, col)
        self.diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                code=ErrorCode.SYNTAX_ERROR,
                message=message,
                labels=[DiagnosticLabel(span=span, message="")],
            )
        )

    # ── Comments ─────────────────────────────────────────────────

    def _skip_line_comment(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] != '\n':
            self._advance()

    def _skip_block_comment(self) -> None:
        start_line = self.line
        start_col = self.col
        self._advance()  # /
        self._advance()  # *
        while self.pos < len(self.source):
            if self.source[self.pos] == '*' and self._peek(1) == '/':
                self._advance()
                self._advance()
                return
            self._advance()
        self._error("unterminated block comment", start_line, start_col)

    # ── Numbers ──────────────────────────────────────────────────

    def _lex_number(self) -> None:
        start_line = self.line
        start_col = self.col
        text: list[str] = []

        if self.source[self.pos] == '0' and self._peek(1) in ('x', 'X'):
            text.append(self._advance())  # 0
            text.append(self._advance())  # x
            while self.pos < len(self.source) and self.source[self.pos] in _HEX_DIGITS:
                text.append(self._advance())
            if len(text) == 2:
                self._error("hexadecimal literal has no digits", start_line, start_col)
            self._emit(TokenKind.INTEGER_LIT, ''.join(text), start_line, start_col)
            return

        is_float = False
        self._lex_digits(text)
        if self.pos < len(self.source) and self.source[self.pos] == '.':
            is_float = True
            text.append(self._advance())
            self._lex_digits(text)
        if self.pos < len(self.source) and self.source[self.pos] in ('e', 'E'):
            sign = self._peek(1)
            exp_start = 2 if sign in ('+', '-') else 1
            if self._peek(exp_start) in _DIGITS:
                is_float = True
                text.append(self._advance())  # e
                if exp_start == 2:
                    text.append(self._advance())  # sign
                self._lex_digits(text)

        value = ''.join(text)
        if is_float:
            self._emit(TokenKind.FLOAT_LIT, value, start_line, start_col)
            return
        if len(value) > 1 and value.startswith('0') and any(c in '89' for c in value):
            self._error(f"invalid octal literal '{value}'", start_line, start_col)
        self._emit(TokenKind.INTEGER_LIT, value, start_line, start_col)

    def _lex_digits(self, text: list[str]) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in _DIGITS:
            text.append(self._advance())

    # ── Identifiers and Keywords ─────────────────────────────────

    def _lex_identifier(self) -> None:
        start_line = self.line
        start_col = self.col
        text: list[str] = []
        while self.pos < len(self.source) and self._is_ident_char():
            text.append(self._advance())
        word = ''.join(text)
        kind = KEYWORDS.get(word, TokenKind.IDENTIFIER)
        self._emit(kind, word, start_line, start_col)

    # ── Operators and Punctuation ────────────────────────────────

    def _lex_operator_or_punct(self) -> None:
        start_line = self.line
        start_col = self.col

        pair = self.source[self.pos:self.pos + 2]
        if pair in TWO_CHAR_OPERATORS:
            self._advance()
            self._advance()
            self._emit(TWO_CHAR_OPERATORS[pair], pair, start_line, start_col)
            return

        ch = self.source[self.pos]
        kind = SINGLE_CHAR_TOKENS.get(ch)
        self._advance()
        if kind is None:
            self._error(f"unexpected character '{ch}'", start_line, start_col)
            return
        self._emit(kind, ch, start_line, start_col)
