"""Source spans, text documents and text-edit application."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lsprotocol import types as lsp


@dataclass(frozen=True)
class Span:
    """A range within a source file (1-indexed, end column inclusive)."""

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    def contains(self, line: int, col: int) -> bool:
        """True if the 1-indexed position lies inside the span.

        The position right after the last character still counts, so a
        cursor placed at the end of a word hits it.
        """
        if (line, col) < (self.start_line, self.start_col):
            return False
        return (line, col) <= (self.end_line, self.end_col + 1)


class TextDocument:
    """A snapshot of a document's text with 0-indexed LSP position helpers."""

    def __init__(self, uri: str, text: str) -> None:
        self.uri = uri
        self.text = text
        self.lines = text.split("\n")

    @classmethod
    def from_path(cls, path: Path) -> TextDocument:
        return cls(path.resolve().as_uri(), path.read_text())

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line(self, n: int) -> str:
        """Return the 0-indexed line without its newline, or '' if out of range."""
        if 0 <= n < len(self.lines):
            return self.lines[n]
        return ""

    def offset_at(self, position: lsp.Position) -> int:
        """Convert a position to an offset, clamping to the document."""
        if position.line >= len(self.lines):
            return len(self.text)
        offset = sum(len(ln) + 1 for ln in self.lines[: position.line])
        return offset + min(position.character, len(self.lines[position.line]))

    def position_at(self, offset: int) -> lsp.Position:
        offset = max(0, min(offset, len(self.text)))
        before = self.text[:offset]
        line = before.count("\n")
        character = offset - (before.rfind("\n") + 1)
        return lsp.Position(line=line, character=character)

    def get_text(self, rng: lsp.Range | None = None) -> str:
        if rng is None:
            return self.text
        return self.text[self.offset_at(rng.start) : self.offset_at(rng.end)]


def apply_text_edits(text: str, edits: list[lsp.TextEdit]) -> str:
    """Apply non-overlapping edits, bottom-up so offsets stay valid."""
    doc = TextDocument("", text)
    spans = sorted(
        ((doc.offset_at(e.range.start), doc.offset_at(e.range.end), e.new_text)
         for e in edits),
        key=lambda item: (item[0], item[1]),
        reverse=True,
    )
    result = text
    for start, end, new_text in spans:
        result = result[:start] + new_text + result[end:]
    return result


def span_to_range(span: Span) -> lsp.Range:
    """Convert a 1-indexed Span to a 0-indexed LSP Range."""
    return lsp.Range(
        start=lsp.Position(line=span.start_line - 1, character=span.start_col - 1),
        end=lsp.Position(line=span.end_line - 1, character=span.end_col),
    )
