"""Text scanning and edit construction shared by quick fixes and commands.

These helpers work on raw document text, not on the AST, so they keep
working on the live text of a document that no longer parses.
"""

from __future__ import annotations

import re
from typing import Any

from lsprotocol import types as lsp

from sysy.source import TextDocument
from sysy.types import default_value

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}

INDENT_UNIT = "    "


# ── Ranges ───────────────────────────────────────────────────────


def range_to_json(rng: lsp.Range) -> dict[str, Any]:
    return {
        "start": {"line": rng.start.line, "character": rng.start.character},
        "end": {"line": rng.end.line, "character": rng.end.character},
    }


def range_from_json(obj: lsp.Range | dict[str, Any]) -> lsp.Range:
    if isinstance(obj, lsp.Range):
        return obj
    start, end = obj["start"], obj["end"]
    return lsp.Range(
        start=lsp.Position(line=int(start["line"]), character=int(start["character"])),
        end=lsp.Position(line=int(end["line"]), character=int(end["character"])),
    )


def line_range(line: int) -> lsp.Range:
    """The whole of ``line`` including its newline."""
    return lsp.Range(
        start=lsp.Position(line=line, character=0),
        end=lsp.Position(line=line + 1, character=0),
    )


def point(line: int, character: int) -> lsp.Range:
    pos = lsp.Position(line=line, character=character)
    return lsp.Range(start=pos, end=pos)


def indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


# ── Bracket scanning ─────────────────────────────────────────────


def _skip_comment(text: str, i: int) -> int:
    """Index after a comment starting at ``i``, or ``i`` if there is none."""
    if text.startswith("//", i):
        end = text.find("\n", i)
        return len(text) if end == -1 else end
    if text.startswith("/*", i):
        end = text.find("*/", i + 2)
        return len(text) if end == -1 else end + 2
    return i


def find_matching(text: str, open_index: int) -> int | None:
    """Index of the bracket closing the one at ``open_index``."""
    stack: list[str] = []
    i = open_index
    while i < len(text):
        skipped = _skip_comment(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i
        i += 1
    return None


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on ``sep`` outside any brackets; parts are stripped."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


# ── Arrays ───────────────────────────────────────────────────────


def _size_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(name)}\s*\[\s*(\d+)\s*\]")


def initializer_elements(text: str, start: int = 0) -> list[str] | None:
    """Top-level elements of the first '= { ... }' initializer at or after ``start``."""
    eq = text.find("=", start)
    if eq == -1:
        return None
    brace = text.find("{", eq)
    if brace == -1 or text[eq + 1:brace].strip():
        return None
    close = find_matching(text, brace)
    if close is None:
        return None
    return split_top_level(text[brace + 1:close])


def resize_array(text: str, name: str) -> tuple[str, int, int] | None:
    """Grow ``name[N]`` in a declaration to its initializer's element count.

    Returns (new text, old size, new size), or None when nothing needs to
    change.
    """
    match = _size_pattern(name).search(text)
    if match is None:
        return None
    elements = initializer_elements(text, match.end())
    if elements is None:
        return None
    old_size = int(match.group(1))
    new_size = len(elements)
    if new_size <= old_size:
        return None
    new_text = text[: match.start()] + f"{name}[{new_size}]" + text[match.end():]
    return new_text, old_size, new_size


def trim_initializer(text: str, name: str) -> str | None:
    """Drop initializer elements beyond the declared size of ``name``."""
    match = _size_pattern(name).search(text)
    if match is None:
        return None
    size = int(match.group(1))
    eq = text.find("=", match.end())
    brace = text.find("{", eq) if eq != -1 else -1
    close = find_matching(text, brace) if brace != -1 else None
    if close is None:
        return None
    elements = split_top_level(text[brace + 1:close])
    if len(elements) <= size:
        return None
    return text[: brace + 1] + ", ".join(elements[:size]) + text[close:]


def declaration_extent(document: TextDocument, line: int) -> tuple[int, int]:
    """Offsets of the declaration starting on ``line``, up to and including ';'."""
    start = document.offset_at(lsp.Position(line=line, character=0))
    end = document.text.find(";", start)
    if end == -1:
        end = len(document.text)
    else:
        end += 1
    return start, end


def resize_array_edit(document: TextDocument, name: str, line: int) -> lsp.TextEdit | None:
    start, end = declaration_extent(document, line)
    resized = resize_array(document.text[start:end], name)
    if resized is None:
        return None
    rng = lsp.Range(start=document.position_at(start), end=document.position_at(end))
    return lsp.TextEdit(range=rng, new_text=resized[0])


# ── Calls ────────────────────────────────────────────────────────


_CALL_RE = re.compile(r"\b([A-Za-z_]\w*)\s*\(")


def find_call(
    document: TextDocument, rng: lsp.Range, name: str | None = None
) -> tuple[int, int, str, list[str]] | None:
    """Locate a call at or after the start of ``rng``.

    Returns (start offset, end offset, callee, argument texts).
    """
    offset = document.offset_at(rng.start)
    text = document.text
    for match in _CALL_RE.finditer(text, offset):
        if name is not None and match.group(1) != name:
            continue
        close = find_matching(text, match.end() - 1)
        if close is None:
            return None
        args = split_top_level(text[match.end():close])
        return match.start(), close + 1, match.group(1), args
    return None


def adjust_call_edit(
    document: TextDocument, rng: lsp.Range, expected: int, name: str | None = None
) -> lsp.TextEdit | None:
    """Pad the call's arguments with '0' or truncate them to ``expected``."""
    found = find_call(document, rng, name)
    if found is None:
        return None
    start, end, callee, args = found
    if len(args) == expected:
        return None
    args = args[:expected] + ["0"] * (expected - len(args))
    call_range = lsp.Range(start=document.position_at(start), end=document.position_at(end))
    return lsp.TextEdit(range=call_range, new_text=f"{callee}({', '.join(args)})")


# ── Returns ──────────────────────────────────────────────────────


def return_insertion_edit(
    document: TextDocument, rng: lsp.Range, return_type: str
) -> lsp.TextEdit | None:
    """Insert ``return <default>;`` before the closing brace of the function at ``rng``."""
    text = document.text
    open_index = text.find("{", document.offset_at(rng.start))
    if open_index == -1:
        return None
    close = find_matching(text, open_index)
    if close is None:
        return None

    statement = f"return {default_value(return_type)};"
    close_pos = document.position_at(close)
    close_line = document.line(close_pos.line)
    if close_line[: close_pos.character].strip():
        # Closing brace shares its line with code
        return lsp.TextEdit(range=point(close_pos.line, close_pos.character),
                            new_text=f"{statement} ")

    open_line = document.position_at(open_index).line
    indent = indent_of(close_line) + INDENT_UNIT
    for n in range(close_pos.line - 1, open_line, -1):
        if document.line(n).strip():
            indent = indent_of(document.line(n))
            break
    return lsp.TextEdit(range=point(close_pos.line, 0), new_text=f"{indent}{statement}\n")


def declaration_line(document: TextDocument, name: str, line: int) -> int | None:
    """Nearest line at or above ``line`` that declares ``name[N]``."""
    pattern = _size_pattern(name)
    for n in range(min(line, document.line_count - 1), -1, -1):
        if pattern.search(document.line(n)):
            return n
    return None
