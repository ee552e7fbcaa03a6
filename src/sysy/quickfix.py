"""Quick fixes: turning diagnostics back into code actions.

A resolver takes one diagnostic and the current document text and returns
at most one code action. Resolvers are bound to diagnostic codes and to
message substrings in an immutable FixRegistry; code bindings win. Once a
primary resolver produced an action, the additional resolvers bound to the
same key may contribute further alternatives.

Resolvers read the structured payload in ``diagnostic.data`` first. When it
is missing they fall back to the message text and to the source line under
the diagnostic range.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from lsprotocol import types as lsp

from sysy.config import RefactorConfig
from sysy.edits import (
    adjust_call_edit,
    declaration_extent,
    declaration_line,
    find_call,
    indent_of,
    line_range,
    point,
    range_to_json,
    resize_array,
    return_insertion_edit,
    split_top_level,
    trim_initializer,
)
from sysy.errors import ErrorCode
from sysy.source import TextDocument
from sysy.types import FLOAT, INT, default_value

logger = logging.getLogger(__name__)

Resolver = Callable[[lsp.Diagnostic, TextDocument], "lsp.CodeAction | None"]

FIX_ARRAY_SIZE = "sysy.fixArraySize"
ADJUST_PARAMETERS = "sysy.adjustParameters"
ADD_RETURN_STATEMENT = "sysy.addReturnStatement"
EXTRACT_FUNCTION = "sysy.extractFunction"
GENERIC_FIX = "sysy.genericFix"


# ── Registry ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class FixRegistry:
    by_code: Mapping[str, Resolver]
    by_pattern: Mapping[str, Resolver]
    additional_by_code: Mapping[str, tuple[Resolver, ...]]
    additional_by_pattern: Mapping[str, tuple[Resolver, ...]]


def _key(code: ErrorCode | str) -> str:
    return code.value if isinstance(code, Enum) else str(code)


class FixRegistryBuilder:
    """Collects resolver bindings, then freezes them into a FixRegistry."""

    def __init__(self) -> None:
        self._by_code: dict[str, Resolver] = {}
        self._by_pattern: dict[str, Resolver] = {}
        self._additional_by_code: dict[str, tuple[Resolver, ...]] = {}
        self._additional_by_pattern: dict[str, tuple[Resolver, ...]] = {}

    def on_code(
        self, code: ErrorCode | str, resolver: Resolver, *additional: Resolver
    ) -> FixRegistryBuilder:
        self._by_code[_key(code)] = resolver
        if additional:
            self._additional_by_code[_key(code)] = additional
        return self

    def on_message(
        self, pattern: str, resolver: Resolver, *additional: Resolver
    ) -> FixRegistryBuilder:
        self._by_pattern[pattern] = resolver
        if additional:
            self._additional_by_pattern[pattern] = additional
        return self

    def build(self) -> FixRegistry:
        return FixRegistry(
            by_code=MappingProxyType(dict(self._by_code)),
            by_pattern=MappingProxyType(dict(self._by_pattern)),
            additional_by_code=MappingProxyType(dict(self._additional_by_code)),
            additional_by_pattern=MappingProxyType(dict(self._additional_by_pattern)),
        )


# ── Helpers ──────────────────────────────────────────────────────


def _payload(diagnostic: lsp.Diagnostic) -> dict[str, Any]:
    return diagnostic.data if isinstance(diagnostic.data, dict) else {}


def _from_message(diagnostic: lsp.Diagnostic, pattern: str) -> str | None:
    """Fallback: first group of ``pattern`` in the message."""
    match = re.search(pattern, diagnostic.message or "")
    return match.group(1) if match else None


def _name(diagnostic: lsp.Diagnostic, field: str) -> str | None:
    value = _payload(diagnostic).get(field)
    if value:
        return str(value)
    return _from_message(diagnostic, r"'([A-Za-z_]\w*)'")


def _count(diagnostic: lsp.Diagnostic, field: str, pattern: str) -> int | None:
    value = _payload(diagnostic).get(field)
    if value is None:
        value = _from_message(diagnostic, pattern)
    return int(value) if value is not None else None


def _edit_action(
    title: str,
    diagnostic: lsp.Diagnostic | None,
    document: TextDocument,
    edits: list[lsp.TextEdit],
    kind: str = lsp.CodeActionKind.QuickFix,
) -> lsp.CodeAction:
    return lsp.CodeAction(
        title=title,
        kind=kind,
        diagnostics=[diagnostic] if diagnostic is not None else None,
        edit=lsp.WorkspaceEdit(changes={document.uri: edits}),
    )


def _command_action(
    title: str,
    diagnostic: lsp.Diagnostic | None,
    command: str,
    arguments: list[Any],
    kind: str = lsp.CodeActionKind.QuickFix,
) -> lsp.CodeAction:
    return lsp.CodeAction(
        title=title,
        kind=kind,
        diagnostics=[diagnostic] if diagnostic is not None else None,
        command=lsp.Command(title=title, command=command, arguments=arguments),
    )


# ── Variables ────────────────────────────────────────────────────


def declare_variable(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    name = _name(diagnostic, "variableName")
    if name is None:
        return None
    line = diagnostic.range.start.line
    indent = indent_of(document.line(line))
    edit = lsp.TextEdit(range=point(line, 0), new_text=f"{indent}int {name} = 0;\n")
    return _edit_action(f"Declare variable '{name}'", diagnostic, document, [edit])


def declare_global_variable(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    name = _name(diagnostic, "variableName")
    if name is None:
        return None
    edit = lsp.TextEdit(range=point(0, 0), new_text=f"int {name} = 0;\n\n")
    return _edit_action(f"Declare global variable '{name}'", diagnostic, document, [edit])


def rename_variable(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    name = _name(diagnostic, "variableName")
    if name is None:
        return None
    new_name = f"{name}_new"
    edit = lsp.TextEdit(range=diagnostic.range, new_text=new_name)
    return _edit_action(f"Rename variable to '{new_name}'", diagnostic, document, [edit])


def remove_unused_variable(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    name = _name(diagnostic, "variableName")
    if name is None:
        return None
    edit = lsp.TextEdit(range=line_range(diagnostic.range.start.line), new_text="")
    return _edit_action(f"Remove unused variable '{name}'", diagnostic, document, [edit])


def comment_out_unused_variable(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    name = _name(diagnostic, "variableName")
    if name is None:
        return None
    edit = lsp.TextEdit(range=point(diagnostic.range.start.line, 0), new_text="// ")
    return _edit_action(f"Comment out unused variable '{name}'", diagnostic, document, [edit])


# ── Arrays ───────────────────────────────────────────────────────


def _array_name(diagnostic: lsp.Diagnostic) -> str | None:
    value = _payload(diagnostic).get("arrayName")
    if value:
        return str(value)
    return _from_message(diagnostic, r"array '?([A-Za-z_]\w*)'? has more")


def resize_array_to_fit(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    name = _array_name(diagnostic)
    if name is None:
        return None
    rng = diagnostic.range
    if rng.start.line != rng.end.line:
        return _command_action(
            f"Resize array '{name}' to fit its initializer",
            diagnostic, FIX_ARRAY_SIZE, [document.uri, name, range_to_json(rng)],
        )
    line = declaration_line(document, name, rng.start.line)
    if line is None:
        return None
    start, end = declaration_extent(document, line)
    resized = resize_array(document.text[start:end], name)
    if resized is None:
        return None
    new_text, old_size, new_size = resized
    edit = lsp.TextEdit(
        range=lsp.Range(start=document.position_at(start), end=document.position_at(end)),
        new_text=new_text,
    )
    return _edit_action(
        f"Increase size of array '{name}' from {old_size} to {new_size}",
        diagnostic, document, [edit],
    )


def trim_array_initializer(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    name = _array_name(diagnostic)
    if name is None:
        return None
    line = declaration_line(document, name, diagnostic.range.start.line)
    if line is None:
        return None
    start, end = declaration_extent(document, line)
    trimmed = trim_initializer(document.text[start:end], name)
    if trimmed is None:
        return None
    edit = lsp.TextEdit(
        range=lsp.Range(start=document.position_at(start), end=document.position_at(end)),
        new_text=trimmed,
    )
    return _edit_action(
        f"Remove initializer elements beyond the size of '{name}'", diagnostic, document, [edit],
    )


# ── Functions ────────────────────────────────────────────────────


def declare_function(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    name = _name(diagnostic, "functionName")
    if name is None:
        return None
    call = find_call(document, diagnostic.range, name)
    arg_count = len(call[3]) if call is not None else 0
    params = ", ".join(f"int param{i + 1}" for i in range(arg_count))
    lead = "" if document.text.endswith("\n") or not document.text else "\n"
    stub = f"{lead}\nint {name}({params}) {{\n    return 0;\n}}\n"
    end = document.position_at(len(document.text))
    edit = lsp.TextEdit(range=lsp.Range(start=end, end=end), new_text=stub)
    return _edit_action(f"Declare function '{name}'", diagnostic, document, [edit])


def rename_function(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    name = _name(diagnostic, "functionName")
    if name is None:
        return None
    new_name = f"{name}_new"
    edit = lsp.TextEdit(range=diagnostic.range, new_text=new_name)
    return _edit_action(f"Rename function to '{new_name}'", diagnostic, document, [edit])


def _arity(diagnostic: lsp.Diagnostic) -> tuple[int, int] | None:
    expected = _count(diagnostic, "expectedCount", r"Expected (\d+) argument")
    actual = _count(diagnostic, "actualCount", r"passes (\d+)")
    if expected is None or actual is None:
        return None
    return expected, actual


def adjust_parameters_command(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    arity = _arity(diagnostic)
    if arity is None:
        return None
    expected, actual = arity
    if actual > expected:
        title = "Remove extra arguments"
    else:
        title = f"Add {expected - actual} missing argument(s)"
    return _command_action(
        title, diagnostic, ADJUST_PARAMETERS,
        [document.uri, range_to_json(diagnostic.range), expected],
    )


def adjust_parameters_inline(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    arity = _arity(diagnostic)
    if arity is None:
        return None
    expected, actual = arity
    name = _payload(diagnostic).get("functionName")
    edit = adjust_call_edit(document, diagnostic.range, expected, name)
    if edit is None:
        return None
    if actual > expected:
        title = f"Reduce call arguments to {expected}"
    else:
        title = f"Pad call with {expected - actual} placeholder argument(s)"
    return _edit_action(title, diagnostic, document, [edit])


# ── Control flow and returns ─────────────────────────────────────


def remove_statement(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    rng = diagnostic.range
    keyword = _payload(diagnostic).get("keyword") or _from_message(diagnostic, r"'(break|continue)'")
    if keyword is None:
        keyword = document.get_text(rng).strip().rstrip(";").strip()
    if keyword not in ("break", "continue"):
        return None
    line = document.line(rng.start.line)
    if rng.start.line == rng.end.line and line.strip() == document.get_text(rng).strip():
        target = line_range(rng.start.line)
    else:
        target = rng
    edit = lsp.TextEdit(range=target, new_text="")
    return _edit_action(f"Remove invalid '{keyword}' statement", diagnostic, document, [edit])


def _return_type(diagnostic: lsp.Diagnostic) -> str:
    value = _payload(diagnostic).get("returnType")
    if value:
        return str(value)
    return _from_message(diagnostic, r"return type (\w+)") or INT


def add_return_command(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    return_type = _return_type(diagnostic)
    return _command_action(
        "Add return statement", diagnostic, ADD_RETURN_STATEMENT,
        [document.uri, range_to_json(diagnostic.range), return_type],
    )


def append_return(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    return_type = _return_type(diagnostic)
    edit = return_insertion_edit(document, diagnostic.range, return_type)
    if edit is None:
        return None
    return _edit_action(
        f"Insert 'return {default_value(return_type)};' at the end of the function",
        diagnostic, document, [edit],
    )


def fill_empty_return(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    line_no = diagnostic.range.start.line
    match = re.search(r"\breturn\s*;", document.line(line_no))
    if match is None:
        return None
    value = default_value(_return_type(diagnostic))
    rng = lsp.Range(
        start=lsp.Position(line=line_no, character=match.start()),
        end=lsp.Position(line=line_no, character=match.end()),
    )
    edit = lsp.TextEdit(range=rng, new_text=f"return {value};")
    return _edit_action(f"Return '{value}'", diagnostic, document, [edit])


def drop_return_value(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    text = document.get_text(diagnostic.range)
    if not re.match(r"return\b", text):
        return None
    edit = lsp.TextEdit(range=diagnostic.range, new_text="return;")
    return _edit_action("Remove the return value", diagnostic, document, [edit])


_ASSIGN_PREFIX_RE = re.compile(
    r"^\s*(?:(?:const\s+)?(?:int|float)\s+)?[A-Za-z_]\w*(?:\s*\[[^\]]*\])*\s*=\s*$"
)
_STMT_END_RE = re.compile(r"^\s*;")


def keep_call_only(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    """Turn ``x = f();`` into ``f();``; any other use of the call is left alone."""
    rng = diagnostic.range
    if rng.start.line != rng.end.line:
        return None
    call = document.get_text(rng).strip()
    if not call:
        return None
    line = document.line(rng.start.line)
    end = _STMT_END_RE.match(line[rng.end.character:])
    if end is None or not _ASSIGN_PREFIX_RE.match(line[:rng.start.character]):
        return None
    edit = lsp.TextEdit(
        range=lsp.Range(
            start=lsp.Position(line=rng.start.line, character=0),
            end=lsp.Position(line=rng.start.line, character=rng.end.character + end.end()),
        ),
        new_text=f"{indent_of(line)}{call};",
    )
    return _edit_action("Call the void function as a statement", diagnostic, document, [edit])


# ── Initializers and syntax ──────────────────────────────────────


def fix_initializer_shape(
    diagnostic: lsp.Diagnostic, document: TextDocument
) -> lsp.CodeAction | None:
    shape = _payload(diagnostic).get("shape") or _from_message(
        diagnostic, r"expects an? (\w+) initializer"
    )
    text = document.get_text(diagnostic.range).strip()
    if not text:
        return None
    if shape == "array" and not text.startswith("{"):
        new_text, title = f"{{{text}}}", "Wrap the initializer in braces"
    elif shape == "scalar" and text.startswith("{") and text.endswith("}"):
        elements = split_top_level(text[1:-1])
        new_text = elements[0] if elements and elements[0] else "0"
        title = "Use the first element as the initializer"
    else:
        return None
    edit = lsp.TextEdit(range=diagnostic.range, new_text=new_text)
    return _edit_action(title, diagnostic, document, [edit])


def insert_semicolon(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    end = diagnostic.range.end
    edit = lsp.TextEdit(range=point(end.line, end.character), new_text=";")
    return _edit_action("Add missing semicolon", diagnostic, document, [edit])


def insert_bracket(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction | None:
    bracket = _payload(diagnostic).get("expected") or _from_message(
        diagnostic, r"missing '([()\[\]{}])'"
    )
    if not bracket:
        return None
    if bracket in "([{":
        pos = diagnostic.range.start
    else:
        pos = diagnostic.range.end
    edit = lsp.TextEdit(range=point(pos.line, pos.character), new_text=bracket)
    return _edit_action(f"Insert missing '{bracket}'", diagnostic, document, [edit])


# ── Default bindings ─────────────────────────────────────────────


def default_registry() -> FixRegistry:
    return (
        FixRegistryBuilder()
        .on_code(ErrorCode.UNDEFINED_VARIABLE, declare_variable, declare_global_variable)
        .on_code(ErrorCode.DUPLICATE_DECLARATION, rename_variable)
        .on_code(ErrorCode.ARRAY_SIZE_OVERFLOW, resize_array_to_fit, trim_array_initializer)
        .on_code(ErrorCode.UNDEFINED_FUNCTION, declare_function)
        .on_code(ErrorCode.DUPLICATE_FUNCTION, rename_function)
        .on_code(ErrorCode.PARAMETER_MISMATCH, adjust_parameters_command, adjust_parameters_inline)
        .on_code(ErrorCode.INVALID_BREAK_CONTINUE, remove_statement)
        .on_code(ErrorCode.MISSING_RETURN, add_return_command, append_return)
        .on_code(ErrorCode.EMPTY_RETURN, fill_empty_return)
        .on_code(ErrorCode.VOID_RETURN_VALUE, drop_return_value)
        .on_code(ErrorCode.VOID_ASSIGNMENT, keep_call_only)
        .on_code(ErrorCode.TYPE_MISMATCH, fix_initializer_shape)
        .on_code(ErrorCode.MISSING_SEMICOLON, insert_semicolon)
        .on_code(ErrorCode.UNMATCHED_BRACKETS, insert_bracket)
        .on_code(ErrorCode.UNUSED_VARIABLE, remove_unused_variable, comment_out_unused_variable)
        .on_message("use of undefined variable", declare_variable, declare_global_variable)
        .on_message("undeclared variable", declare_variable, declare_global_variable)
        .on_message("cannot redeclare block-scoped variable", rename_variable)
        .on_message("more initializer elements than the array size", resize_array_to_fit)
        .on_message("call to undefined function", declare_function)
        .on_message("is already defined", rename_function)
        .on_message("parameter count mismatch", adjust_parameters_command, adjust_parameters_inline)
        .on_message("statement can only be used inside a loop", remove_statement)
        .on_message("is missing a return statement", add_return_command, append_return)
        .on_message("must not return empty", fill_empty_return)
        .on_message("void function must not return a value", drop_return_value)
        .on_message("void value cannot be used", keep_call_only)
        .on_message("missing semicolon", insert_semicolon)
        .on_message("unmatched bracket", insert_bracket)
        .on_message("unused variable", remove_unused_variable, comment_out_unused_variable)
        .build()
    )


# ── Engine ───────────────────────────────────────────────────────


class QuickFixEngine:
    """Computes code actions for a batch of diagnostics and a selection."""

    def __init__(
        self,
        registry: FixRegistry | None = None,
        refactor: RefactorConfig | None = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.refactor = refactor or RefactorConfig()

    def get_code_actions(
        self,
        diagnostics: list[lsp.Diagnostic],
        document: TextDocument,
        selection: lsp.Range | None = None,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> list[lsp.CodeAction]:
        if is_cancelled is not None and is_cancelled():
            return []

        actions: list[lsp.CodeAction] = []
        for diagnostic in diagnostics:
            actions.extend(self.actions_for(diagnostic, document))

        if diagnostics and not actions:
            actions.append(self._generic_fix(diagnostics[0], document))

        if (selection is not None
                and selection.start.line == selection.end.line
                and selection.start.character != selection.end.character):
            actions.extend(self._refactorings(selection, document))
        return actions

    def actions_for(
        self, diagnostic: lsp.Diagnostic, document: TextDocument
    ) -> list[lsp.CodeAction]:
        """Primary action plus alternatives for one diagnostic."""
        code = _key(diagnostic.code) if diagnostic.code is not None else None
        if code is not None and code in self.registry.by_code:
            action = self._invoke(self.registry.by_code[code], diagnostic, document)
            if action is not None:
                return [action, *self._additional(
                    self.registry.additional_by_code.get(code, ()), diagnostic, document,
                )]

        message = diagnostic.message or ""
        for pattern, resolver in self.registry.by_pattern.items():
            if pattern in message:
                action = self._invoke(resolver, diagnostic, document)
                if action is None:
                    return []
                return [action, *self._additional(
                    self.registry.additional_by_pattern.get(pattern, ()), diagnostic, document,
                )]
        return []

    def _additional(
        self,
        resolvers: tuple[Resolver, ...],
        diagnostic: lsp.Diagnostic,
        document: TextDocument,
    ) -> list[lsp.CodeAction]:
        results = (self._invoke(r, diagnostic, document) for r in resolvers)
        return [action for action in results if action is not None]

    @staticmethod
    def _invoke(
        resolver: Resolver, diagnostic: lsp.Diagnostic, document: TextDocument
    ) -> lsp.CodeAction | None:
        try:
            return resolver(diagnostic, document)
        except Exception:
            logger.exception(
                "quick fix %s failed for diagnostic %r",
                getattr(resolver, "__name__", resolver), diagnostic.message,
            )
            return None

    @staticmethod
    def _generic_fix(diagnostic: lsp.Diagnostic, document: TextDocument) -> lsp.CodeAction:
        return _command_action(
            "Try to fix this problem", diagnostic, GENERIC_FIX,
            [document.uri, range_to_json(diagnostic.range)],
        )

    def _refactorings(
        self, selection: lsp.Range, document: TextDocument
    ) -> list[lsp.CodeAction]:
        extract_function = _command_action(
            "Extract to function", None, EXTRACT_FUNCTION,
            [document.uri, range_to_json(selection)],
            kind=lsp.CodeActionKind.RefactorExtract,
        )
        text = document.get_text(selection).strip()
        if not text:
            return [extract_function]
        name = self.refactor.extract_variable_name
        type_name = FLOAT if re.search(r"\d*\.\d|\d[eE][-+]?\d", text) else INT
        line = selection.start.line
        declare = lsp.TextEdit(
            range=point(line, 0),
            new_text=f"{indent_of(document.line(line))}{type_name} {name} = {text};\n",
        )
        replace = lsp.TextEdit(range=selection, new_text=name)
        extract_variable = _edit_action(
            "Extract to variable", None, document, [declare, replace],
            kind=lsp.CodeActionKind.RefactorExtract,
        )
        return [extract_function, extract_variable]
