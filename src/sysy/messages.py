"""Diagnostic taxonomy lookup: explanations, suggestions and categories.

Keys of the detail table are matched against raw diagnostic messages. A
plain key matches by substring containment; a key wrapped in double quotes
is a regular expression. All plain containment checks run before any regex
is tried, and the first hit wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sysy.errors import Category

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"


@dataclass(frozen=True)
class ErrorInfo:
    explanation: str
    suggestion: str
    category: Category


ERROR_DETAILS: dict[str, ErrorInfo] = {
    # Variables
    "cannot redeclare block-scoped variable": ErrorInfo(
        "Within one declaration each variable name can only be declared once. "
        "Use a different name or declare it in another scope.",
        "use a different variable name or remove the duplicate declaration",
        Category.VARIABLE,
    ),
    "use of undefined variable": ErrorInfo(
        "The variable is not declared in the current scope. "
        "Variables must be declared before they are used.",
        "declare the variable before using it",
        Category.VARIABLE,
    ),
    "undeclared variable": ErrorInfo(
        "The name refers to a variable that does not exist in the current scope.",
        "declare the variable or check the spelling of its name",
        Category.VARIABLE,
    ),
    "unused variable": ErrorInfo(
        "The variable is declared but its value is never read.",
        "remove the declaration or use the variable",
        Category.VARIABLE,
    ),
    # Arrays
    "array has more initializer elements than the array size": ErrorInfo(
        "An initializer list cannot hold more elements than the declared array size.",
        "increase the array size or remove initializer elements",
        Category.ARRAY,
    ),
    # Functions
    "call to undefined function": ErrorInfo(
        "The called function is not defined. Define it before calling it.",
        "define the function or check the spelling of its name",
        Category.FUNCTION,
    ),
    "parameter count mismatch": ErrorInfo(
        "The number of arguments at the call site differs from the number of "
        "parameters in the function definition.",
        "adjust the arguments to match the function definition",
        Category.FUNCTION,
    ),
    "'break' statement can only be used inside a loop": ErrorInfo(
        "A break statement is only valid inside a while loop.",
        "remove the break statement or move it into a loop",
        Category.CONTROL,
    ),
    "'continue' statement can only be used inside a loop": ErrorInfo(
        "A continue statement is only valid inside a while loop.",
        "remove the continue statement or move it into a loop",
        Category.CONTROL,
    ),
    "void function must not return a value": ErrorInfo(
        "A function declared void cannot return a value.",
        "remove the expression from the return statement or use 'return;'",
        Category.FUNCTION,
    ),
    "void value cannot be used in an expression or assignment": ErrorInfo(
        "The result of a void function cannot be assigned or used in an expression.",
        "call a function that returns a value or do not use the result",
        Category.TYPE,
    ),
    # Types
    "type mismatch": ErrorInfo(
        "The initializer does not have the shape the declaration expects.",
        "change the initializer or the declaration",
        Category.TYPE,
    ),
    # Syntax
    "missing semicolon": ErrorInfo(
        "Every declaration and simple statement must end with a semicolon.",
        "add the missing ';'",
        Category.OTHER,
    ),
    "unmatched bracket": ErrorInfo(
        "An opening bracket has no matching closing bracket, or the other way round.",
        "add the missing bracket",
        Category.OTHER,
    ),
    # Regex patterns
    '"array .* has more initializer elements than the array size"': ErrorInfo(
        "An initializer list cannot hold more elements than the declared array size.",
        "increase the array size or remove initializer elements",
        Category.ARRAY,
    ),
    '"function name .* is already defined"': ErrorInfo(
        "Each function name can only be defined once per program.",
        "use a different function name or remove the duplicate definition",
        Category.FUNCTION,
    ),
    '"function with return type \\w+ is missing a return statement"': ErrorInfo(
        "A function with a non-void return type must contain a return "
        "statement with a value.",
        "add a return statement with a suitable value",
        Category.FUNCTION,
    ),
    '"function with return type \\w+ must not return empty"': ErrorInfo(
        "A function with a non-void return type must return a value.",
        "add a value to the return statement",
        Category.FUNCTION,
    ),
}


def _is_pattern(key: str) -> bool:
    return len(key) >= 2 and key.startswith('"') and key.endswith('"')


class ErrorMessageProvider:
    """Looks up explanations and categories for raw diagnostic messages."""

    def __init__(self, details: dict[str, ErrorInfo] | None = None) -> None:
        self.details = ERROR_DETAILS if details is None else details

    def lookup(self, message: str) -> ErrorInfo | None:
        for key, info in self.details.items():
            if key in message:
                return info
        for key, info in self.details.items():
            if _is_pattern(key) and re.search(key[1:-1], message):
                return info
        return None

    def enhance(self, message: str) -> str:
        if not message:
            return UNKNOWN_ERROR
        info = self.lookup(message)
        if info is None:
            return message
        return (
            f"{message}\n\nDetails: {info.explanation}\n"
            f"Suggestion: {info.suggestion}"
        )

    def safe_enhance(self, message: str) -> str:
        """Like enhance, but returns the original message on any failure."""
        try:
            return self.enhance(message)
        except Exception:
            logger.exception("failed to enhance diagnostic message")
            return message or UNKNOWN_ERROR

    def category_of(self, message: str) -> Category | None:
        if not message:
            return None
        info = self.lookup(message)
        return info.category if info is not None else Category.OTHER

    def safe_category_of(self, message: str) -> Category:
        try:
            return self.category_of(message) or Category.OTHER
        except Exception:
            logger.exception("failed to categorize diagnostic message")
            return Category.OTHER
