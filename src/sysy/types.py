"""Base types of SysY and literal-shape inference.

SysY has no user-defined types, so a type is just its keyword. There is no
type inference here beyond telling integer-looking text from decimal-looking
text.
"""

from __future__ import annotations

import re

INT = "int"
FLOAT = "float"
VOID = "void"
UNKNOWN = "unknown"

_INT_RE = re.compile(r"^(0[xX][0-9a-fA-F]+|\d+)$")
_FLOAT_RE = re.compile(r"^(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")


def infer_literal_type(text: str) -> str | None:
    """Return 'int' or 'float' for literal-looking text, else None."""
    text = text.strip()
    if _INT_RE.match(text):
        return INT
    if _FLOAT_RE.match(text):
        return FLOAT
    return None


def default_value(type_name: str) -> str:
    """Placeholder value of the given type, used by generated code."""
    return "0.0" if type_name == FLOAT else "0"


def int_literal_value(text: str) -> int:
    """Value of a SysY integer literal (decimal, octal or hex)."""
    if text[:2] in ("0x", "0X"):
        return int(text, 16)
    if len(text) > 1 and text.startswith("0"):
        return int(text, 8)
    return int(text)
