"""Symbol table with lexical scoping for SysY name resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from sysy.source import Span

if TYPE_CHECKING:
    from sysy.ast_nodes import FuncDef, Param, VarDef


class SymbolKind(Enum):
    VARIABLE = auto()
    ARRAY = auto()
    FUNCTION = auto()
    PARAMETER = auto()


@dataclass
class Symbol:
    name: str
    kind: SymbolKind
    type_name: str
    span: Span
    node: VarDef | Param | FuncDef
    dims: tuple[int | None, ...] = ()
    init_count: int | None = None
    is_const: bool = False
    scope: Scope | None = field(default=None, repr=False, compare=False)


class Scope:
    """A single lexical scope level."""

    def __init__(self, parent: Scope | None = None, name: str = "") -> None:
        self.parent = parent
        self.name = name
        self._symbols: dict[str, Symbol] = {}

    @property
    def is_global(self) -> bool:
        return self.parent is None

    def define(self, symbol: Symbol) -> Symbol | None:
        """Define a symbol in this scope. Returns existing symbol if duplicate."""
        existing = self._symbols.get(symbol.name)
        if existing is not None:
            return existing
        symbol.scope = self
        self._symbols[symbol.name] = symbol
        return None

    def lookup(self, name: str) -> Symbol | None:
        """Look up a name in this scope and all parent scopes."""
        sym = self._symbols.get(name)
        if sym is not None:
            return sym
        if self.parent is not None:
            return self.parent.lookup(name)
        return None

    def lookup_local(self, name: str) -> Symbol | None:
        """Look up a name in this scope only (not parents)."""
        return self._symbols.get(name)

    def all_symbols(self) -> list[Symbol]:
        """Return all symbols defined in this scope."""
        return list(self._symbols.values())


class SymbolTable:
    """Manages the scope stack."""

    def __init__(self) -> None:
        self._scope_stack: list[Scope] = [Scope(name="global")]

    @property
    def global_scope(self) -> Scope:
        return self._scope_stack[0]

    @property
    def current_scope(self) -> Scope:
        return self._scope_stack[-1]

    def push_scope(self, name: str = "") -> Scope:
        scope = Scope(parent=self.current_scope, name=name)
        self._scope_stack.append(scope)
        return scope

    def pop_scope(self) -> Scope:
        if len(self._scope_stack) <= 1:
            raise RuntimeError("cannot pop global scope")
        return self._scope_stack.pop()

    def define(self, symbol: Symbol) -> Symbol | None:
        """Define a symbol in the current scope. Returns existing if duplicate."""
        return self.current_scope.define(symbol)

    def lookup(self, name: str) -> Symbol | None:
        """Look up a name in the current scope chain."""
        return self.current_scope.lookup(name)
