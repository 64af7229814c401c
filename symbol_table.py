"""
symbol_table.py
Arena of scopes. Scopes live in one list and refer to their parent by index; declarations refer to
their enclosing scope by index too, so there are no parent/child object cycles.
"""
from typing import Dict, Iterator, List, Optional, Tuple

from idl_ast import Declaration, ScopedName
from idl_errors import DuplicateDeclarationError

GLOBAL_SCOPE = 0


class Scope:
    def __init__(self, index: int, name: str, parent: Optional[int], kind: str, qualified_name: str):
        self.index = index
        self.name = name
        self.parent = parent
        self.kind = kind  # global, module, struct, union, enum, interface, exception
        self.qualified_name = qualified_name
        self.symbols: Dict[str, Declaration] = {}

    def __repr__(self):
        return f"Scope({self.index}, {self.qualified_name or '<global>'!r})"


class SymbolTable:
    def __init__(self):
        self.scopes: List[Scope] = [Scope(GLOBAL_SCOPE, '', None, 'global', '')]
        self.declarations: Dict[str, Declaration] = {}
        self.opened_scopes: Dict[str, int] = {}  # qualified name -> scope opened by that declaration
        self.frozen = False

    def _check_mutable(self):
        if self.frozen:
            raise RuntimeError("symbol table is frozen")

    def qualify(self, scope: int, name: str) -> str:
        prefix = self.scopes[scope].qualified_name
        return f"{prefix}::{name}" if prefix else name

    def open_scope(self, parent: int, declaration: Declaration, kind: str) -> int:
        """Return the scope opened by declaration, creating it on first use (re-opened modules share one)."""
        self._check_mutable()
        qualified_name = self.qualify(parent, declaration.name)
        existing = self.opened_scopes.get(qualified_name)
        if existing is not None:
            return existing
        index = len(self.scopes)
        self.scopes.append(Scope(index, declaration.name, parent, kind, qualified_name))
        self.opened_scopes[qualified_name] = index
        return index

    def declare(self, scope: int, declaration: Declaration, replace: bool = False) -> Declaration:
        self._check_mutable()
        existing = self.scopes[scope].symbols.get(declaration.name)
        if existing is not None and existing is not declaration and not replace:
            raise DuplicateDeclarationError(self.scopes[scope].qualified_name, declaration.name,
                                            **declaration.location())
        declaration.scope = scope
        declaration.qualified_name = self.qualify(scope, declaration.name)
        self.scopes[scope].symbols[declaration.name] = declaration
        self.declarations[declaration.qualified_name] = declaration
        return declaration

    def alias(self, scope: int, declaration: Declaration):
        """Make declaration visible in another scope under its own name without re-qualifying it."""
        self._check_mutable()
        existing = self.scopes[scope].symbols.get(declaration.name)
        if existing is not None and existing is not declaration:
            raise DuplicateDeclarationError(self.scopes[scope].qualified_name, declaration.name,
                                            **declaration.location())
        self.scopes[scope].symbols[declaration.name] = declaration

    def lookup_local(self, scope: int, name: str) -> Optional[Declaration]:
        return self.scopes[scope].symbols.get(name)

    def scope_chain(self, scope: int) -> Iterator[Scope]:
        index = scope
        while index is not None:
            yield self.scopes[index]
            index = self.scopes[index].parent

    def resolve(self, scope: int, name: ScopedName) -> Optional[Declaration]:
        """
        IDL lookup: the first identifier is searched from scope outward to the global scope (or only in the
        global scope for ::-names); the remaining identifiers must then be found inside what it names.
        """
        first, rest = name.parts[0], name.parts[1:]
        start = self.scopes[GLOBAL_SCOPE] if name.absolute else None
        found = None
        for candidate_scope in ([start] if start else self.scope_chain(scope)):
            found = candidate_scope.symbols.get(first)
            if found is not None:
                break
        for part in rest:
            if found is None:
                return None
            inner = self.opened_scopes.get(found.qualified_name)
            found = self.scopes[inner].symbols.get(part) if inner is not None else None
        return found

    def freeze(self):
        self.frozen = True

    def items(self) -> List[Tuple[str, Declaration]]:
        return list(self.declarations.items())

    def __contains__(self, qualified_name: str) -> bool:
        return qualified_name in self.declarations

    def __getitem__(self, qualified_name: str) -> Declaration:
        return self.declarations[qualified_name]

    def __len__(self):
        return len(self.declarations)
