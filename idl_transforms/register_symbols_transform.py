"""
RegisterSymbolsTransform: first resolution pass. Walks the AST and registers every named declaration
in a fresh SymbolTable without looking at any reference, so later passes may refer to types that
appear further down the file.
"""
import sys

from idl_ast import (
    Const, Declaration, Enum, ExceptionDcl, Interface, Module, Native, Specification, Struct, Typedef, Union,
)
from idl_errors import DuplicateDeclarationError, UnsupportedConstructError
from idl_transform_pipeline import IdlTransform
from symbol_table import GLOBAL_SCOPE, SymbolTable


class RegisterSymbolsTransform(IdlTransform):
    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def transform(self, spec: Specification) -> Specification:
        symbols = SymbolTable()
        for definition in spec.definitions:
            self._register(definition, GLOBAL_SCOPE, symbols)
        symbols.freeze()
        spec.symbols = symbols
        self.debug_print(f"RegisterSymbolsTransform: {len(symbols)} symbols in {len(symbols.scopes)} scopes")
        return spec

    def _register(self, decl: Declaration, scope: int, symbols: SymbolTable):
        if isinstance(decl, Interface):
            self._reject_interface(decl)
        if isinstance(decl, ExceptionDcl):
            raise UnsupportedConstructError(f"exception '{decl.name}'", **decl.location())
        if isinstance(decl, Native):
            raise UnsupportedConstructError(f"native type '{decl.name}'", **decl.location())

        if isinstance(decl, Module):
            existing = symbols.lookup_local(scope, decl.name)
            if isinstance(existing, Module):
                decl.scope = existing.scope
                decl.qualified_name = existing.qualified_name
                self.debug_print(f"Re-opened module {decl.qualified_name}")
            else:
                symbols.declare(scope, decl)
            inner = symbols.open_scope(scope, decl, 'module')
            for definition in decl.definitions:
                self._register(definition, inner, symbols)
        elif isinstance(decl, (Struct, Union)):
            self._register_constructed(decl, scope, symbols)
        elif isinstance(decl, Enum):
            symbols.declare(scope, decl)
            inner = symbols.open_scope(scope, decl, 'enum')
            for value in decl.values:
                symbols.declare(inner, value)
                # enumerators are also visible unqualified in the scope enclosing the enum
                symbols.alias(scope, value)
        elif isinstance(decl, (Typedef, Const)):
            symbols.declare(scope, decl)
        else:
            raise UnsupportedConstructError(f"{decl.kind} '{decl.name}'", **decl.location())
        self.debug_print(f"Registered {decl.kind} {decl.qualified_name}")

    def _register_constructed(self, decl, scope: int, symbols: SymbolTable):
        existing = symbols.lookup_local(scope, decl.name)
        if existing is not None and type(existing) is not type(decl):
            raise DuplicateDeclarationError(symbols.scopes[scope].qualified_name, decl.name, **decl.location())
        if decl.forward:
            if existing is None:
                symbols.declare(scope, decl)
            else:
                decl.scope = existing.scope
                decl.qualified_name = existing.qualified_name
            return
        if existing is not None and not existing.forward:
            raise DuplicateDeclarationError(symbols.scopes[scope].qualified_name, decl.name, **decl.location())
        symbols.declare(scope, decl, replace=existing is not None)

        inner = symbols.open_scope(scope, decl, decl.kind)
        members = decl.members if isinstance(decl, Struct) else [case.member for case in decl.cases]
        for member in members:
            if isinstance(decl, Union) and symbols.lookup_local(inner, member.name) is not None:
                # same-named union members must share a type; checked once types are known
                member.scope = inner
                member.qualified_name = symbols.qualify(inner, member.name)
                continue
            symbols.declare(inner, member)

    def _reject_interface(self, interface: Interface):
        for export in interface.exports:
            if isinstance(export, Const):
                raise UnsupportedConstructError(
                    f"constant '{export.name}' declared inside {interface.interface_kind} '{interface.name}'",
                    **export.location())
            if isinstance(export, (Struct, Union, Enum, Typedef, ExceptionDcl, Native)):
                raise UnsupportedConstructError(
                    f"{export.kind} '{export.name}' declared inside {interface.interface_kind} '{interface.name}'",
                    **export.location())
        raise UnsupportedConstructError(f"{interface.interface_kind} '{interface.name}'", **interface.location())
