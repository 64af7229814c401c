"""
ResolveReferencesTransform: second resolution pass. Replaces every ScopedName with a TypeRef (in type
positions) or a ConstRef (inside constant expressions), using outward scope lookup from the scope
the reference appears in. The symbol table is only read here.
"""
import sys
from typing import Any, List

from idl_ast import (
    ArrayType, BinaryExpr, Const, ConstRef, Enum, EnumValue, ScopedName, SequenceType, Specification,
    StringType, Struct, TypeRef, Typedef, UnaryExpr, Union, type_refs, walk_declarations,
)
from idl_errors import (
    CyclicTypeDependencyError, CyclicTypedefError, DuplicateDeclarationError, InvalidConstantError,
    UnresolvedReferenceError, UnsupportedConstructError,
)
from idl_transform_pipeline import IdlTransform
from symbol_table import SymbolTable


class ResolveReferencesTransform(IdlTransform):
    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def transform(self, spec: Specification) -> Specification:
        if spec.symbols is None:
            raise ValueError("ResolveReferencesTransform requires a symbol table. Run RegisterSymbolsTransform first.")
        symbols = spec.symbols
        for decl in walk_declarations(spec.definitions):
            if isinstance(decl, Struct) and not decl.forward:
                if decl.base is not None:
                    decl.base = self._resolve_base(decl, symbols)
                for member in decl.members:
                    member.type_spec = self._resolve_type(member.type_spec, decl.scope, symbols)
            elif isinstance(decl, Union) and not decl.forward:
                decl.switch_type = self._resolve_type(decl.switch_type, decl.scope, symbols)
                for case in decl.cases:
                    case.labels = [self._resolve_expr(label, decl.scope, symbols) for label in case.labels]
                    case.member.type_spec = self._resolve_type(case.member.type_spec, decl.scope, symbols)
            elif isinstance(decl, Typedef):
                decl.type_spec = self._resolve_type(decl.type_spec, decl.scope, symbols)
            elif isinstance(decl, Const):
                decl.type_spec = self._resolve_type(decl.type_spec, decl.scope, symbols)
                decl.expr = self._resolve_expr(decl.expr, decl.scope, symbols)
        for decl in walk_declarations(spec.definitions):
            if isinstance(decl, Struct) and not decl.forward and decl.base is not None:
                self._check_inheritance(decl, symbols)
        self._check_typedef_cycles(spec)
        return spec

    def _lookup(self, name: ScopedName, scope: int, symbols: SymbolTable):
        found = symbols.resolve(scope, name)
        if found is None:
            raise UnresolvedReferenceError(symbols.scopes[scope].qualified_name, str(name), **name.location())
        self.debug_print(f"Resolved {name} in '{symbols.scopes[scope].qualified_name}' to {found.qualified_name}")
        return found

    def _resolve_type(self, type_spec: Any, scope: int, symbols: SymbolTable) -> Any:
        if isinstance(type_spec, ScopedName):
            found = self._lookup(type_spec, scope, symbols)
            if isinstance(found, (Struct, Union)) and found.forward:
                # only a forward declaration was ever seen
                raise UnresolvedReferenceError(symbols.scopes[scope].qualified_name, str(type_spec),
                                               **type_spec.location())
            if not isinstance(found, (Struct, Union, Enum, Typedef)):
                raise UnresolvedReferenceError(symbols.scopes[scope].qualified_name, str(type_spec),
                                               **type_spec.location())
            return TypeRef(type_spec, found, **type_spec.location())
        if isinstance(type_spec, SequenceType):
            type_spec.element = self._resolve_type(type_spec.element, scope, symbols)
            if type_spec.bound is not None:
                type_spec.bound = self._resolve_expr(type_spec.bound, scope, symbols)
        elif isinstance(type_spec, ArrayType):
            type_spec.element = self._resolve_type(type_spec.element, scope, symbols)
            type_spec.dims = [self._resolve_expr(dim, scope, symbols) for dim in type_spec.dims]
        elif isinstance(type_spec, StringType) and type_spec.bound is not None:
            type_spec.bound = self._resolve_expr(type_spec.bound, scope, symbols)
        return type_spec

    def _resolve_expr(self, expr: Any, scope: int, symbols: SymbolTable) -> Any:
        if isinstance(expr, ScopedName):
            found = self._lookup(expr, scope, symbols)
            if not isinstance(found, (Const, EnumValue)):
                raise InvalidConstantError(f"'{expr}' names a {found.kind}, not a constant", **expr.location())
            return ConstRef(expr, found, **expr.location())
        if isinstance(expr, UnaryExpr):
            expr.operand = self._resolve_expr(expr.operand, scope, symbols)
        elif isinstance(expr, BinaryExpr):
            expr.left = self._resolve_expr(expr.left, scope, symbols)
            expr.right = self._resolve_expr(expr.right, scope, symbols)
        return expr

    def _resolve_base(self, decl: Struct, symbols: SymbolTable) -> TypeRef:
        base = decl.base
        found = self._lookup(base, decl.scope, symbols)
        seen = set()
        while isinstance(found, Typedef) and found.qualified_name not in seen:
            seen.add(found.qualified_name)
            target = found.type_spec
            if isinstance(target, TypeRef):
                found = target.declaration
            elif isinstance(target, ScopedName):
                # typedefs further down the file are not resolved yet
                found = self._lookup(target, found.scope, symbols)
            else:
                break
        if not isinstance(found, Struct):
            raise UnsupportedConstructError(f"struct '{decl.name}' inheriting from {found.kind} '{base}'",
                                            **base.location())
        if found.forward:
            raise UnresolvedReferenceError(symbols.scopes[decl.scope].qualified_name, str(base), **base.location())
        return TypeRef(base, found, **base.location())

    def _check_inheritance(self, decl: Struct, symbols: SymbolTable):
        chain: List[str] = [decl.qualified_name]
        base = decl.base.declaration
        while base is not None:
            if base.qualified_name in chain:
                raise CyclicTypeDependencyError(chain + [base.qualified_name], **decl.location())
            chain.append(base.qualified_name)
            base = base.base.declaration if isinstance(base.base, TypeRef) else None
        inherited = {member.name for member in decl.base.declaration.all_members()}
        for member in decl.members:
            if member.name in inherited:
                raise DuplicateDeclarationError(decl.qualified_name, member.name, **member.location())

    def _check_typedef_cycles(self, spec: Specification):
        done = set()

        def visit(typedef: Typedef, chain: List[str]):
            if typedef.qualified_name in chain:
                cycle = chain[chain.index(typedef.qualified_name):] + [typedef.qualified_name]
                raise CyclicTypedefError(cycle, **typedef.location())
            if typedef.qualified_name in done:
                return
            chain.append(typedef.qualified_name)
            for ref in type_refs(typedef.type_spec):
                if isinstance(ref.declaration, Typedef):
                    visit(ref.declaration, chain)
            chain.pop()
            done.add(typedef.qualified_name)

        for decl in walk_declarations(spec.definitions):
            if isinstance(decl, Typedef):
                visit(decl, [])
