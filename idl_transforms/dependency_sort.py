"""
Dependency sort for resolved declarations.
Orders type declarations and constants so that every declaration comes after the ones it references.
Raises CyclicTypeDependencyError if a cycle is detected.
"""
import sys
from typing import Dict, List

from idl_ast import (
    Const, Declaration, Enum, EnumValue, Specification, Struct, TypeRef, Typedef, Union, const_refs, type_refs,
    type_spec_exprs, walk_declarations,
)
from idl_errors import CyclicTypeDependencyError
from idl_transform_pipeline import IdlTransform


def _type_dependencies(type_spec) -> List[Declaration]:
    deps = [ref.declaration for ref in type_refs(type_spec)]
    for expr in type_spec_exprs(type_spec):
        deps.extend(_const_dependencies(expr))
    return deps


def _const_dependencies(expr) -> List[Declaration]:
    deps = []
    for ref in const_refs(expr):
        target = ref.declaration
        deps.append(target.enum if isinstance(target, EnumValue) else target)
    return deps


def declaration_dependencies(decl: Declaration) -> List[Declaration]:
    """Declarations referenced by decl: member, case, element and typedef target types, base struct, const refs."""
    deps: List[Declaration] = []
    if isinstance(decl, Struct):
        if isinstance(decl.base, TypeRef):
            deps.append(decl.base.declaration)
        for member in decl.members:
            deps.extend(_type_dependencies(member.type_spec))
    elif isinstance(decl, Union):
        deps.extend(_type_dependencies(decl.switch_type))
        for case in decl.cases:
            for label in case.labels:
                deps.extend(_const_dependencies(label))
            deps.extend(_type_dependencies(case.member.type_spec))
    elif isinstance(decl, Typedef):
        deps.extend(_type_dependencies(decl.type_spec))
    elif isinstance(decl, Const):
        deps.extend(_type_dependencies(decl.type_spec))
        deps.extend(_const_dependencies(decl.expr))
    return deps


def topological_sort_declarations(declarations: List[Declaration]) -> List[Declaration]:
    """
    Given declarations in source order, returns them sorted so that dependencies come first.
    Ties keep source order. Raises CyclicTypeDependencyError if a cycle is detected.
    """
    by_name: Dict[str, Declaration] = {decl.qualified_name: decl for decl in declarations}
    visited = set()
    temp_mark: List[str] = []
    result = []

    def visit(decl: Declaration):
        name = decl.qualified_name
        if name in visited:
            return
        if name in temp_mark:
            chain = temp_mark[temp_mark.index(name):] + [name]
            raise CyclicTypeDependencyError(chain, **decl.location())
        temp_mark.append(name)
        for dep in declaration_dependencies(decl):
            if dep.qualified_name in by_name:
                visit(by_name[dep.qualified_name])
        temp_mark.pop()
        visited.add(name)
        result.append(decl)

    for decl in declarations:
        visit(decl)
    return result


class DependencySortTransform(IdlTransform):
    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def transform(self, spec: Specification) -> Specification:
        emittable = [
            decl for decl in walk_declarations(spec.definitions)
            if isinstance(decl, (Struct, Union, Enum, Typedef, Const)) and not getattr(decl, 'forward', False)
        ]
        spec.emission_order = topological_sort_declarations(emittable)
        if self.verbose:
            order = ", ".join(decl.qualified_name for decl in spec.emission_order)
            print(f"[DEBUG] DependencySortTransform: emission order {order}", file=sys.stderr)
        return spec
