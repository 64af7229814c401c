"""
type_mapper.py
Maps resolved IDL type specs and declarations to Rust type descriptors. Descriptors render themselves
relative to the module they are used from, so the generator can emit `super::` paths.
"""
from typing import Any, Dict, List, Optional

from idl_ast import (
    ArrayType, Const, Declaration, Enum, PrimitiveType, SequenceType, StringType, Struct, TypeRef, Typedef,
    Union, UnsupportedType, underlying_type,
)
from idl_errors import UnsupportedMappingError

# --- Type Mapping ---
IDL_TO_RUST_PRIMITIVE = {
    'boolean': 'bool',
    'char': 'char',
    'wchar': 'char',
    'octet': 'u8',
    'uint8': 'u8',
    'int8': 'i8',
    'short': 'i16',
    'int16': 'i16',
    'unsigned short': 'u16',
    'uint16': 'u16',
    'long': 'i32',
    'int32': 'i32',
    'unsigned long': 'u32',
    'uint32': 'u32',
    'long long': 'i64',
    'int64': 'i64',
    'unsigned long long': 'u64',
    'uint64': 'u64',
    'float': 'f32',
    'double': 'f64',
}

RUST_KEYWORDS = {
    'as', 'async', 'await', 'break', 'const', 'continue', 'dyn', 'else', 'enum', 'extern', 'false', 'fn',
    'for', 'if', 'impl', 'in', 'let', 'loop', 'match', 'mod', 'move', 'mut', 'pub', 'ref', 'return',
    'static', 'struct', 'trait', 'true', 'type', 'unsafe', 'use', 'where', 'while', 'abstract', 'become',
    'box', 'do', 'final', 'macro', 'override', 'priv', 'try', 'typeof', 'unsized', 'virtual', 'yield',
}
# these cannot be raw identifiers
RUST_PATH_KEYWORDS = {'crate', 'self', 'Self', 'super'}


def rust_ident(name: str) -> str:
    """Keep the IDL name verbatim where Rust allows it, otherwise use a raw identifier."""
    if name in RUST_PATH_KEYWORDS:
        return name + '_'
    if name in RUST_KEYWORDS:
        return 'r#' + name
    return name


class RustType:
    def render(self, from_module: Optional[List[str]] = None) -> str:
        raise NotImplementedError

    def __str__(self):
        return self.render()

    def __eq__(self, other):
        return isinstance(other, RustType) and self.render() == other.render()

    def __hash__(self):
        return hash(self.render())


class RustPrimitive(RustType):
    def __init__(self, name: str):
        self.name = name

    def render(self, from_module=None) -> str:
        return self.name

    def __repr__(self):
        return f"RustPrimitive({self.name!r})"


class RustString(RustType):
    def render(self, from_module=None) -> str:
        return 'String'

    def __repr__(self):
        return "RustString()"


class RustVec(RustType):
    def __init__(self, element: RustType):
        self.element = element

    def render(self, from_module=None) -> str:
        return f"Vec<{self.element.render(from_module)}>"

    def __repr__(self):
        return f"RustVec({self.element!r})"


class RustArray(RustType):
    def __init__(self, element: RustType, length: int):
        self.element = element
        self.length = length

    def render(self, from_module=None) -> str:
        return f"[{self.element.render(from_module)}; {self.length}]"

    def __repr__(self):
        return f"RustArray({self.element!r}, {self.length})"


class RustNamed(RustType):
    """A generated struct or enum, addressed by module path plus local name."""

    def __init__(self, module_path: List[str], name: str):
        self.module_path = list(module_path)
        self.name = name

    def render(self, from_module=None) -> str:
        if from_module is None:
            parts = self.module_path + [self.name]
            return '::'.join(rust_ident(p) for p in parts)
        common = 0
        while (common < len(from_module) and common < len(self.module_path)
               and from_module[common] == self.module_path[common]):
            common += 1
        parts = ['super'] * (len(from_module) - common)
        parts += [rust_ident(p) for p in self.module_path[common:]]
        parts.append(rust_ident(self.name))
        return '::'.join(parts)

    def __repr__(self):
        return f"RustNamed({'::'.join(self.module_path + [self.name])!r})"


def module_path(decl: Declaration) -> List[str]:
    return decl.qualified_name.split('::')[:-1]


class TypeMapper:
    """
    Fixed IDL to Rust correspondence. Typedefs are transparent: a reference to a typedef maps to the
    type its chain finally denotes. Declarations are memoized by qualified name.
    """

    def __init__(self):
        self._memo: Dict[str, RustType] = {}

    def map_type(self, type_spec: Any) -> RustType:
        if isinstance(type_spec, PrimitiveType):
            rust = IDL_TO_RUST_PRIMITIVE.get(type_spec.kind)
            if rust is None:
                raise UnsupportedMappingError(type_spec.kind, **type_spec.location())
            return RustPrimitive(rust)
        if isinstance(type_spec, StringType):
            return RustString()
        if isinstance(type_spec, SequenceType):
            return RustVec(self.map_type(type_spec.element))
        if isinstance(type_spec, ArrayType):
            mapped = self.map_type(type_spec.element)
            for length in reversed(type_spec.dim_values):
                mapped = RustArray(mapped, length)
            return mapped
        if isinstance(type_spec, TypeRef):
            return self.map_declaration(type_spec.declaration)
        if isinstance(type_spec, UnsupportedType):
            raise UnsupportedMappingError(f"'{type_spec.construct}' type", **type_spec.location())
        raise UnsupportedMappingError(f"unresolved type '{type_spec}'",
                                      **(type_spec.location() if hasattr(type_spec, 'location') else {}))

    def map_declaration(self, decl: Declaration) -> RustType:
        key = decl.qualified_name
        if key in self._memo:
            return self._memo[key]
        if isinstance(decl, (Struct, Union, Enum)):
            mapped = RustNamed(module_path(decl), decl.name)
        elif isinstance(decl, Typedef):
            mapped = self.map_type(decl.type_spec)
        elif isinstance(decl, Const):
            if isinstance(underlying_type(decl.type_spec), StringType):
                mapped = RustPrimitive("&'static str")
            else:
                mapped = self.map_type(decl.type_spec)
        else:
            raise UnsupportedMappingError(f"{decl.kind} '{decl.name}'", **decl.location())
        self._memo[key] = mapped
        return mapped

