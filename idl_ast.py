"""
idl_ast.py
Abstract syntax tree for IDL specifications. One node class per construct, each carrying the source
location it came from. Type references start out as ScopedName nodes and are replaced by TypeRef
nodes once the resolver has bound them to a declaration.
"""
from typing import Any, List, Optional, Tuple


class Node:
    def __init__(self, file: Optional[str] = None, line: Optional[int] = None, column: Optional[int] = None):
        self.file = file
        self.line = line
        self.column = column

    def location(self) -> dict:
        return {'file': self.file, 'line': self.line, 'column': self.column}


class Annotation(Node):
    def __init__(self, name: str, params: Optional[List[Any]] = None, **location):
        super().__init__(**location)
        self.name = name
        self.params = params or []  # const expressions or (name, const expression) pairs


# --- Type specs ---

class ScopedName(Node):
    """A syntactic path such as `Foo`, `A::Foo` or `::A::Foo`, not yet bound to a declaration."""

    def __init__(self, parts: List[str], absolute: bool = False, **location):
        super().__init__(**location)
        self.parts = list(parts)
        self.absolute = absolute

    def __str__(self):
        text = '::'.join(self.parts)
        return '::' + text if self.absolute else text

    def __repr__(self):
        return f"ScopedName({str(self)!r})"


class PrimitiveType(Node):
    def __init__(self, kind: str, **location):
        super().__init__(**location)
        self.kind = kind  # canonical IDL spelling, e.g. 'unsigned long long'

    def __repr__(self):
        return f"PrimitiveType({self.kind!r})"


class StringType(Node):
    def __init__(self, wide: bool = False, bound: Optional[Any] = None, **location):
        super().__init__(**location)
        self.wide = wide
        self.bound = bound  # const expression or None
        self.bound_value: Optional[int] = None


class SequenceType(Node):
    def __init__(self, element: Any, bound: Optional[Any] = None, **location):
        super().__init__(**location)
        self.element = element
        self.bound = bound
        self.bound_value: Optional[int] = None


class ArrayType(Node):
    """An element type plus one or more fixed dimensions, outermost first."""

    def __init__(self, element: Any, dims: List[Any], **location):
        super().__init__(**location)
        self.element = element
        self.dims = list(dims)
        self.dim_values: List[int] = []


class UnsupportedType(Node):
    """A type the grammar accepts but which has no target mapping (fixed, any, Object, ...)."""

    def __init__(self, construct: str, **location):
        super().__init__(**location)
        self.construct = construct


class TypeRef(Node):
    def __init__(self, name: ScopedName, declaration: 'Declaration', **location):
        super().__init__(**location)
        self.name = name
        self.declaration = declaration

    def __repr__(self):
        return f"TypeRef({self.declaration.qualified_name!r})"


# --- Constant expressions ---

class Literal(Node):
    def __init__(self, kind: str, value: Any, text: str = "", **location):
        super().__init__(**location)
        self.kind = kind  # integer, float, char, wchar, string, wstring, boolean
        self.value = value
        self.text = text


class UnaryExpr(Node):
    def __init__(self, op: str, operand: Any, **location):
        super().__init__(**location)
        self.op = op
        self.operand = operand


class BinaryExpr(Node):
    def __init__(self, op: str, left: Any, right: Any, **location):
        super().__init__(**location)
        self.op = op
        self.left = left
        self.right = right


class ConstRef(Node):
    """A scoped name inside a constant expression, bound to a Const or EnumValue."""

    def __init__(self, name: ScopedName, declaration: 'Declaration', **location):
        super().__init__(**location)
        self.name = name
        self.declaration = declaration


# --- Declarations ---

class Declaration(Node):
    kind = "declaration"

    def __init__(self, name: str, annotations: Optional[List[Annotation]] = None, **location):
        super().__init__(**location)
        self.name = name
        self.annotations = annotations or []
        self.scope: Optional[int] = None  # index of the enclosing scope in the SymbolTable
        self.qualified_name: str = name

    def __repr__(self):
        return f"{type(self).__name__}({self.qualified_name!r})"


class Module(Declaration):
    kind = "module"

    def __init__(self, name: str, definitions: List[Declaration], **kwargs):
        super().__init__(name, **kwargs)
        self.definitions = definitions


class Member(Declaration):
    kind = "member"

    def __init__(self, name: str, type_spec: Any, **kwargs):
        super().__init__(name, **kwargs)
        self.type_spec = type_spec


class Struct(Declaration):
    kind = "struct"

    def __init__(self, name: str, members: List[Member], base: Optional[Any] = None, forward: bool = False, **kwargs):
        super().__init__(name, **kwargs)
        self.members = members
        self.base = base  # ScopedName, then TypeRef after resolution
        self.forward = forward

    def all_members(self) -> List[Member]:
        """Members including those inherited from the base struct chain, base first."""
        inherited: List[Member] = []
        if isinstance(self.base, TypeRef) and isinstance(self.base.declaration, Struct):
            inherited = self.base.declaration.all_members()
        return inherited + self.members


class EnumValue(Declaration):
    kind = "enumerator"

    def __init__(self, name: str, ordinal: int = 0, **kwargs):
        super().__init__(name, **kwargs)
        self.ordinal = ordinal
        self.enum: Optional['Enum'] = None


class Enum(Declaration):
    kind = "enum"

    def __init__(self, name: str, values: List[EnumValue], **kwargs):
        super().__init__(name, **kwargs)
        self.values = values
        for ordinal, value in enumerate(values):
            value.ordinal = ordinal
            value.enum = self


class UnionCase(Node):
    def __init__(self, labels: List[Any], is_default: bool, member: Member, **location):
        super().__init__(**location)
        self.labels = labels  # explicit label expressions, in source order
        self.is_default = is_default
        self.member = member
        self.label_values: List[int] = []


class Union(Declaration):
    kind = "union"

    def __init__(self, name: str, switch_type: Any, cases: List[UnionCase], forward: bool = False, **kwargs):
        super().__init__(name, **kwargs)
        self.switch_type = switch_type
        self.cases = cases
        self.forward = forward

    @property
    def default_case(self) -> Optional[UnionCase]:
        for case in self.cases:
            if case.is_default:
                return case
        return None


class Typedef(Declaration):
    kind = "typedef"

    def __init__(self, name: str, type_spec: Any, **kwargs):
        super().__init__(name, **kwargs)
        self.type_spec = type_spec


class Const(Declaration):
    kind = "const"

    def __init__(self, name: str, type_spec: Any, expr: Any, **kwargs):
        super().__init__(name, **kwargs)
        self.type_spec = type_spec
        self.expr = expr
        self.value: Any = None  # evaluated Python value, or an EnumValue for enum constants


class Native(Declaration):
    kind = "native"


class ExceptionDcl(Declaration):
    kind = "exception"

    def __init__(self, name: str, members: List[Member], **kwargs):
        super().__init__(name, **kwargs)
        self.members = members


class Operation(Declaration):
    kind = "operation"


class Attribute(Declaration):
    kind = "attribute"

    def __init__(self, name: str, readonly: bool = False, **kwargs):
        super().__init__(name, **kwargs)
        self.readonly = readonly


class Interface(Declaration):
    kind = "interface"

    def __init__(self, name: str, interface_kind: str, exports: List[Declaration], forward: bool = False, **kwargs):
        super().__init__(name, **kwargs)
        self.interface_kind = interface_kind  # 'interface', 'abstract interface' or 'local interface'
        self.exports = exports
        self.forward = forward


class Specification:
    """Root of one compilation: the top-level definitions plus everything later passes attach."""

    def __init__(self, definitions: List[Declaration], file: str, source_map: Optional[Any] = None):
        self.definitions = definitions
        self.file = file
        self.source_map = source_map
        self.symbols = None  # SymbolTable, filled by RegisterSymbolsTransform
        self.emission_order: List[Declaration] = []  # filled by DependencySortTransform


TYPE_DECLARATIONS = (Struct, Union, Enum, Typedef)


def type_spec_key(type_spec: Any) -> Tuple:
    """Structural identity of a type spec, used to group union cases with identical bodies."""
    if isinstance(type_spec, PrimitiveType):
        return ('primitive', type_spec.kind)
    if isinstance(type_spec, StringType):
        return ('string', type_spec.wide, type_spec.bound_value)
    if isinstance(type_spec, SequenceType):
        return ('sequence', type_spec_key(type_spec.element), type_spec.bound_value)
    if isinstance(type_spec, ArrayType):
        return ('array', type_spec_key(type_spec.element), tuple(type_spec.dim_values))
    if isinstance(type_spec, TypeRef):
        return ('ref', type_spec.declaration.qualified_name)
    if isinstance(type_spec, ScopedName):
        return ('name', type_spec.absolute, tuple(type_spec.parts))
    if isinstance(type_spec, UnsupportedType):
        return ('unsupported', type_spec.construct)
    raise TypeError(f"not a type spec: {type_spec!r}")


def member_body_key(member: Member) -> Tuple:
    return (member.name, type_spec_key(member.type_spec))


def walk_declarations(definitions: List[Declaration]):
    """Yield every declaration in definition order, descending into modules."""
    for definition in definitions:
        yield definition
        if isinstance(definition, Module):
            yield from walk_declarations(definition.definitions)


def underlying_type(type_spec: Any) -> Any:
    """Follow typedef references until a non-typedef type spec is reached."""
    seen = set()
    while isinstance(type_spec, TypeRef) and isinstance(type_spec.declaration, Typedef):
        if id(type_spec.declaration) in seen:
            break
        seen.add(id(type_spec.declaration))
        type_spec = type_spec.declaration.type_spec
    return type_spec


def type_refs(type_spec: Any):
    """Yield every TypeRef reachable inside a type spec (element types included)."""
    if isinstance(type_spec, TypeRef):
        yield type_spec
    elif isinstance(type_spec, (SequenceType, ArrayType)):
        yield from type_refs(type_spec.element)


def const_refs(expr: Any):
    """Yield every ConstRef inside a constant expression."""
    if isinstance(expr, ConstRef):
        yield expr
    elif isinstance(expr, UnaryExpr):
        yield from const_refs(expr.operand)
    elif isinstance(expr, BinaryExpr):
        yield from const_refs(expr.left)
        yield from const_refs(expr.right)


def type_spec_exprs(type_spec: Any):
    """Yield the constant expressions embedded in a type spec (bounds and array dimensions)."""
    if isinstance(type_spec, ArrayType):
        yield from type_spec.dims
        yield from type_spec_exprs(type_spec.element)
    elif isinstance(type_spec, SequenceType):
        if type_spec.bound is not None:
            yield type_spec.bound
        yield from type_spec_exprs(type_spec.element)
    elif isinstance(type_spec, StringType) and type_spec.bound is not None:
        yield type_spec.bound
