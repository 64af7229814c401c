"""
Rust generator for resolved IDL specifications.
Emits one Rust source unit: IDL modules become nested `pub mod` blocks, and the declarations inside each
module follow the dependency order computed by DependencySortTransform.
"""
import sys
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

from idl_ast import (
    Const, Declaration, Enum, EnumValue, PrimitiveType, Specification, Struct, Typedef, Union, member_body_key,
    underlying_type,
)
from idl_errors import RenderError
from type_mapper import TypeMapper, module_path, rust_ident
from generators.template_renderer import TemplateRenderer

RUST_CHAR_ESCAPES = {
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\\': '\\\\',
    '\0': '\\0',
}


class UnionVariant:
    """One output variant: a distinct case body plus every label value that selects it."""

    def __init__(self, name: str, member, labels: List[int], is_default: bool = False):
        self.name = name
        self.member = member
        self.labels = labels
        self.is_default = is_default

    def __repr__(self):
        return f"UnionVariant({self.name!r}, labels={self.labels}, default={self.is_default})"


def flatten_union(union: Union) -> List[UnionVariant]:
    """
    Group the explicit cases by body identity (member name + type). Variants keep the order in which each
    body first appears; the default case is always its own variant and comes last.
    """
    grouped: 'OrderedDict[Tuple, UnionVariant]' = OrderedDict()
    default_variant: Optional[UnionVariant] = None
    for case in union.cases:
        if case.is_default:
            default_variant = UnionVariant('default', case.member, list(case.label_values), is_default=True)
            continue
        key = member_body_key(case.member)
        if key not in grouped:
            grouped[key] = UnionVariant(case.member.name, case.member, [])
        grouped[key].labels.extend(case.label_values)
    variants = list(grouped.values())
    if default_variant is not None:
        variants.append(default_variant)
    return variants


def rust_char_literal(value: str) -> str:
    if value == "'":
        return "'\\''"
    if value in RUST_CHAR_ESCAPES:
        return f"'{RUST_CHAR_ESCAPES[value]}'"
    if not value.isprintable():
        return f"'\\u{{{ord(value):x}}}'"
    return f"'{value}'"


def rust_string_literal(value: str) -> str:
    out = []
    for ch in value:
        if ch == '"':
            out.append('\\"')
        elif ch in RUST_CHAR_ESCAPES:
            out.append(RUST_CHAR_ESCAPES[ch])
        elif not ch.isprintable():
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + ''.join(out) + '"'


class _ModuleNode:
    def __init__(self, name: str, path: List[str]):
        self.name = name
        self.path = path
        self.items: List[Tuple[int, Declaration]] = []
        self.children: 'OrderedDict[str, _ModuleNode]' = OrderedDict()

    def child(self, name: str) -> '_ModuleNode':
        if name not in self.children:
            self.children[name] = _ModuleNode(name, self.path + [name])
        return self.children[name]

    def first_position(self) -> int:
        positions = [position for position, _ in self.items]
        positions += [child.first_position() for child in self.children.values()]
        return min(positions)


class RustGenerator:
    def __init__(self, type_mapper: Optional[TypeMapper] = None, renderer: Optional[TemplateRenderer] = None,
                 verbose: bool = False):
        self.type_mapper = type_mapper or TypeMapper()
        self.renderer = renderer or TemplateRenderer()
        self.verbose = verbose

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def generate(self, spec: Specification) -> str:
        root = _ModuleNode('', [])
        for position, decl in enumerate(spec.emission_order):
            node = root
            for name in module_path(decl):
                node = node.child(name)
            node.items.append((position, decl))
        body = self._render_module_body(root)
        return self.renderer.render('file', {'uses_serde': self._uses_serde(root), 'body': body}) + "\n"

    @staticmethod
    def _uses_serde(node: _ModuleNode) -> bool:
        return any(isinstance(decl, (Struct, Union, Enum)) for _, decl in node.items)

    def _render_module_body(self, node: _ModuleNode) -> str:
        entries: List[Tuple[int, Any]] = list(node.items)
        entries += [(child.first_position(), child) for child in node.children.values()]
        entries.sort(key=lambda entry: entry[0])
        chunks = []
        for _, entry in entries:
            if isinstance(entry, _ModuleNode):
                chunks.append(self._render_module(entry))
            else:
                chunks.append(self.render_declaration(entry, node.path))
        return "\n\n".join(chunks)

    def _render_module(self, node: _ModuleNode) -> str:
        self.debug_print(f"Generating module {'::'.join(node.path)}")
        body = self._render_module_body(node)
        indented = "\n".join(("    " + line) if line.strip() else "" for line in body.splitlines())
        return self.renderer.render('module', {
            'name': node.name,
            'uses_serde': self._uses_serde(node),
            'body': indented,
        })

    def render_declaration(self, decl: Declaration, from_module: List[str]) -> str:
        self.debug_print(f"Generating {decl.kind} {decl.qualified_name}")
        if isinstance(decl, Struct):
            self.check_accessor_names(decl)
            members = [
                {'name': member.name, 'type': self.type_mapper.map_type(member.type_spec).render(from_module)}
                for member in decl.all_members()
            ]
            return self.renderer.render('struct', {'name': decl.name, 'members': members})
        if isinstance(decl, Enum):
            return self.renderer.render('enum', {'name': decl.name, 'values': [v.name for v in decl.values]})
        if isinstance(decl, Union):
            variants = [
                {
                    'name': variant.name,
                    'member': variant.member.name,
                    'type': self.type_mapper.map_type(variant.member.type_spec).render(from_module),
                    'labels': [str(label) for label in variant.labels],
                }
                for variant in flatten_union(decl)
            ]
            return self.renderer.render('union', {'name': decl.name, 'variants': variants})
        if isinstance(decl, Typedef):
            mapped = self.type_mapper.map_declaration(decl)
            return self.renderer.render('typedef', {'name': decl.name, 'type': mapped.render(from_module)})
        if isinstance(decl, Const):
            mapped = self.type_mapper.map_declaration(decl)
            return self.renderer.render('const', {
                'name': decl.name,
                'type': mapped.render(from_module),
                'value': self.render_const_value(decl, from_module),
            })
        raise TypeError(f"cannot generate {decl.kind} '{decl.qualified_name}'")

    @staticmethod
    def check_accessor_names(struct: Struct) -> None:
        """new(), one getter and one set_ setter per member all share the impl block."""
        methods = {'new': None}
        for member in struct.all_members():
            getter = rust_ident(member.name)
            for method in (getter[2:] if getter.startswith('r#') else getter, f"set_{member.name}"):
                if method in methods:
                    owner = methods[method]
                    clash = f"member '{owner.name}'" if owner is not None else "the constructor"
                    raise RenderError(
                        f"accessor '{method}' of member '{member.name}' in struct '{struct.qualified_name}' "
                        f"collides with {clash}", **member.location())
                methods[method] = member

    def render_const_value(self, const: Const, from_module: List[str]) -> str:
        value = const.value
        if isinstance(value, EnumValue):
            enum_type = self.type_mapper.map_declaration(value.enum)
            return f"{enum_type.render(from_module)}::{rust_ident(value.name)}"
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return repr(value)
        target = underlying_type(const.type_spec)
        if isinstance(target, PrimitiveType) and target.kind in ('char', 'wchar'):
            return rust_char_literal(value)
        return rust_string_literal(value)


def generate_rust_code(spec: Specification, verbose: bool = False) -> str:
    return RustGenerator(verbose=verbose).generate(spec)
