"""
ast_builder.py
Lowers the lark parse tree produced by idl_lark_parser into idl_ast nodes. Every production maps to
exactly one node (or a list of nodes where one definition introduces several declarators). No name
lookup or constant folding happens here.
"""
import re
from typing import Any, List

from lark import Token, Transformer, Tree, v_args
from lark.exceptions import VisitError

from idl_ast import (
    Annotation, ArrayType, Attribute, BinaryExpr, Const, Declaration, Enum, EnumValue, ExceptionDcl,
    Interface, Literal, Member, Module, Native, Operation, PrimitiveType, ScopedName, SequenceType,
    Specification, StringType, Struct, Typedef, UnaryExpr, Union, UnionCase, UnsupportedType,
)
from idl_errors import IdlError, MalformedTreeError

_DEFAULT_LABEL = object()

ESCAPE_RE = re.compile(r'\\(x[0-9a-fA-F]{1,2}|u[0-9a-fA-F]{1,4}|[0-7]{1,3}|.)', re.DOTALL)
SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'v': '\v', 'b': '\b', 'r': '\r', 'f': '\f', 'a': '\a',
    '\\': '\\', '?': '?', "'": "'", '"': '"',
}


def _unescape(text: str) -> str:
    """Decode backslash escapes only; every other character is kept as written."""
    def replace(match):
        escape = match.group(1)
        if escape[0] in 'xu' and len(escape) > 1:
            return chr(int(escape[1:], 16))
        if escape[0] in '01234567':
            return chr(int(escape, 8))
        return SIMPLE_ESCAPES.get(escape, escape)
    return ESCAPE_RE.sub(replace, text)


def _name(token) -> str:
    # a leading underscore escapes an identifier that would clash with a keyword
    text = str(token)
    return text[1:] if text.startswith('_') and len(text) > 1 else text


def _parse_integer(text: str) -> int:
    if text[:2] in ('0x', '0X'):
        return int(text, 16)
    if len(text) > 1 and text.startswith('0'):
        return int(text, 8)
    return int(text)


def _flatten(items) -> List[Any]:
    result = []
    for item in items:
        if isinstance(item, list):
            result.extend(item)
        else:
            result.append(item)
    return result


@v_args(meta=True)
class IdlAstBuilder(Transformer):
    """Transformer from parse tree to AST. Locations are translated through the source map when one is given."""

    def __init__(self, file_name: str = "<string>", source_map=None):
        super().__init__(visit_tokens=False)
        self.file_name = file_name
        self.source_map = source_map

    def _loc(self, where) -> dict:
        line = getattr(where, 'line', None)
        column = getattr(where, 'column', None)
        file = self.file_name
        if self.source_map is not None and line is not None:
            file, line = self.source_map.locate(line)
        return {'file': file, 'line': line, 'column': column}

    def _ident(self, children, index: int = 0) -> Token:
        tokens = [c for c in children if isinstance(c, Token) and c.type == 'IDENT']
        if len(tokens) <= index:
            raise MalformedTreeError("expected an identifier", file=self.file_name)
        return tokens[index]

    @staticmethod
    def _annotations(children) -> List[Annotation]:
        return [c for c in children if isinstance(c, Annotation)]

    # --- definitions ---

    def start(self, meta, children):
        return _flatten(children)

    def definition(self, meta, children):
        annotations = self._annotations(children)
        declarations = _flatten(c for c in children if not isinstance(c, Annotation))
        if not declarations or not all(isinstance(d, Declaration) for d in declarations):
            raise MalformedTreeError("definition without a declaration", **self._loc(meta))
        for declaration in declarations:
            declaration.annotations = annotations + declaration.annotations
        return declarations

    def module_dcl(self, meta, children):
        name = self._ident(children)
        return Module(_name(name), _flatten(children[1:]), **self._loc(meta))

    def const_dcl(self, meta, children):
        type_spec, name, expr = children
        return Const(_name(name), type_spec, expr, **self._loc(name))

    def struct_def(self, meta, children):
        name = self._ident(children)
        base = None
        members = []
        for child in children[1:]:
            if isinstance(child, ScopedName):
                base = child
            else:
                members.extend(child)
        return Struct(_name(name), members, base=base, **self._loc(name))

    def struct_inheritance(self, meta, children):
        return children[0]

    def struct_forward_dcl(self, meta, children):
        name = self._ident(children)
        return Struct(_name(name), [], forward=True, **self._loc(name))

    def member(self, meta, children):
        annotations = self._annotations(children)
        type_spec, declarators = children[-2], children[-1]
        return [self._declarator_member(type_spec, declarator, annotations) for declarator in declarators]

    def _declarator_member(self, type_spec, declarator, annotations) -> Member:
        name, dims = declarator
        if dims:
            type_spec = ArrayType(type_spec, dims, **self._loc(name))
        return Member(_name(name), type_spec, annotations=list(annotations), **self._loc(name))

    def declarators(self, meta, children):
        return list(children)

    def declarator(self, meta, children):
        return (children[0], list(children[1:]))

    def fixed_array_size(self, meta, children):
        return children[0]

    def union_def(self, meta, children):
        name = self._ident(children)
        switch_type = children[1]
        cases = children[2:]
        if not all(isinstance(c, UnionCase) for c in cases):
            raise MalformedTreeError(f"malformed case list in union '{name}'", **self._loc(name))
        return Union(_name(name), switch_type, list(cases), **self._loc(name))

    def union_forward_dcl(self, meta, children):
        name = self._ident(children)
        return Union(_name(name), None, [], forward=True, **self._loc(name))

    def switch_case(self, meta, children):
        member = children[-1]
        labels = children[:-1]
        is_default = any(label is _DEFAULT_LABEL for label in labels)
        explicit = [label for label in labels if label is not _DEFAULT_LABEL]
        return UnionCase(explicit, is_default, member, **self._loc(meta))

    def case_label(self, meta, children):
        return children[0]

    def default_label(self, meta, children):
        return _DEFAULT_LABEL

    def element_spec(self, meta, children):
        annotations = self._annotations(children)
        type_spec, declarator = children[-2], children[-1]
        return self._declarator_member(type_spec, declarator, annotations)

    def enum_dcl(self, meta, children):
        name = self._ident(children)
        return Enum(_name(name), list(children[1:]), **self._loc(name))

    def enumerator(self, meta, children):
        name = self._ident(children)
        return EnumValue(_name(name), annotations=self._annotations(children), **self._loc(name))

    def typedef_dcl(self, meta, children):
        type_spec, declarators = children
        typedefs = []
        for name, dims in declarators:
            target = ArrayType(type_spec, dims, **self._loc(name)) if dims else type_spec
            typedefs.append(Typedef(_name(name), target, **self._loc(name)))
        return typedefs

    def native_dcl(self, meta, children):
        name = self._ident(children)
        return Native(_name(name), **self._loc(name))

    def except_dcl(self, meta, children):
        name = self._ident(children)
        return ExceptionDcl(_name(name), _flatten(children[1:]), **self._loc(name))

    # --- interfaces: only kept well enough to be named in diagnostics ---

    def interface_def(self, meta, children):
        kind = children[0]
        name = self._ident(children)
        exports = _flatten(c for c in children[2:] if isinstance(c, list))
        return Interface(_name(name), kind, exports, **self._loc(name))

    def interface_forward_dcl(self, meta, children):
        kind = children[0]
        name = self._ident(children)
        return Interface(_name(name), kind, [], forward=True, **self._loc(name))

    def interface_kind(self, meta, children):
        return ' '.join(str(c) for c in children)

    def interface_inheritance(self, meta, children):
        return tuple(children)

    def export(self, meta, children):
        annotations = self._annotations(children)
        exported = _flatten(c for c in children if not isinstance(c, Annotation))
        for declaration in exported:
            declaration.annotations = annotations + declaration.annotations
        return exported

    def op_dcl(self, meta, children):
        name = self._ident(children)
        return Operation(_name(name), **self._loc(name))

    def attr_dcl(self, meta, children):
        readonly = any(isinstance(c, Tree) and c.data == 'attr_readonly' for c in children)
        names = [c for c in children if isinstance(c, Token) and c.type == 'IDENT']
        return [Attribute(_name(name), readonly=readonly, **self._loc(name)) for name in names]

    # --- type specs ---

    def primitive_type(self, meta, children):
        return PrimitiveType(' '.join(str(c) for c in children), **self._loc(meta))

    def unsupported_type(self, meta, children):
        return UnsupportedType(str(children[0]), **self._loc(meta))

    def fixed_pt_type(self, meta, children):
        return UnsupportedType('fixed', **self._loc(meta))

    def string_type(self, meta, children):
        return StringType(False, children[0] if children else None, **self._loc(meta))

    def wide_string_type(self, meta, children):
        return StringType(True, children[0] if children else None, **self._loc(meta))

    def type_bound(self, meta, children):
        return children[0]

    def sequence_type(self, meta, children):
        bound = children[1] if len(children) > 1 else None
        return SequenceType(children[0], bound, **self._loc(meta))

    def scoped_name(self, meta, children):
        return ScopedName([_name(c) for c in children], **self._loc(meta))

    def absolute_scoped_name(self, meta, children):
        return ScopedName([_name(c) for c in children], absolute=True, **self._loc(meta))

    # --- annotations ---

    def annotation_appl(self, meta, children):
        params = children[1] if len(children) > 1 else []
        return Annotation(str(children[0]), params, **self._loc(meta))

    def annotation_keyword(self, meta, children):
        return str(children[0])

    def annotation_params(self, meta, children):
        return list(children)

    def annotation_param(self, meta, children):
        return (str(children[0]), children[1])

    # --- constant expressions ---

    def _binary(self, op, meta, children):
        return BinaryExpr(op, children[0], children[1], **self._loc(meta))

    def or_op(self, meta, children):
        return self._binary('|', meta, children)

    def xor_op(self, meta, children):
        return self._binary('^', meta, children)

    def and_op(self, meta, children):
        return self._binary('&', meta, children)

    def rshift_op(self, meta, children):
        return self._binary('>>', meta, children)

    def lshift_op(self, meta, children):
        return self._binary('<<', meta, children)

    def add_op(self, meta, children):
        return self._binary('+', meta, children)

    def sub_op(self, meta, children):
        return self._binary('-', meta, children)

    def mul_op(self, meta, children):
        return self._binary('*', meta, children)

    def div_op(self, meta, children):
        return self._binary('/', meta, children)

    def mod_op(self, meta, children):
        return self._binary('%', meta, children)

    def neg_op(self, meta, children):
        return UnaryExpr('-', children[0], **self._loc(meta))

    def pos_op(self, meta, children):
        return UnaryExpr('+', children[0], **self._loc(meta))

    def inv_op(self, meta, children):
        return UnaryExpr('~', children[0], **self._loc(meta))

    def integer_literal(self, meta, children):
        token = children[0]
        return Literal('integer', _parse_integer(str(token)), str(token), **self._loc(token))

    def float_literal(self, meta, children):
        token = children[0]
        return Literal('float', float(str(token).rstrip('dD')), str(token), **self._loc(token))

    def char_literal(self, meta, children):
        token = children[0]
        return Literal('char', _unescape(str(token)[1:-1]), str(token), **self._loc(token))

    def wchar_literal(self, meta, children):
        token = children[0]
        return Literal('wchar', _unescape(str(token)[2:-1]), str(token), **self._loc(token))

    def string_literal(self, meta, children):
        value = ''.join(_unescape(str(t)[1:-1]) for t in children)
        return Literal('string', value, ' '.join(str(t) for t in children), **self._loc(meta))

    def wide_string_literal(self, meta, children):
        value = ''.join(_unescape(str(t)[2:-1]) for t in children)
        return Literal('wstring', value, ' '.join(str(t) for t in children), **self._loc(meta))

    def boolean_literal(self, meta, children):
        token = children[0]
        return Literal('boolean', str(token) == 'TRUE', str(token), **self._loc(token))


def build_specification(tree: Tree, file_name: str = "<string>", source_map=None) -> Specification:
    """Lower a whole parse tree. Any non-IDL failure inside the transformer is reported as MalformedTree."""
    builder = IdlAstBuilder(file_name, source_map)
    try:
        definitions = builder.transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, IdlError):
            raise e.orig_exc from None
        raise MalformedTreeError(f"cannot lower '{e.rule}': {e.orig_exc}", file=file_name) from e
    if not isinstance(definitions, list) or not all(isinstance(d, Declaration) for d in definitions):
        raise MalformedTreeError("parse tree root is not a definition list", file=file_name)
    return Specification(definitions, file_name, source_map)
