import pytest

from idl_ast import Member, Struct, Typedef, PrimitiveType
from idl_errors import DuplicateDeclarationError, UnsupportedConstructError
from idl_transforms.register_symbols_transform import RegisterSymbolsTransform
from symbol_table import GLOBAL_SCOPE
from tests.test_utils import build_ast


def register(text):
    return RegisterSymbolsTransform().transform(build_ast(text))


def test_qualified_names_follow_module_nesting():
    spec = register('module A { module B { struct Foo { long x; }; }; };')
    symbols = spec.symbols
    assert isinstance(symbols['A::B::Foo'], Struct)
    assert isinstance(symbols['A::B::Foo::x'], Member)
    assert symbols['A::B'].kind == 'module'
    assert symbols.scopes[symbols['A::B::Foo'].scope].qualified_name == 'A::B'


def test_reopened_module_shares_one_scope():
    spec = register('module A { struct X { long a; }; }; module A { struct Y { long b; }; };')
    symbols = spec.symbols
    assert 'A::X' in symbols
    assert 'A::Y' in symbols
    assert symbols['A::X'].scope == symbols['A::Y'].scope
    # global, A, X, Y
    assert len(symbols.scopes) == 4


def test_duplicate_struct_in_same_scope():
    with pytest.raises(DuplicateDeclarationError) as excinfo:
        register('struct Foo { long x; }; struct Foo { long y; };')
    err = excinfo.value
    assert err.kind == 'DuplicateDeclaration'
    assert err.name == 'Foo'
    assert err.scope == ''
    assert (err.line, err.column) == (1, 32)


def test_same_name_in_different_modules_is_fine():
    spec = register('module A { struct Foo { long x; }; }; module B { struct Foo { long x; }; };')
    assert spec.symbols['A::Foo'] is not spec.symbols['B::Foo']


def test_duplicate_member():
    with pytest.raises(DuplicateDeclarationError) as excinfo:
        register('struct Foo { long x; short x; };')
    assert excinfo.value.scope == 'Foo'
    assert excinfo.value.name == 'x'


def test_module_and_struct_name_clash():
    with pytest.raises(DuplicateDeclarationError):
        register('module Foo { struct A { long x; }; }; struct Foo { long y; };')


def test_enumerators_are_visible_in_enclosing_scope():
    spec = register('module M { enum Color { RED, GREEN }; };')
    symbols = spec.symbols
    red = symbols['M::Color::RED']
    assert red.qualified_name == 'M::Color::RED'
    assert symbols.lookup_local(symbols['M::Color'].scope, 'RED') is red


def test_enumerator_clash_between_enums():
    with pytest.raises(DuplicateDeclarationError) as excinfo:
        register('enum A { RED }; enum B { RED };')
    assert excinfo.value.name == 'RED'


def test_forward_declaration_then_definition():
    spec = register('struct Foo; struct Foo { long x; };')
    foo = spec.symbols['Foo']
    assert not foo.forward
    assert foo.members[0].name == 'x'
    forward = spec.definitions[0]
    assert forward.qualified_name == 'Foo'


def test_forward_declaration_of_other_kind():
    with pytest.raises(DuplicateDeclarationError):
        register('struct Foo; union Foo switch (long) { case 0: long x; };')


def test_repeated_union_member_name_is_registered_once():
    spec = register('union U switch (long) { case 0: long x; case 1: long x; };')
    union = spec.symbols['U']
    assert [case.member.qualified_name for case in union.cases] == ['U::x', 'U::x']
    assert spec.symbols['U::x'] is union.cases[0].member


@pytest.mark.parametrize("idl, construct", [
    ('interface Calc { void reset(); };', "interface 'Calc'"),
    ('abstract interface Shape;', "abstract interface 'Shape'"),
    ('interface Calc { const long LIMIT = 3; };', "constant 'LIMIT' declared inside interface 'Calc'"),
    ('interface Calc { struct Pair { long a; }; };', "struct 'Pair' declared inside interface 'Calc'"),
    ('exception Overflow { long value; };', "exception 'Overflow'"),
    ('module M { native Handle; };', "native type 'Handle'"),
])
def test_unsupported_constructs_are_named(idl, construct):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        register(idl)
    assert excinfo.value.kind == 'UnsupportedConstruct'
    assert excinfo.value.construct == construct
    assert excinfo.value.line == 1


def test_table_is_frozen_after_registration():
    spec = register('struct Foo { long x; };')
    with pytest.raises(RuntimeError):
        spec.symbols.declare(GLOBAL_SCOPE, Typedef('Late', PrimitiveType('long')))
