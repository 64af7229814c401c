import pytest

from idl_errors import (
    DuplicateCaseLabelError, DuplicateDeclarationError, InvalidConstantError, UnsupportedSwitchTypeError,
)
from tests.test_utils import find_declaration, resolve_idl


def const_values(idl):
    spec = resolve_idl(idl)
    return {decl.qualified_name: decl.value for _, decl in spec.symbols.items() if decl.kind == 'const'}


def test_integer_arithmetic():
    values = const_values('''
    const long A = 1 + 2 * 4;
    const long B = (A - 3) * 6;
    const long C = -7 / 2;
    const long D = -7 % 2;
    const long E = 1 << 4 | 3;
    const long F = ~0;
    const long G = 0xF0 & 0x3C ^ 1;
    const unsigned long long BIG = 0xFFFFFFFFFFFFFFFF;
    ''')
    assert values['A'] == 9
    assert values['B'] == 36
    assert values['C'] == -3
    assert values['D'] == -1
    assert values['E'] == 19
    assert values['F'] == -1
    assert values['G'] == 0x31
    assert values['BIG'] == 2 ** 64 - 1


def test_floating_point_constants():
    values = const_values('''
    const long A = 3;
    const double D = A * 1.5;
    const double Q = 1.0 / 4;
    const float W = 2;
    ''')
    assert values['D'] == 4.5
    assert values['Q'] == 0.25
    assert values['W'] == 2.0
    assert isinstance(values['W'], float)


def test_string_char_boolean_and_enum_constants():
    spec = resolve_idl('''
    enum Color { RED, GREEN };
    const string NAME = "hello" " world";
    const char C = 'x';
    const boolean FLAG = FALSE;
    const Color FAVOURITE = GREEN;
    ''')
    assert find_declaration(spec, 'NAME').value == 'hello world'
    assert find_declaration(spec, 'C').value == 'x'
    assert find_declaration(spec, 'FLAG').value is False
    assert find_declaration(spec, 'FAVOURITE').value is find_declaration(spec, 'Color::GREEN')


def test_constants_may_refer_to_later_constants():
    values = const_values('const long A = B + 1; const long B = 41;')
    assert values['A'] == 42


@pytest.mark.parametrize("idl", [
    'const octet O = 256;',
    'const unsigned short U = -1;',
    'const long L = 2147483648;',
    'const short S = -32769;',
])
def test_value_out_of_range(idl):
    with pytest.raises(InvalidConstantError) as excinfo:
        resolve_idl(idl)
    assert excinfo.value.kind == 'InvalidConstant'
    assert 'out of range' in excinfo.value.message


def test_complement_follows_unsigned_target_width():
    values = const_values('''
    const long ONE = 1;
    const unsigned long M = ~0;
    const octet O = ~0x0F;
    const unsigned short S = ~ONE;
    const unsigned long long U = ~1;
    typedef unsigned long Mask;
    const Mask T = ~0 & 0xFF00;
    ''')
    assert values['M'] == 2 ** 32 - 1
    assert values['O'] == 0xF0
    assert values['S'] == 0xFFFE
    assert values['U'] == 2 ** 64 - 2
    assert values['T'] == 0xFF00


@pytest.mark.parametrize("idl", [
    'const double D = 1e308 * 10;',
    'const double D = 1e400;',
    'const double D = -1e308 - 1e308;',
    'const float F = 1e39;',
    'const float F = -3.5e38;',
])
def test_float_out_of_range(idl):
    with pytest.raises(InvalidConstantError) as excinfo:
        resolve_idl(idl)
    assert 'out of range' in excinfo.value.message


def test_float_limits_are_accepted():
    values = const_values('const float F = 3.4e38; const double D = 1e308;')
    assert values['F'] == 3.4e38
    assert values['D'] == 1e308


@pytest.mark.parametrize("idl", [
    'const long Z = 1 / 0;',
    'const long Z = 1 % 0;',
    'const double Z = 1.0 / 0;',
])
def test_division_by_zero(idl):
    with pytest.raises(InvalidConstantError):
        resolve_idl(idl)


@pytest.mark.parametrize("idl", [
    'const long L = "text";',
    'const boolean B = 1;',
    'const char C = 65;',
    'const string<2> S = "abc";',
    'const long S = 1 << 64;',
    'const double X = 1.5 % 2;',
    'enum A { X }; enum B { Y }; const A C = Y;',
    'enum A { X }; const long C = X;',
    'struct Foo { long x; }; const Foo F = 1;',
])
def test_invalid_constants(idl):
    with pytest.raises(InvalidConstantError):
        resolve_idl(idl)


def test_constant_defined_in_terms_of_itself():
    with pytest.raises(InvalidConstantError) as excinfo:
        resolve_idl('const long A = B; const long B = A;')
    assert 'in terms of itself' in excinfo.value.message


def test_array_dimensions_and_bounds():
    spec = resolve_idl('''
    const long N = 2;
    struct S { short m[N][N + 1]; };
    typedef sequence<long, 2 * 8> Bounded;
    typedef string<N * 5> Name;
    ''')
    assert find_declaration(spec, 'S::m').type_spec.dim_values == [2, 3]
    assert find_declaration(spec, 'Bounded').type_spec.bound_value == 16
    assert find_declaration(spec, 'Name').type_spec.bound_value == 10


@pytest.mark.parametrize("idl", [
    'struct S { long m[0]; };',
    'typedef long T[-1];',
    'typedef sequence<long, 0> Empty;',
])
def test_non_positive_sizes(idl):
    with pytest.raises(InvalidConstantError):
        resolve_idl(idl)


def test_union_labels_are_evaluated():
    spec = resolve_idl('''
    const long BASE = 10;
    union U switch (long) {
        case BASE: long a;
        case BASE + 1:
        case -1: short b;
        default: octet c;
    };
    ''')
    union = find_declaration(spec, 'U')
    assert [case.label_values for case in union.cases] == [[10], [11, -1], []]


def test_union_without_default_is_accepted():
    spec = resolve_idl('union U switch (long) { case 0: long a; };')
    assert find_declaration(spec, 'U').default_case is None


def test_union_switch_through_typedef():
    spec = resolve_idl('typedef long Disc; union U switch (Disc) { case 0: long a; };')
    assert find_declaration(spec, 'U').cases[0].label_values == [0]


def test_duplicate_case_label():
    with pytest.raises(DuplicateCaseLabelError) as excinfo:
        resolve_idl('const long ONE = 1; union U switch (long) { case ONE: long a; case 1: short b; };')
    assert excinfo.value.kind == 'DuplicateCaseLabel'
    assert excinfo.value.union == 'U'
    assert excinfo.value.label == '1'


def test_two_default_cases():
    with pytest.raises(DuplicateCaseLabelError) as excinfo:
        resolve_idl('union U switch (long) { default: long a; default: short b; };')
    assert excinfo.value.label == 'default'


@pytest.mark.parametrize("switch_type, reported", [
    ('short', 'short'),
    ('unsigned long', 'unsigned long'),
    ('Color', 'Color'),
    ('boolean', 'boolean'),
])
def test_unsupported_switch_types(switch_type, reported):
    idl = 'enum Color { RED }; union U switch (%s) { case 0: long a; };' % switch_type
    with pytest.raises(UnsupportedSwitchTypeError) as excinfo:
        resolve_idl(idl)
    assert excinfo.value.kind == 'UnsupportedSwitchType'
    assert excinfo.value.switch_type == reported


@pytest.mark.parametrize("label", ["'a'", '2147483648', '1.5'])
def test_invalid_case_labels(label):
    with pytest.raises(InvalidConstantError):
        resolve_idl('union U switch (long) { case %s: long a; };' % label)


def test_same_member_name_needs_same_type():
    with pytest.raises(DuplicateDeclarationError) as excinfo:
        resolve_idl('union U switch (long) { case 0: long x; case 1: short x; };')
    assert excinfo.value.name == 'x'


def test_same_member_name_and_type_is_allowed():
    spec = resolve_idl('union U switch (long) { case 0: long x; case 1: long x; };')
    assert [case.label_values for case in find_declaration(spec, 'U').cases] == [[0], [1]]
