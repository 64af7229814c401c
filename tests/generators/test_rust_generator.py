import os

import pytest

from generators.rust_generator import RustGenerator, flatten_union, generate_rust_code, rust_char_literal, rust_string_literal
from generators.template_renderer import TemplateRenderer
from idl_errors import RenderError, UnsupportedMappingError
from type_mapper import TypeMapper
from tests.test_utils import compile_rust, find_declaration, resolve_idl

SERDE_USE = "use serde_derive::{Serialize, Deserialize};"

UNION_IDL = '''
union U switch (long) {
    case 0: long l;
    case 1:
    case 2: short s;
    default: octet o[8];
};
'''

UNION_RUST = (
    "use serde_derive::{Serialize, Deserialize};\n"
    "\n"
    "#[allow(dead_code, non_camel_case_types)]\n"
    "#[derive(Serialize, Deserialize, Clone, Debug)]\n"
    "pub enum U {\n"
    "    l{ l: i32, },\n"
    "    s{ s: i16, },\n"
    "    default{ o: [u8; 8], },\n"
    "}\n"
    "\n"
    "#[allow(dead_code)]\n"
    "impl U {\n"
    "    pub fn discriminator_labels(&self) -> &'static [i32] {\n"
    "        match self {\n"
    "            U::l{ .. } => &[0],\n"
    "            U::s{ .. } => &[1, 2],\n"
    "            U::default{ .. } => &[],\n"
    "        }\n"
    "    }\n"
    "}\n"
)


def test_module_becomes_nested_pub_mod():
    rust = compile_rust('module M { struct Point { long x; long y; }; };')
    assert rust.startswith("#[allow(non_snake_case)]\npub mod M {\n")
    assert ("pub mod M {\n"
            "    use serde_derive::{Serialize, Deserialize};\n"
            "\n"
            "    #[allow(dead_code, non_camel_case_types)]\n"
            "    #[derive(Serialize, Deserialize, Clone, Debug)]\n"
            "    pub struct Point {\n"
            "        #[allow(non_snake_case)]\n"
            "        pub x: i32,\n"
            "        #[allow(non_snake_case)]\n"
            "        pub y: i32,\n"
            "    }\n") in rust
    assert "        pub fn new(x: i32, y: i32, ) -> Self {" in rust
    assert "        pub fn set_y(&mut self, value: i32) {" in rust
    assert rust.endswith("}\n")
    # the serde import lives inside the module, not at file level
    assert rust.count(SERDE_USE) == 1


def test_union_is_flattened_to_one_variant_per_body():
    assert compile_rust(UNION_IDL) == UNION_RUST


def test_output_is_stable_across_runs():
    idl = UNION_IDL + 'module M { struct A { U u; }; enum E { X, Y }; };'
    assert compile_rust(idl) == compile_rust(idl)


def test_flatten_union_puts_default_last():
    spec = resolve_idl('union U switch (long) { default: long d; case 1: short s; case 2: short s; case 3: long t; };')
    variants = flatten_union(find_declaration(spec, 'U'))
    assert [v.name for v in variants] == ['s', 't', 'default']
    assert [v.labels for v in variants] == [[1, 2], [3], []]
    assert variants[-1].is_default
    assert variants[-1].member.name == 'd'


def test_members_with_the_same_type_but_different_names_stay_apart():
    spec = resolve_idl('union U switch (long) { case 0: long a; case 1: long b; };')
    assert [v.name for v in flatten_union(find_declaration(spec, 'U'))] == ['a', 'b']


def test_enum_output():
    rust = compile_rust('enum Color { RED, GREEN };')
    assert rust.startswith(SERDE_USE + "\n\n")
    assert "pub enum Color {\n    RED,\n    GREEN,\n}\n" in rust
    assert '            "GREEN" => Ok(Color::GREEN),\n' in rust
    assert '            Color::RED => "RED",\n' in rust
    assert "pub struct ColorError;" in rust


def test_typedefs_are_type_aliases_of_the_final_type():
    rust = compile_rust('typedef long A; typedef A B;')
    assert rust == (
        "#[allow(dead_code, non_camel_case_types)]\n"
        "pub type A = i32;\n"
        "\n"
        "#[allow(dead_code, non_camel_case_types)]\n"
        "pub type B = i32;\n"
    )


def test_constants():
    rust = compile_rust(r'''
    enum Color { RED, GREEN };
    const long N = 2 * 2;
    const string S = "a\"b";
    const char C = 'x';
    const char TAB = '\t';
    const boolean F = TRUE;
    const double D = 2.5;
    const Color FAV = GREEN;
    ''')
    assert "pub const N: i32 = 4;" in rust
    assert "pub const S: &'static str = \"a\\\"b\";" in rust
    assert "pub const C: char = 'x';" in rust
    assert "pub const TAB: char = '\\t';" in rust
    assert "pub const F: bool = true;" in rust
    assert "pub const D: f64 = 2.5;" in rust
    assert "pub const FAV: Color = Color::GREEN;" in rust


def test_non_ascii_constants_are_emitted_unchanged():
    rust = compile_rust('''
    const string CAFE = "café";
    const string HAN = "中";
    const char E = 'é';
    ''')
    assert "pub const CAFE: &'static str = \"café\";" in rust
    assert "pub const HAN: &'static str = \"中\";" in rust
    assert "pub const E: char = 'é';" in rust


def test_unsigned_complement_constant():
    assert "pub const M: u32 = 4294967295;" in compile_rust('const unsigned long M = ~0;')


@pytest.mark.parametrize("idl, method", [
    ('struct S { long new; };', 'new'),
    ('struct S { long x; long set_x; };', 'set_x'),
    ('struct S { long set_x; long x; };', 'set_x'),
    ('struct Base { long x; }; struct S : Base { long set_x; };', 'set_x'),
])
def test_accessor_collisions_are_rejected(idl, method):
    with pytest.raises(RenderError) as excinfo:
        compile_rust(idl)
    assert f"accessor '{method}'" in excinfo.value.message
    assert excinfo.value.line == 1


def test_escaped_identifiers_are_emitted_without_underscore():
    rust = compile_rust('module _module { struct S { long _type; }; };')
    assert "pub mod module {" in rust
    assert "pub r#type: i32," in rust
    assert "pub fn set_type(&mut self, value: i32) {" in rust
    assert "pub _type" not in rust
    assert "set__type" not in rust


def test_declarations_follow_dependency_order():
    rust = compile_rust('struct A { B b; }; struct B { long x; };')
    assert rust.index("pub struct B {") < rust.index("pub struct A {")


def test_cross_module_references_use_relative_paths():
    rust = compile_rust('''
    struct Top { long x; };
    module A { struct Foo { long x; }; };
    module B {
        struct Bar { A::Foo f; Top t; };
        typedef Top T;
    };
    ''')
    assert "pub f: super::A::Foo," in rust
    assert "pub t: super::Top," in rust
    assert "pub type T = super::Top;" in rust


def test_reopened_module_is_emitted_once():
    rust = compile_rust('''
    module M { struct A { long x; }; };
    struct X { long y; };
    module M { struct B { long z; }; };
    ''')
    assert rust.count("pub mod M {") == 1
    assert rust.index("pub struct A {") < rust.index("pub struct B {") < rust.index("pub struct X {")


def test_inherited_members_are_flattened():
    rust = compile_rust('struct Base { long id; }; struct Derived : Base { double value; };')
    derived = rust[rust.index("pub struct Derived {"):]
    assert derived.index("pub id: i32,") < derived.index("pub value: f64,")


def test_rust_keywords_become_raw_identifiers():
    rust = compile_rust('struct type { long match; };')
    assert "pub struct r#type {" in rust
    assert "pub r#match: i32," in rust
    assert "pub fn set_match(&mut self, value: i32) {" in rust


def test_unsupported_type_produces_no_output():
    with pytest.raises(UnsupportedMappingError):
        compile_rust('struct Fine { long x; }; struct S { long double d; };')


def test_generate_rust_code_matches_compiler_output():
    spec = resolve_idl(UNION_IDL)
    assert generate_rust_code(spec) == UNION_RUST


def test_missing_template_is_a_render_error(temp_dir):
    spec = resolve_idl('struct S { long x; };')
    generator = RustGenerator(TypeMapper(), TemplateRenderer(temp_dir))
    with pytest.raises(RenderError) as excinfo:
        generator.generate(spec)
    assert excinfo.value.kind == 'RenderError'


def test_undefined_template_variable_is_a_render_error(temp_dir):
    with open(os.path.join(temp_dir, 'typedef.rs.j2'), 'w', encoding='utf-8') as f:
        f.write("pub type {{ name }} = {{ target }};")
    renderer = TemplateRenderer(temp_dir)
    with pytest.raises(RenderError) as excinfo:
        renderer.render('typedef', {'name': 'A', 'type': 'i32'})
    assert "typedef 'A'" in excinfo.value.message


def test_literal_escaping():
    assert rust_char_literal("'") == "'\\''"
    assert rust_char_literal('\n') == "'\\n'"
    assert rust_char_literal('\x01') == "'\\u{1}'"
    assert rust_string_literal('say "hi"\n') == '"say \\"hi\\"\\n"'
