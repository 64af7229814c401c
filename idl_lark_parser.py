from lark import Lark
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from idl_errors import IdlSyntaxError


# OMG IDLv4 building blocks: core data types, anonymous types, annotations, plus enough of
# interfaces/exceptions/native to recognise them so they can be rejected semantically.
grammar = r"""
    start: definition*

    definition: annotation_appl* _definition_body ";"
    _definition_body: module_dcl
        | const_dcl
        | struct_def
        | struct_forward_dcl
        | union_def
        | union_forward_dcl
        | enum_dcl
        | typedef_dcl
        | native_dcl
        | except_dcl
        | interface_def
        | interface_forward_dcl

    module_dcl: "module" IDENT "{" definition* "}"

    const_dcl: "const" type_spec IDENT "=" const_expr

    struct_def: "struct" IDENT struct_inheritance? "{" member* "}"
    struct_inheritance: ":" scoped_name
    struct_forward_dcl: "struct" IDENT
    member: annotation_appl* type_spec declarators ";"
    declarators: declarator ("," declarator)*
    declarator: IDENT fixed_array_size*
    fixed_array_size: "[" const_expr "]"

    union_def: "union" IDENT "switch" "(" type_spec ")" "{" switch_case+ "}"
    union_forward_dcl: "union" IDENT
    switch_case: case_label+ element_spec ";"
    case_label: "case" const_expr ":"
        | "default" ":" -> default_label
    element_spec: annotation_appl* type_spec declarator

    enum_dcl: "enum" IDENT "{" enumerator ("," enumerator)* ","? "}"
    enumerator: annotation_appl* IDENT

    typedef_dcl: "typedef" type_spec declarators
    native_dcl: "native" IDENT
    except_dcl: "exception" IDENT "{" member* "}"

    interface_def: interface_kind IDENT interface_inheritance? "{" export* "}"
    interface_forward_dcl: interface_kind IDENT
    !interface_kind: "interface" | "abstract" "interface" | "local" "interface"
    interface_inheritance: ":" scoped_name ("," scoped_name)*
    export: annotation_appl* _export_body ";"
    _export_body: op_dcl
        | attr_dcl
        | const_dcl
        | struct_def
        | struct_forward_dcl
        | union_def
        | union_forward_dcl
        | enum_dcl
        | typedef_dcl
        | native_dcl
        | except_dcl
    op_dcl: op_oneway? op_type_spec IDENT "(" (param_dcl ("," param_dcl)*)? ")" raises_expr? context_expr?
    !op_oneway: "oneway"
    op_type_spec: type_spec | void_type
    void_type: "void"
    param_dcl: param_attribute type_spec IDENT
    !param_attribute: "in" | "out" | "inout"
    raises_expr: "raises" "(" scoped_name ("," scoped_name)* ")"
    context_expr: "context" "(" string_literal ("," string_literal)* ")"
    attr_dcl: attr_readonly? "attribute" type_spec IDENT ("," IDENT)* raises_expr?
    !attr_readonly: "readonly"

    ?type_spec: primitive_type
        | unsupported_type
        | string_type
        | wide_string_type
        | sequence_type
        | fixed_pt_type
        | scoped_name

    !primitive_type: "short" | "long" | "long" "long"
        | "unsigned" "short" | "unsigned" "long" | "unsigned" "long" "long"
        | "int8" | "int16" | "int32" | "int64"
        | "uint8" | "uint16" | "uint32" | "uint64"
        | "float" | "double" | "long" "double"
        | "char" | "wchar" | "boolean" | "octet"
    !unsupported_type: "any" | "Object" | "ValueBase"
    string_type: "string" type_bound?
    wide_string_type: "wstring" type_bound?
    type_bound: "<" const_expr ">"
    sequence_type: "sequence" "<" type_spec ("," const_expr)? ">"
    fixed_pt_type: "fixed" ("<" const_expr "," const_expr ">")?

    scoped_name: IDENT ("::" IDENT)*
        | "::" IDENT ("::" IDENT)* -> absolute_scoped_name

    annotation_appl: "@" annotation_name annotation_params?
    ?annotation_name: scoped_name | annotation_keyword
    !annotation_keyword: "default"
    annotation_params: "(" ")"
        | "(" const_expr ")"
        | "(" annotation_param ("," annotation_param)* ")"
    annotation_param: IDENT "=" const_expr

    ?const_expr: or_expr
    ?or_expr: xor_expr
        | or_expr "|" xor_expr -> or_op
    ?xor_expr: and_expr
        | xor_expr "^" and_expr -> xor_op
    ?and_expr: shift_expr
        | and_expr "&" shift_expr -> and_op
    ?shift_expr: add_expr
        | shift_expr ">>" add_expr -> rshift_op
        | shift_expr "<<" add_expr -> lshift_op
    ?add_expr: mult_expr
        | add_expr "+" mult_expr -> add_op
        | add_expr "-" mult_expr -> sub_op
    ?mult_expr: unary_expr
        | mult_expr "*" unary_expr -> mul_op
        | mult_expr "/" unary_expr -> div_op
        | mult_expr "%" unary_expr -> mod_op
    ?unary_expr: primary_expr
        | "-" primary_expr -> neg_op
        | "+" primary_expr -> pos_op
        | "~" primary_expr -> inv_op
    ?primary_expr: scoped_name
        | literal
        | "(" const_expr ")"

    ?literal: INTEGER_LITERAL -> integer_literal
        | FLOAT_LITERAL -> float_literal
        | CHAR_LITERAL -> char_literal
        | WCHAR_LITERAL -> wchar_literal
        | string_literal
        | wide_string_literal
        | boolean_literal
    string_literal: STRING_LITERAL+
    wide_string_literal: WSTRING_LITERAL+
    !boolean_literal: "TRUE" | "FALSE"

    IDENT: /[A-Za-z_][A-Za-z0-9_]*/
    FLOAT_LITERAL.2: /([0-9]+\.[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?[dD]?|[0-9]+[eE][+-]?[0-9]+[dD]?/
    INTEGER_LITERAL: /0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*/
    CHAR_LITERAL: /'([^'\\\n]|\\.)+'/
    WCHAR_LITERAL.2: /L'([^'\\\n]|\\.)+'/
    STRING_LITERAL: /"([^"\\\n]|\\.)*"/
    WSTRING_LITERAL.2: /L"([^"\\\n]|\\.)*"/

    LINE_COMMENT: /\/\/[^\n]*/
    BLOCK_COMMENT: /\/\*(.|\n)*?\*\//
    PREPROCESSOR: /#[^\n]*/

    %import common.WS
    %ignore WS
    %ignore LINE_COMMENT
    %ignore BLOCK_COMMENT
    %ignore PREPROCESSOR
"""

parser = Lark(
    grammar,
    start='start',
    parser='lalr',
    lexer='contextual',
    propagate_positions=True,
)


def _found_text(error: UnexpectedInput) -> str:
    if isinstance(error, UnexpectedToken):
        if error.token.type == '$END':
            return "end of input"
        return repr(str(error.token))
    if isinstance(error, UnexpectedCharacters):
        return repr(error.char)
    return "end of input"


def _expected_names(error: UnexpectedInput):
    if isinstance(error, UnexpectedToken):
        return list(error.expected)
    if isinstance(error, UnexpectedCharacters):
        return list(error.allowed or [])
    if isinstance(error, UnexpectedEOF):
        return list(error.expected)
    return []


def parse_idl(text: str, file_name: str = "<string>", source_map=None):
    """
    Parse IDL text into a lark parse tree. Lark errors are converted to IdlSyntaxError with the location
    translated through source_map (if given) back to the originating file.
    """
    try:
        return parser.parse(text)
    except UnexpectedInput as e:
        line = getattr(e, 'line', None)
        column = getattr(e, 'column', None)
        if line is None or line < 1:
            line = max(text.count("\n"), 1)
            column = None
        file = file_name
        if source_map is not None:
            file, line = source_map.locate(line)
        expected = _expected_names(e)
        found = _found_text(e)
        message = f"unexpected {found}"
        if expected:
            message += ", expected one of: " + ", ".join(sorted(expected))
        raise IdlSyntaxError(message, expected=expected, found=found, file=file, line=line, column=column) from None
