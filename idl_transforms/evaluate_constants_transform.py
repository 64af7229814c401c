"""
EvaluateConstantsTransform: folds every constant expression once references are bound. Fills
Const.value, ArrayType.dim_values, bounds of strings and sequences, and UnionCase.label_values, and
validates union discriminators and case labels.
"""
import math
import sys
from typing import Any, Dict, Optional, Set

from idl_ast import (
    ArrayType, BinaryExpr, Const, ConstRef, Enum, EnumValue, Literal, PrimitiveType, SequenceType, Specification,
    StringType, Struct, TypeRef, Typedef, UnaryExpr, Union, UnsupportedType, type_spec_key, underlying_type,
    walk_declarations,
)
from idl_errors import (
    DuplicateCaseLabelError, DuplicateDeclarationError, InvalidConstantError, UnsupportedSwitchTypeError,
)
from idl_transform_pipeline import IdlTransform

INTEGER_RANGES = {
    'int8': (-2 ** 7, 2 ** 7 - 1),
    'uint8': (0, 2 ** 8 - 1),
    'octet': (0, 2 ** 8 - 1),
    'short': (-2 ** 15, 2 ** 15 - 1),
    'int16': (-2 ** 15, 2 ** 15 - 1),
    'unsigned short': (0, 2 ** 16 - 1),
    'uint16': (0, 2 ** 16 - 1),
    'long': (-2 ** 31, 2 ** 31 - 1),
    'int32': (-2 ** 31, 2 ** 31 - 1),
    'unsigned long': (0, 2 ** 32 - 1),
    'uint32': (0, 2 ** 32 - 1),
    'long long': (-2 ** 63, 2 ** 63 - 1),
    'int64': (-2 ** 63, 2 ** 63 - 1),
    'unsigned long long': (0, 2 ** 64 - 1),
    'uint64': (0, 2 ** 64 - 1),
}
FLOAT_KINDS = ('float', 'double')
CHAR_KINDS = ('char', 'wchar')
SWITCH_KINDS = ('long', 'int32')
FLOAT_MAX = 3.4028234663852886e38


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_int(value) or isinstance(value, float)


def _c_divide(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


class EvaluateConstantsTransform(IdlTransform):
    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._values: Dict[str, Any] = {}
        self._in_progress: Set[str] = set()

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def transform(self, spec: Specification) -> Specification:
        self._values = {}
        self._in_progress = set()
        for decl in walk_declarations(spec.definitions):
            if isinstance(decl, Const):
                self.evaluate_const(decl)
            elif isinstance(decl, Typedef):
                self._evaluate_type_spec(decl.type_spec)
            elif isinstance(decl, Struct) and not decl.forward:
                for member in decl.members:
                    self._evaluate_type_spec(member.type_spec)
            elif isinstance(decl, Union) and not decl.forward:
                for case in decl.cases:
                    self._evaluate_type_spec(case.member.type_spec)
                self._check_union(decl)
        return spec

    # --- constants ---

    def evaluate_const(self, const: Const) -> Any:
        if const.qualified_name in self._values:
            return self._values[const.qualified_name]
        if const.qualified_name in self._in_progress:
            raise InvalidConstantError(f"constant '{const.qualified_name}' is defined in terms of itself",
                                       **const.location())
        self._in_progress.add(const.qualified_name)
        self._evaluate_type_spec(const.type_spec)
        value = self._coerce(self.evaluate(const.expr, self._integer_kind(const.type_spec)), const.type_spec, const)
        self._in_progress.discard(const.qualified_name)
        const.value = value
        self._values[const.qualified_name] = value
        self.debug_print(f"Evaluated constant {const.qualified_name} = {value!r}")
        return value

    def _coerce(self, value: Any, type_spec: Any, const: Const) -> Any:
        target = underlying_type(type_spec)
        if isinstance(target, UnsupportedType):
            return value
        if isinstance(target, PrimitiveType):
            kind = target.kind
            if kind in INTEGER_RANGES:
                if not _is_int(value):
                    raise InvalidConstantError(f"constant '{const.name}' of type {kind} needs an integer value",
                                               **const.location())
                low, high = INTEGER_RANGES[kind]
                if not low <= value <= high:
                    raise InvalidConstantError(f"value {value} of constant '{const.name}' is out of range for {kind}",
                                               **const.location())
                return value
            if kind in FLOAT_KINDS:
                if not _is_number(value):
                    raise InvalidConstantError(f"constant '{const.name}' of type {kind} needs a numeric value",
                                               **const.location())
                try:
                    value = float(value)
                except OverflowError:
                    value = math.inf
                if not math.isfinite(value) or (kind == 'float' and abs(value) > FLOAT_MAX):
                    raise InvalidConstantError(f"value {value} of constant '{const.name}' is out of range for {kind}",
                                               **const.location())
                return value
            if kind in CHAR_KINDS:
                if not isinstance(value, str) or len(value) != 1:
                    raise InvalidConstantError(f"constant '{const.name}' of type {kind} needs a single character",
                                               **const.location())
                return value
            if kind == 'boolean':
                if not isinstance(value, bool):
                    raise InvalidConstantError(f"constant '{const.name}' of type boolean needs TRUE or FALSE",
                                               **const.location())
                return value
            # long double has no mapping; the type mapper reports it
            return value
        if isinstance(target, StringType):
            self._evaluate_type_spec(target)
            if not isinstance(value, str):
                raise InvalidConstantError(f"constant '{const.name}' of type string needs a string value",
                                           **const.location())
            if target.bound_value is not None and len(value) > target.bound_value:
                raise InvalidConstantError(f"string constant '{const.name}' is longer than its bound",
                                           **const.location())
            return value
        if isinstance(target, TypeRef) and isinstance(target.declaration, Enum):
            if not isinstance(value, EnumValue) or value.enum is not target.declaration:
                raise InvalidConstantError(
                    f"constant '{const.name}' needs an enumerator of {target.declaration.qualified_name}",
                    **const.location())
            return value
        raise InvalidConstantError(f"constant '{const.name}' cannot have a constructed type", **const.location())

    def evaluate(self, expr: Any, kind: Optional[str] = None) -> Any:
        """Fold an expression. kind is the integer type the result is declared as, if any."""
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, ConstRef):
            if isinstance(expr.declaration, EnumValue):
                return expr.declaration
            return self.evaluate_const(expr.declaration)
        if isinstance(expr, UnaryExpr):
            return self._unary(expr, self.evaluate(expr.operand, kind), kind)
        if isinstance(expr, BinaryExpr):
            return self._binary(expr, self.evaluate(expr.left, kind), self.evaluate(expr.right, kind))
        location = expr.location() if hasattr(expr, 'location') else {}
        raise InvalidConstantError(f"'{expr}' is not a constant expression", **location)

    def _unary(self, expr: UnaryExpr, operand: Any, kind: Optional[str] = None) -> Any:
        if expr.op == '~':
            if not _is_int(operand):
                raise InvalidConstantError("'~' needs an integer operand", **expr.location())
            if kind in INTEGER_RANGES and INTEGER_RANGES[kind][0] == 0:
                return INTEGER_RANGES[kind][1] - operand
            return ~operand
        if not _is_number(operand):
            raise InvalidConstantError(f"unary '{expr.op}' needs a numeric operand", **expr.location())
        return -operand if expr.op == '-' else operand

    def _binary(self, expr: BinaryExpr, left: Any, right: Any) -> Any:
        op = expr.op
        if op in ('|', '^', '&', '<<', '>>', '%'):
            if not (_is_int(left) and _is_int(right)):
                raise InvalidConstantError(f"'{op}' needs integer operands", **expr.location())
            if op == '|':
                return left | right
            if op == '^':
                return left ^ right
            if op == '&':
                return left & right
            if op in ('<<', '>>'):
                if not 0 <= right < 64:
                    raise InvalidConstantError(f"shift count {right} is out of range", **expr.location())
                return left << right if op == '<<' else left >> right
            if right == 0:
                raise InvalidConstantError("division by zero in constant expression", **expr.location())
            return left - right * _c_divide(left, right)
        if not (_is_number(left) and _is_number(right)):
            raise InvalidConstantError(f"'{op}' needs numeric operands", **expr.location())
        try:
            return self._arithmetic(expr, op, left, right)
        except OverflowError:
            raise InvalidConstantError(f"'{op}' overflows in constant expression", **expr.location()) from None

    def _arithmetic(self, expr: BinaryExpr, op: str, left: Any, right: Any) -> Any:
        if op == '+':
            return left + right
        if op == '-':
            return left - right
        if op == '*':
            return left * right
        if right == 0:
            raise InvalidConstantError("division by zero in constant expression", **expr.location())
        if _is_int(left) and _is_int(right):
            return _c_divide(left, right)
        return left / right

    @staticmethod
    def _integer_kind(type_spec: Any) -> Optional[str]:
        target = underlying_type(type_spec)
        if isinstance(target, PrimitiveType) and target.kind in INTEGER_RANGES:
            return target.kind
        return None

    # --- type spec expressions ---

    def _positive(self, expr: Any, what: str) -> int:
        value = self.evaluate(expr)
        if not _is_int(value) or value <= 0:
            raise InvalidConstantError(f"{what} must be a positive integer, got {value!r}", **expr.location())
        return value

    def _evaluate_type_spec(self, type_spec: Any):
        if isinstance(type_spec, ArrayType):
            type_spec.dim_values = [self._positive(dim, "array dimension") for dim in type_spec.dims]
            self._evaluate_type_spec(type_spec.element)
        elif isinstance(type_spec, SequenceType):
            if type_spec.bound is not None:
                type_spec.bound_value = self._positive(type_spec.bound, "sequence bound")
            self._evaluate_type_spec(type_spec.element)
        elif isinstance(type_spec, StringType) and type_spec.bound is not None:
            type_spec.bound_value = self._positive(type_spec.bound, "string bound")

    # --- unions ---

    def _check_union(self, union: Union):
        switch_type = underlying_type(union.switch_type)
        if not isinstance(switch_type, PrimitiveType) or switch_type.kind not in SWITCH_KINDS:
            raise UnsupportedSwitchTypeError(self._describe(union.switch_type), **union.switch_type.location())

        seen_labels: Set[int] = set()
        member_types: Dict[str, Any] = {}
        default_seen = False
        for case in union.cases:
            if case.is_default:
                if default_seen:
                    raise DuplicateCaseLabelError(union.qualified_name, 'default', **case.location())
                default_seen = True
            case.label_values = []
            for label in case.labels:
                value = self.evaluate(label)
                if not _is_int(value):
                    raise InvalidConstantError(f"case label of union '{union.name}' must be an integer",
                                               **label.location())
                low, high = INTEGER_RANGES['long']
                if not low <= value <= high:
                    raise InvalidConstantError(f"case label {value} is out of range for long", **label.location())
                if value in seen_labels:
                    raise DuplicateCaseLabelError(union.qualified_name, str(value), **label.location())
                seen_labels.add(value)
                case.label_values.append(value)

            member = case.member
            key = type_spec_key(member.type_spec)
            if member.name in member_types and member_types[member.name] != key:
                raise DuplicateDeclarationError(union.qualified_name, member.name, **member.location())
            member_types.setdefault(member.name, key)

    @staticmethod
    def _describe(type_spec: Any) -> str:
        if isinstance(type_spec, PrimitiveType):
            return type_spec.kind
        if isinstance(type_spec, TypeRef):
            return type_spec.declaration.qualified_name
        if isinstance(type_spec, UnsupportedType):
            return type_spec.construct
        return type(type_spec).__name__
