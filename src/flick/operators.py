## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any, Callable

from .types import is_number, type_name
from .errors import FlickTypeError, FlickRuntimeError
from .formatting import format_value


num = int | float

def is_truthy(x: Any) -> bool: return x is not None and x is not False

def strict_equals(b: Any, a: Any) -> bool:
    # No coercion: `yes == 1` is false, while `1 == 1.0` holds.
    if isinstance(b, bool) or isinstance(a, bool): return isinstance(b, bool) and isinstance(a, bool) and b == a
    if is_number(b) and is_number(a): return b == a
    if isinstance(b, list) and isinstance(a, list):
        return len(b) == len(a) and all(strict_equals(x, y) for x, y in zip(b, a))
    if isinstance(b, dict) and isinstance(a, dict):
        return b.keys() == a.keys() and all(strict_equals(b[k], a[k]) for k in b)
    return type(b) is type(a) and b == a

## ARITHMETIC
def op_add(b: Any, a: Any) -> num | str:
    if is_number(b) and is_number(a): return b + a
    return format_value(b) + format_value(a)
def op_sub(b: num, a: num) -> num: return b - a
def op_mul(b: num, a: num) -> num: return b * a
def op_div(b: num, a: num) -> num:
    if a == 0: raise FlickRuntimeError("Division by zero.")
    return b // a if isinstance(b, int) and isinstance(a, int) and b % a == 0 else b / a
def op_neg(x: num) -> num: return -x
## COMPARISON
def op_equal(b: Any, a: Any) -> bool: return strict_equals(b, a)
def op_differ(b: Any, a: Any) -> bool: return not strict_equals(b, a)
def op_lt(b: Any, a: Any) -> bool: return b < a
def op_gt(b: Any, a: Any) -> bool: return b > a
def op_lte(b: Any, a: Any) -> bool: return b <= a
def op_gte(b: Any, a: Any) -> bool: return b >= a
## BOOLEAN LOGIC
def op_not(x: Any) -> bool: return not is_truthy(x)


BINARY: dict[str, Callable[[Any, Any], Any]] = {
    '+': op_add, '-': op_sub, '*': op_mul, '/': op_div,
    '==': op_equal, '!=': op_differ, '<': op_lt, '>': op_gt, '<=': op_lte, '>=': op_gte,
}
UNARY: dict[str, Callable[[Any], Any]] = {'-': op_neg, '!': op_not}

_NUMERIC = {'-', '*', '/'}
_ORDERING = {'<', '>', '<=', '>='}


def apply_binary(operator: str, left: Any, right: Any) -> Any:
    if (fn := BINARY.get(operator)) is None:
        raise FlickRuntimeError(f"Unknown binary operator `{operator}`.")
    if operator in _NUMERIC and not (is_number(left) and is_number(right)):
        raise FlickTypeError(f"Operator `{operator}` needs two numbers, got `{type_name(left)}` and `{type_name(right)}`.")
    if operator in _ORDERING and not ((is_number(left) and is_number(right)) or (isinstance(left, str) and isinstance(right, str))):
        raise FlickTypeError(f"Operator `{operator}` compares two numbers or two literals, got `{type_name(left)}` and `{type_name(right)}`.")
    return fn(left, right)


def apply_unary(operator: str, operand: Any) -> Any:
    if (fn := UNARY.get(operator)) is None:
        raise FlickRuntimeError(f"Unknown unary operator `{operator}`.")
    if operator == '-' and not is_number(operand):
        raise FlickTypeError(f"Operator `-` needs a number, got `{type_name(operand)}`.")
    return fn(operand)
