"""
sbe_bounds.py - Bounds resolver: min/max/null literals per primitive type

Every primitive reserves one value as the null sentinel ("no value"), chosen
outside the default [min, max] validity range so range checks reject it:

    signed ints    null = most negative     min = null + 1   max = type max
    unsigned ints  null = type max          min = 0          max = null - 1
    float/double   null = NaN               min = -largest   max = +largest
    char           null = 0 (zero byte)     min = 32         max = 126

Schema overrides replace each default independently.
"""

import math
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple, Union

from sbe_ir import Encoding, PrimitiveType
from sbe_log import log_warn

Number = Union[int, float]

FLOAT_MAX = 3.4028234663852886e+38
DOUBLE_MAX = 1.7976931348623157e+308

CHAR_MIN = 32
CHAR_MAX = 126
CHAR_NULL = 0


@dataclass(frozen=True)
class Bounds:
    """Resolved bounds: Python source literals plus their values."""
    min_literal: str
    max_literal: str
    null_literal: str
    min_value: Number
    max_value: Number
    null_value: Number
    modules: FrozenSet[str] = frozenset()

    @property
    def null_in_range(self) -> bool:
        return self.min_value <= self.null_value <= self.max_value


def default_bounds(primitive_type: PrimitiveType) -> Tuple[Number, Number, Number]:
    """(min, max, null) defaults for a primitive type."""
    if primitive_type is PrimitiveType.CHAR:
        return CHAR_MIN, CHAR_MAX, CHAR_NULL
    if primitive_type is PrimitiveType.FLOAT:
        return -FLOAT_MAX, FLOAT_MAX, math.nan
    if primitive_type is PrimitiveType.DOUBLE:
        return -DOUBLE_MAX, DOUBLE_MAX, math.nan
    if primitive_type.is_integer:
        bits = primitive_type.size * 8
        if primitive_type.is_signed:
            null = -(1 << (bits - 1))
            return null + 1, (1 << (bits - 1)) - 1, null
        null = (1 << bits) - 1
        return 0, null - 1, null
    raise NotImplementedError(f"No bounds rule for primitive type {primitive_type.value}")


# A primitive kind without a bounds rule must fail here, not in generated code
for _primitive_type in PrimitiveType:
    default_bounds(_primitive_type)


def parse_value(primitive_type: PrimitiveType, value: str) -> Number:
    """Parse an IR value string for a primitive type."""
    text = str(value).strip()
    if primitive_type.is_float:
        if text.lower().endswith('nan'):
            return math.nan
        return float(text)
    if primitive_type is PrimitiveType.CHAR:
        if len(text) == 1 and not text.isdigit():
            return ord(text)
        return int(text, 0)
    return int(text, 0)


def number_literal(value: Number) -> str:
    """Python literal for a parsed number."""
    if isinstance(value, float):
        if math.isnan(value):
            return 'math.nan'
        if math.isinf(value):
            return 'math.inf' if value > 0 else '-math.inf'
        return repr(value)
    return str(value)


def literal_modules(literal: str) -> FrozenSet[str]:
    return frozenset({'math'}) if 'math.' in literal else frozenset()


def render_literal(primitive_type: PrimitiveType, value: str) -> str:
    """Numeric Python literal for an IR value of the given primitive type.

    A single non-digit character of a char type renders as its code point.
    """
    return number_literal(parse_value(primitive_type, value))


def render_bytes_literal(value: str) -> str:
    """Bytes literal for constant character data."""
    return repr(str(value).encode('utf-8'))


def resolve_bounds(primitive_type: PrimitiveType, encoding: Optional[Encoding] = None) -> Bounds:
    """Resolve min/max/null for a primitive type and optional overrides."""
    min_value, max_value, null_value = default_bounds(primitive_type)
    if encoding is not None:
        if encoding.min_value is not None:
            min_value = parse_value(primitive_type, encoding.min_value)
        if encoding.max_value is not None:
            max_value = parse_value(primitive_type, encoding.max_value)
        if encoding.null_value is not None:
            null_value = parse_value(primitive_type, encoding.null_value)

    literals = [number_literal(v) for v in (min_value, max_value, null_value)]
    modules = frozenset().union(*(literal_modules(lit) for lit in literals))
    bounds = Bounds(literals[0], literals[1], literals[2],
                    min_value, max_value, null_value, modules)
    if bounds.null_in_range:
        log_warn(f"{primitive_type.value}: null value {literals[2]} lies inside "
                 f"[{literals[0]}, {literals[1]}] and will pass range checks")
    return bounds
