"""
sbe_enums.py - Enum and choice-set class emitters

Enums are int subclasses: a value outside the declared constants (sent by a
newer producer) still decodes and re-encodes; only range_check objects to it,
and only when the data is not newer than the schema.

Choice sets keep every bit of the encoding as a list of booleans, named or
not, so unknown bits survive a decode/encode cycle.
"""

from typing import List, Sequence

from sbe_bounds import default_bounds, number_literal, parse_value
from sbe_capabilities import Capabilities
from sbe_codec_emitter import BODY, METHOD, emit_since_acting_deprecated, emit_static
from sbe_ir import IrError, PrimitiveType, Signal, Token
from sbe_naming import format_constant_name, format_property_name, format_type_name

# Unsigned wire format by encoded length, for sets without a primitive type
SET_FORMATS = {1: 'B', 2: 'H', 4: 'I', 8: 'Q'}


def _members(tokens: Sequence[Token], signal: Signal) -> List[Token]:
    return [t for t in tokens if t.signal is signal]


def _int_format(token: Token) -> str:
    primitive_type = token.primitive_type
    if primitive_type is None or primitive_type is PrimitiveType.CHAR:
        # Char-backed enums travel as a single unsigned byte
        if token.encoded_length not in SET_FORMATS:
            raise IrError(f"'{token.name}' has unsupported encoded length {token.encoded_length}")
        return SET_FORMATS[token.encoded_length]
    if not primitive_type.is_integer:
        raise IrError(f"'{token.name}' cannot be encoded as {primitive_type.value}")
    return primitive_type.struct_format


class EnumEmitter:
    """Render one BEGIN_ENUM..END_ENUM token list into an int subclass."""

    def __init__(self, caps: Capabilities):
        self.caps = caps

    def emit(self, tokens: Sequence[Token]) -> str:
        begin = tokens[0]
        if begin.signal is not Signal.BEGIN_ENUM:
            raise IrError(f"Expected BEGIN_ENUM, got {begin.signal.value} '{begin.name}'")
        name = format_type_name(begin.type_name)
        primitive_type = begin.primitive_type or PrimitiveType.UINT8
        fmt = _int_format(begin)
        size = begin.encoded_length
        values = _members(tokens, Signal.VALID_VALUE)

        if begin.encoding.null_value is not None:
            null = parse_value(primitive_type, begin.encoding.null_value)
        else:
            null = default_bounds(primitive_type)[2]

        self.caps.define_type(name)
        self.caps.need_module('struct')
        self.caps.need_support('read_exact')
        self.caps.need_support('RangeCheckError')

        constants = []
        for token in values:
            const = format_constant_name(token.name)
            raw = parse_value(primitive_type, token.encoding.const_value)
            constants.append((token, const, number_literal(raw)))

        lines = [
            f'class {name}(int):',
            f'{METHOD}"""Enumeration over {primitive_type.value}: '
            f'{", ".join(c for _, c, _ in constants) or "no values"}."""',
            '',
            f'{METHOD}__slots__ = ()',
            '',
            f'{METHOD}def __repr__(self):',
            f'{BODY}label = {name}._NAMES.get(int(self))',
            f"{BODY}return f'{name}.{{label}}' if label else f'{name}({{int(self)}})'",
            '',
            f'{METHOD}def encode(self, writer, order):',
            f'{BODY}writer.write(struct.pack(order + {fmt!r}, self))',
            '',
            f'{METHOD}@classmethod',
            f'{METHOD}def decode(cls, reader, order, acting_version):',
            f'{BODY}value, = struct.unpack(order + {fmt!r}, read_exact(reader, {size}))',
            f'{BODY}return cls(value)',
            '',
            f'{METHOD}def range_check(self, acting_version, schema_version):',
            f'{BODY}# Values added by a newer schema are not errors',
            f'{BODY}if acting_version > schema_version:',
            f'{BODY}    return',
            f'{BODY}if int(self) not in {name}._NAMES:',
            f"{BODY}    raise RangeCheckError(f'Range check failed on {name}: "
            f"unknown enumeration value {{int(self)}}')",
        ]
        emit_static(lines, 'encoded_length', str(size))
        for token, const, _ in constants:
            emit_since_acting_deprecated(lines, format_property_name(token.name), token)

        lines.append('')
        lines.append('')
        for _, const, literal in constants:
            lines.append(f'{name}.{const} = {name}({literal})')
        lines.append(f'{name}.NULL_VALUE = {name}({number_literal(null)})')
        names = ', '.join(f'{literal}: {const!r}' for _, const, literal in constants)
        lines.append(f'{name}._NAMES = {{{names}}}')
        return '\n'.join(lines)


class ChoiceSetEmitter:
    """Render one BEGIN_SET..END_SET token list into a bit-set class."""

    def __init__(self, caps: Capabilities):
        self.caps = caps

    def emit(self, tokens: Sequence[Token]) -> str:
        begin = tokens[0]
        if begin.signal is not Signal.BEGIN_SET:
            raise IrError(f"Expected BEGIN_SET, got {begin.signal.value} '{begin.name}'")
        name = format_type_name(begin.type_name)
        fmt = _int_format(begin)
        size = begin.encoded_length
        width = size * 8

        choices = []
        for token in _members(tokens, Signal.CHOICE):
            bit = int(str(token.encoding.const_value).strip(), 0)
            if not 0 <= bit < width:
                raise IrError(f"{name}.{token.name}: bit {bit} outside a {width}-bit set")
            choices.append((token, format_property_name(token.name), format_constant_name(token.name), bit))

        self.caps.define_type(name)
        self.caps.need_module('struct')
        self.caps.need_support('read_exact')

        lines = [f'class {name}:', f'{METHOD}"""Bit set over {width} bits."""', '']
        for _, _, const, bit in choices:
            lines.append(f'{METHOD}{const} = {bit}')
        named = ', '.join(f'({prop!r}, {bit})' for _, prop, _, bit in choices)
        lines.append(f'{METHOD}_CHOICES = ({named}{"," if len(choices) == 1 else ""})')
        lines.extend([
            '',
            f'{METHOD}def __init__(self):',
            f'{BODY}self.bits = [False] * {width}',
            '',
            f'{METHOD}def __eq__(self, other):',
            f'{BODY}return type(self) is type(other) and self.bits == other.bits',
            '',
            f'{METHOD}def __repr__(self):',
            f'{BODY}names = [label for label, bit in self._CHOICES if self.bits[bit]]',
            f"{BODY}return f'{name}({{\", \".join(names)}})'",
            '',
            f'{METHOD}def encode(self, writer, order):',
            f'{BODY}wire = 0',
            f'{BODY}for bit, value in enumerate(self.bits):',
            f'{BODY}    if value:',
            f'{BODY}        wire |= 1 << bit',
            f'{BODY}writer.write(struct.pack(order + {fmt!r}, wire))',
            '',
            f'{METHOD}def decode(self, reader, order, acting_version):',
            f'{BODY}wire, = struct.unpack(order + {fmt!r}, read_exact(reader, {size}))',
            f'{BODY}self.bits = [bool(wire >> bit & 1) for bit in range({width})]',
        ])
        emit_static(lines, 'encoded_length', str(size))

        for token, prop, _, bit in choices:
            lines.extend([
                '',
                f'{METHOD}@property',
                f'{METHOD}def {prop}(self):',
                f'{BODY}return self.bits[{bit}]',
                '',
                f'{METHOD}@{prop}.setter',
                f'{METHOD}def {prop}(self, value):',
                f'{BODY}self.bits[{bit}] = bool(value)',
            ])
            emit_since_acting_deprecated(lines, prop, token)
        return '\n'.join(lines)
