#!/usr/bin/env python3
"""
sbe_ir.py - Intermediate representation consumed by the SBE codec generator

The upstream schema parser flattens a Simple Binary Encoding schema into a
pre-order token stream. Every construct is a matched BEGIN_x / END_x pair and
the begin token records how many tokens its subtree spans
(component_token_count), so a whole nested construct can be skipped in O(1):

    BEGIN_MESSAGE Car
      BEGIN_FIELD serialNumber
        ENCODING serialNumber        uint64 @0
      END_FIELD serialNumber
      BEGIN_GROUP fuelFigures
        BEGIN_COMPOSITE groupSizeEncoding
          ENCODING blockLength       uint16
          ENCODING numInGroup        uint16
        END_COMPOSITE groupSizeEncoding
        ...element fields...
      END_GROUP fuelFigures
      BEGIN_VAR_DATA manufacturer
        BEGIN_COMPOSITE varStringEncoding
          ENCODING length            uint32
          ENCODING varData           char
        END_COMPOSITE varStringEncoding
      END_VAR_DATA manufacturer
    END_MESSAGE Car

Tokens are immutable; the generator only ever slices token lists.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class IrError(ValueError):
    """Raised when a token stream is structurally inconsistent."""


class Signal(Enum):
    BEGIN_MESSAGE = 'BEGIN_MESSAGE'
    END_MESSAGE = 'END_MESSAGE'
    BEGIN_COMPOSITE = 'BEGIN_COMPOSITE'
    END_COMPOSITE = 'END_COMPOSITE'
    BEGIN_FIELD = 'BEGIN_FIELD'
    END_FIELD = 'END_FIELD'
    BEGIN_GROUP = 'BEGIN_GROUP'
    END_GROUP = 'END_GROUP'
    BEGIN_ENUM = 'BEGIN_ENUM'
    VALID_VALUE = 'VALID_VALUE'
    END_ENUM = 'END_ENUM'
    BEGIN_SET = 'BEGIN_SET'
    CHOICE = 'CHOICE'
    END_SET = 'END_SET'
    BEGIN_VAR_DATA = 'BEGIN_VAR_DATA'
    END_VAR_DATA = 'END_VAR_DATA'
    ENCODING = 'ENCODING'


# Begin marker -> matching end marker
MATCHING_END = {
    Signal.BEGIN_MESSAGE: Signal.END_MESSAGE,
    Signal.BEGIN_COMPOSITE: Signal.END_COMPOSITE,
    Signal.BEGIN_FIELD: Signal.END_FIELD,
    Signal.BEGIN_GROUP: Signal.END_GROUP,
    Signal.BEGIN_ENUM: Signal.END_ENUM,
    Signal.BEGIN_SET: Signal.END_SET,
    Signal.BEGIN_VAR_DATA: Signal.END_VAR_DATA,
}

END_SIGNALS = frozenset(MATCHING_END.values())


class PrimitiveType(Enum):
    """Primitive wire types. Value is the IR name."""
    CHAR = 'char'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    UINT8 = 'uint8'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    FLOAT = 'float'
    DOUBLE = 'double'

    @property
    def size(self) -> int:
        return PRIMITIVE_SPECS[self][0]

    @property
    def struct_format(self) -> str:
        return PRIMITIVE_SPECS[self][1]

    @property
    def is_signed(self) -> bool:
        return PRIMITIVE_SPECS[self][2]

    @property
    def is_float(self) -> bool:
        return self in (PrimitiveType.FLOAT, PrimitiveType.DOUBLE)

    @property
    def is_integer(self) -> bool:
        return not self.is_float and self is not PrimitiveType.CHAR


# PrimitiveType -> (size in bytes, struct format char, signed)
PRIMITIVE_SPECS = {
    PrimitiveType.CHAR: (1, 's', False),
    PrimitiveType.INT8: (1, 'b', True),
    PrimitiveType.INT16: (2, 'h', True),
    PrimitiveType.INT32: (4, 'i', True),
    PrimitiveType.INT64: (8, 'q', True),
    PrimitiveType.UINT8: (1, 'B', False),
    PrimitiveType.UINT16: (2, 'H', False),
    PrimitiveType.UINT32: (4, 'I', False),
    PrimitiveType.UINT64: (8, 'Q', False),
    PrimitiveType.FLOAT: (4, 'f', True),
    PrimitiveType.DOUBLE: (8, 'd', True),
}


class Presence(Enum):
    REQUIRED = 'required'
    OPTIONAL = 'optional'
    CONSTANT = 'constant'


@dataclass(frozen=True)
class Encoding:
    """Encoding attributes of a token. Values stay as the IR spelled them."""
    primitive_type: Optional[PrimitiveType] = None
    presence: Presence = Presence.REQUIRED
    const_value: Optional[str] = None
    min_value: Optional[str] = None
    max_value: Optional[str] = None
    null_value: Optional[str] = None
    character_encoding: Optional[str] = None
    epoch: Optional[str] = None
    time_unit: Optional[str] = None
    semantic_type: Optional[str] = None


@dataclass(frozen=True)
class Token:
    signal: Signal
    name: str
    referenced_name: Optional[str] = None
    id: int = -1
    version: int = 0
    deprecated: int = 0
    offset: Optional[int] = None  # None: immediately follows the previous field
    encoded_length: int = 0
    array_length: int = 1
    component_token_count: int = 1
    encoding: Encoding = field(default_factory=Encoding)

    @property
    def is_constant_encoding(self) -> bool:
        return self.encoding.presence is Presence.CONSTANT

    @property
    def type_name(self) -> str:
        """Name of the type an enum/set/composite token refers to."""
        return self.referenced_name or self.name

    @property
    def primitive_type(self) -> Optional[PrimitiveType]:
        return self.encoding.primitive_type


def end_index(tokens: Sequence[Token], index: int) -> int:
    """Index just past the subtree rooted at tokens[index].

    Verifies the subtree closes with the matching end marker; a wrong
    component_token_count would otherwise shift every following offset.
    """
    token = tokens[index]
    count = token.component_token_count
    if count < 1:
        raise IrError(f"Token '{token.name}' has component_token_count {count}")
    after = index + count
    if after > len(tokens):
        raise IrError(
            f"Token '{token.name}' spans {count} tokens but only "
            f"{len(tokens) - index} remain")
    expected = MATCHING_END.get(token.signal)
    if expected is not None:
        last = tokens[after - 1]
        if last.signal is not expected:
            raise IrError(
                f"{token.signal.value} '{token.name}' spans {count} tokens but "
                f"ends on {last.signal.value} '{last.name}'")
    return after


# Header member names -> HeaderStructure attribute
HEADER_MEMBERS = {
    'blockLength': 'block_length_type',
    'templateId': 'template_id_type',
    'schemaId': 'schema_id_type',
    'version': 'schema_version_type',
}


@dataclass(frozen=True)
class HeaderStructure:
    """The message header composite prepended to every message."""
    tokens: Tuple[Token, ...]
    block_length_type: PrimitiveType
    template_id_type: PrimitiveType
    schema_id_type: PrimitiveType
    schema_version_type: PrimitiveType

    @classmethod
    def from_tokens(cls, tokens: Sequence[Token]) -> 'HeaderStructure':
        if not tokens or tokens[0].signal is not Signal.BEGIN_COMPOSITE:
            raise IrError("Header structure must begin with BEGIN_COMPOSITE")
        types = {}
        for token in tokens:
            attr = HEADER_MEMBERS.get(token.name)
            if token.signal is Signal.ENCODING and attr:
                types[attr] = token.primitive_type
        missing = [name for name, attr in HEADER_MEMBERS.items() if attr not in types]
        if missing:
            raise IrError(f"Header structure missing members: {', '.join(missing)}")
        return cls(tokens=tuple(tokens), **types)

    @property
    def encoded_length(self) -> int:
        return self.tokens[0].encoded_length


@dataclass
class Ir:
    namespaces: Tuple[str, ...]
    id: int
    version: int
    header_structure: HeaderStructure
    types: List[List[Token]] = field(default_factory=list)
    messages: List[List[Token]] = field(default_factory=list)

    @property
    def package_name(self) -> str:
        name = '_'.join(self.namespaces).lower()
        return name.replace('.', '_').replace(' ', '_')
