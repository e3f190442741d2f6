#!/usr/bin/env python3
"""
sbe_walker.py - Token stream walker producing per-entity emission plans

One forward pass over the token range of a message, group element or
composite. The walker keeps a byte-offset cursor, works out padding gaps
from declared offsets, and records one step per wire construct:

    Gap              zero bytes on encode, discarded bytes on decode
                     (trailing block padding folds into ExtensionSkip)
    PrimitiveField   scalar, array or constant of a primitive type
    TypedField       enum, bit set or composite value
    ExtensionSkip    discard block bytes added by a newer schema version
    GroupField       repeating group, with the element's own EntityPlan
    VarDataField     length-prefixed variable data
    EncodeValidation range check before a message is written
    DecodeValidation range check after a message is read

The codec emitter renders the same plan into the encode, decode,
range_check and init bodies, so all four stay in lock-step.

Fixed-block close happens once, at the first group, var data or end marker:
any declared block length not covered by fields becomes a trailing Gap, and
extensible entities (messages, group elements) get their ExtensionSkip. The
skip knows how many fixed bytes each acting version carries, so a decoder
lands on the received block length whether the producer is older or newer.
Padding in front of a field added later is only on the wire from that
field's version on.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sbe_ir import IrError, PrimitiveType, Signal, Token, end_index
from sbe_naming import format_type_name

MESSAGE = 'message'
GROUP = 'group'
COMPOSITE = 'composite'


@dataclass(frozen=True)
class Gap:
    size: int
    since_version: int = 0   # of the field the padding precedes
    trailing: bool = False   # closes the fixed block


@dataclass(frozen=True)
class PrimitiveField:
    name: str
    field_token: Token       # BEGIN_FIELD, or the ENCODING token itself in composites
    encoding_token: Token

    @property
    def primitive_type(self) -> PrimitiveType:
        return self.encoding_token.primitive_type

    @property
    def is_constant(self) -> bool:
        return self.encoding_token.is_constant_encoding or self.field_token.is_constant_encoding

    @property
    def is_char(self) -> bool:
        return self.primitive_type is PrimitiveType.CHAR

    @property
    def array_length(self) -> int:
        return self.encoding_token.array_length


@dataclass(frozen=True)
class TypedField:
    name: str
    kind: Signal             # BEGIN_ENUM, BEGIN_SET or BEGIN_COMPOSITE
    type_name: str
    field_token: Token
    type_token: Token
    # Member composites of a composite are emitted as nested classes
    nested: Optional['EntityPlan'] = None

    @property
    def is_constant(self) -> bool:
        return self.field_token.is_constant_encoding


@dataclass(frozen=True)
class ExtensionSkip:
    # (since_version, fixed bytes known from that version on), ascending
    known_lengths: Tuple[Tuple[int, int], ...] = ((0, 0),)


@dataclass(frozen=True)
class GroupField:
    name: str
    token: Token
    block_length_token: Token
    num_in_group_token: Token
    element: 'EntityPlan'

    @property
    def block_length_type(self) -> PrimitiveType:
        return self.block_length_token.primitive_type

    @property
    def num_in_group_type(self) -> PrimitiveType:
        return self.num_in_group_token.primitive_type


@dataclass(frozen=True)
class VarDataField:
    name: str
    token: Token
    length_token: Token
    data_token: Token

    @property
    def length_type(self) -> PrimitiveType:
        return self.length_token.primitive_type

    @property
    def data_type(self) -> PrimitiveType:
        return self.data_token.primitive_type

    @property
    def is_bytes(self) -> bool:
        return self.data_type in (PrimitiveType.CHAR, PrimitiveType.UINT8)


@dataclass(frozen=True)
class EncodeValidation:
    pass


@dataclass(frozen=True)
class DecodeValidation:
    pass


@dataclass
class EntityPlan:
    type_name: str
    kind: str
    block_length: int
    is_extensible: bool
    token: Optional[Token] = None
    steps: list = field(default_factory=list)
    consumed_length: int = 0

    @property
    def is_message(self) -> bool:
        return self.kind == MESSAGE

    def steps_of(self, *kinds) -> list:
        return [s for s in self.steps if isinstance(s, kinds)]


def _declared_offset(*tokens: Token) -> Optional[int]:
    for token in tokens:
        if token.offset is not None and token.offset >= 0:
            return token.offset
    return None


class TokenWalker:
    """Single forward pass over one entity's token range."""

    def __init__(self, plan: EntityPlan):
        self.plan = plan
        self.offset = 0
        self.block_closed = False
        # since_version -> end of the furthest field added at that version
        self.field_ends: Dict[int, int] = {0: 0}

    def walk(self, tokens: Sequence[Token]) -> EntityPlan:
        cursor = 0
        while cursor < len(tokens):
            token = tokens[cursor]
            signal = token.signal

            if signal is Signal.BEGIN_MESSAGE:
                # A producer always emits data valid under its own schema
                self.plan.steps.append(EncodeValidation())
                cursor += 1

            elif signal is Signal.END_MESSAGE:
                self._close_block()
                self.plan.steps.append(DecodeValidation())
                cursor += 1

            elif signal is Signal.END_GROUP:
                self._close_block()
                cursor += 1

            elif signal is Signal.BEGIN_FIELD:
                if cursor + 1 >= len(tokens):
                    raise IrError(f"Field '{token.name}' has no encoding token")
                self._field(token, tokens[cursor + 1], tokens, cursor + 1)
                cursor = end_index(tokens, cursor)

            elif signal is Signal.ENCODING:
                # Composite member
                self._field(token, token, tokens, cursor)
                cursor += 1

            elif signal in (Signal.BEGIN_ENUM, Signal.BEGIN_SET, Signal.BEGIN_COMPOSITE):
                # Composite member of enum, set or composite type
                self._field(token, token, tokens, cursor)
                cursor = end_index(tokens, cursor)

            elif signal is Signal.BEGIN_GROUP:
                self._close_block()
                self._group(tokens, cursor)
                cursor = end_index(tokens, cursor)

            elif signal is Signal.BEGIN_VAR_DATA:
                self._close_block()
                self._var_data(tokens, cursor)
                cursor = end_index(tokens, cursor)

            else:
                cursor += 1

        self._close_block()
        self.plan.consumed_length = self.offset
        return self.plan

    def _gap_to(self, declared: Optional[int], name: str, since_version: int) -> int:
        if declared is None:
            return 0
        gap = declared - self.offset
        if gap < 0:
            raise IrError(
                f"{self.plan.type_name}.{name}: offset {declared} overlaps "
                f"previous field ending at {self.offset}")
        if gap:
            self.plan.steps.append(Gap(gap, since_version))
        return gap

    def _field(self, field_token: Token, type_token: Token,
               tokens: Sequence[Token], type_index: int) -> None:
        signal = type_token.signal
        constant = field_token.is_constant_encoding or (
            signal is Signal.ENCODING and type_token.is_constant_encoding)
        # Constants never reach the wire, so they neither pad nor advance
        gap = 0
        if not constant:
            gap = self._gap_to(_declared_offset(field_token, type_token),
                              field_token.name, field_token.version)

        if signal is Signal.ENCODING:
            step = PrimitiveField(field_token.name, field_token, type_token)
        elif signal in (Signal.BEGIN_ENUM, Signal.BEGIN_SET):
            step = TypedField(field_token.name, signal, type_token.type_name,
                              field_token, type_token)
        elif signal is Signal.BEGIN_COMPOSITE:
            nested = None
            type_name = type_token.type_name
            if field_token is type_token:
                # Composite inside a composite: a nested class named after its parent
                type_name = self.plan.type_name + format_type_name(type_token.name)
                inner = tokens[type_index + 1:end_index(tokens, type_index) - 1]
                nested = walk_entity(inner, type_name, COMPOSITE,
                                     type_token.encoded_length, token=type_token)
            step = TypedField(field_token.name, signal, type_name,
                              field_token, type_token, nested)
        else:
            raise IrError(
                f"Field '{field_token.name}' has unexpected {signal.value} encoding")

        self.plan.steps.append(step)
        if not constant:
            self.offset += gap + type_token.encoded_length
            version = field_token.version
            self.field_ends[version] = max(self.field_ends.get(version, 0), self.offset)

    def _close_block(self) -> None:
        if self.block_closed:
            return
        self.block_closed = True
        if self.plan.block_length > self.offset:
            self.plan.steps.append(Gap(self.plan.block_length - self.offset, trailing=True))
        if self.plan.is_extensible:
            self.plan.steps.append(ExtensionSkip(self._known_lengths()))

    def _known_lengths(self) -> Tuple[Tuple[int, int], ...]:
        """Fixed bytes an acting version carries, as (since_version, length) steps."""
        known = []
        for version in sorted(self.field_ends):
            length = self.field_ends[version]
            if known and length <= known[-1][1]:
                continue
            known.append((version, length))
        return tuple(known)

    def _group(self, tokens: Sequence[Token], index: int) -> None:
        token = tokens[index]
        after = end_index(tokens, index)
        dimensions = index + 1
        if tokens[dimensions].signal is not Signal.BEGIN_COMPOSITE:
            raise IrError(f"Group '{token.name}' has no dimension composite")
        block_length_token = tokens[dimensions + 1]
        num_in_group_token = tokens[dimensions + 2]
        body_start = end_index(tokens, dimensions)

        element = walk_entity(
            tokens[body_start:after],
            self.plan.type_name + format_type_name(token.name),
            GROUP,
            token.encoded_length,
            is_extensible=True,
            token=token,
        )
        self.plan.steps.append(GroupField(
            token.name, token, block_length_token, num_in_group_token, element))

    def _var_data(self, tokens: Sequence[Token], index: int) -> None:
        token = tokens[index]
        composite = index + 1
        if tokens[composite].signal is not Signal.BEGIN_COMPOSITE:
            raise IrError(f"Var data '{token.name}' has no length composite")
        self.plan.steps.append(VarDataField(
            token.name, token, tokens[composite + 1], tokens[composite + 2]))


def walk_entity(tokens: Sequence[Token], type_name: str, kind: str,
                block_length: int, is_extensible: bool = False,
                token: Optional[Token] = None) -> EntityPlan:
    """Walk one entity's token range and return its emission plan."""
    plan = EntityPlan(type_name, kind, block_length, is_extensible, token)
    return TokenWalker(plan).walk(tokens)


def walk_message(tokens: Sequence[Token], type_name: str) -> EntityPlan:
    return walk_entity(tokens, type_name, MESSAGE, tokens[0].encoded_length,
                       is_extensible=True, token=tokens[0])


def walk_composite(tokens: Sequence[Token], type_name: str) -> EntityPlan:
    """Walk a composite given its full BEGIN_COMPOSITE..END_COMPOSITE range."""
    return walk_entity(tokens[1:-1], type_name, COMPOSITE,
                       tokens[0].encoded_length, token=tokens[0])
