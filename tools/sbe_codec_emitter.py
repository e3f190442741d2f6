#!/usr/bin/env python3
"""
sbe_codec_emitter.py - Render entity emission plans into Python codec classes

Each message, group element and composite becomes one class with:
  - encode(writer, order[, do_range_check])     fields in declared offset order
  - decode(reader, order, acting_version[, block_length][, do_range_check])
  - range_check(acting_version, schema_version) fail-fast validation
  - init()                                      constant fields only
  - encoded_length()                            declared fixed size
plus per-field accessors (id, since/acting/deprecated, meta attributes,
min/max/null, character encoding).

Byte order is a struct prefix chosen by the caller ('<' or '>'). Every
plan step is rendered into all four method bodies at once (see CodecBodies),
so encode, decode, range_check and init always agree on the field order.
"""

from typing import List

from sbe_bounds import literal_modules, render_bytes_literal, render_literal, resolve_bounds
from sbe_capabilities import Capabilities
from sbe_ir import Ir, PrimitiveType, Signal, Token
from sbe_naming import format_constant_name, format_property_name, format_type_name
from sbe_support import text_validator
from sbe_walker import (
    GROUP, DecodeValidation, EncodeValidation, EntityPlan,
    ExtensionSkip, Gap, GroupField, PrimitiveField, TypedField, VarDataField,
)

FILE_HEADER = '''\
# Generated SBE (Simple Binary Encoding) message codec
# DO NOT EDIT - regenerate from IR
'''

METHOD = '    '
BODY = '        '


def emit_static(lines: List[str], name: str, literal: str, args: str = '') -> None:
    lines.append('')
    lines.append(f'{METHOD}@staticmethod')
    lines.append(f'{METHOD}def {name}({args}):')
    lines.append(f'{BODY}return {literal}')


def emit_since_acting_deprecated(lines: List[str], prop: str, token: Token) -> None:
    emit_static(lines, f'{prop}_since_version', str(token.version))
    lines.append('')
    lines.append(f'{METHOD}@classmethod')
    lines.append(f'{METHOD}def {prop}_in_acting_version(cls, acting_version):')
    lines.append(f'{BODY}return acting_version >= cls.{prop}_since_version()')
    emit_static(lines, f'{prop}_deprecated', str(token.deprecated))


def emit_meta_attribute(lines: List[str], prop: str, token: Token) -> None:
    encoding = token.encoding
    meta = {
        'epoch': encoding.epoch or '',
        'time_unit': encoding.time_unit or '',
        'semantic_type': encoding.semantic_type or '',
    }
    emit_static(lines, f'{prop}_meta_attribute', f"{meta!r}.get(meta, '')", 'meta')


class CodecBodies:
    """Method bodies of one class, filled in lock-step from a single plan."""

    def __init__(self):
        self.zero: List[str] = []
        self.encode: List[str] = []
        self.decode: List[str] = []
        self.range_check: List[str] = []
        self.init: List[str] = []
        self.accessors: List[str] = []


class CodecEmitter:
    """Renders EntityPlans; records every import it needs in caps."""

    def __init__(self, ir: Ir, caps: Capabilities):
        self.ir = ir
        self.caps = caps

    def emit(self, plan: EntityPlan) -> str:
        sections: List[str] = []
        self._emit_class(plan, sections)
        return '\n\n\n'.join(sections)

    # -- class assembly -----------------------------------------------------

    def _emit_class(self, plan: EntityPlan, sections: List[str]) -> None:
        self.caps.define_type(plan.type_name)
        bodies = CodecBodies()
        nested: List[EntityPlan] = []
        for step in plan.steps:
            self._render_step(plan, step, bodies, nested)

        lines = [f'class {plan.type_name}:', f'{METHOD}"""{self._describe(plan)}"""', '']
        lines.append(f'{METHOD}def __init__(self):')
        lines.extend(bodies.zero)
        lines.append(f'{BODY}self.init()')
        lines.extend(self._dunder_methods())

        lines.append('')
        lines.append(f'{METHOD}def encode({self._encode_args(plan)}):')
        lines.extend(bodies.encode or [f'{BODY}pass'])
        lines.append('')
        lines.append(f'{METHOD}def decode({self._decode_args(plan)}):')
        lines.extend(bodies.decode or [f'{BODY}pass'])
        lines.append('')
        lines.append(f'{METHOD}def range_check(self, acting_version, schema_version):')
        lines.extend(bodies.range_check or [f'{BODY}pass'])
        lines.append('')
        lines.append(f'{METHOD}def init(self):')
        lines.extend(bodies.init or [f'{BODY}pass'])

        emit_static(lines, 'encoded_length', str(plan.block_length))
        if plan.is_message:
            self._emit_message_methods(plan, lines)
        elif plan.kind == GROUP:
            emit_static(lines, 'sbe_block_length', str(plan.block_length))
            emit_static(lines, 'sbe_schema_version', str(self.ir.version))
        lines.extend(bodies.accessors)

        sections.append('\n'.join(lines))
        for child in nested:
            self._emit_class(child, sections)

    def _describe(self, plan: EntityPlan) -> str:
        if plan.is_message:
            header = self.ir.header_structure
            return (f'Message {plan.token.name} (template {plan.token.id}, '
                    f'block length {plan.block_length}; header types '
                    f'{header.block_length_type.value}/{header.template_id_type.value}/'
                    f'{header.schema_id_type.value}/{header.schema_version_type.value}).')
        if plan.kind == GROUP:
            return f'Element of repeating group {plan.token.name} (block length {plan.block_length}).'
        return f'Composite {plan.type_name} ({plan.block_length} bytes).'

    @staticmethod
    def _dunder_methods() -> List[str]:
        return [
            '',
            f'{METHOD}def __eq__(self, other):',
            f'{BODY}return type(self) is type(other) and vars(self) == vars(other)',
            '',
            f'{METHOD}def __repr__(self):',
            f"{BODY}fields = ', '.join(f'{{k}}={{v!r}}' for k, v in vars(self).items())",
            f"{BODY}return f'{{type(self).__name__}}({{fields}})'",
        ]

    @staticmethod
    def _encode_args(plan: EntityPlan) -> str:
        if plan.is_message:
            return 'self, writer, order, do_range_check=False'
        return 'self, writer, order'

    @staticmethod
    def _decode_args(plan: EntityPlan) -> str:
        args = 'self, reader, order, acting_version'
        if plan.is_extensible:
            args += f', block_length={plan.block_length}'
        if plan.is_message:
            args += ', do_range_check=False'
        return args

    def _emit_message_methods(self, plan: EntityPlan, lines: List[str]) -> None:
        token = plan.token
        emit_static(lines, 'sbe_block_length', str(plan.block_length))
        emit_static(lines, 'sbe_template_id', str(token.id))
        emit_static(lines, 'sbe_schema_id', str(self.ir.id))
        emit_static(lines, 'sbe_schema_version', str(self.ir.version))
        emit_static(lines, 'sbe_semantic_type', repr(token.encoding.semantic_type or ''))

    # -- steps --------------------------------------------------------------

    def _render_step(self, plan, step, bodies: CodecBodies, nested: List[EntityPlan]) -> None:
        if isinstance(step, Gap):
            self._gap(plan, step, bodies)
        elif isinstance(step, PrimitiveField):
            self._primitive(plan, step, bodies)
        elif isinstance(step, TypedField):
            self._typed(step, bodies)
            if step.nested is not None:
                nested.append(step.nested)
        elif isinstance(step, ExtensionSkip):
            self._extension_skip(step, bodies)
        elif isinstance(step, GroupField):
            self._group(plan, step, bodies)
            nested.append(step.element)
        elif isinstance(step, VarDataField):
            self._var_data(plan, step, bodies)
        elif isinstance(step, EncodeValidation):
            bodies.encode.extend([
                f'{BODY}if do_range_check:',
                f'{BODY}    self.range_check(self.sbe_schema_version(), self.sbe_schema_version())',
            ])
        elif isinstance(step, DecodeValidation):
            bodies.decode.extend([
                f'{BODY}if do_range_check:',
                f'{BODY}    self.range_check(acting_version, self.sbe_schema_version())',
            ])
        else:
            raise TypeError(f'Unknown plan step {step!r}')

    def _gap(self, plan: EntityPlan, step: Gap, bodies: CodecBodies) -> None:
        self.caps.need_support('write_padding')
        bodies.encode.append(f'{BODY}write_padding(writer, {step.size})')
        if step.trailing and plan.is_extensible:
            # Discarded by the extension skip, against the received block length
            return
        self.caps.need_support('discard')
        if step.since_version:
            bodies.decode.extend([
                f'{BODY}if acting_version >= {step.since_version}:',
                f'{BODY}    discard(reader, {step.size})',
            ])
        else:
            bodies.decode.append(f'{BODY}discard(reader, {step.size})')

    def _extension_skip(self, step: ExtensionSkip, bodies: CodecBodies) -> None:
        # Older producers send a shorter block, newer ones append fields to it
        self.caps.need_support('discard')
        known = step.known_lengths
        if len(known) == 1:
            length = str(known[0][1])
        else:
            bodies.decode.append(f'{BODY}known_length = {self._known_length(known)}')
            length = 'known_length'
        bodies.decode.extend([
            f'{BODY}if block_length > {length}:',
            f'{BODY}    discard(reader, block_length - {length})',
        ])

    @staticmethod
    def _known_length(known) -> str:
        """'12 if acting_version >= 1 else 4' for [(0, 4), (1, 12)]."""
        expr = str(known[0][1])
        for version, length in known[1:]:
            expr = f'{length} if acting_version >= {version} else {expr}'
        return expr

    def _field_accessors(self, bodies: CodecBodies, prop: str, field_token: Token) -> None:
        if field_token.signal is Signal.BEGIN_FIELD:
            emit_static(bodies.accessors, f'{prop}_id', str(field_token.id))
        emit_since_acting_deprecated(bodies.accessors, prop, field_token)
        if field_token.signal is Signal.BEGIN_FIELD:
            emit_meta_attribute(bodies.accessors, prop, field_token)

    def _primitive(self, plan: EntityPlan, step: PrimitiveField, bodies: CodecBodies) -> None:
        prop = format_property_name(step.name)
        attr = f'self.{prop}'
        token = step.encoding_token
        ptype = step.primitive_type
        count = step.array_length

        self._field_accessors(bodies, prop, step.field_token)
        bounds = resolve_bounds(ptype, token.encoding)
        self.caps.need_modules(bounds.modules)
        emit_static(bodies.accessors, f'{prop}_min_value', bounds.min_literal)
        emit_static(bodies.accessors, f'{prop}_max_value', bounds.max_literal)
        emit_static(bodies.accessors, f'{prop}_null_value', bounds.null_literal)
        if step.is_char and count > 1:
            emit_static(bodies.accessors, f'{prop}_character_encoding',
                        repr(token.encoding.character_encoding or ''))

        if step.is_constant:
            const = token.encoding.const_value or step.field_token.encoding.const_value
            literal = render_bytes_literal(const) if step.is_char else render_literal(ptype, const)
            self.caps.need_modules(literal_modules(literal))
            bodies.decode.append(f'{BODY}{attr} = {literal}')
            bodies.init.append(f'{BODY}{attr} = {literal}')
            return

        self.caps.need_module('struct')
        self.caps.need_support('read_exact')
        self.caps.need_support('RangeCheckError')
        size = ptype.size * count
        is_array = count > 1 and not step.is_char
        if step.is_char:
            fmt = f'{count}s'
            zero = f'bytes({count})'
            read = f'{attr} = read_exact(reader, {count})'
            null_fill = f'{attr} = bytes([self.{prop}_null_value()]) * {count}'
            write = f'writer.write(struct.pack(order + {fmt!r}, {attr}))'
        elif is_array:
            fmt = f'{count}{ptype.struct_format}'
            zero = f'[{"0.0" if ptype.is_float else "0"}] * {count}'
            read = f'{attr} = list(struct.unpack(order + {fmt!r}, read_exact(reader, {size})))'
            null_fill = f'{attr} = [self.{prop}_null_value()] * {count}'
            write = f'writer.write(struct.pack(order + {fmt!r}, *{attr}))'
        else:
            fmt = ptype.struct_format
            zero = '0.0' if ptype.is_float else '0'
            read = f'{attr}, = struct.unpack(order + {fmt!r}, read_exact(reader, {size}))'
            null_fill = f'{attr} = self.{prop}_null_value()'
            write = f'writer.write(struct.pack(order + {fmt!r}, {attr}))'

        bodies.zero.append(f'{BODY}{attr} = {zero}')
        bodies.encode.append(f'{BODY}{write}')
        bodies.decode.extend([
            f'{BODY}if self.{prop}_in_acting_version(acting_version):',
            f'{BODY}    {read}',
            f'{BODY}else:',
            f'{BODY}    {null_fill}',
        ])

        qualified = f'{plan.type_name}.{prop}'
        bound_text = f'[{{self.{prop}_min_value()}}, {{self.{prop}_max_value()}}]'
        check = [f'{BODY}if self.{prop}_in_acting_version(acting_version):']
        if step.is_char or is_array:
            # struct would pad or truncate a value of the wrong length
            check.extend([
                f'{BODY}    if len({attr}) != {count}:',
                f"{BODY}        raise RangeCheckError(f'Range check failed on {qualified}: "
                f"length {{len({attr})}} is not {count}')",
                f'{BODY}    for idx, value in enumerate({attr}):',
                f'{BODY}        if {self._out_of_range("value", prop, ptype)}:',
                f"{BODY}            raise RangeCheckError(f'Range check failed on {qualified}[{{idx}}]: "
                f"{{value}} outside {bound_text}')",
            ])
        else:
            check.extend([
                f'{BODY}    if {self._out_of_range(attr, prop, ptype)}:',
                f"{BODY}        raise RangeCheckError(f'Range check failed on {qualified}: "
                f"{{{attr}}} outside {bound_text}')",
            ])
        validator = text_validator(token.encoding.character_encoding) if step.is_char else None
        if validator:
            self.caps.need_support(validator)
            check.append(f"{BODY}    {validator}('{qualified}', {attr})")
        bodies.range_check.extend(check)

    def _out_of_range(self, value: str, prop: str, ptype: PrimitiveType) -> str:
        test = f'{value} < self.{prop}_min_value() or {value} > self.{prop}_max_value()'
        if ptype.is_float:
            # NaN (the float null) compares false against both bounds
            self.caps.need_module('math')
            test = f'math.isnan({value}) or {test}'
        return test

    def _typed(self, step: TypedField, bodies: CodecBodies) -> None:
        prop = format_property_name(step.name)
        attr = f'self.{prop}'
        type_name = step.type_name if step.nested is not None else format_type_name(step.type_name)
        if step.nested is None:
            self.caps.need_type(type_name)
        self._field_accessors(bodies, prop, step.field_token)

        if step.kind is Signal.BEGIN_ENUM:
            if step.is_constant:
                literal = self._enum_constant(type_name, step.field_token)
                bodies.decode.append(f'{BODY}{attr} = {literal}')
                bodies.init.append(f'{BODY}{attr} = {literal}')
                return
            bodies.zero.append(f'{BODY}{attr} = {type_name}(0)')
            bodies.encode.append(f'{BODY}{type_name}({attr}).encode(writer, order)')
            bodies.decode.extend([
                f'{BODY}if self.{prop}_in_acting_version(acting_version):',
                f'{BODY}    {attr} = {type_name}.decode(reader, order, acting_version)',
                f'{BODY}else:',
                f'{BODY}    {attr} = {type_name}.NULL_VALUE',
            ])
            bodies.range_check.extend([
                f'{BODY}if self.{prop}_in_acting_version(acting_version):',
                f'{BODY}    {type_name}({attr}).range_check(acting_version, schema_version)',
            ])
            return

        # Bit sets and composites decode in place
        bodies.zero.append(f'{BODY}{attr} = {type_name}()')
        bodies.encode.append(f'{BODY}{attr}.encode(writer, order)')
        bodies.decode.extend([
            f'{BODY}if self.{prop}_in_acting_version(acting_version):',
            f'{BODY}    {attr}.decode(reader, order, acting_version)',
            f'{BODY}else:',
            f'{BODY}    {attr} = {type_name}()',
        ])
        if step.kind is Signal.BEGIN_COMPOSITE:
            bodies.range_check.extend([
                f'{BODY}if self.{prop}_in_acting_version(acting_version):',
                f'{BODY}    {attr}.range_check(acting_version, schema_version)',
            ])

    @staticmethod
    def _enum_constant(type_name: str, token: Token) -> str:
        """Literal for a constant enum field: 'Model.C' or a raw number."""
        const = (token.encoding.const_value or '').strip()
        if '.' in const:
            return f'{type_name}.{format_constant_name(const.rsplit(".", 1)[1])}'
        if const and not const.lstrip('-').isdigit():
            return f'{type_name}.{format_constant_name(const)}'
        return f'{type_name}({int(const or 0)})'

    def _group(self, plan: EntityPlan, step: GroupField, bodies: CodecBodies) -> None:
        prop = format_property_name(step.name)
        attr = f'self.{prop}'
        element = step.element.type_name
        fmt = step.block_length_type.struct_format + step.num_in_group_type.struct_format
        size = step.block_length_type.size + step.num_in_group_type.size
        self.caps.need_module('struct')
        self.caps.need_support('read_exact')

        emit_static(bodies.accessors, f'{prop}_id', str(step.token.id))
        emit_since_acting_deprecated(bodies.accessors, prop, step.token)

        bodies.zero.append(f'{BODY}{attr} = []')
        bodies.encode.extend([
            f'{BODY}writer.write(struct.pack(order + {fmt!r}, {step.token.encoded_length}, len({attr})))',
            f'{BODY}for element in {attr}:',
            f'{BODY}    element.encode(writer, order)',
        ])
        bodies.decode.extend([
            f'{BODY}if self.{prop}_in_acting_version(acting_version):',
            f'{BODY}    {prop}_block_length, {prop}_num_in_group = struct.unpack(',
            f'{BODY}        order + {fmt!r}, read_exact(reader, {size}))',
            f'{BODY}    {attr} = [{element}() for _ in range({prop}_num_in_group)]',
            f'{BODY}    for element in {attr}:',
            f'{BODY}        element.decode(reader, order, acting_version, {prop}_block_length)',
            f'{BODY}else:',
            f'{BODY}    {attr} = []',
        ])
        count_bounds = resolve_bounds(step.num_in_group_type, step.num_in_group_token.encoding)
        bodies.range_check.extend(self._length_check(plan, prop, count_bounds, BODY))
        bodies.range_check.extend([
            f'{BODY}for element in {attr}:',
            f'{BODY}    element.range_check(acting_version, schema_version)',
        ])

    def _var_data(self, plan: EntityPlan, step: VarDataField, bodies: CodecBodies) -> None:
        prop = format_property_name(step.name)
        attr = f'self.{prop}'
        length_fmt = step.length_type.struct_format
        length_size = step.length_type.size
        data_type = step.data_type
        self.caps.need_module('struct')
        self.caps.need_support('read_exact')

        emit_static(bodies.accessors, f'{prop}_id', str(step.token.id))
        emit_since_acting_deprecated(bodies.accessors, prop, step.token)
        emit_meta_attribute(bodies.accessors, prop, step.token)
        character_encoding = step.data_token.encoding.character_encoding
        emit_static(bodies.accessors, f'{prop}_character_encoding', repr(character_encoding or ''))
        emit_static(bodies.accessors, f'{prop}_header_length', str(length_size))

        bodies.encode.append(
            f'{BODY}writer.write(struct.pack(order + {length_fmt!r}, len({attr})))')
        if step.is_bytes:
            bodies.zero.append(f"{BODY}{attr} = b''")
            bodies.encode.append(f'{BODY}writer.write(bytes({attr}))')
            read = f'{attr} = read_exact(reader, {prop}_length)'
            empty = "b''"
        else:
            elem = data_type.struct_format
            bodies.zero.append(f'{BODY}{attr} = []')
            bodies.encode.append(
                f"{BODY}writer.write(struct.pack(f'{{order}}{{len({attr})}}{elem}', *{attr}))")
            read = (f"{attr} = list(struct.unpack(f'{{order}}{{{prop}_length}}{elem}', "
                    f"read_exact(reader, {prop}_length * {data_type.size})))")
            empty = '[]'
        bodies.decode.extend([
            f'{BODY}if self.{prop}_in_acting_version(acting_version):',
            f'{BODY}    {prop}_length, = struct.unpack(order + {length_fmt!r}, read_exact(reader, {length_size}))',
            f'{BODY}    {read}',
            f'{BODY}else:',
            f'{BODY}    {attr} = {empty}',
        ])

        length_bounds = resolve_bounds(step.length_type, step.length_token.encoding)
        bodies.range_check.append(f'{BODY}if self.{prop}_in_acting_version(acting_version):')
        bodies.range_check.extend(self._length_check(plan, prop, length_bounds, BODY + '    '))
        validator = text_validator(character_encoding) if data_type is PrimitiveType.CHAR else None
        if validator:
            self.caps.need_support(validator)
            bodies.range_check.append(f"{BODY}    {validator}('{plan.type_name}.{prop}', {attr})")

    def _length_check(self, plan: EntityPlan, prop: str, bounds, indent: str) -> List[str]:
        """Reject a group count or var data length its size prefix cannot carry."""
        self.caps.need_support('RangeCheckError')
        return [
            f'{indent}if len(self.{prop}) > {bounds.max_literal}:',
            f"{indent}    raise RangeCheckError(f'Range check failed on {plan.type_name}.{prop}: "
            f"length {{len(self.{prop})}} exceeds {bounds.max_literal}')",
        ]


def emit_module(body: str, caps: Capabilities) -> str:
    """Assemble a module: header, then the imports the body turned out to need."""
    imports = caps.render()
    parts = [FILE_HEADER]
    if imports:
        parts.append(imports + '\n\n')
    parts.append(body)
    return '\n'.join(parts).rstrip('\n') + '\n'

