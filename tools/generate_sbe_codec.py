#!/usr/bin/env python3
"""
generate_sbe_codec.py - Generate Python SBE codecs from a serialized IR token stream.

Generates a Python package with:
  - _sbe.py            byte order constants, RangeCheckError, read/pad helpers
  - message_header.py  the header composite prepended to every message
  - <type>.py          one module per enum, bit set and composite
  - <message>.py       one module per message (groups as nested classes)
  - __init__.py        re-exports every generated class

Each message class provides encode(writer, order), decode(reader, order,
acting_version, block_length), range_check(acting_version, schema_version)
and per-field metadata accessors. Byte order is chosen at call time:

    from baseline import Car, MessageHeader, LITTLE_ENDIAN
    car.encode(buf, LITTLE_ENDIAN)

Generated modules need only the standard library.

Usage:
    python tools/generate_sbe_codec.py car.yaml -o generated/
    python tools/generate_sbe_codec.py ir/ -o generated/ --package baseline -v
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from sbe_capabilities import Capabilities
from sbe_codec_emitter import CodecEmitter, emit_module
from sbe_enums import ChoiceSetEmitter, EnumEmitter
from sbe_ir import Ir, IrError, Signal, Token
from sbe_ir_loader import load_ir
from sbe_log import log_debug, log_info, set_verbose
from sbe_naming import format_type_name, module_name
from sbe_support import SUPPORT_SOURCE
from sbe_walker import walk_composite, walk_message

HEADER_TYPE = 'MessageHeader'
INIT_EXPORTS = ('BIG_ENDIAN', 'LITTLE_ENDIAN', 'RangeCheckError')
IR_SUFFIXES = ('.yaml', '.yml', '.json')


class DirectoryOutputManager:
    """Writes modules to <root>/<package>/<module>.py"""

    def __init__(self, root: Path, package: str):
        self.directory = Path(root) / package
        self.directory.mkdir(parents=True, exist_ok=True)

    def write(self, module: str, source: str) -> Path:
        path = self.directory / f'{module}.py'
        path.write_text(source)
        return path


class InMemoryOutputManager:
    """Collects generated modules by name."""

    def __init__(self):
        self.sources: Dict[str, str] = {}

    def write(self, module: str, source: str) -> str:
        self.sources[module] = source
        return module


class SbeGenerator:
    def __init__(self, ir: Ir, output_manager):
        self.ir = ir
        self.output = output_manager
        self.exports: Dict[str, List[str]] = {}
        self.written: list = []

    def generate(self) -> list:
        self.written.append(self.output.write('_sbe', SUPPORT_SOURCE))
        self._generate_message_header()
        self._generate_type_stubs()
        for tokens in self.ir.messages:
            self._generate_message(tokens)
        self._generate_init()
        return self.written

    def _write(self, type_name: str, body: str, caps: Capabilities) -> None:
        module = module_name(type_name)
        if module in self.exports:
            raise IrError(f"Type '{type_name}' collides with module '{module}'")
        self.exports[module] = sorted(caps.local_types)
        self.written.append(self.output.write(module, emit_module(body, caps)))
        log_debug(f"{type_name} -> {module}.py")

    def _generate_message_header(self) -> None:
        caps = Capabilities()
        plan = walk_composite(self.ir.header_structure.tokens, HEADER_TYPE)
        self._write(HEADER_TYPE, CodecEmitter(self.ir, caps).emit(plan), caps)

    def _generate_type_stubs(self) -> None:
        for tokens in self.ir.types:
            begin = tokens[0]
            type_name = format_type_name(begin.type_name)
            caps = Capabilities()
            if begin.signal is Signal.BEGIN_ENUM:
                body = EnumEmitter(caps).emit(tokens)
            elif begin.signal is Signal.BEGIN_SET:
                body = ChoiceSetEmitter(caps).emit(tokens)
            elif begin.signal is Signal.BEGIN_COMPOSITE:
                if type_name == HEADER_TYPE:
                    log_debug(f"{type_name} already generated from the header structure")
                    continue
                plan = walk_composite(tokens, type_name)
                body = CodecEmitter(self.ir, caps).emit(plan)
            else:
                raise IrError(f"Unexpected {begin.signal.value} '{begin.name}' in types")
            self._write(type_name, body, caps)

    def _generate_message(self, tokens: Sequence[Token]) -> None:
        type_name = format_type_name(tokens[0].name)
        caps = Capabilities()
        plan = walk_message(tokens, type_name)
        self._write(type_name, CodecEmitter(self.ir, caps).emit(plan), caps)

    def _generate_init(self) -> None:
        lines = [f'"""SBE codecs for schema {self.ir.id} version {self.ir.version}."""', '']
        lines.append(f'from ._sbe import {", ".join(INIT_EXPORTS)}')
        names = list(INIT_EXPORTS)
        for module in sorted(self.exports):
            lines.append(f'from .{module} import {", ".join(self.exports[module])}')
            names.extend(self.exports[module])
        lines.append('')
        lines.append('__all__ = [')
        lines.extend(f'    {name!r},' for name in names)
        lines.append(']')
        self.written.append(self.output.write('__init__', '\n'.join(lines) + '\n'))


def collect_inputs(paths: Sequence[str]) -> List[Path]:
    files = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir() if p.suffix.lower() in IR_SUFFIXES))
        else:
            files.append(path)
    return files


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Generate Python SBE codecs from an IR token stream')
    parser.add_argument('input', nargs='+', help='IR file(s) or directories (.yaml, .yml, .json)')
    parser.add_argument('-o', '--output', required=True, help='Output directory')
    parser.add_argument('--package', help='Package name (default: from IR namespaces)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug output')
    args = parser.parse_args(argv)

    set_verbose(args.verbose)
    output_root = Path(args.output)
    failed = 0

    for ir_path in collect_inputs(args.input):
        try:
            ir = load_ir(ir_path, args.package)
            output = DirectoryOutputManager(output_root, ir.package_name)
            written = SbeGenerator(ir, output).generate()
            for path in written:
                print(f'Generated: {path}')
            log_info(f"{ir_path.name}: {len(ir.messages)} messages, {len(ir.types)} types")
        except Exception as e:
            failed += 1
            print(f'Error: {ir_path.name}: {e}', file=sys.stderr)
            import traceback
            traceback.print_exc()

    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
