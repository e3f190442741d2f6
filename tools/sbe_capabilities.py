"""
sbe_capabilities.py - Per-entity record of what a generated module imports.

A fresh Capabilities is created for every top-level entity; emitters note
each stdlib module, support helper and sibling type they reference while
rendering, and the import block is written last once the body is known.
"""

from typing import Dict, Set

from sbe_naming import module_name

SUPPORT_MODULE = '_sbe'

# Names the generated support module provides
SUPPORT_NAMES = frozenset({
    'BIG_ENDIAN',
    'LITTLE_ENDIAN',
    'RangeCheckError',
    'discard',
    'read_exact',
    'validate_ascii',
    'validate_utf8',
    'write_padding',
})


class Capabilities:

    def __init__(self, local_types: Set[str] = None):
        self.modules: Set[str] = set()
        self.support: Set[str] = set()
        self.types: Dict[str, Set[str]] = {}
        # Types defined in the module being generated never need an import
        self.local_types: Set[str] = set(local_types or ())

    def need_module(self, name: str) -> None:
        self.modules.add(name)

    def need_modules(self, names) -> None:
        self.modules.update(names)

    def need_support(self, name: str) -> None:
        if name not in SUPPORT_NAMES:
            raise KeyError(f"Support module has no '{name}'")
        self.support.add(name)

    def need_type(self, type_name: str) -> None:
        if type_name in self.local_types:
            return
        self.types.setdefault(module_name(type_name), set()).add(type_name)

    def define_type(self, type_name: str) -> None:
        self.local_types.add(type_name)
        for module, names in list(self.types.items()):
            names.discard(type_name)
            if not names:
                del self.types[module]

    def render(self) -> str:
        lines = [f'import {m}' for m in sorted(self.modules)]
        relative = []
        if self.support:
            relative.append(f'from .{SUPPORT_MODULE} import {", ".join(sorted(self.support))}')
        for module in sorted(self.types):
            relative.append(f'from .{module} import {", ".join(sorted(self.types[module]))}')
        if lines and relative:
            lines.append('')
        lines.extend(relative)
        return '\n'.join(lines)
