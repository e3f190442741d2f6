#!/usr/bin/env python3
"""
sbe_ir_loader.py - Load a serialized SBE IR token stream from YAML or JSON

The schema front end hands over its IR as a document like:

    namespaces: [baseline]
    id: 1
    version: 0
    header:
      - {signal: BEGIN_COMPOSITE, name: messageHeader, encoded_length: 8}
      - {signal: ENCODING, name: blockLength, primitive_type: uint16, offset: 0, encoded_length: 2}
      ...
      - {signal: END_COMPOSITE, name: messageHeader}
    types:
      - [ ...tokens of one enum, set or composite... ]
    messages:
      - [ ...tokens of one message... ]

Token keys are the Token/Encoding attribute names (snake_case or camelCase).
Nested token lists (e.g. YAML aliases of a type's tokens) are flattened.
component_token_count may be omitted; it is then derived by matching begin
and end markers. Explicit counts are kept as given and checked later by the
walker.

Usage:
    from sbe_ir_loader import load_ir
    ir = load_ir(Path('car.yaml'))
"""

import json
import re
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from sbe_ir import (
    MATCHING_END, END_SIGNALS, Encoding, HeaderStructure, Ir, IrError,
    Presence, PrimitiveType, Signal, Token,
)

TOKEN_KEYS = {f.name for f in dataclass_fields(Token)} - {'encoding'}
ENCODING_KEYS = {f.name for f in dataclass_fields(Encoding)}
INT_KEYS = {'id', 'version', 'deprecated', 'offset', 'encoded_length',
            'array_length', 'component_token_count'}


def _snake(key: str) -> str:
    return re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', key).lower()


def _enum_value(enum_cls, raw: Any, what: str):
    text = str(raw).strip()
    for member in enum_cls:
        if text.upper() == member.name or text.lower() == str(member.value).lower():
            return member
    raise IrError(f"Unknown {what} '{raw}'")


def _parse_token(raw: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Normalize one raw token mapping into Token constructor kwargs."""
    if not isinstance(raw, dict):
        raise IrError(f"Token #{index} is not a mapping: {raw!r}")
    token_kwargs: Dict[str, Any] = {}
    encoding_kwargs: Dict[str, Any] = {}
    nested = raw.get('encoding') or {}
    items = list(nested.items()) + [(k, v) for k, v in raw.items() if k != 'encoding']
    for key, value in items:
        key = _snake(key)
        if key in TOKEN_KEYS:
            token_kwargs[key] = value
        elif key in ENCODING_KEYS:
            encoding_kwargs[key] = value
        else:
            raise IrError(f"Token #{index} has unknown key '{key}'")

    if 'signal' not in token_kwargs or 'name' not in token_kwargs:
        raise IrError(f"Token #{index} needs 'signal' and 'name'")
    token_kwargs['signal'] = _enum_value(Signal, token_kwargs['signal'], 'signal')
    token_kwargs['name'] = str(token_kwargs['name'])
    for key in INT_KEYS & token_kwargs.keys():
        if token_kwargs[key] is not None:
            token_kwargs[key] = int(token_kwargs[key])

    if encoding_kwargs.get('primitive_type') is not None:
        encoding_kwargs['primitive_type'] = _enum_value(
            PrimitiveType, encoding_kwargs['primitive_type'], 'primitive type')
    if encoding_kwargs.get('presence') is not None:
        encoding_kwargs['presence'] = _enum_value(
            Presence, encoding_kwargs['presence'], 'presence')
    for key in ('const_value', 'min_value', 'max_value', 'null_value'):
        if encoding_kwargs.get(key) is not None:
            encoding_kwargs[key] = str(encoding_kwargs[key])
    token_kwargs['encoding'] = Encoding(**encoding_kwargs)
    return token_kwargs


def _flatten(items):
    for item in items:
        if isinstance(item, list):
            yield from _flatten(item)
        else:
            yield item


def tokens_from_list(items: List[Dict[str, Any]]) -> List[Token]:
    """Build tokens, deriving missing component_token_count values.

    Nested lists are spliced in place, so a YAML anchor on a type's token
    list can be reused inside the fields that refer to it.
    """
    parsed = [_parse_token(raw, i) for i, raw in enumerate(_flatten(items or []))]
    open_markers: List[int] = []
    for i, kwargs in enumerate(parsed):
        signal = kwargs['signal']
        if signal in MATCHING_END:
            open_markers.append(i)
        elif signal in END_SIGNALS:
            if not open_markers:
                raise IrError(f"{signal.value} '{kwargs['name']}' at #{i} has no begin marker")
            begin = open_markers.pop()
            begin_kwargs = parsed[begin]
            if MATCHING_END[begin_kwargs['signal']] is not signal:
                raise IrError(
                    f"{signal.value} '{kwargs['name']}' at #{i} closes "
                    f"{begin_kwargs['signal'].value} '{begin_kwargs['name']}'")
            begin_kwargs.setdefault('component_token_count', i - begin + 1)
    if open_markers:
        dangling = parsed[open_markers[-1]]
        raise IrError(f"{dangling['signal'].value} '{dangling['name']}' is never closed")
    return [Token(**kwargs) for kwargs in parsed]


def ir_from_dict(data: Dict[str, Any], package: Optional[str] = None) -> Ir:
    """Build an Ir from a loaded IR document."""
    if not isinstance(data, dict):
        raise IrError("IR document must be a mapping")
    if package:
        namespaces = (package,)
    elif data.get('namespaces'):
        namespaces = tuple(str(n) for n in data['namespaces'])
    elif data.get('package'):
        namespaces = tuple(str(data['package']).split('.'))
    else:
        raise IrError("IR document needs 'namespaces' or 'package'")

    if 'header' not in data:
        raise IrError("IR document needs a 'header' token list")
    header = HeaderStructure.from_tokens(tokens_from_list(data['header']))
    types = [tokens_from_list(t) for t in data.get('types') or []]
    messages = [tokens_from_list(m) for m in data.get('messages') or []]
    for tokens in messages:
        if not tokens or tokens[0].signal is not Signal.BEGIN_MESSAGE:
            raise IrError("Every message token list must begin with BEGIN_MESSAGE")

    return Ir(
        namespaces=namespaces,
        id=int(data.get('id', 0)),
        version=int(data.get('version', 0)),
        header_structure=header,
        types=types,
        messages=messages,
    )


def load_ir(path: Path, package: Optional[str] = None) -> Ir:
    """Load an IR file (JSON by suffix, YAML otherwise)."""
    with open(path) as f:
        if path.suffix.lower() == '.json':
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return ir_from_dict(data, package)


def load_ir_text(text: str, package: Optional[str] = None) -> Ir:
    """Load an IR document from a YAML (or JSON) string."""
    return ir_from_dict(yaml.safe_load(text), package)
