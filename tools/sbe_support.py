"""
sbe_support.py - Source of the support module shipped in every generated package.

Entities import only the names they use from it (see sbe_capabilities).
"""

SUPPORT_SOURCE = '''\
LITTLE_ENDIAN = '<'
BIG_ENDIAN = '>'


class RangeCheckError(ValueError):
    """A value violates its declared range, enumeration or text encoding."""


def read_exact(reader, size):
    """Read exactly size bytes or raise EOFError."""
    data = reader.read(size)
    got = 0 if data is None else len(data)
    if got != size:
        raise EOFError(f'expected {size} bytes, got {got}')
    return data


def discard(reader, size):
    read_exact(reader, size)


def write_padding(writer, size):
    writer.write(bytes(size))


def validate_ascii(name, value):
    for idx, ch in enumerate(value):
        if ch > 127:
            raise RangeCheckError(f'{name}[{idx}]={ch} failed ASCII validation')


def validate_utf8(name, value):
    try:
        bytes(value).decode('utf-8')
    except UnicodeDecodeError as e:
        raise RangeCheckError(f'{name} failed UTF-8 validation: {e.reason} at byte {e.start}') from None
'''

# Character encodings with a text-validity check -> support function
TEXT_VALIDATORS = {
    'ASCII': 'validate_ascii',
    'US-ASCII': 'validate_ascii',
    'UTF-8': 'validate_utf8',
    'UTF8': 'validate_utf8',
}


def text_validator(character_encoding):
    """Support function validating the given character encoding, if any."""
    if not character_encoding:
        return None
    return TEXT_VALIDATORS.get(character_encoding.strip().upper())
