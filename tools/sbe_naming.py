"""
sbe_naming.py - Identifier casing for generated Python codecs.
"""

import keyword
import re


def _identifier(name: str) -> str:
    ident = re.sub(r'[^a-zA-Z0-9_]', '_', name)
    if ident[:1].isdigit():
        ident = '_' + ident
    return ident


def _split_camel(name: str) -> str:
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    return re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)


def format_type_name(name: str) -> str:
    """fuelFigures -> FuelFigures"""
    ident = _identifier(name)
    return ident[:1].upper() + ident[1:]


def format_property_name(name: str) -> str:
    """someNumbers -> some_numbers; keywords get a trailing underscore."""
    prop = _split_camel(_identifier(name)).lower()
    if keyword.iskeyword(prop):
        prop += '_'
    return prop


def format_constant_name(name: str) -> str:
    """sunRoof -> SUN_ROOF"""
    return _split_camel(_identifier(name)).upper()


def module_name(type_name: str) -> str:
    """MessageHeader -> message_header"""
    return _split_camel(_identifier(type_name)).lower()
