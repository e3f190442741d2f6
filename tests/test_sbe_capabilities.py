"""
test_sbe_capabilities.py - Import blocks, naming and per-module source shape.
"""

import pytest

from generate_sbe_codec import InMemoryOutputManager, SbeGenerator
from ir_builders import build_ir, field, message
from sbe_capabilities import Capabilities
from sbe_ir_loader import load_ir
from sbe_naming import format_constant_name, format_property_name, format_type_name, module_name


class TestCapabilities:
    def test_empty(self):
        assert Capabilities().render() == ''

    def test_render_order(self):
        caps = Capabilities()
        caps.need_module('struct')
        caps.need_modules({'math'})
        caps.need_support('read_exact')
        caps.need_support('RangeCheckError')
        caps.need_type('BoostType')
        assert caps.render() == (
            'import math\n'
            'import struct\n'
            '\n'
            'from ._sbe import RangeCheckError, read_exact\n'
            'from .boost_type import BoostType'
        )

    def test_local_types_not_imported(self):
        caps = Capabilities()
        caps.need_type('EngineBooster')
        caps.define_type('EngineBooster')
        caps.need_type('EngineBooster')
        assert caps.render() == ''

    def test_unknown_support_name(self):
        with pytest.raises(KeyError):
            Capabilities().need_support('read_all')


class TestNaming:
    @pytest.mark.parametrize('name,expected', [
        ('fuelFigures', 'FuelFigures'),
        ('messageHeader', 'MessageHeader'),
        ('Car', 'Car'),
    ])
    def test_type_name(self, name, expected):
        assert format_type_name(name) == expected

    @pytest.mark.parametrize('name,expected', [
        ('someNumbers', 'some_numbers'),
        ('serialNumber', 'serial_number'),
        ('TURBO', 'turbo'),
        ('class', 'class_'),
        ('HTTPCode', 'http_code'),
    ])
    def test_property_name(self, name, expected):
        assert format_property_name(name) == expected

    def test_constant_and_module(self):
        assert format_constant_name('sunRoof') == 'SUN_ROOF'
        assert module_name('OptionalExtras') == 'optional_extras'


class TestGeneratedSources:
    @pytest.fixture(scope='class')
    def sources(self, car_ir_path):
        output = InMemoryOutputManager()
        SbeGenerator(load_ir(car_ir_path), output).generate()
        return output.sources

    def test_one_module_per_entity(self, sources):
        assert sorted(sources) == [
            '__init__', '_sbe', 'boolean_type', 'boost_type', 'car', 'engine',
            'message_header', 'model', 'optional_extras',
        ]

    def test_imports_only_what_is_used(self, sources):
        assert 'import math' not in sources['message_header']
        assert 'import math' in sources['car']
        assert 'from .boost_type import BoostType' in sources['engine']
        assert 'from .boost_type import' not in sources['car']
        assert 'validate_utf8' in sources['car']
        assert 'validate_utf8' not in sources['engine']
        assert 'from .engine import Engine' in sources['car']

    def test_header_banner(self, sources):
        assert sources['car'].startswith('# Generated SBE (Simple Binary Encoding) message codec')

    def test_init_reexports(self, sources):
        init = sources['__init__']
        assert 'from ._sbe import BIG_ENDIAN, LITTLE_ENDIAN, RangeCheckError' in init
        assert 'from .car import Car, CarFuelFigures, CarPerformanceFigures, ' \
               'CarPerformanceFiguresAcceleration' in init
        assert "'EngineBooster'," in init

    def test_sources_compile(self, sources):
        for module, source in sources.items():
            compile(source, f'{module}.py', 'exec')

    def test_empty_message(self):
        output = InMemoryOutputManager()
        SbeGenerator(build_ir(message('Ping', 9, 0)), output).generate()
        assert 'def encode(self, writer, order, do_range_check=False):' in output.sources['ping']
        assert 'struct' not in output.sources['ping'].split('class Ping')[0]

    def test_constant_only_composite_imports_nothing(self):
        output = InMemoryOutputManager()
        ir = build_ir(message('Tag', 2, 0, field('kind', 'uint8', None, 1, presence='constant', const_value='3')))
        SbeGenerator(ir, output).generate()
        body = output.sources['tag']
        assert 'self.kind = 3' in body
        assert 'import struct' not in body
