"""
test_generated_codec.py - Encode/decode through the generated car codec.

The car fixture covers scalars, arrays, char data, enums, a bit set, a
constant enum field, a composite with a nested composite, two groups (one
nested), and var data of several encodings.
"""

import io
import math
import struct

import pytest

from ir_builders import build_ir, encode_bytes, field, group, message, var_data

pytestmark = pytest.mark.integration


def make_car(pkg):
    car = pkg.Car()
    car.serial_number = 1234
    car.model_year = 2013
    car.available = pkg.BooleanType.T
    car.code = pkg.Model.A
    car.some_numbers = [1, -2, 3, -4]
    car.vehicle_code = b'abcdef'
    car.extras.cruise_control = True
    car.extras.sports_pack = True
    car.engine.capacity = 2000
    car.engine.num_cylinders = 4
    car.engine.manufacturer_code = b'123'
    car.engine.booster.boost_type = pkg.BoostType.NITROUS
    car.engine.booster.horse_power = 200

    for speed, mpg, usage in ((30, 35.5, 'Urban Cycle'), (55, 49.0, 'Combined Cycle')):
        figure = pkg.CarFuelFigures()
        figure.speed = speed
        figure.mpg = mpg
        figure.usage_description = usage.encode()
        car.fuel_figures.append(figure)

    for octane, points in ((95, ((30, 4.0), (60, 7.5))), (99, ((100, 11.75),))):
        perf = pkg.CarPerformanceFigures()
        perf.octane_rating = octane
        for mph, seconds in points:
            acc = pkg.CarPerformanceFiguresAcceleration()
            acc.mph = mph
            acc.seconds = seconds
            perf.acceleration.append(acc)
        car.performance_figures.append(perf)

    car.manufacturer = 'Honda'.encode()
    car.model = b'Civic VTi'
    car.activation_code = b'deadbeef'
    return car


def decode_car(pkg, data, order, acting_version=0, **kwargs):
    decoded = pkg.Car()
    decoded.decode(io.BytesIO(data), order, acting_version, **kwargs)
    return decoded


class TestCarRoundtrip:
    """Whole-message encode then decode."""

    @pytest.mark.parametrize('order_name', ['LITTLE_ENDIAN', 'BIG_ENDIAN'])
    def test_roundtrip_equal(self, car, order_name):
        order = getattr(car, order_name)
        original = make_car(car)
        data = encode_bytes(original, order, do_range_check=True)
        assert decode_car(car, data, order, do_range_check=True) == original

    def test_fixed_block_layout(self, car):
        data = encode_bytes(make_car(car), car.LITTLE_ENDIAN)
        assert struct.unpack_from('<Q', data, 0)[0] == 1234
        assert struct.unpack_from('<H', data, 8)[0] == 2013
        assert data[10] == 1
        assert data[11] == ord('A')
        assert struct.unpack_from('<4i', data, 12) == (1, -2, 3, -4)
        assert data[28:34] == b'abcdef'
        assert data[34] == 0b110
        # one byte of padding before the engine at 36
        assert data[35] == 0
        assert struct.unpack_from('<H', data, 36)[0] == 2000
        # engine spans 36..46 (with its own padding), block padding runs to 48
        assert data[46:48] == b'\x00\x00'
        assert struct.unpack_from('<HH', data, 48) == (8, 2)

    def test_big_endian_layout(self, car):
        data = encode_bytes(make_car(car), car.BIG_ENDIAN)
        assert struct.unpack_from('>Q', data, 0)[0] == 1234
        assert struct.unpack_from('>HH', data, 48) == (8, 2)

    def test_group_element_padding(self, car):
        data = encode_bytes(make_car(car), car.LITTLE_ENDIAN)
        # first fuel figure: speed, mpg, 2 padding bytes, then its var data
        element = data[52:]
        assert struct.unpack_from('<Hf', element, 0) == (30, 35.5)
        assert element[6:8] == b'\x00\x00'
        assert struct.unpack_from('<I', element, 8)[0] == len('Urban Cycle')
        assert element[12:12 + 11] == b'Urban Cycle'

    def test_constant_field_not_on_wire(self, car):
        original = make_car(car)
        assert original.discounted_model == car.Model.C
        decoded = decode_car(car, encode_bytes(original, car.LITTLE_ENDIAN), car.LITTLE_ENDIAN)
        assert decoded.discounted_model == car.Model.C
        assert decoded.engine.max_rpm == 9000
        assert decoded.engine.fuel == b'Petrol'

    def test_decode_consumes_whole_message(self, car):
        data = encode_bytes(make_car(car), car.LITTLE_ENDIAN) + b'trailer'
        reader = io.BytesIO(data)
        car.Car().decode(reader, car.LITTLE_ENDIAN, 0)
        assert reader.read() == b'trailer'

    def test_empty_groups_and_var_data(self, car):
        original = make_car(car)
        original.fuel_figures = []
        original.performance_figures = []
        original.manufacturer = b''
        data = encode_bytes(original, car.LITTLE_ENDIAN)
        assert decode_car(car, data, car.LITTLE_ENDIAN) == original

    def test_short_read_raises_eof(self, car):
        data = encode_bytes(make_car(car), car.LITTLE_ENDIAN)
        with pytest.raises(EOFError):
            decode_car(car, data[:-1], car.LITTLE_ENDIAN)

    def test_write_errors_propagate(self, car):
        class BrokenWriter:
            def write(self, data):
                raise OSError('disk full')

        with pytest.raises(OSError, match='disk full'):
            make_car(car).encode(BrokenWriter(), car.LITTLE_ENDIAN)


class TestMessageHeader:
    def test_header_roundtrip(self, car):
        header = car.MessageHeader()
        header.block_length = car.Car.sbe_block_length()
        header.template_id = car.Car.sbe_template_id()
        header.schema_id = car.Car.sbe_schema_id()
        header.version = car.Car.sbe_schema_version()
        data = encode_bytes(header, car.LITTLE_ENDIAN)
        assert data == struct.pack('<HHHH', 48, 1, 1, 0)
        decoded = car.MessageHeader()
        decoded.decode(io.BytesIO(data), car.LITTLE_ENDIAN, 0)
        assert decoded == header
        assert car.MessageHeader.encoded_length() == 8


class TestAccessors:
    def test_message_metadata(self, car):
        assert car.Car.sbe_block_length() == 48
        assert car.Car.sbe_template_id() == 1
        assert car.Car.sbe_schema_id() == 1
        assert car.Car.sbe_schema_version() == 0
        assert car.Car.sbe_semantic_type() == 'vehicle'
        assert car.Car.encoded_length() == 48

    def test_field_ids_and_versions(self, car):
        assert car.Car.serial_number_id() == 1
        assert car.Car.engine_id() == 9
        assert car.Car.fuel_figures_id() == 10
        assert car.Car.manufacturer_id() == 18
        assert car.Car.model_year_since_version() == 0
        assert car.Car.model_year_in_acting_version(0)
        assert car.Car.model_year_deprecated() == 0

    def test_meta_attribute(self, car):
        assert car.Car.model_year_meta_attribute('semantic_type') == 'year'
        assert car.Car.model_year_meta_attribute('epoch') == ''
        assert car.Car.serial_number_meta_attribute('unknown') == ''

    def test_min_max_null(self, car):
        assert car.Car.serial_number_null_value() == 2**64 - 1
        assert car.Car.serial_number_min_value() == 0
        assert car.Car.serial_number_max_value() == 2**64 - 2
        assert car.Car.some_numbers_null_value() == -2**31
        assert car.Car.some_numbers_min_value() == -2**31 + 1
        assert car.Car.vehicle_code_min_value() == 32
        assert car.Car.vehicle_code_max_value() == 126
        assert car.Car.vehicle_code_character_encoding() == 'ASCII'
        assert math.isnan(car.CarFuelFigures.mpg_null_value())
        assert car.CarPerformanceFigures.octane_rating_min_value() == 90
        assert car.CarPerformanceFigures.octane_rating_max_value() == 110

    def test_var_data_accessors(self, car):
        assert car.Car.manufacturer_character_encoding() == 'UTF-8'
        assert car.Car.manufacturer_header_length() == 4
        assert car.Car.activation_code_header_length() == 2

    def test_group_element_metadata(self, car):
        assert car.CarFuelFigures.sbe_block_length() == 8
        assert car.CarPerformanceFiguresAcceleration.sbe_block_length() == 6
        assert car.CarFuelFigures.encoded_length() == 8

    def test_composite_sizes(self, car):
        assert car.Engine.encoded_length() == 10
        assert car.EngineBooster.encoded_length() == 2
        assert car.OptionalExtras.encoded_length() == 1
        assert car.Model.encoded_length() == 1


class TestEnums:
    def test_constants_are_ints(self, car):
        assert car.Model.A == ord('A')
        assert isinstance(car.Model.B, car.Model)
        assert car.BooleanType.NULL_VALUE == 255
        assert car.Model.NULL_VALUE == 0
        assert repr(car.Model.C) == 'Model.C'

    def test_unknown_value_decodes(self, car):
        value = car.BooleanType.decode(io.BytesIO(b'\x07'), car.LITTLE_ENDIAN, 0)
        assert value == 7
        assert repr(value) == 'BooleanType(7)'

    def test_unknown_value_tolerated_from_newer_producer(self, car):
        car.BooleanType(7).range_check(1, 0)

    def test_unknown_value_rejected_at_same_version(self, car):
        with pytest.raises(car.RangeCheckError, match='unknown enumeration value 7'):
            car.BooleanType(7).range_check(0, 0)

    def test_value_accessors(self, car):
        assert car.Model.a_since_version() == 0
        assert car.Model.a_in_acting_version(0)
        assert car.BoostType.kers_deprecated() == 0


class TestChoiceSets:
    def test_bits_follow_choices(self, car):
        extras = car.OptionalExtras()
        extras.sun_roof = True
        extras.cruise_control = True
        assert extras.bits[:3] == [True, False, True]
        assert encode_bytes(extras, car.LITTLE_ENDIAN) == b'\x05'
        assert repr(extras) == 'OptionalExtras(sun_roof, cruise_control)'

    def test_unnamed_bits_survive(self, car):
        extras = car.OptionalExtras()
        extras.decode(io.BytesIO(b'\x81'), car.LITTLE_ENDIAN, 0)
        assert extras.sun_roof
        assert not extras.sports_pack
        assert extras.bits[7]
        assert encode_bytes(extras, car.LITTLE_ENDIAN) == b'\x81'

    def test_index_constants(self, car):
        assert car.OptionalExtras.SUN_ROOF == 0
        assert car.OptionalExtras.CRUISE_CONTROL == 2


class TestRangeCheck:
    def test_valid_car_passes(self, car):
        make_car(car).range_check(0, 0)

    def test_out_of_range_octane(self, car):
        bad = make_car(car)
        bad.performance_figures[0].octane_rating = 111
        with pytest.raises(car.RangeCheckError, match=r'CarPerformanceFigures\.octane_rating: 111'):
            encode_bytes(bad, car.LITTLE_ENDIAN, do_range_check=True)

    def test_range_check_off_by_default(self, car):
        bad = make_car(car)
        bad.performance_figures[0].octane_rating = 111
        encode_bytes(bad, car.LITTLE_ENDIAN)

    def test_null_value_rejected(self, car):
        bad = make_car(car)
        bad.serial_number = car.Car.serial_number_null_value()
        with pytest.raises(car.RangeCheckError, match='Car.serial_number'):
            bad.range_check(0, 0)

    def test_non_printable_char_rejected(self, car):
        bad = make_car(car)
        bad.vehicle_code = b'abc\x00ef'
        with pytest.raises(car.RangeCheckError, match=r'Car\.vehicle_code\[3\]'):
            bad.range_check(0, 0)

    def test_invalid_utf8_rejected(self, car):
        bad = make_car(car)
        bad.manufacturer = b'\xff\xfe'
        with pytest.raises(car.RangeCheckError, match='UTF-8'):
            bad.range_check(0, 0)

    def test_non_ascii_var_data_rejected(self, car):
        bad = make_car(car)
        bad.model = 'Civic é'.encode()
        with pytest.raises(car.RangeCheckError, match='ASCII'):
            bad.range_check(0, 0)

    def test_composite_member_checked(self, car):
        bad = make_car(car)
        bad.engine.booster.horse_power = 201
        with pytest.raises(car.RangeCheckError, match='EngineBooster.horse_power'):
            bad.range_check(0, 0)

    def test_decode_checks_after_read(self, car):
        bad = make_car(car)
        bad.engine.booster.boost_type = car.BoostType(ord('X'))
        data = encode_bytes(bad, car.LITTLE_ENDIAN)
        decode_car(car, data, car.LITTLE_ENDIAN)
        with pytest.raises(car.RangeCheckError, match='BoostType'):
            decode_car(car, data, car.LITTLE_ENDIAN, do_range_check=True)

    def test_range_check_error_is_value_error(self, car):
        assert issubclass(car.RangeCheckError, ValueError)

    def test_char_array_length_enforced(self, car):
        for code in (b'abcdefXYZ', b'abc'):
            bad = make_car(car)
            bad.vehicle_code = code
            with pytest.raises(car.RangeCheckError, match=rf'Car\.vehicle_code: length {len(code)} is not 6'):
                encode_bytes(bad, car.LITTLE_ENDIAN, do_range_check=True)

    def test_numeric_array_length_enforced(self, car):
        bad = make_car(car)
        bad.some_numbers = [1, 2, 3]
        with pytest.raises(car.RangeCheckError, match=r'Car\.some_numbers: length 3 is not 4'):
            bad.range_check(0, 0)


class TestLengthLimits:
    """Group counts and var data lengths must fit their size prefix."""

    @pytest.fixture(scope='class')
    def batches(self, codegen):
        return codegen(build_ir(message(
            'Batch', 5, 0,
            group('entries', 1, 1, field('flag', 'uint8', 0, 2), max_count=3),
            var_data('blob', 3, data_type='uint8', length_type='uint8'),
        ), package='batches'))

    def fill(self, pkg, entries, blob):
        batch = pkg.Batch()
        batch.entries = [pkg.BatchEntries() for _ in range(entries)]
        batch.blob = blob
        return batch

    def test_within_limits_roundtrip(self, batches):
        batch = self.fill(batches, 3, bytes(254))
        data = encode_bytes(batch, batches.LITTLE_ENDIAN, do_range_check=True)
        decoded = batches.Batch()
        decoded.decode(io.BytesIO(data), batches.LITTLE_ENDIAN, 0, do_range_check=True)
        assert decoded == batch

    def test_var_data_longer_than_prefix_rejected(self, batches):
        batch = self.fill(batches, 0, bytes(300))
        with pytest.raises(batches.RangeCheckError, match=r'Batch\.blob: length 300 exceeds 254'):
            encode_bytes(batch, batches.LITTLE_ENDIAN, do_range_check=True)

    def test_group_count_respects_max_value(self, batches):
        batch = self.fill(batches, 4, b'')
        with pytest.raises(batches.RangeCheckError, match=r'Batch\.entries: length 4 exceeds 3'):
            batch.range_check(0, 0)
