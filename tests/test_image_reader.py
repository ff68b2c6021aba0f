#!/usr/bin/env python3
"""
测试地址空间、基本类型读取和字符串解码
"""

import pytest

from ksymvers.image_reader import (
    AddressSpace,
    ImageCursor,
    PrimitiveReader,
    StringDecoder,
    load_image,
)
from ksymvers.types import (
    FileLoadError,
    InvalidString,
    OutOfBounds,
    PointerOutOfRange,
    ScanConfig,
    StringTooLong,
)


def make_reader(data, **kwargs):
    config = ScanConfig(text_base=0x1000, **kwargs)
    return PrimitiveReader(AddressSpace(data, config.text_base), config)


class TestAddressSpace:

    def test_translate_inside(self):
        space = AddressSpace(b'\x00' * 16, 0x1000)
        assert space.translate(0x1000) == 0
        assert space.translate(0x100f) == 15
        assert space.end == 0x1010

    def test_upper_bound_is_exclusive(self):
        space = AddressSpace(b'\x00' * 16, 0x1000)
        assert not space.contains(0x1010)
        with pytest.raises(PointerOutOfRange):
            space.translate(0x1010)

    def test_below_base(self):
        space = AddressSpace(b'\x00' * 16, 0x1000)
        with pytest.raises(PointerOutOfRange):
            space.translate(0xfff)

    def test_buffer_is_copied(self):
        data = bytearray(b'abc')
        space = AddressSpace(data, 0)
        data[0] = 0x7a
        assert space.data == b'abc'


class TestPrimitiveReader:

    def test_little_endian(self):
        reader = make_reader(b'\x78\x56\x34\x12')
        assert reader.read_u32(0) == 0x12345678
        assert reader.read_uint(0, 2) == 0x5678
        assert reader.read_uint(3, 1) == 0x12

    def test_big_endian(self):
        reader = make_reader(b'\x12\x34\x56\x78', little_endian=False)
        assert reader.read_u32(0) == 0x12345678
        assert reader.read_uint(2, 2) == 0x5678

    def test_unaligned_read(self):
        reader = make_reader(b'\x00\x01\x02\x03\x04')
        assert reader.read_u32(1) == 0x04030201

    def test_pointer_width(self):
        data = bytes(range(1, 9))
        assert make_reader(data).read_pointer(0) == 0x04030201
        assert make_reader(data, bits=64).read_pointer(0) == 0x0807060504030201

    def test_32bit_target_masks_wide_reads(self):
        data = bytes(range(1, 9))
        assert make_reader(data).read_uint(0, 8) == 0x04030201
        assert make_reader(data, bits=64).read_uint(0, 8) == 0x0807060504030201

    def test_out_of_bounds(self):
        reader = make_reader(b'\x00' * 6)
        assert reader.read_u32(2) == 0
        with pytest.raises(OutOfBounds):
            reader.read_u32(3)
        with pytest.raises(OutOfBounds):
            reader.read_u32(-1)

    def test_unsupported_width(self):
        with pytest.raises(ValueError):
            make_reader(b'\x00' * 8).read_uint(0, 3)

    def test_cursor_advances_only_on_success(self):
        cursor = ImageCursor(make_reader(b'\x01\x00\x00\x00\x02\x00'), 0)
        assert cursor.get_u32() == 1
        assert cursor.offset == 4
        with pytest.raises(OutOfBounds):
            cursor.get_pointer()
        assert cursor.offset == 4
        assert cursor.get_uint(2) == 2


class TestStringDecoder:

    def decoder(self, data):
        return StringDecoder(AddressSpace(data, 0x1000))

    def test_simple_string(self):
        decoder = self.decoder(b'xxprintk\x00yy')
        assert decoder.decode_cstring(2) == "printk"
        assert decoder.decode_cstring_at(0x1002) == "printk"

    def test_empty_string(self):
        assert self.decoder(b'\x00abc').decode_cstring(0) == ""

    def test_longest_accepted_name(self):
        data = b'a' * 127 + b'\x00'
        assert self.decoder(data).decode_cstring(0) == 'a' * 127

    def test_128_bytes_without_terminator(self):
        decoder = self.decoder(b'a' * 128 + b'\x00')
        assert decoder.decode_cstring(0) is None
        with pytest.raises(StringTooLong):
            decoder.expect_cstring(0)

    def test_non_ascii_rejected(self):
        decoder = self.decoder(b'pri\xe9ntk\x00')
        assert decoder.decode_cstring(0) is None
        with pytest.raises(InvalidString):
            decoder.expect_cstring(0)

    def test_runs_past_end(self):
        decoder = self.decoder(b'abc')
        assert decoder.decode_cstring(0) is None
        assert decoder.decode_cstring(5) is None

    def test_address_outside_space(self):
        decoder = self.decoder(b'abc\x00')
        assert decoder.decode_cstring_at(0x1004) is None
        assert decoder.decode_cstring_at(0x0fff) is None


class TestLoadImage:

    def test_load(self, tmp_path):
        path = tmp_path / "Image"
        path.write_bytes(b'\x01\x02\x03')
        assert load_image(str(path)) == b'\x01\x02\x03'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileLoadError):
            load_image(str(tmp_path / "missing"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "Image"
        path.write_bytes(b'')
        assert load_image(str(path)) == b''


def test_config_rejects_unknown_bits():
    with pytest.raises(ValueError):
        ScanConfig(bits=16)


def test_config_sizes():
    assert ScanConfig().symbol_size == 8
    assert ScanConfig().descriptor_size == 20
    assert ScanConfig(with_namespace=True).symbol_size == 12
    assert ScanConfig(bits=64).symbol_size == 12
    assert ScanConfig(bits=64, with_namespace=True).symbol_size == 20
    assert ScanConfig(bits=64).descriptor_size == 32
