#!/usr/bin/env python3
"""
测试公共设施：构造带symsearch数组的合成内核Image
"""

import sys
import os

import pytest

# 添加src目录到Python路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ksymvers.types import LICENSE_SEQUENCE, License, ScanConfig


class ImageBuilder:
    """
    Lays out a fake Image::

        [prefix][symsearch arr x3][__ksymtab*][__kcrctab*][strings][suffix]

    Tier entries are ``(value, crc, name)`` or ``(value, crc, name, namespace)``.
    """

    def __init__(self, base=0x1000, little_endian=True, bits=32, with_namespace=False):
        self.config = ScanConfig(text_base=base, little_endian=little_endian,
                                 bits=bits, with_namespace=with_namespace)
        self.table_offset = None

    @property
    def base(self):
        return self.config.text_base

    def u32(self, value):
        return value.to_bytes(4, self.config.byte_order)

    def ptr(self, value):
        return value.to_bytes(self.config.ptr_size, self.config.byte_order)

    def descriptor(self, start, stop, crcs, license, unused=0):
        return self.ptr(start) + self.ptr(stop) + self.ptr(crcs) + self.u32(license) + self.u32(unused)

    def build(self, tiers, prefix=b'', suffix=b'\x00' * 16):
        config = self.config
        tier_entries = [list(tiers.get(license, [])) for license in LICENSE_SEQUENCE]
        nsyms = sum(len(entries) for entries in tier_entries)

        table_offset = len(prefix)
        symtab_offset = table_offset + 3 * config.descriptor_size
        crctab_offset = symtab_offset + nsyms * config.symbol_size
        strings_offset = crctab_offset + nsyms * 4

        strings = bytearray()
        addresses = {}

        def intern(text):
            if text not in addresses:
                addresses[text] = self.base + strings_offset + len(strings)
                strings.extend(text.encode('ascii') + b'\x00')
            return addresses[text]

        descriptors = bytearray()
        symtab = bytearray()
        crctab = bytearray()
        sym_cursor = symtab_offset
        crc_cursor = crctab_offset

        for license, entries in zip(LICENSE_SEQUENCE, tier_entries):
            start = self.base + sym_cursor
            crcs = self.base + crc_cursor
            for entry in entries:
                value, crc, name = entry[:3]
                namespace = entry[3] if len(entry) > 3 else None
                symtab += self.u32(value) + self.ptr(intern(name))
                if config.with_namespace:
                    symtab += self.ptr(intern(namespace) if namespace else 0)
                crctab += self.u32(crc)
            sym_cursor += len(entries) * config.symbol_size
            crc_cursor += len(entries) * 4
            descriptors += self.descriptor(start, self.base + sym_cursor, crcs, license)

        self.table_offset = table_offset
        return bytes(prefix) + bytes(descriptors + symtab + crctab + strings) + bytes(suffix)


@pytest.fixture
def image_builder():
    return ImageBuilder


@pytest.fixture
def sample_tiers():
    return {
        License.NOT_GPL_ONLY: [
            (0xc0100000, 0x12345678, "printk"),
            (0xc0100040, 0x9abcdef0, "kmalloc"),
            (0xc0100080, 0x0badf00d, "kfree"),
        ],
        License.GPL_ONLY: [
            (0xc0200000, 0x11111111, "platform_driver_register"),
        ],
        License.WILL_BE_GPL_ONLY: [
            (0xc0300000, 0x22222222, "old_api"),
        ],
    }
