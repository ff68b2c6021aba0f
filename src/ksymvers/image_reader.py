#!/usr/bin/env python3
"""
Image Reader Module for ksymvers
================================

内核Image的底层读取模块，负责把原始字节映射到内核加载地址并解码基本类型。

包含：
- AddressSpace: 加载基址 + 原始字节，带边界检查的地址转换
- PrimitiveReader: 按字节序和指针宽度解码整数/指针
- ImageCursor: 在PrimitiveReader之上带游标前进的读取包装
- StringDecoder: 有长度上限的ASCII C字符串解码（同时作为有效性启发式）
- load_image: 从文件完整读取Image
"""

import logging
import os
import struct
from typing import Optional, Union

from .types import (
    SYMBOL_NAME_LENGTH_LIMIT,
    U32_SIZE,
    FileLoadError,
    InvalidString,
    OutOfBounds,
    PointerOutOfRange,
    ScanConfig,
    StringTooLong,
)

logger = logging.getLogger(__name__)

# struct format characters per integer width
_UINT_FORMATS = {1: 'B', 2: 'H', 4: 'I', 8: 'Q'}


def load_image(file_path: str) -> bytes:
    """
    读取整个Image文件到内存

    Args:
        file_path: Image文件路径

    Returns:
        文件内容

    Raises:
        FileLoadError: 文件不存在或不可读
    """
    try:
        with open(file_path, 'rb') as f:
            data = f.read()
    except (IOError, OSError) as e:
        raise FileLoadError(f"load image {file_path} failed: {e}") from e

    logger.info(f"Loaded image: {os.path.basename(file_path)} ({len(data)} bytes)")
    return data


# =============================================================================
# 地址空间
# =============================================================================

class AddressSpace:
    """
    把Image原始字节映射到加载基址的只读地址空间

    有效地址范围为 [base, base + size)，所有指针到偏移量的转换都经过检查。
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview], base: int):
        self._data = bytes(data)
        self._base = base

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def base(self) -> int:
        return self._base

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def end(self) -> int:
        """First address past the image"""
        return self._base + len(self._data)

    def contains(self, address: int) -> bool:
        return self._base <= address < self.end

    def translate(self, address: int) -> int:
        """
        将内核地址转换为buffer偏移量

        Raises:
            PointerOutOfRange: 地址低于基址或超出Image
        """
        if not self.contains(address):
            raise PointerOutOfRange(address)
        return address - self._base

    def address_of(self, offset: int) -> int:
        return self._base + offset


# =============================================================================
# 基本类型读取
# =============================================================================

class PrimitiveReader:
    """Endianness- and pointer-width-aware integer decoding at explicit offsets"""

    def __init__(self, space: AddressSpace, config: ScanConfig):
        self.space = space
        self.config = config
        prefix = '<' if config.little_endian else '>'
        self._structs = {width: struct.Struct(prefix + fmt) for width, fmt in _UINT_FORMATS.items()}
        self.pointer_struct = self._structs[config.ptr_size]
        # 32位目标上所有读取结果都截断到低32位
        self.mask = 0xffffffff if config.bits == 32 else None

    def read_uint(self, offset: int, width: int) -> int:
        """
        Read an unsigned integer of ``width`` bytes at ``offset``.

        Raises:
            OutOfBounds: the read does not fit in the image
            ValueError: unsupported width
        """
        unpacker = self._structs.get(width)
        if unpacker is None:
            raise ValueError(f"Unsupported integer width: {width}")
        if offset < 0 or offset + width > self.space.size:
            raise OutOfBounds(offset, width, self.space.size)

        value = unpacker.unpack_from(self.space.data, offset)[0]
        if self.mask is not None:
            value &= self.mask
        return value

    def read_u32(self, offset: int) -> int:
        return self.read_uint(offset, U32_SIZE)

    def read_pointer(self, offset: int) -> int:
        return self.read_uint(offset, self.config.ptr_size)


class ImageCursor:
    """
    带游标的读取包装，对应逐字段顺序读取的结构体解析

    游标只在读取成功后前进。
    """

    def __init__(self, reader: PrimitiveReader, offset: int = 0):
        self.reader = reader
        self.offset = offset

    def get_uint(self, width: int) -> int:
        value = self.reader.read_uint(self.offset, width)
        self.offset += width
        return value

    def get_u32(self) -> int:
        return self.get_uint(U32_SIZE)

    def get_pointer(self) -> int:
        return self.get_uint(self.reader.config.ptr_size)


# =============================================================================
# 字符串解码
# =============================================================================

class StringDecoder:
    """
    Bounded ASCII C-string extraction.

    Kernel export names are short printable strings, so a pointer that does
    not lead to one is treated as evidence against the candidate rather than
    as an error.
    """

    def __init__(self, space: AddressSpace, limit: int = SYMBOL_NAME_LENGTH_LIMIT):
        self.space = space
        self.limit = limit

    def decode_cstring(self, offset: int) -> Optional[str]:
        """
        Decode the NUL-terminated ASCII string at ``offset``.

        Returns:
            the string without its terminator, or None if no NUL is found
            within ``limit`` bytes or a preceding byte is not ASCII
        """
        try:
            return self.expect_cstring(offset)
        except InvalidString:
            return None

    def decode_cstring_at(self, address: int) -> Optional[str]:
        if not self.space.contains(address):
            return None
        return self.decode_cstring(self.space.translate(address))

    def expect_cstring(self, offset: int) -> str:
        """
        Same as decode_cstring() but raises the reason of a rejection.

        Raises:
            StringTooLong: no terminator within the limit
            InvalidString: non-ASCII byte, or the image ends first
        """
        data = self.space.data
        if offset < 0 or offset >= len(data):
            raise InvalidString(f"string offset 0x{offset:x} outside image")

        end = data.find(b'\x00', offset, offset + self.limit)
        if end < 0:
            if offset + self.limit > len(data):
                raise InvalidString(f"string at 0x{offset:x} runs past end of image")
            raise StringTooLong(f"no terminator within {self.limit} bytes at 0x{offset:x}")

        raw = data[offset:end]
        if not raw.isascii():
            raise InvalidString(f"non-ASCII byte in string at 0x{offset:x}")
        return raw.decode('ascii')
