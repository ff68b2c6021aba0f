#!/usr/bin/env python3
"""
Kernel Symbol Table Module
==========================

Locates the kernel's static ``struct symsearch arr[]`` inside a raw Image and
rebuilds the exported symbol table from it.

The array lives in .rodata of each_symbol_section() and, for every license
tier, points at a __ksymtab* section (struct kernel_symbol entries) and the
matching __kcrctab* section (one u32 version checksum per symbol)::

    struct symsearch {
        const struct kernel_symbol *start, *stop;
        const s32 *crcs;
        enum mod_license license;
        bool unused;
    };

Nothing in the Image says where the array is, so every byte offset is tried
as a candidate. A cheap structural check (DescriptorValidator) filters the
candidates, then every symbol the table claims is decoded in a dry run before
anything is committed.
"""

import logging
from typing import Iterator, List

from .image_reader import AddressSpace, ImageCursor, PrimitiveReader, StringDecoder
from .types import (
    LICENSE_SEQUENCE,
    U32_SIZE,
    BufferExhausted,
    Descriptor,
    InvalidString,
    InvalidSymbol,
    KernelSymbol,
    License,
    NotFound,
    PaddingMismatch,
    PointerOutOfRange,
    Rejected,
    ScanConfig,
    SymbolRecord,
    TagMismatch,
    UnalignedStride,
)

logger = logging.getLogger(__name__)


# =============================================================================
# struct kernel_symbol
# =============================================================================

class SymbolRecordDecoder:
    """Decodes one struct kernel_symbol slot of a __ksymtab section"""

    def __init__(self, reader: PrimitiveReader, strings: StringDecoder):
        self.reader = reader
        self.strings = strings

    def decode(self, offset: int) -> KernelSymbol:
        """
        Raises:
            InvalidSymbol: name pointer does not lead to a C string
            OutOfBounds: the slot does not fit in the image
        """
        cursor = ImageCursor(self.reader, offset)
        value = cursor.get_u32()
        name_ptr = cursor.get_pointer()
        namespace_ptr = cursor.get_pointer() if self.reader.config.with_namespace else 0

        try:
            name = self.strings.expect_cstring(self.reader.space.translate(name_ptr))
        except (PointerOutOfRange, InvalidString) as e:
            raise InvalidSymbol(f"symbol at 0x{offset:x}: bad name pointer 0x{name_ptr:x} ({e})") from e

        # namespace is informational only, an unreadable one is left empty
        namespace = self.strings.decode_cstring_at(namespace_ptr) if namespace_ptr else None
        return KernelSymbol(value, name, namespace)


# =============================================================================
# struct symsearch
# =============================================================================

class DescriptorValidator:
    """
    Checks whether a struct symsearch could start at a given offset.

    The checks run in field order so that random bytes are usually rejected
    by the first pointer range check.
    """

    def __init__(self, reader: PrimitiveReader):
        self.reader = reader
        self.space = reader.space
        self.config = reader.config

    def validate(self, offset: int, expected: License) -> Descriptor:
        """
        Raises:
            PointerOutOfRange, TagMismatch, PaddingMismatch, UnalignedStride, OutOfBounds
        """
        cursor = ImageCursor(self.reader, offset)

        start = self._get_address(cursor)
        stop = self._get_address(cursor)
        crcs = self._get_address(cursor)

        license = cursor.get_u32()
        if license != expected:
            raise TagMismatch(f"license {license} at 0x{offset:x}, expected {expected.name}")

        unused = cursor.get_u32()
        if unused != 0:
            raise PaddingMismatch(f"unused field 0x{unused:x} at 0x{offset:x}")

        symbol_size = self.config.symbol_size
        if stop < start or (stop - start) % symbol_size != 0:
            raise UnalignedStride(f"stop - start = {stop - start} is not a multiple of {symbol_size}")

        return Descriptor(offset, start, stop, crcs, License(license), unused, symbol_size)

    def _get_address(self, cursor: ImageCursor) -> int:
        address = cursor.get_pointer()
        if not self.space.contains(address):
            raise PointerOutOfRange(address)
        return address


# =============================================================================
# 扫描
# =============================================================================

class TableScanner:
    """
    逐字节扫描Image，寻找三个紧邻且顺序正确的symsearch描述符

    扫描器持有自己的游标；candidates() 是可重启的惰性序列，
    每产生（或放弃）一个位置后从下一个字节继续。
    """

    def __init__(self, reader: PrimitiveReader, start: int = 0):
        self.reader = reader
        self.validator = DescriptorValidator(reader)
        self.cursor = start

    def reset(self, offset: int = 0):
        self.cursor = offset

    def candidates(self) -> Iterator[int]:
        space = self.reader.space
        data = space.data
        size = space.size
        base = space.base
        end = space.end
        unpack_from = self.reader.pointer_struct.unpack_from
        mask = self.reader.mask
        # 最后一个能容纳start指针的偏移
        limit = size - self.reader.config.ptr_size

        while self.cursor < size:
            offset = self.cursor
            if offset > limit:
                self.cursor = size
                break
            self.cursor += 1

            # 热循环里只检查start指针
            start = unpack_from(data, offset)[0]
            if mask is not None:
                start &= mask
            if not base <= start < end:
                continue

            if self.check_triple(offset):
                logger.debug(f"Candidate symsearch array at offset 0x{offset:x}")
                yield offset

    def check_triple(self, offset: int) -> bool:
        """True if all three descriptors validate back to back at ``offset``"""
        step = self.reader.config.descriptor_size
        for index, license in enumerate(LICENSE_SEQUENCE):
            try:
                self.validator.validate(offset + index * step, license)
            except Rejected:
                return False
        return True

    def find_table(self) -> int:
        """
        Returns:
            offset of the next candidate array

        Raises:
            NotFound: the rest of the image holds no candidate
        """
        for offset in self.candidates():
            return offset
        raise NotFound("symsearch array not found")


# =============================================================================
# 提取
# =============================================================================

class SymbolTableExtractor:
    """
    Materializes the symbol records of a candidate symsearch array.

    The descriptor check admits false positives, so the whole table is
    decoded once without producing anything (dry run) and only then walked
    again to produce the records (commit).
    """

    def __init__(self, reader: PrimitiveReader):
        self.reader = reader
        self.space = reader.space
        self.config = reader.config
        self.validator = DescriptorValidator(reader)
        self.decoder = SymbolRecordDecoder(reader, StringDecoder(reader.space))

    def extract(self, table_offset: int) -> List[SymbolRecord]:
        """
        Raises:
            Rejected: any descriptor, symbol or checksum fails to decode
        """
        checked = 0
        for _ in self._walk(table_offset):
            checked += 1
        logger.debug(f"Dry run passed for table at 0x{table_offset:x}: {checked} symbols")

        return list(self._walk(table_offset))

    def _walk(self, table_offset: int) -> Iterator[SymbolRecord]:
        offset = table_offset
        for license in LICENSE_SEQUENCE:
            descriptor = self.validator.validate(offset, license)
            offset += self.config.descriptor_size

            logger.debug(f"{license.name}: start=0x{descriptor.start:x} stop=0x{descriptor.stop:x} "
                         f"crcs=0x{descriptor.crcs:x} count={descriptor.num_symbols}")
            yield from self._walk_tier(descriptor)

    def _walk_tier(self, descriptor: Descriptor) -> Iterator[SymbolRecord]:
        sym_offset = self.space.translate(descriptor.start)
        crc_offset = self.space.translate(descriptor.crcs)

        for _ in range(descriptor.num_symbols):
            symbol = self.decoder.decode(sym_offset)
            crc = self.reader.read_u32(crc_offset)

            yield SymbolRecord(symbol.value, crc, symbol.name, descriptor.license, symbol.namespace)

            sym_offset += descriptor.symbol_size
            crc_offset += U32_SIZE


def find_symbol_table(space: AddressSpace, config: ScanConfig,
                      start: int = 0) -> List[SymbolRecord]:
    """
    Scan ``space`` for the symsearch array and return its symbols.

    Candidates that fail extraction are skipped and the scan resumes right
    after them; the first table that extracts completely wins.

    Raises:
        BufferExhausted: no candidate survived extraction
    """
    reader = PrimitiveReader(space, config)
    scanner = TableScanner(reader, start)
    extractor = SymbolTableExtractor(reader)

    logger.info(f"Scanning {space.size} bytes at base 0x{space.base:x} "
                f"({config.bits}-bit, {config.byte_order} endian"
                f"{', namespace layout' if config.with_namespace else ''})")

    rejected = 0
    for offset in scanner.candidates():
        try:
            records = extractor.extract(offset)
        except Rejected as e:
            rejected += 1
            logger.debug(f"Rejected candidate at offset 0x{offset:x}: {e}")
            continue

        logger.info(f"Found symsearch array at 0x{space.address_of(offset):x} "
                    f"(offset 0x{offset:x}, {len(records)} symbols)")
        return records

    raise BufferExhausted(f"no symbol table found in {space.size} bytes "
                          f"({rejected} candidates rejected)")


def count_by_license(records: List[SymbolRecord]) -> dict:
    """Number of records per license tier, in tier order"""
    counts = {license: 0 for license in LICENSE_SEQUENCE}
    for record in records:
        counts[record.license] += 1
    return counts
