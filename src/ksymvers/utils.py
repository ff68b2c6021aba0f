#!/usr/bin/env python3
"""
ksymvers Utilities Module
=========================

This module contains helper functions shared by the CLI and the module API:
- Address parsing
- Logging configuration
- Module.symvers line formatting
"""

import logging
from typing import Iterable, TextIO

from .types import SYMVERS_MODULE, SymbolRecord


def parse_memory_address(addr_str: str) -> int:
    """
    Parse a kernel address. Addresses are always hexadecimal, the ``0x``
    prefix is optional (``c0008000`` == ``0xC0008000``).
    """
    addr_str = addr_str.strip()
    if not addr_str:
        raise ValueError("empty address")
    return int(addr_str, 16)


def setup_logging(debug: bool):
    """Setup logging configuration"""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s',
        force=True
    )


def format_symbol(record: SymbolRecord, with_address: bool = False,
                  with_namespace: bool = False) -> str:
    """
    格式化为一行Module.symvers记录（不含换行）

    字段以TAB分隔: [地址] crc 符号名 vmlinux 导出类型 [命名空间]
    """
    fields = []
    if with_address:
        fields.append(f"0x{record.value:08x}")
    fields.append(f"0x{record.crc:08x}")
    fields.append(record.name)
    fields.append(SYMVERS_MODULE)
    fields.append(record.license_name)
    if with_namespace:
        fields.append(record.namespace or "")
    return "\t".join(fields)


def write_symvers(records: Iterable[SymbolRecord], stream: TextIO,
                  with_address: bool = False, with_namespace: bool = False) -> int:
    """Write one line per record, returns the number of lines written"""
    count = 0
    for record in records:
        stream.write(format_symbol(record, with_address, with_namespace) + "\n")
        count += 1
    return count
