#!/usr/bin/env python3
"""
ksymvers - extract symbol versions from a linux Image
=====================================================

Recovers the exported symbol table (checksum, name, license, optionally
address and namespace) from a raw kernel Image without any debug
information, and prints it in Module.symvers format.

The kernel keeps a static ``struct symsearch arr[]`` in each_symbol_section()
that points at the __ksymtab / __kcrctab sections of every license tier.
ksymvers scans the Image for that array, validates it and dumps every
struct kernel_symbol it references.

CLI Usage:
    ksymvers -t 0xC0008000 Image > Module.symvers
    ksymvers -b 64 -t ffffff8008080000 -5 -a Image -o Module.symvers

Module Usage:
    import ksymvers

    with open('Image', 'rb') as f:
        data = f.read()

    records = ksymvers.extract_symvers(data, text_base=0xC0008000)
    if records:
        for record in records:
            print(record.crc, record.name, record.license_name)
"""

import sys
import argparse
import logging
from typing import List, Optional, Union

from .utils import setup_logging, parse_memory_address, write_symvers
from .image_reader import AddressSpace, load_image
from .symtab import count_by_license, find_symbol_table
from .types import (
    DEFAULT_TEXT_BASE,
    BufferExhausted,
    FileLoadError,
    ScanConfig,
    SymbolRecord,
)

# Configure logging
logger = logging.getLogger(__name__)


def extract_symvers(data: Union[bytes, bytearray],
                    text_base: Union[int, str] = DEFAULT_TEXT_BASE,
                    little_endian: bool = True,
                    bits: int = 32,
                    with_namespace: bool = False,
                    debug: bool = False) -> Optional[List[SymbolRecord]]:
    """
    Extract the exported symbol table from Image data in memory.

    Args:
        data: raw Image contents
        text_base: address the Image is loaded at (int or hex string)
        little_endian: target byte order
        bits: target pointer size, 32 or 64
        with_namespace: struct kernel_symbol has a namespace field (linux 5.4+)
        debug: enable debug logging

    Returns:
        Records in tier order, or None if no symbol table was found

    Example:
        >>> with open('Image', 'rb') as f:
        ...     records = extract_symvers(f.read(), 0xC0008000)
    """
    if debug and not logger.handlers:
        setup_logging(True)

    try:
        if isinstance(text_base, str):
            text_base = parse_memory_address(text_base)

        config = ScanConfig(text_base=text_base,
                            little_endian=little_endian,
                            bits=bits,
                            with_namespace=with_namespace)
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return None

    try:
        return find_symbol_table(AddressSpace(data, config.text_base), config)
    except BufferExhausted as e:
        logger.error(f"Symbol table not found: {e}")
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ksymvers',
        description='Extract symbol versions (Module.symvers) from a linux Image',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 32-bit little endian ARM kernel loaded at the default address
  ksymvers Image > Module.symvers

  # 64-bit kernel with symbol namespaces, including addresses
  ksymvers -b 64 -t ffffff8008080000 -5 -a Image -o Module.symvers

  # same, with a trailing namespace column
  ksymvers -b 64 -t ffffff8008080000 -5 -n Image
        """
    )

    parser.add_argument('image',
                        help='Raw kernel Image file')
    parser.add_argument('-t', '--text', default=f"0x{DEFAULT_TEXT_BASE:X}",
                        help="Kernel's text base address in hex (default: %(default)s)")
    parser.add_argument('-e', '--endian', choices=['le', 'be'], default='le',
                        help='Endianness (default: %(default)s)')
    parser.add_argument('-b', '--bits', type=int, choices=[32, 64], default=32,
                        help='Size of pointers in bits (default: %(default)s)')
    parser.add_argument('-5', '--linux5', action='store_true',
                        help='Kernel is linux 5.x (struct kernel_symbol has a namespace)')
    parser.add_argument('-a', '--address', action='store_true',
                        help='Include symbol addresses')
    parser.add_argument('-n', '--namespace-column', action='store_true',
                        help='Append the symbol namespace as an extra column (with -5)')
    parser.add_argument('-o', '--output',
                        help='Write to file instead of stdout')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Enable debug output')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point, returns the process exit status"""
    args = build_parser().parse_args(argv)

    setup_logging(args.debug)

    try:
        text_base = parse_memory_address(args.text)
    except ValueError:
        logger.error(f"Invalid text address format: {args.text}")
        return 1

    try:
        config = ScanConfig(text_base=text_base,
                            little_endian=(args.endian == 'le'),
                            bits=args.bits,
                            with_namespace=args.linux5,
                            with_address=args.address,
                            with_namespace_column=args.namespace_column)
    except ValueError as e:
        logger.error(str(e))
        return 1

    try:
        data = load_image(args.image)
        records = find_symbol_table(AddressSpace(data, config.text_base), config)
    except FileLoadError as e:
        logger.error(str(e))
        return 1
    except BufferExhausted as e:
        logger.error(f"Symbol table not found: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 1

    for license, count in count_by_license(records).items():
        logger.info(f"  {license.name}: {count} symbols")

    if args.output:
        try:
            with open(args.output, 'w', encoding='ascii') as f:
                written = write_symvers(records, f, config.with_address,
                                        config.with_namespace_column)
        except (IOError, OSError) as e:
            logger.error(f"Failed to write output file {args.output}: {e}")
            return 1
        logger.info(f"Wrote {written} symbols to {args.output}")
    else:
        write_symvers(records, sys.stdout, config.with_address, config.with_namespace_column)
        sys.stdout.flush()

    return 0


if __name__ == '__main__':
    sys.exit(main())
