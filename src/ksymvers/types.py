from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Optional

# =============================================================================
# Kernel Constants and Enums
# =============================================================================

# dmesg | grep .text
DEFAULT_TEXT_BASE = 0xC0008000

# Upper bound for a kernel export name, including the terminating NUL
SYMBOL_NAME_LENGTH_LIMIT = 128

# Size of value / crc / license / unused fields
U32_SIZE = 4

# Owner module printed in every Module.symvers line
SYMVERS_MODULE = "vmlinux"


class License(IntEnum):
    """enum mod_license, in the order of the kernel's symsearch arr[]"""
    NOT_GPL_ONLY = 0
    GPL_ONLY = 1
    WILL_BE_GPL_ONLY = 2


LICENSE_NAMES = {
    License.NOT_GPL_ONLY: "EXPORT_SYMBOL",
    License.GPL_ONLY: "EXPORT_SYMBOL_GPL",
    License.WILL_BE_GPL_ONLY: "EXPORT_SYMBOL_GPL_FUTURE",
}

# symsearch arr[] entries appear in exactly this order
LICENSE_SEQUENCE = (License.NOT_GPL_ONLY, License.GPL_ONLY, License.WILL_BE_GPL_ONLY)


# =============================================================================
# Scan configuration
# =============================================================================

@dataclass(frozen=True)
class ScanConfig:
    """
    Immutable scan parameters shared by every reader and validator.

    Attributes:
        text_base: address the Image is loaded at (kernel .text start)
        little_endian: byte order of the target
        bits: pointer size of the target in bits, 32 or 64
        with_namespace: struct kernel_symbol carries a namespace pointer (linux 5.4+)
        with_address: print the symbol value column
        with_namespace_column: print the namespace as a trailing column
    """
    text_base: int = DEFAULT_TEXT_BASE
    little_endian: bool = True
    bits: int = 32
    with_namespace: bool = False
    with_address: bool = False
    with_namespace_column: bool = False

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError(f"Unsupported pointer size: {self.bits} bits")
        if self.text_base < 0:
            raise ValueError(f"Invalid text base address: {self.text_base:#x}")

    @property
    def ptr_size(self) -> int:
        return self.bits // 8

    @property
    def byte_order(self) -> str:
        return "little" if self.little_endian else "big"

    @property
    def symbol_size(self) -> int:
        """sizeof(struct kernel_symbol): value, name[, namespace]"""
        size = U32_SIZE + self.ptr_size
        if self.with_namespace:
            size += self.ptr_size
        return size

    @property
    def descriptor_size(self) -> int:
        """sizeof(struct symsearch): start, stop, crcs, license, unused"""
        return 3 * self.ptr_size + U32_SIZE + U32_SIZE


# =============================================================================
# Decoded structures
# =============================================================================

class Descriptor(NamedTuple):
    """One validated struct symsearch entry"""
    offset: int
    start: int
    stop: int
    crcs: int
    license: License
    unused: int
    symbol_size: int

    @property
    def num_symbols(self) -> int:
        return (self.stop - self.start) // self.symbol_size


class KernelSymbol(NamedTuple):
    """struct kernel_symbol as stored in a __ksymtab section"""
    value: int
    name: str
    namespace: Optional[str] = None


class SymbolRecord(NamedTuple):
    """One exported kernel symbol with its version checksum"""
    value: int
    crc: int
    name: str
    license: License
    namespace: Optional[str] = None

    @property
    def license_name(self) -> str:
        return LICENSE_NAMES[self.license]


# =============================================================================
# Errors
# =============================================================================

class SymversError(Exception):
    """Base class of all ksymvers errors"""


class FileLoadError(SymversError):
    """The Image file could not be read"""


class BufferExhausted(SymversError):
    """No symsearch table was committed before the end of the Image"""


# Alias used by callers that only ask the scanner for a location
NotFound = BufferExhausted


class Rejected(SymversError):
    """The current candidate is not a symsearch table; scanning resumes"""


class OutOfBounds(Rejected):
    """A read extends beyond the Image buffer"""

    def __init__(self, offset: int, width: int, size: int):
        super().__init__(f"read of {width} bytes at 0x{offset:x} exceeds image size 0x{size:x}")
        self.offset = offset
        self.width = width
        self.size = size


class PointerOutOfRange(Rejected):
    """An address does not lie inside [text_base, text_base + size)"""

    def __init__(self, address: int):
        super().__init__(f"address 0x{address:x} outside image")
        self.address = address


class TagMismatch(Rejected):
    """The license tag differs from the tier expected at this position"""


class PaddingMismatch(Rejected):
    """The unused field of struct symsearch is not zero"""


class UnalignedStride(Rejected):
    """stop - start is not a whole number of struct kernel_symbol"""


class InvalidSymbol(Rejected):
    """A struct kernel_symbol slot does not decode to a plausible symbol"""


class InvalidString(Rejected):
    """A pointer does not lead to a short ASCII C string"""


class StringTooLong(InvalidString):
    """No NUL terminator within SYMBOL_NAME_LENGTH_LIMIT bytes"""
