"""
COFF object file type definitions.

This module holds the on-disk layout constants and the immutable result types
produced by the decoder. All records are frozen dataclasses: a decoded object
is read-only, and raw section payloads are never copied into it.

Struct formats here carry no byte-order prefix. The decoder prepends the
prefix of the ByteOrder selected for the parse, so the same layout serves
both little- and big-endian files.

References:
- Microsoft PE/COFF Specification
- https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
- http://delorie.com/djgpp/doc/coff/
"""

import codecs
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

# =============================================================================
# Constants
# =============================================================================

# Structure sizes
FILE_HEADER_SIZE = 20
SECTION_HEADER_SIZE = 40
SYMBOL_SIZE = 18
AUX_SYMBOL_SIZE = 18
STRING_TABLE_PREFIX_SIZE = 4
RELOCATION_SIZE = 10
LINE_NUMBER_SIZE = 6
SHORT_NAME_LEN = 8

# Struct layouts (no byte-order prefix, see module docstring)
FILE_HEADER_FMT = "HHIiIHH"
SECTION_HEADER_FMT = "8sIIIIIIHHI"
SYMBOL_FMT = "8sIhHBB"
NAME_REF_FMT = "Ii"  # zeroes, string table offset
STRING_TABLE_PREFIX_FMT = "I"

# Machine types (pass-through, never validated)
IMAGE_FILE_MACHINE_UNKNOWN = 0x0
IMAGE_FILE_MACHINE_I386 = 0x14C
IMAGE_FILE_MACHINE_IA64 = 0x200
IMAGE_FILE_MACHINE_ARM = 0x1C0
IMAGE_FILE_MACHINE_THUMB = 0x1C2
IMAGE_FILE_MACHINE_ARMNT = 0x1C4
IMAGE_FILE_MACHINE_AMD64 = 0x8664
IMAGE_FILE_MACHINE_ARM64EC = 0xA641
IMAGE_FILE_MACHINE_ARM64 = 0xAA64

MACHINE_NAMES = {
    IMAGE_FILE_MACHINE_UNKNOWN: "unknown",
    IMAGE_FILE_MACHINE_I386: "i386",
    IMAGE_FILE_MACHINE_IA64: "ia64",
    IMAGE_FILE_MACHINE_ARM: "arm",
    IMAGE_FILE_MACHINE_THUMB: "thumb",
    IMAGE_FILE_MACHINE_ARMNT: "armnt",
    IMAGE_FILE_MACHINE_AMD64: "amd64",
    IMAGE_FILE_MACHINE_ARM64EC: "arm64ec",
    IMAGE_FILE_MACHINE_ARM64: "arm64",
}

# File characteristics
IMAGE_FILE_RELOCS_STRIPPED = 0x0001
IMAGE_FILE_EXECUTABLE_IMAGE = 0x0002
IMAGE_FILE_LINE_NUMS_STRIPPED = 0x0004
IMAGE_FILE_LOCAL_SYMS_STRIPPED = 0x0008
IMAGE_FILE_LARGE_ADDRESS_AWARE = 0x0020
IMAGE_FILE_32BIT_MACHINE = 0x0100
IMAGE_FILE_DEBUG_STRIPPED = 0x0200

# Section characteristics
IMAGE_SCN_CNT_CODE = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA = 0x00000080
IMAGE_SCN_LNK_INFO = 0x00000200
IMAGE_SCN_LNK_REMOVE = 0x00000800
IMAGE_SCN_LNK_COMDAT = 0x00001000
IMAGE_SCN_LNK_NRELOC_OVFL = 0x01000000
IMAGE_SCN_MEM_DISCARDABLE = 0x02000000
IMAGE_SCN_MEM_EXECUTE = 0x20000000
IMAGE_SCN_MEM_READ = 0x40000000
IMAGE_SCN_MEM_WRITE = 0x80000000

# Special section numbers
IMAGE_SYM_UNDEFINED = 0
IMAGE_SYM_ABSOLUTE = -1
IMAGE_SYM_DEBUG = -2

# Storage classes (the common subset)
IMAGE_SYM_CLASS_END_OF_FUNCTION = 0xFF
IMAGE_SYM_CLASS_NULL = 0
IMAGE_SYM_CLASS_AUTOMATIC = 1
IMAGE_SYM_CLASS_EXTERNAL = 2
IMAGE_SYM_CLASS_STATIC = 3
IMAGE_SYM_CLASS_REGISTER = 4
IMAGE_SYM_CLASS_EXTERNAL_DEF = 5
IMAGE_SYM_CLASS_LABEL = 6
IMAGE_SYM_CLASS_FUNCTION = 101
IMAGE_SYM_CLASS_FILE = 103
IMAGE_SYM_CLASS_SECTION = 104
IMAGE_SYM_CLASS_WEAK_EXTERNAL = 105

# Symbol type: complex type lives in the high byte
IMAGE_SYM_DTYPE_FUNCTION = 0x2


class BoundsError(ValueError):
    """Raised when decoding would read outside the supplied buffer."""

    pass


class ByteOrder(Enum):
    """Byte order of every multi-byte integer in one file.

    Values are struct byte-order prefixes.
    """

    LITTLE = "<"
    BIG = ">"

    @classmethod
    def from_name(cls, name: str) -> "ByteOrder":
        """Look up a byte order by name ("little" or "big")."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown byte order {name!r} (expected 'little' or 'big')"
            ) from None

    def fmt(self, layout: str) -> str:
        """Prefix a struct layout with this byte order."""
        return self.value + layout


@dataclass(frozen=True)
class DecodeOptions:
    """Per-call decoding settings.

    Attributes:
        encoding: Text encoding for section and symbol names
        byte_order: Byte order of all integers in the file
    """

    encoding: str = "latin-1"
    byte_order: ByteOrder = ByteOrder.LITTLE

    def __post_init__(self):
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ValueError(f"Unknown encoding {self.encoding!r}") from None


# =============================================================================
# COFF Structures
# =============================================================================


@dataclass(frozen=True)
class FileHeader:
    """COFF file header (IMAGE_FILE_HEADER), 20 bytes at offset 0."""

    magic: int  # Machine type, passed through
    num_sections: int
    timestamp: int
    symbol_table_offset: int  # Signed on disk
    num_symbols: int  # Slots, including auxiliary records
    optional_header_size: int
    flags: int

    @property
    def section_table_offset(self) -> int:
        """File offset of the first section header."""
        return FILE_HEADER_SIZE + self.optional_header_size

    @property
    def symbol_table_size(self) -> int:
        """Size of the symbol table in bytes."""
        return SYMBOL_SIZE * self.num_symbols

    @property
    def string_table_offset(self) -> int:
        """File offset of the string table size prefix."""
        return self.symbol_table_offset + self.symbol_table_size

    @property
    def has_symbol_table(self) -> bool:
        """Whether the file carries a symbol table at all."""
        return not (self.symbol_table_offset == 0 and self.num_symbols == 0)


@dataclass(frozen=True)
class Section:
    """Decoded section header.

    Holds header fields only; use section_data() to read the payload.
    """

    name: str
    physical_address: int
    virtual_address: int
    size: int
    raw_data_offset: int
    reloc_offset: int
    line_num_offset: int
    num_relocs: int
    num_line_nums: int
    flags: int

    @property
    def end_file_offset(self) -> int:
        """File offset just past the section's raw data."""
        return self.raw_data_offset + self.size

    @property
    def is_code(self) -> bool:
        """Check if this section contains code."""
        return bool(self.flags & IMAGE_SCN_CNT_CODE)

    @property
    def is_initialized_data(self) -> bool:
        """Check if this section contains initialized data."""
        return bool(self.flags & IMAGE_SCN_CNT_INITIALIZED_DATA)

    @property
    def is_uninitialized_data(self) -> bool:
        """Check if this section contains uninitialized data (BSS)."""
        return bool(self.flags & IMAGE_SCN_CNT_UNINITIALIZED_DATA)

    @property
    def is_readable(self) -> bool:
        return bool(self.flags & IMAGE_SCN_MEM_READ)

    @property
    def is_writable(self) -> bool:
        return bool(self.flags & IMAGE_SCN_MEM_WRITE)

    @property
    def is_executable(self) -> bool:
        return bool(self.flags & IMAGE_SCN_MEM_EXECUTE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "physical_address": self.physical_address,
            "virtual_address": self.virtual_address,
            "size": self.size,
            "raw_data_offset": self.raw_data_offset,
            "reloc_offset": self.reloc_offset,
            "line_num_offset": self.line_num_offset,
            "num_relocs": self.num_relocs,
            "num_line_nums": self.num_line_nums,
            "flags": self.flags,
        }


@dataclass(frozen=True)
class Symbol:
    """Decoded symbol table entry.

    Auxiliary records are the raw 18-byte slots that followed this entry in
    the table. Their layout depends on the storage class and is left to the
    caller.
    """

    name: str
    value: int
    section_number: int  # 0 undefined, -1 absolute, -2 debug, >0 1-based index
    type: int
    storage_class: int
    aux: tuple[bytes, ...] = ()
    index: int = 0  # Slot index in the symbol table

    @property
    def num_aux(self) -> int:
        return len(self.aux)

    @property
    def is_undefined(self) -> bool:
        return self.section_number == IMAGE_SYM_UNDEFINED

    @property
    def is_absolute(self) -> bool:
        return self.section_number == IMAGE_SYM_ABSOLUTE

    @property
    def is_debug(self) -> bool:
        return self.section_number == IMAGE_SYM_DEBUG

    @property
    def is_external(self) -> bool:
        """Check if this symbol is visible outside the object."""
        return self.storage_class == IMAGE_SYM_CLASS_EXTERNAL

    @property
    def is_section_symbol(self) -> bool:
        """Static symbol naming a section (value 0, one aux section record)."""
        return (
            self.storage_class == IMAGE_SYM_CLASS_STATIC
            and self.section_number > 0
            and self.value == 0
            and self.num_aux > 0
        )

    @property
    def is_function(self) -> bool:
        return (self.type >> 4) & 0x3 == IMAGE_SYM_DTYPE_FUNCTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "index": self.index,
            "value": self.value,
            "section_number": self.section_number,
            "type": self.type,
            "storage_class": self.storage_class,
            "aux": list(self.aux),
        }


@dataclass(frozen=True)
class ParsedObject:
    """A decoded COFF object file.

    Sections and symbols are in table order. Symbols hold primary entries
    only; auxiliary slots live on the symbol that owns them.
    """

    magic: int
    timestamp: int
    flags: int
    sections: tuple[Section, ...] = ()
    symbols: tuple[Symbol, ...] = ()
    header: FileHeader | None = field(default=None, compare=False)

    @property
    def machine_name(self) -> str:
        return machine_name(self.magic)

    def find_section(self, name: str) -> Section | None:
        """Find the first section with the given name."""
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def find_symbol(self, name: str) -> Symbol | None:
        """Find the first symbol with the given name."""
        for symbol in self.symbols:
            if symbol.name == name:
                return symbol
        return None

    def section_for_symbol(self, symbol: Symbol) -> Section | None:
        """Section a symbol is defined in, or None for special section numbers.

        Raises:
            BoundsError: If the section number is past the section table
        """
        number = symbol.section_number
        if number <= 0:
            return None
        if number > len(self.sections):
            raise BoundsError(
                f"Symbol {symbol.name!r} references section {number}, "
                f"but only {len(self.sections)} sections exist"
            )
        return self.sections[number - 1]

    def iter_defined_symbols(self) -> Iterator[Symbol]:
        """Iterate symbols defined in a section of this object."""
        for symbol in self.symbols:
            if symbol.section_number > 0:
                yield symbol

    def iter_external_symbols(self) -> Iterator[Symbol]:
        """Iterate symbols with external storage class (defined or not)."""
        for symbol in self.symbols:
            if symbol.is_external:
                yield symbol

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view, suitable for serialization.

        Section payloads are not included.
        """
        return {
            "magic": self.magic,
            "timestamp": self.timestamp,
            "flags": self.flags,
            "sections": [s.to_dict() for s in self.sections],
            "symbols": [s.to_dict() for s in self.symbols],
        }


# =============================================================================
# Helper Functions
# =============================================================================


def machine_name(magic: int) -> str:
    """Human-readable machine name, or the hex value if unknown."""
    return MACHINE_NAMES.get(magic, f"0x{magic:04X}")


def decode_name(raw: bytes, encoding: str) -> str:
    """Decode a nul-padded name field.

    The field may fill all of its bytes without a terminator.
    """
    null_pos = raw.find(b"\x00")
    if null_pos >= 0:
        raw = raw[:null_pos]
    return raw.decode(encoding, errors="replace")
