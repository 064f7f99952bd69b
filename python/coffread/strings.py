"""
COFF string table resolver.

The string table sits right after the last symbol slot. Its first 4 bytes
hold the total table size, including those 4 bytes, and the rest is a run
of nul-terminated names addressed by byte offset from the table start.
"""

import struct

from .types import (
    STRING_TABLE_PREFIX_FMT,
    STRING_TABLE_PREFIX_SIZE,
    BoundsError,
    ByteOrder,
    FileHeader,
)


class StringTable:
    """Long-name lookups against one buffer.

    Usage:
        strings = StringTable.locate(data, header, ByteOrder.LITTLE)
        name = strings.resolve(4)
    """

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        offset: int,
        size: int,
        encoding: str = "latin-1",
    ):
        """Initialize over an already located table.

        Prefer StringTable.locate() for most use cases.

        Args:
            data: Whole file buffer
            offset: File offset of the size prefix
            size: Table size from the prefix (0 for a missing table)
            encoding: Text encoding for resolved names
        """
        self._data = data
        self._offset = offset
        self._size = size
        self._encoding = encoding

    @classmethod
    def empty(cls, encoding: str = "latin-1") -> "StringTable":
        """A table with no entries, for files without a symbol table."""
        return cls(b"", 0, 0, encoding)

    @classmethod
    def locate(
        cls,
        data: bytes | bytearray | memoryview,
        header: FileHeader,
        byte_order: ByteOrder,
        encoding: str = "latin-1",
    ) -> "StringTable":
        """Find the string table following the symbol table.

        Raises:
            BoundsError: If the size prefix or the table it describes does
                not fit in the buffer
        """
        if not header.has_symbol_table:
            return cls.empty(encoding)

        offset = header.string_table_offset
        if offset < 0 or offset + STRING_TABLE_PREFIX_SIZE > len(data):
            raise BoundsError(
                f"Data too short for string table size at {offset:#x}: "
                f"{len(data)} < {offset + STRING_TABLE_PREFIX_SIZE}"
            )

        (size,) = struct.unpack_from(
            byte_order.fmt(STRING_TABLE_PREFIX_FMT), data, offset
        )
        if size < STRING_TABLE_PREFIX_SIZE:
            raise BoundsError(
                f"String table size {size} at {offset:#x} is smaller than "
                f"its own {STRING_TABLE_PREFIX_SIZE}-byte prefix"
            )
        if offset + size > len(data):
            raise BoundsError(
                f"Data too short for string table at {offset:#x}: "
                f"{len(data)} < {offset + size}"
            )

        return cls(data, offset, size, encoding)

    @property
    def offset(self) -> int:
        """File offset of the table."""
        return self._offset

    @property
    def size(self) -> int:
        """Total table size, including the size prefix."""
        return self._size

    def resolve(self, offset: int) -> str:
        """Read the name at a table offset.

        The name ends at the first nul or at the end of the table.
        Offset 0 means "no name" and yields an empty string.

        Raises:
            BoundsError: If the offset is outside the table or inside
                the size prefix
        """
        if offset == 0:
            return ""
        if offset < STRING_TABLE_PREFIX_SIZE or offset >= self._size:
            raise BoundsError(
                f"String table offset {offset} outside table "
                f"[{STRING_TABLE_PREFIX_SIZE}, {self._size})"
            )

        start = self._offset + offset
        end = self._offset + self._size
        raw = bytes(self._data[start:end])
        null_pos = raw.find(b"\x00")
        if null_pos >= 0:
            raw = raw[:null_pos]
        return raw.decode(self._encoding, errors="replace")
