"""
COFF object file decoder.

Decoding is a single pass over an in-memory buffer:

    header -> section table -> string table -> symbol table

Every table offset is known once the header is read, so no step looks
ahead or backtracks. The result is immutable and holds no copy of section
payloads; section_data() slices the same buffer on demand.

Byte order and name encoding are arguments of each call. Nothing here keeps
module-level state, so independent buffers can be decoded concurrently.
"""

import logging
import struct
from pathlib import Path

from .strings import StringTable
from .types import (
    AUX_SYMBOL_SIZE,
    FILE_HEADER_FMT,
    FILE_HEADER_SIZE,
    NAME_REF_FMT,
    SECTION_HEADER_FMT,
    SECTION_HEADER_SIZE,
    SYMBOL_FMT,
    SYMBOL_SIZE,
    BoundsError,
    ByteOrder,
    DecodeOptions,
    FileHeader,
    ParsedObject,
    Section,
    Symbol,
    decode_name,
)

logger = logging.getLogger(__name__)

Buffer = bytes | bytearray | memoryview


def _check_range(data: Buffer, offset: int, size: int, what: str) -> None:
    if offset < 0 or offset + size > len(data):
        raise BoundsError(
            f"Data too short for {what} at {offset:#x}: "
            f"{len(data)} < {offset + size}"
        )


def parse_header(data: Buffer, byte_order: ByteOrder = ByteOrder.LITTLE) -> FileHeader:
    """Parse the 20-byte file header.

    The magic is passed through without validation.

    Raises:
        BoundsError: If the buffer is shorter than 20 bytes
    """
    _check_range(data, 0, FILE_HEADER_SIZE, "file header")
    fields = struct.unpack_from(byte_order.fmt(FILE_HEADER_FMT), data, 0)
    return FileHeader(*fields)


def _parse_section_name(raw: bytes, strings: StringTable, encoding: str) -> str:
    """Resolve an 8-byte section name field.

    "/<digits>" is a decimal string table offset; digits end at the first
    non-digit byte.
    """
    if raw[:1] != b"/":
        return decode_name(raw, encoding)

    offset = 0
    for byte in raw[1:]:
        if not 0x30 <= byte <= 0x39:
            break
        offset = offset * 10 + (byte - 0x30)
    return strings.resolve(offset)


def parse_sections(
    data: Buffer,
    header: FileHeader,
    strings: StringTable,
    options: DecodeOptions = DecodeOptions(),
) -> tuple[Section, ...]:
    """Parse the section table.

    Raises:
        BoundsError: If an entry or a long-name reference is out of range
    """
    fmt = options.byte_order.fmt(SECTION_HEADER_FMT)
    sections: list[Section] = []

    for idx in range(header.num_sections):
        offset = header.section_table_offset + SECTION_HEADER_SIZE * idx
        _check_range(data, offset, SECTION_HEADER_SIZE, f"section header {idx}")

        raw_name, *fields = struct.unpack_from(fmt, data, offset)
        name = _parse_section_name(raw_name, strings, options.encoding)
        sections.append(Section(name, *fields))

    logger.debug(
        "Decoded %d sections from table at %#x",
        len(sections),
        header.section_table_offset,
    )
    return tuple(sections)


def _parse_symbol_name(
    raw: bytes, strings: StringTable, options: DecodeOptions
) -> str:
    zeroes, string_ref = struct.unpack(options.byte_order.fmt(NAME_REF_FMT), raw)
    if zeroes != 0:
        return decode_name(raw, options.encoding)
    if string_ref < 0:
        raise BoundsError(f"Negative string table offset {string_ref}")
    return strings.resolve(string_ref)


def parse_symbols(
    data: Buffer,
    header: FileHeader,
    strings: StringTable,
    options: DecodeOptions = DecodeOptions(),
) -> tuple[Symbol, ...]:
    """Parse the symbol table.

    Each primary entry is followed by num_aux auxiliary slots. Those slots
    are copied verbatim onto the owning symbol and skipped by the scan.

    The table range itself must already be checked against the buffer;
    parse() does so before locating the string table.

    Raises:
        BoundsError: If a name reference or an entry's auxiliary slots fall
            outside the declared table
    """
    if header.num_symbols == 0:
        return ()

    base = header.symbol_table_offset
    fmt = options.byte_order.fmt(SYMBOL_FMT)
    symbols: list[Symbol] = []
    aux_slots = 0

    idx = 0
    while idx < header.num_symbols:
        offset = base + SYMBOL_SIZE * idx
        raw_name, value, section_number, sym_type, storage_class, num_aux = (
            struct.unpack_from(fmt, data, offset)
        )

        if idx + num_aux >= header.num_symbols:
            raise BoundsError(
                f"Symbol {idx} declares {num_aux} auxiliary records, "
                f"but the table ends after {header.num_symbols - idx - 1} slots"
            )

        aux_start = offset + SYMBOL_SIZE
        aux = tuple(
            bytes(data[pos : pos + AUX_SYMBOL_SIZE])
            for pos in range(
                aux_start, aux_start + AUX_SYMBOL_SIZE * num_aux, AUX_SYMBOL_SIZE
            )
        )

        symbols.append(
            Symbol(
                name=_parse_symbol_name(raw_name, strings, options),
                value=value,
                section_number=section_number,
                type=sym_type,
                storage_class=storage_class,
                aux=aux,
                index=idx,
            )
        )

        aux_slots += num_aux
        idx += 1 + num_aux

    logger.debug(
        "Decoded %d symbols (%d auxiliary slots) from %d table slots",
        len(symbols),
        aux_slots,
        header.num_symbols,
    )
    return tuple(symbols)


def parse(
    data: Buffer,
    encoding: str | None = None,
    byte_order: ByteOrder | None = None,
    *,
    options: DecodeOptions | None = None,
) -> ParsedObject:
    """Decode a COFF object file held in memory.

    Either pass encoding/byte_order directly or a DecodeOptions value;
    explicit arguments override the matching option.

    Args:
        data: Complete object file contents
        encoding: Text encoding for names (default latin-1)
        byte_order: Byte order of the file (default little-endian)
        options: Decoding settings

    Returns:
        Immutable ParsedObject

    Raises:
        BoundsError: If any structure or reference lies outside the buffer.
            Nothing is returned on failure.
        ValueError: If the encoding is not a known codec
    """
    options = options or DecodeOptions()
    options = DecodeOptions(
        encoding=encoding if encoding is not None else options.encoding,
        byte_order=byte_order if byte_order is not None else options.byte_order,
    )

    header = parse_header(data, options.byte_order)
    logger.debug(
        "COFF header: magic=0x%04X sections=%d symbols=%d symtab=%#x opthdr=%d",
        header.magic,
        header.num_sections,
        header.num_symbols,
        header.symbol_table_offset,
        header.optional_header_size,
    )

    # The string table follows the symbol table, so a truncated symbol table
    # is reported here rather than as a missing string table.
    if header.has_symbol_table:
        _check_range(
            data, header.symbol_table_offset, header.symbol_table_size, "symbol table"
        )
    strings = StringTable.locate(data, header, options.byte_order, options.encoding)

    sections = parse_sections(data, header, strings, options)
    symbols = parse_symbols(data, header, strings, options)

    return ParsedObject(
        magic=header.magic,
        timestamp=header.timestamp,
        flags=header.flags,
        sections=sections,
        symbols=symbols,
        header=header,
    )


def section_data(data: Buffer, section: Section) -> bytes:
    """Read a section's raw payload from the buffer it was parsed from.

    Raises:
        BoundsError: If the payload range exceeds the buffer
    """
    _check_range(
        data, section.raw_data_offset, section.size, f"section {section.name} data"
    )
    return bytes(data[section.raw_data_offset : section.end_file_offset])


def load(
    path: Path,
    encoding: str | None = None,
    byte_order: ByteOrder | None = None,
) -> tuple[bytes, ParsedObject]:
    """Read and decode an object file from disk.

    Returns:
        The file contents and the decoded object; keep the contents for
        section_data()
    """
    data = path.read_bytes()
    return data, parse(data, encoding, byte_order)
