"""
coffread: decoder for COFF object files.

This package turns the bytes of a COFF object file into an immutable view of
its header, section table and symbol table:

    from coffread import parse, section_data, ByteOrder

    parsed = parse(data, byte_order=ByteOrder.LITTLE)
    text = parsed.find_section(".text")
    code = section_data(data, text)

Modules:
- types: layout constants and the immutable result types
- strings: string table resolver for long names
- parser: the decoder entry points
- verify: structural verification of decoded objects
"""

from .parser import (
    load,
    parse,
    parse_header,
    parse_sections,
    parse_symbols,
    section_data,
)
from .strings import StringTable
from .types import (
    # Errors and settings
    BoundsError,
    ByteOrder,
    DecodeOptions,
    # Structs
    FileHeader,
    Section,
    Symbol,
    ParsedObject,
    # Structure sizes
    FILE_HEADER_SIZE,
    SECTION_HEADER_SIZE,
    SYMBOL_SIZE,
    AUX_SYMBOL_SIZE,
    # Machine types
    IMAGE_FILE_MACHINE_I386,
    IMAGE_FILE_MACHINE_AMD64,
    IMAGE_FILE_MACHINE_ARM64,
    # Special section numbers
    IMAGE_SYM_UNDEFINED,
    IMAGE_SYM_ABSOLUTE,
    IMAGE_SYM_DEBUG,
    # Storage classes
    IMAGE_SYM_CLASS_EXTERNAL,
    IMAGE_SYM_CLASS_STATIC,
    IMAGE_SYM_CLASS_FILE,
    IMAGE_SYM_CLASS_SECTION,
    # Helper functions
    machine_name,
)
from .verify import CoffVerifier, VerificationResult

__all__ = [
    # Decoding
    "load",
    "parse",
    "parse_header",
    "parse_sections",
    "parse_symbols",
    "section_data",
    "StringTable",
    # Errors and settings
    "BoundsError",
    "ByteOrder",
    "DecodeOptions",
    # Structs
    "FileHeader",
    "Section",
    "Symbol",
    "ParsedObject",
    # Structure sizes
    "FILE_HEADER_SIZE",
    "SECTION_HEADER_SIZE",
    "SYMBOL_SIZE",
    "AUX_SYMBOL_SIZE",
    # Machine types
    "IMAGE_FILE_MACHINE_I386",
    "IMAGE_FILE_MACHINE_AMD64",
    "IMAGE_FILE_MACHINE_ARM64",
    # Special section numbers
    "IMAGE_SYM_UNDEFINED",
    "IMAGE_SYM_ABSOLUTE",
    "IMAGE_SYM_DEBUG",
    # Storage classes
    "IMAGE_SYM_CLASS_EXTERNAL",
    "IMAGE_SYM_CLASS_STATIC",
    "IMAGE_SYM_CLASS_FILE",
    "IMAGE_SYM_CLASS_SECTION",
    # Verification
    "CoffVerifier",
    "VerificationResult",
    # Helper functions
    "machine_name",
]
