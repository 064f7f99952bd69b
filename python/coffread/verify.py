"""
Structural verification for COFF object files.

CoffVerifier runs consistency checks over a decoded object and the buffer it
came from. Decoding only fails for reads outside the buffer; the checks here
catch files that decode but describe impossible layouts, such as payloads
running past the end of the file or symbols pointing at missing sections.

Problems are reported as data in a VerificationResult rather than raised.
"""

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .parser import parse
from .types import (
    LINE_NUMBER_SIZE,
    RELOCATION_SIZE,
    STRING_TABLE_PREFIX_FMT,
    STRING_TABLE_PREFIX_SIZE,
    ByteOrder,
    ParsedObject,
)


@dataclass
class VerificationResult:
    """Outcome of CoffVerifier checks over one object file.

    Errors fail verification; warnings flag layouts that decode but look odd.
    """

    passed: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, msg: str) -> None:
        """Add an error (verification failed)."""
        self.errors.append(msg)
        self.passed = False

    def add_warning(self, msg: str) -> None:
        """Add a warning (verification passed but with concerns)."""
        self.warnings.append(msg)

    def merge(self, other: "VerificationResult") -> None:
        """Merge another result into this one."""
        if not other.passed:
            self.passed = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __str__(self) -> str:
        """Human-readable summary."""
        lines = []
        if self.passed:
            lines.append("Verification PASSED")
        else:
            lines.append("Verification FAILED")

        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  - {e}")

        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  - {w}")

        return "\n".join(lines)


class CoffVerifier:
    """COFF object file verification.

    Usage:
        result = CoffVerifier.verify(Path("foo.obj"))
        if not result.passed:
            print(result)
    """

    def __init__(
        self,
        data: bytes | bytearray,
        parsed: ParsedObject,
        byte_order: ByteOrder = ByteOrder.LITTLE,
    ):
        """Initialize with a buffer and the object decoded from it.

        Args:
            data: Object file contents
            parsed: Result of parse() over the same data
            byte_order: Byte order used for the parse
        """
        self._data = data
        self._parsed = parsed
        self._byte_order = byte_order

    @classmethod
    def verify(
        cls,
        path: Path,
        byte_order: ByteOrder = ByteOrder.LITTLE,
        encoding: str = "latin-1",
    ) -> VerificationResult:
        """Verify an object file on disk.

        The encoding only affects how names appear in messages.

        Raises:
            BoundsError: If the file cannot be decoded at all
        """
        return cls.verify_data(path.read_bytes(), byte_order, encoding)

    @classmethod
    def verify_data(
        cls,
        data: bytes | bytearray,
        byte_order: ByteOrder = ByteOrder.LITTLE,
        encoding: str = "latin-1",
    ) -> VerificationResult:
        """Verify object file data in memory.

        Raises:
            BoundsError: If the data cannot be decoded at all
        """
        parsed = parse(data, encoding, byte_order)
        return cls(data, parsed, byte_order).run_all_checks()

    def run_all_checks(self) -> VerificationResult:
        """Run all structural checks."""
        result = VerificationResult()

        checks: list[Callable[[], VerificationResult]] = [
            self.check_section_data_in_bounds,
            self.check_no_overlapping_sections,
            self.check_relocation_tables_in_bounds,
            self.check_line_number_tables_in_bounds,
            self.check_symbol_section_numbers,
            self.check_string_table_size,
        ]

        for check in checks:
            result.merge(check())

        return result

    # =========================================================================
    # Structural Checks
    # =========================================================================

    def check_section_data_in_bounds(self) -> VerificationResult:
        """Check that every section's raw data lies within the file.

        Uninitialized data sections have no file contents and are skipped.
        """
        result = VerificationResult()
        file_size = len(self._data)

        for section in self._parsed.sections:
            if section.size == 0 or section.is_uninitialized_data:
                continue
            if section.end_file_offset > file_size:
                result.add_error(
                    f"Section {section.name} data [{section.raw_data_offset:#x}, "
                    f"{section.end_file_offset:#x}) extends beyond file size "
                    f"{file_size:#x}"
                )

        return result

    def check_no_overlapping_sections(self) -> VerificationResult:
        """Check that no two sections have overlapping file regions."""
        result = VerificationResult()

        sections = [
            s
            for s in self._parsed.sections
            if s.size > 0 and s.raw_data_offset > 0 and not s.is_uninitialized_data
        ]

        for i, sect1 in enumerate(sections):
            start1 = sect1.raw_data_offset
            end1 = sect1.end_file_offset

            for sect2 in sections[i + 1 :]:
                start2 = sect2.raw_data_offset
                end2 = sect2.end_file_offset

                if start1 < end2 and start2 < end1:
                    result.add_error(
                        f"Sections {sect1.name} and {sect2.name} have overlapping "
                        f"file ranges: [{start1:#x}, {end1:#x}) and [{start2:#x}, {end2:#x})"
                    )

        return result

    def _check_table(
        self, what: str, section_name: str, offset: int, count: int, entry_size: int
    ) -> str | None:
        if count == 0:
            return None
        end = offset + count * entry_size
        if end > len(self._data):
            return (
                f"Section {section_name} {what} table [{offset:#x}, {end:#x}) "
                f"extends beyond file size {len(self._data):#x}"
            )
        return None

    def check_relocation_tables_in_bounds(self) -> VerificationResult:
        """Check that relocation tables lie within the file.

        Only the table range is checked; entries are not interpreted.
        """
        result = VerificationResult()

        for section in self._parsed.sections:
            error = self._check_table(
                "relocation",
                section.name,
                section.reloc_offset,
                section.num_relocs,
                RELOCATION_SIZE,
            )
            if error:
                result.add_error(error)

        return result

    def check_line_number_tables_in_bounds(self) -> VerificationResult:
        """Check that line-number tables lie within the file."""
        result = VerificationResult()

        for section in self._parsed.sections:
            error = self._check_table(
                "line number",
                section.name,
                section.line_num_offset,
                section.num_line_nums,
                LINE_NUMBER_SIZE,
            )
            if error:
                result.add_error(error)

        return result

    def check_symbol_section_numbers(self) -> VerificationResult:
        """Check that symbols reference existing sections.

        Numbers below -2 are not defined by the format and only warn.
        """
        result = VerificationResult()
        num_sections = len(self._parsed.sections)

        for symbol in self._parsed.symbols:
            number = symbol.section_number
            if number > num_sections:
                result.add_error(
                    f"Symbol {symbol.name!r} (index {symbol.index}) references "
                    f"section {number}, but only {num_sections} sections exist"
                )
            elif number < -2:
                result.add_warning(
                    f"Symbol {symbol.name!r} (index {symbol.index}) has "
                    f"unknown special section number {number}"
                )

        return result

    def check_string_table_size(self) -> VerificationResult:
        """Check the string table size prefix against the file size.

        Trailing bytes after the string table are unusual for object files
        and produce a warning.
        """
        result = VerificationResult()
        header = self._parsed.header
        if header is None or not header.has_symbol_table:
            return result

        offset = header.string_table_offset
        (size,) = struct.unpack_from(
            self._byte_order.fmt(STRING_TABLE_PREFIX_FMT), self._data, offset
        )
        end = offset + size
        if size < STRING_TABLE_PREFIX_SIZE or end > len(self._data):
            result.add_error(
                f"String table size {size} at {offset:#x} is inconsistent "
                f"with file size {len(self._data):#x}"
            )
        elif end < len(self._data):
            result.add_warning(
                f"{len(self._data) - end} trailing bytes after string table "
                f"ending at {end:#x}"
            )

        return result
