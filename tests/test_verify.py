"""
Unit tests for the coffread.verify module.

Tests CoffVerifier structural checks and VerificationResult.
"""

import struct
from pathlib import Path

import pytest

from coff_test_utils import CoffBuilder

from coffread import BoundsError, ByteOrder, CoffVerifier, VerificationResult, parse


class TestVerificationResult:
    """Tests for VerificationResult."""

    def test_add_error_fails(self):
        """Test that adding an error marks the result failed."""
        result = VerificationResult()
        result.add_error("broken")
        assert not result.passed
        assert result.errors == ["broken"]

    def test_add_warning_passes(self):
        """Test that warnings alone do not fail verification."""
        result = VerificationResult()
        result.add_warning("odd")
        assert result.passed
        assert result.warnings == ["odd"]

    def test_merge(self):
        """Test merging results."""
        result = VerificationResult()
        other = VerificationResult()
        other.add_error("e")
        other.add_warning("w")

        result.merge(other)
        assert not result.passed
        assert result.errors == ["e"]
        assert result.warnings == ["w"]

    def test_str(self):
        """Test human-readable summary."""
        result = VerificationResult()
        assert str(result) == "Verification PASSED"

        result.add_error("bad section")
        text = str(result)
        assert "Verification FAILED" in text
        assert "Errors (1):" in text
        assert "  - bad section" in text


class TestCoffVerifier:
    """Tests for the CoffVerifier class."""

    def test_verify_sample(self, sample_object: bytes):
        """Test that the sample object passes verification."""
        result = CoffVerifier.verify_data(sample_object)
        assert result.passed, f"Verification failed: {result}"
        assert result.warnings == []

    def test_verify_sample_big_endian(self, sample_object_be: bytes):
        """Test verification of a big-endian object."""
        result = CoffVerifier.verify_data(sample_object_be, ByteOrder.BIG)
        assert result.passed, f"Verification failed: {result}"

    def test_verify_path(self, sample_object_path: Path):
        """Test verification of a file on disk."""
        result = CoffVerifier.verify(sample_object_path)
        assert result.passed, f"Verification failed: {result}"

    def test_verify_undecodable_raises(self):
        """Test that data which cannot be decoded raises BoundsError."""
        with pytest.raises(BoundsError):
            CoffVerifier.verify_data(b"\x00" * 10)

    def test_section_data_out_of_bounds(self):
        """Test that section data past the file end is an error."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3", size=0x100)
        builder.add_symbol("main", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert not result.passed
        assert any("extends beyond file size" in e for e in result.errors)

    def test_bss_without_data_is_ok(self):
        """Test that uninitialized sections need no file data."""
        builder = CoffBuilder()
        builder.add_section(".bss", size=0x1000, flags=0x80)
        builder.add_symbol("buf", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert result.passed, f"Verification failed: {result}"

    def test_overlapping_sections(self):
        """Test that overlapping raw data ranges are reported."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\x90" * 8)
        builder.add_section(".alias", b"", size=4, raw_data_offset=20 + 2 * 40 + 4)
        builder.add_symbol("main", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert not result.passed
        assert any("overlapping" in e for e in result.errors)

    def test_relocation_table_out_of_bounds(self):
        """Test that relocation tables past the file end are reported."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3", reloc_offset=0x1000, num_relocs=2)
        builder.add_symbol("main", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert not result.passed
        assert any("relocation table" in e for e in result.errors)

    def test_line_number_table_out_of_bounds(self):
        """Test that line-number tables past the file end are reported."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3", line_num_offset=0x1000, num_line_nums=1)
        builder.add_symbol("main", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert not result.passed
        assert any("line number table" in e for e in result.errors)

    def test_relocation_table_in_bounds(self):
        """Test that a relocation table inside the file passes."""
        builder = CoffBuilder()
        # Point the table at the section data itself; entries are not interpreted
        builder.add_section(
            ".text", b"\x00" * 20, reloc_offset=20 + 40, num_relocs=2
        )
        builder.add_symbol("main", section_number=1)

        result = CoffVerifier.verify_data(builder.build())
        assert result.passed, f"Verification failed: {result}"

    def test_symbol_section_number_out_of_range(self):
        """Test that symbols referencing missing sections are reported."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3")
        builder.add_symbol("orphan", section_number=5)

        result = CoffVerifier.verify_data(builder.build())
        assert not result.passed
        assert any("references section 5" in e for e in result.errors)

    def test_unknown_special_section_number_warns(self):
        """Test that undefined special section numbers only warn."""
        builder = CoffBuilder()
        builder.add_symbol("odd", section_number=-5)

        result = CoffVerifier.verify_data(builder.build())
        assert result.passed
        assert any("special section number -5" in w for w in result.warnings)

    def test_encoding_applies_to_messages(self):
        """Test that verify_data decodes names with the given encoding."""
        builder = CoffBuilder()
        builder.add_symbol("caf\u00e9".encode("utf-8"), section_number=9)

        result = CoffVerifier.verify_data(builder.build(), encoding="utf-8")
        assert not result.passed
        assert any("'caf\u00e9'" in e for e in result.errors)

    def test_trailing_bytes_warn(self):
        """Test that bytes after the string table produce a warning."""
        builder = CoffBuilder()
        builder.add_symbol("main")
        data = builder.build() + b"\x00" * 8

        result = CoffVerifier.verify_data(data)
        assert result.passed
        assert any("trailing bytes" in w for w in result.warnings)

    def test_no_symbol_table_skips_string_check(self):
        """Test that objects without a symbol table verify cleanly."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3")

        result = CoffVerifier.verify_data(builder.build(symbol_table=False))
        assert result.passed, f"Verification failed: {result}"
        assert result.warnings == []

    def test_run_all_checks_on_parsed(self, sample_object: bytes):
        """Test running checks against an existing decode."""
        parsed = parse(sample_object)
        verifier = CoffVerifier(sample_object, parsed)
        assert verifier.run_all_checks().passed

    def test_string_table_size_checked_against_file(self, sample_object: bytes):
        """Test that the size prefix is compared to the file size."""
        parsed = parse(sample_object)
        offset = parsed.header.string_table_offset
        (size,) = struct.unpack_from("<I", sample_object, offset)

        # Size prefix claims 4 more bytes than the file holds
        oversized = bytearray(sample_object)
        struct.pack_into("<I", oversized, offset, size + 4)
        result = CoffVerifier(bytes(oversized), parsed).check_string_table_size()
        assert not result.passed
        assert "inconsistent" in result.errors[0]

        # Grown to match with padding inside the table
        grown = oversized + b"\x00" * 4
        result = CoffVerifier(bytes(grown), parsed).check_string_table_size()
        assert result.passed
        assert result.warnings == []
