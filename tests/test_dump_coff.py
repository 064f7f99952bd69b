"""Tests for the coff-dump CLI tool."""

from pathlib import Path

import msgpack

from coff_test_utils import CoffBuilder

from coffread.tools.dump_coff import main


class TestDumpCoff:
    """Tests for coffread.tools.dump_coff.main."""

    def test_dump_tables(self, sample_object_path: Path, capsys):
        """Test that section and symbol tables are printed."""
        assert main([str(sample_object_path)]) == 0
        out = capsys.readouterr().out

        assert "machine: amd64" in out
        assert "Sections (4):" in out
        assert "Symbols (6):" in out
        assert ".debug_frame_info" in out
        assert "a_very_long_function_name" in out
        # value, section number, type, storage class, aux count, name
        assert "0x00000004   2  0 3 0 counter" in out

    def test_dump_big_endian(self, sample_object_be: bytes, tmp_path: Path, capsys):
        """Test decoding a big-endian file from the command line."""
        path = tmp_path / "sample_be.obj"
        path.write_bytes(sample_object_be)

        assert main([str(path), "--big-endian"]) == 0
        assert "Symbols (6):" in capsys.readouterr().out

    def test_dump_verify(self, sample_object_path: Path, capsys):
        """Test that --verify prints the verification summary."""
        assert main([str(sample_object_path), "--verify"]) == 0
        assert "Verification PASSED" in capsys.readouterr().out

    def test_dump_verify_failure(self, tmp_path: Path, capsys):
        """Test that failed verification sets the exit code."""
        builder = CoffBuilder()
        builder.add_section(".text", b"\xc3")
        builder.add_symbol("orphan", section_number=9)
        path = tmp_path / "bad.obj"
        path.write_bytes(builder.build())

        assert main([str(path), "--verify"]) == 1
        assert "Verification FAILED" in capsys.readouterr().out

    def test_dump_msgpack(self, sample_object_path: Path, tmp_path: Path):
        """Test writing the decoded tables as MessagePack."""
        out_path = tmp_path / "sample.msgpack"
        assert main([str(sample_object_path), "--msgpack", str(out_path)]) == 0

        decoded = msgpack.unpackb(out_path.read_bytes(), raw=False)
        assert decoded["magic"] == 0x8664
        assert [s["name"] for s in decoded["sections"]][0] == ".text"
        file_sym = decoded["symbols"][0]
        assert file_sym["name"] == ".file"
        assert file_sym["aux"] == [b"hello.c".ljust(18, b"\x00")]

    def test_missing_file(self, tmp_path: Path, capsys):
        """Test that a missing input is reported."""
        assert main([str(tmp_path / "nope.obj")]) == 1
        assert "does not exist" in capsys.readouterr().err

    def test_truncated_file(self, tmp_path: Path, capsys):
        """Test that undecodable input is reported, not raised."""
        path = tmp_path / "short.obj"
        path.write_bytes(b"\x4c\x01\x00")

        assert main([str(path)]) == 1
        assert "failed to decode" in capsys.readouterr().err

    def test_unknown_encoding(self, sample_object_path: Path, capsys):
        """Test that an unknown --encoding is reported, not raised."""
        assert main([str(sample_object_path), "--encoding", "no-such-codec"]) == 1
        assert "Unknown encoding 'no-such-codec'" in capsys.readouterr().err
