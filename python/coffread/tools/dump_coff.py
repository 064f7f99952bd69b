#!/usr/bin/env python3
"""
COFF object dump CLI tool.

Prints the section and symbol tables of a COFF object file, optionally
running structural verification and writing the decoded tables as MessagePack.

Usage:
    python -m coffread.tools.dump_coff <object> [--big-endian] [--verify]
"""

import argparse
import logging
import sys
from pathlib import Path

import msgpack

from coffread import (
    BoundsError,
    ByteOrder,
    CoffVerifier,
    ParsedObject,
    load,
)


def print_object(parsed: ParsedObject) -> None:
    """Print header summary, section table and symbol table."""
    print(
        f"machine: {parsed.machine_name}  timestamp: {parsed.timestamp:#010x}  "
        f"flags: {parsed.flags:#06x}"
    )
    print()

    print(f"Sections ({len(parsed.sections)}):")
    for section in parsed.sections:
        print(
            f"  {section.name:<8} {section.flags:08X} "
            f"{section.raw_data_offset:6} {section.size:6}"
        )
    print()

    print(f"Symbols ({len(parsed.symbols)}):")
    for symbol in parsed.symbols:
        print(
            f"  0x{symbol.value:08X} {symbol.section_number:3} {symbol.type:2} "
            f"{symbol.storage_class} {symbol.num_aux} {symbol.name}"
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Dump the section and symbol tables of a COFF object file"
    )
    parser.add_argument("object", type=Path, help="Path to COFF object file")
    parser.add_argument(
        "--big-endian",
        action="store_true",
        help="Decode the file as big-endian (default: little-endian)",
    )
    parser.add_argument(
        "--encoding",
        default="latin-1",
        help="Text encoding for section and symbol names (default: latin-1)",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Run structural verification after decoding",
    )
    parser.add_argument(
        "--msgpack",
        type=Path,
        metavar="OUT",
        help="Write the decoded tables to OUT as MessagePack",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging from the decoder",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.object.exists():
        print(f"Error: {args.object} does not exist", file=sys.stderr)
        return 1

    byte_order = ByteOrder.BIG if args.big_endian else ByteOrder.LITTLE

    try:
        data, parsed = load(args.object, args.encoding, byte_order)
    except BoundsError as e:
        print(f"Error: failed to decode {args.object}: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_object(parsed)

    if args.msgpack:
        args.msgpack.write_bytes(msgpack.packb(parsed.to_dict(), use_bin_type=True))

    if args.verify:
        result = CoffVerifier(data, parsed, byte_order).run_all_checks()
        print()
        print(result)
        if not result.passed:
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
