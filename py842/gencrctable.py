"""Generates C source holding the big-endian CRC-32 slicing-by-8 tables."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from py842.crc32 import build_crc32_table

_HEADER = (
    "/* this file is generated - do not edit */\n"
    "#include <stdint.h>\n\n"
    "#if defined(__BYTE_ORDER__) && __BYTE_ORDER__ == __ORDER_LITTLE_ENDIAN__\n"
    "#define tobe(x) (((x & 0x000000FF) << 24) | ((x & 0x0000FF00) <<  8) |\\\n"
    "                 ((x & 0x00FF0000) >>  8) | ((x & 0xFF000000) >> 24))\n"
    "#else\n"
    "#define tobe(x) x\n"
    "#endif\n"
)


def _table_rows(tables: Sequence[Sequence[int]], trans: str) -> str:
    parts = []
    for row in tables:
        parts.append("{")
        *head, last = row
        for i, value in enumerate(head):
            if i % 4 == 0:
                parts.append("\n")
            parts.append(f"{trans}(0x{value:08x}L), ")
        parts.append(f"{trans}(0x{last:08x}L)}},\n")
    return "".join(parts)


def crc32table_source() -> str:
    """Return the C header text defining ``crc32table_be[8][256]``."""
    tables = build_crc32_table()
    return (
        _HEADER
        + f"static const uint32_t crc32table_be[{len(tables)}][{len(tables[0])}] = {{"
        + _table_rows(tables, "tobe")
        + "};\n"
        + "#undef tobe\n"
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Write the generated table header to standard output."""
    sys.stdout.write(crc32table_source())
    return 0


if __name__ == "__main__":
    sys.exit(main())