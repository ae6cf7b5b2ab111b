import re

from py842.crc32 import build_crc32_table
from py842.gencrctable import crc32table_source, main


def test_header_lines():
    lines = crc32table_source().splitlines()
    assert lines[0] == "/* this file is generated - do not edit */"
    assert lines[1] == "#include <stdint.h>"
    assert lines[-1] == "#undef tobe"


def test_table_declaration_and_first_entries():
    text = crc32table_source()
    assert (
        "static const uint32_t crc32table_be[8][256] = {{\n"
        "tobe(0x00000000L), tobe(0x04c11db7L), tobe(0x09823b6eL), tobe(0x0d4326d9L), \n"
    ) in text


def test_row_end_marker():
    assert "tobe(0xb1f740b4L)},\n{" in crc32table_source()


def test_values_match_computed_tables():
    values = [int(v, 16) for v in re.findall(r"tobe\(0x([0-9a-f]{8})L\)", crc32table_source())]
    expected = [v for row in build_crc32_table() for v in row]
    assert values == expected


def test_four_values_per_line():
    body = [line for line in crc32table_source().splitlines() if line.startswith("tobe(")]
    assert all(line.count("tobe(") == 4 for line in body)
    assert len(body) == 8 * 256 // 4


def test_main_prints_source(capsys):
    assert main([]) == 0
    assert capsys.readouterr().out == crc32table_source()