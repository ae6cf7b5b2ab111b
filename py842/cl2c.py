"""Turns a text file into C source defining a string constant with its contents."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

_ESCAPES = str.maketrans({"\n": '\\n"\n"', "\\": "\\\\", '"': '\\"'})

USAGE = "Usage: cl2c input.cl output.h variable_name"


def cl_to_c(source: str, variable_name: str) -> str:
    """Return C source declaring ``variable_name`` as a string holding ``source``."""
    return f'const char *{variable_name} =\n"{source.translate(_ESCAPES)}"\n;\n'


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: ``cl2c input.cl output.h variable_name``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 3:
        print(USAGE)
        return 1
    input_path, output_path, variable_name = args
    try:
        # latin-1 maps every byte to one character, so content passes through unchanged
        source = Path(input_path).read_bytes().decode("latin-1")
        Path(output_path).write_bytes(cl_to_c(source, variable_name).encode("latin-1"))
    except OSError as exc:
        print(f"cl2c: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())