"""Definitions of the 842 compressed bitstream format.

The bitstream is a sequence of 5-bit template codes, each followed by the
arguments its template needs.  Regular templates (codes 0x00 to 0x19) always
describe exactly 8 bytes of output, made of data literals (D2, D4, D8) and
references to previously written output (I2, I4, I8).  A few special codes
repeat the last 8 bytes, write 8 zero bytes, carry a short (< 8 bytes) data
tail, or end the stream.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

# Special templates
OP_REPEAT = 0x1B
OP_ZEROS = 0x1C
OP_END = 0x1E
# Software-only template, for input that is not a multiple of 8 bytes
OP_SHORT_DATA = 0x1D

# Bit widths of the template code and of each kind of argument
OP_BITS = 5
REPEAT_BITS = 6
SHORT_DATA_BITS = 3
I2_BITS = 8
I4_BITS = 9
I8_BITS = 8
CRC_BITS = 32
D2_BITS = 16
D4_BITS = 32
D8_BITS = 64
N0_BITS = 0

REPEAT_BITS_MAX = 0x3F
SHORT_DATA_BITS_MAX = 0x7

# Number of regular templates (codes below this value use the template table)
OPS_MAX = 0x1A

OP_ACTION = 0x70
OP_AMOUNT = 0x0F

# Marks a chunk as 842-compressed in contexts where chunks may be stored raw
COMPRESSED_CHUNK_MARKER = bytes(
    (
        0xBE, 0x5A, 0x46, 0xBF, 0x97, 0xE5, 0x2D, 0xD7,
        0xB2, 0x7C, 0x94, 0x1A, 0xEE, 0xD6, 0x70, 0x76,
    )
)


class Action(enum.IntEnum):
    """What a template argument does."""

    INDEX = 0x10
    DATA = 0x20
    NOOP = 0x40


_INDEX_BITS = {2: I2_BITS, 4: I4_BITS, 8: I8_BITS}


@dataclass(frozen=True)
class TemplateOp:
    """One action of a template: copy literal data, copy by index, or nothing."""

    action: Action
    amount: int

    def __post_init__(self) -> None:
        if self.action is Action.NOOP:
            if self.amount != 0:
                raise ValueError("a no-op action has no amount")
        elif self.amount not in _INDEX_BITS:
            raise ValueError(f"invalid amount {self.amount} for {self.action.name}")

    @property
    def code(self) -> int:
        """The combined action/amount value used in template tables."""
        return int(self.action) | self.amount

    @property
    def bits(self) -> int:
        """Width in bits of this action's argument in the bitstream."""
        if self.action is Action.DATA:
            return self.amount * 8
        if self.action is Action.INDEX:
            return _INDEX_BITS[self.amount]
        return N0_BITS

    def __str__(self) -> str:
        prefix = {Action.DATA: "D", Action.INDEX: "I", Action.NOOP: "N"}[self.action]
        return f"{prefix}{self.amount}"


D2 = TemplateOp(Action.DATA, 2)
D4 = TemplateOp(Action.DATA, 4)
D8 = TemplateOp(Action.DATA, 8)
I2 = TemplateOp(Action.INDEX, 2)
I4 = TemplateOp(Action.INDEX, 4)
I8 = TemplateOp(Action.INDEX, 8)
N0 = TemplateOp(Action.NOOP, 0)

TEMPLATES: tuple[tuple[TemplateOp, TemplateOp, TemplateOp, TemplateOp], ...] = (
    (D8, N0, N0, N0),  # 0x00
    (D4, D2, I2, N0),  # 0x01
    (D4, I2, D2, N0),  # 0x02
    (D4, I2, I2, N0),  # 0x03
    (D4, I4, N0, N0),  # 0x04
    (D2, I2, D4, N0),  # 0x05
    (D2, I2, D2, I2),  # 0x06
    (D2, I2, I2, D2),  # 0x07
    (D2, I2, I2, I2),  # 0x08
    (D2, I2, I4, N0),  # 0x09
    (I2, D2, D4, N0),  # 0x0a
    (I2, D4, I2, N0),  # 0x0b
    (I2, D2, I2, D2),  # 0x0c
    (I2, D2, I2, I2),  # 0x0d
    (I2, D2, I4, N0),  # 0x0e
    (I2, I2, D4, N0),  # 0x0f
    (I2, I2, D2, I2),  # 0x10
    (I2, I2, I2, D2),  # 0x11
    (I2, I2, I2, I2),  # 0x12
    (I2, I2, I4, N0),  # 0x13
    (I4, D4, N0, N0),  # 0x14
    (I4, D2, I2, N0),  # 0x15
    (I4, I2, D2, N0),  # 0x16
    (I4, I2, I2, N0),  # 0x17
    (I4, I4, N0, N0),  # 0x18
    (I8, N0, N0, N0),  # 0x19
)

# Lookup from the compressor's match index to the template code
_OPS_DICT_ENTRIES = {
    0: 0x00, 19: 0x0A, 32: 0x05, 45: 0x02, 52: 0x0F, 65: 0x0C, 71: 0x01,
    78: 0x07, 79: 0x14, 91: 0x0B, 97: 0x11, 104: 0x06, 117: 0x03,
    123: 0x10, 125: 0x16, 132: 0x04, 136: 0x0D, 149: 0x08, 151: 0x15,
    152: 0x0E, 165: 0x09, 169: 0x12, 184: 0x13, 196: 0x17, 212: 0x18,
    223: 0x19,
}
OPS_DICT: tuple[int, ...] = tuple(_OPS_DICT_ENTRIES.get(i, 0) for i in range(224))


def template_ops(code: int) -> tuple[TemplateOp, TemplateOp, TemplateOp, TemplateOp]:
    """Return the four actions (padded with no-ops) of a regular template code."""
    if not 0 <= code < OPS_MAX:
        raise ValueError(f"{code:#x} is not a regular template code")
    return TEMPLATES[code]


def template_code_for_index(index: int) -> int:
    """Return the template code the compressor's lookup table holds at ``index``."""
    if not 0 <= index < len(OPS_DICT):
        raise ValueError(f"template index {index} out of range")
    return OPS_DICT[index]


def static_log2(value: int) -> int:
    """Floored log2 of a 32-bit value, as computed by the compile-time helper.

    Values whose highest set bit is bit 1 yield 0, and values below 2 yield -1.
    """
    if value < 0:
        raise ValueError("value must not be negative")
    for bit in range(31, 1, -1):
        if value & (1 << bit):
            return bit
    if value & 0b10:
        return 0
    return -1


def is_compressed_chunk(data: bytes | bytearray | memoryview) -> bool:
    """Tell whether ``data`` begins with the compressed-chunk marker."""
    return bytes(data[: len(COMPRESSED_CHUNK_MARKER)]) == COMPRESSED_CHUNK_MARKER