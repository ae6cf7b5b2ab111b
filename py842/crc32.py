"""Big-endian (MSB-first) CRC-32 with polynomial 0x04C11DB7, as used by 842 streams."""

from __future__ import annotations

import struct

CRCPOLY_BE = 0x04C11DB7

_MASK = 0xFFFFFFFF


def build_crc32_table() -> tuple[tuple[int, ...], ...]:
    """Build the eight 256-entry lookup tables for slicing-by-8 CRC computation.

    Table ``n`` holds the CRC contribution of a byte followed by ``n`` zero bytes.
    """
    first = [0] * 256
    crc = 0x80000000
    step = 1
    while step < 256:
        crc = ((crc << 1) & _MASK) ^ (CRCPOLY_BE if crc & 0x80000000 else 0)
        first[step : 2 * step] = [crc ^ value for value in first[:step]]
        step <<= 1

    tables = [tuple(first)]
    for _ in range(1, 8):
        previous = tables[-1]
        tables.append(
            tuple(first[value >> 24] ^ ((value << 8) & _MASK) for value in previous)
        )
    return tuple(tables)


_TABLES = build_crc32_table()
_WORDS = struct.Struct(">II")


def crc32_be(crc: int, data: bytes | bytearray | memoryview) -> int:
    """Continue a big-endian CRC-32 from ``crc`` over ``data``.

    No bit reflection and no final inversion are applied.
    """
    if not 0 <= crc <= _MASK:
        raise ValueError("crc must be a 32-bit unsigned value")
    t0, t1, t2, t3, t4, t5, t6, t7 = _TABLES
    buf = bytes(data)
    full = len(buf) - len(buf) % 8

    for high, low in _WORDS.iter_unpack(buf[:full]):
        q = crc ^ high
        crc = (
            t7[q >> 24]
            ^ t6[(q >> 16) & 255]
            ^ t5[(q >> 8) & 255]
            ^ t4[q & 255]
            ^ t3[low >> 24]
            ^ t2[(low >> 16) & 255]
            ^ t1[(low >> 8) & 255]
            ^ t0[low & 255]
        )

    for byte in buf[full:]:
        crc = t0[(crc >> 24) ^ byte] ^ ((crc << 8) & _MASK)
    return crc