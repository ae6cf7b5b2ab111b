"""Blocks of chunks exchanged between compression and decompression streams.

Data is split into chunks of ``CHUNK_SIZE`` bytes, each either stored as-is or
as one 842 bitstream, and chunks are grouped into blocks of
``NUM_CHUNKS_PER_BLOCK`` chunks to batch transfers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from py842.format import COMPRESSED_CHUNK_MARKER

CHUNK_SIZE = 65536
NUM_CHUNKS_PER_BLOCK = 16
BLOCK_SIZE = NUM_CHUNKS_PER_BLOCK * CHUNK_SIZE

# A compressed chunk carries the marker and an 8-byte size as its header
MAX_COMPRESSIBLE_THRESHOLD = CHUNK_SIZE - len(COMPRESSED_CHUNK_MARKER) - 8

# Chunks that compress to more than this are kept uncompressed
COMPRESSIBLE_THRESHOLD = MAX_COMPRESSIBLE_THRESHOLD


class ThreadPolicy(enum.Enum):
    """How stream worker threads are placed on the machine."""

    USE_DEFAULTS = enum.auto()
    SPREAD_THREADS_AMONG_NUMA_NODES = enum.auto()


Buffer = bytes | bytearray | memoryview


@dataclass
class Block:
    """A block of chunks at ``offset`` in the uncompressed data.

    ``sizes[i]`` is 0 for a missing chunk, ``CHUNK_SIZE`` for a chunk kept
    uncompressed (read from ``source``), and otherwise the compressed size of
    a chunk stored in the block's buffer at ``i * chunk_padding``.
    """

    offset: int
    chunk_padding: int = 0
    source: Buffer | None = None
    sizes: list[int] = field(default_factory=lambda: [0] * NUM_CHUNKS_PER_BLOCK)
    _buffer: bytearray | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.sizes) != NUM_CHUNKS_PER_BLOCK:
            raise ValueError(f"a block holds exactly {NUM_CHUNKS_PER_BLOCK} chunk sizes")

    @property
    def chunk_buffer(self) -> bytearray | None:
        """The buffer holding the compressed chunks, if any."""
        return self._buffer

    def allocate_buffer(self, chunk_padding: int) -> bytearray:
        """Create the compressed-chunk buffer, ``chunk_padding`` bytes per chunk."""
        if self._buffer is not None:
            raise RuntimeError("block buffer already allocated")
        if chunk_padding <= 0:
            raise ValueError("chunk_padding must be positive")
        self.chunk_padding = chunk_padding
        self._buffer = bytearray(chunk_padding * NUM_CHUNKS_PER_BLOCK)
        return self._buffer

    def release_buffer(self) -> None:
        self._buffer = None

    def chunk(self, chunk_no: int) -> memoryview | None:
        """Return the (possibly compressed) data of a chunk, or None if missing."""
        if not 0 <= chunk_no < NUM_CHUNKS_PER_BLOCK:
            raise IndexError(f"chunk number {chunk_no} out of range")
        size = self.sizes[chunk_no]
        if size == 0:
            return None
        if size == CHUNK_SIZE:
            if self.source is None:
                raise ValueError("uncompressed chunk has no source data")
            start = chunk_no * CHUNK_SIZE
            return memoryview(self.source)[start : start + CHUNK_SIZE]
        if self._buffer is None:
            raise ValueError("block has no chunk buffer")
        start = chunk_no * self.chunk_padding
        return memoryview(self._buffer)[start : start + size]