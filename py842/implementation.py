"""The common interface of 842 compressor and decompressor implementations."""

from __future__ import annotations

import errno as _errno
from collections.abc import Callable, Iterable
from dataclasses import dataclass

CompressFunc = Callable[[bytes, int], bytes]


class Lib842Error(Exception):
    """Base class of 842 compression and decompression failures."""

    errno: int = _errno.EIO


class NoSpaceError(Lib842Error):
    """The output does not fit in the space that was allowed for it."""

    errno = _errno.ENOSPC


class InvalidDataError(Lib842Error):
    """The input is malformed, unsupported, or fails its checksum."""

    errno = _errno.EINVAL


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of one chunk of a chunked operation.

    A skipped chunk has neither data nor error.
    """

    data: bytes | None = None
    error: Lib842Error | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None

    @property
    def skipped(self) -> bool:
        return self.data is None and self.error is None


@dataclass(frozen=True)
class Implementation:
    """A compressor/decompressor pair working on in-memory data.

    ``compress(data, max_size)`` and ``decompress(data, max_size)`` return the
    output, raising :class:`NoSpaceError` when it would exceed ``max_size``
    bytes and :class:`InvalidDataError` for input they cannot handle.
    """

    compress: CompressFunc
    decompress: CompressFunc
    required_alignment: int = 1
    preferred_alignment: int = 1

    def __post_init__(self) -> None:
        if self.required_alignment < 1 or self.preferred_alignment < 1:
            raise ValueError("alignments must be positive")

    def compress_chunked(
        self, chunks: Iterable[bytes | None], max_sizes: Iterable[int]
    ) -> list[ChunkResult]:
        """Compress each chunk in turn; ``None`` chunks are skipped."""
        return _run_chunked(self.compress, chunks, max_sizes)

    def decompress_chunked(
        self, chunks: Iterable[bytes | None], max_sizes: Iterable[int]
    ) -> list[ChunkResult]:
        """Decompress each chunk in turn; ``None`` chunks are skipped."""
        return _run_chunked(self.decompress, chunks, max_sizes)


def _run_chunked(
    func: CompressFunc,
    chunks: Iterable[bytes | None],
    max_sizes: Iterable[int],
) -> list[ChunkResult]:
    results = []
    for chunk, max_size in zip(chunks, max_sizes, strict=True):
        if chunk is None:
            results.append(ChunkResult())
            continue
        try:
            results.append(ChunkResult(data=func(bytes(chunk), max_size)))
        except Lib842Error as exc:
            results.append(ChunkResult(error=exc))
    return results