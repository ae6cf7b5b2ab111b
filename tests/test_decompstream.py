import random
import threading
import time
import zlib

import pytest

from py842.block import BLOCK_SIZE, CHUNK_SIZE, Block
from py842.compstream import ERROR_OFFSET, DataCompressionStream
from py842.decompstream import DataDecompressionStream
from py842.implementation import Implementation, InvalidDataError, NoSpaceError


def _compress(data, max_size):
    out = zlib.compress(bytes(data))
    if len(out) > max_size:
        raise NoSpaceError("output too large")
    return out


def _decompress(data, max_size):
    try:
        out = zlib.decompress(bytes(data))
    except zlib.error as exc:
        raise InvalidDataError(str(exc)) from exc
    if len(out) > max_size:
        raise NoSpaceError("output too large")
    return out


IMPL = Implementation(compress=_compress, decompress=_decompress)


def _finalize(stream, cancel=False):
    done = threading.Event()
    status = []

    def callback(ok):
        status.append(ok)
        done.set()

    stream.finalize(cancel, callback)
    assert done.wait(30)
    return status[0]


def _compress_all(data):
    blocks = []
    with DataCompressionStream(IMPL, 2) as stream:
        stream.start(data, blocks.append)
        ok = _finalize(stream)
    return blocks, ok


def _mixed_data():
    rng = random.Random(1234)
    parts = []
    for i in range(2 * BLOCK_SIZE // CHUNK_SIZE):
        if i % 3 == 0:
            parts.append(rng.randbytes(CHUNK_SIZE))
        else:
            parts.append(bytes([i]) * CHUNK_SIZE)
    return b"".join(parts)


def test_round_trip_through_both_streams():
    data = _mixed_data()
    blocks, ok = _compress_all(data)
    assert ok is True
    assert sorted(b.offset for b in blocks) == [0, BLOCK_SIZE]

    destination = bytearray(len(data))
    with DataDecompressionStream(IMPL, 3) as stream:
        stream.wait_until_ready()
        stream.start(destination)
        for block in blocks:
            assert stream.push_block(block) is True
        assert _finalize(stream) is True
    assert destination == data


def test_missing_chunks_leave_destination_untouched():
    source = bytes([7]) * BLOCK_SIZE
    block = Block(offset=0, source=source)
    buffer = block.allocate_buffer(CHUNK_SIZE)
    packed = zlib.compress(bytes(range(256)) * (CHUNK_SIZE // 256))
    buffer[5 * CHUNK_SIZE : 5 * CHUNK_SIZE + len(packed)] = packed
    block.sizes[3] = CHUNK_SIZE
    block.sizes[5] = len(packed)

    destination = bytearray(b"\xaa" * BLOCK_SIZE)
    with DataDecompressionStream(IMPL, 2) as stream:
        stream.start(destination)
        assert stream.push_block(block) is True
        assert _finalize(stream) is True

    assert destination[3 * CHUNK_SIZE : 4 * CHUNK_SIZE] == source[:CHUNK_SIZE]
    assert destination[5 * CHUNK_SIZE : 6 * CHUNK_SIZE] == bytes(range(256)) * (
        CHUNK_SIZE // 256
    )
    untouched = (
        destination[: 3 * CHUNK_SIZE]
        + destination[4 * CHUNK_SIZE : 5 * CHUNK_SIZE]
        + destination[6 * CHUNK_SIZE :]
    )
    assert set(untouched) == {0xAA}


def _corrupt_block():
    block = Block(offset=0)
    buffer = block.allocate_buffer(CHUNK_SIZE)
    buffer[:4] = b"junk"
    block.sizes[0] = 4
    return block


def test_corrupt_block_fails_and_stream_recovers():
    destination = bytearray(BLOCK_SIZE)
    with DataDecompressionStream(IMPL, 2) as stream:
        stream.start(destination)
        stream.push_block(_corrupt_block())
        assert _finalize(stream) is False

        data = bytes([3]) * BLOCK_SIZE
        blocks, ok = _compress_all(data)
        assert ok is True
        stream.start(destination)
        for block in blocks:
            assert stream.push_block(block) is True
        assert _finalize(stream) is True
    assert destination == data


def test_push_block_refused_after_error():
    destination = bytearray(BLOCK_SIZE)
    with DataDecompressionStream(IMPL, 1) as stream:
        stream.start(destination)
        stream.push_block(_corrupt_block())
        accepted = True
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            accepted = stream.push_block(Block(offset=0))
            if not accepted:
                break
            time.sleep(0.01)
        assert accepted is False
        assert _finalize(stream) is False


def test_error_offset_block_fails():
    destination = bytearray(BLOCK_SIZE)
    with DataDecompressionStream(IMPL, 1) as stream:
        stream.start(destination)
        stream.push_block(Block(offset=ERROR_OFFSET))
        assert _finalize(stream) is False


def test_block_beyond_destination_fails():
    source = bytes(BLOCK_SIZE)
    block = Block(offset=BLOCK_SIZE, source=source)
    block.sizes[0] = CHUNK_SIZE
    with DataDecompressionStream(IMPL, 1) as stream:
        stream.start(bytearray(BLOCK_SIZE))
        stream.push_block(block)
        assert _finalize(stream) is False


def test_cancel_with_empty_queue_succeeds():
    with DataDecompressionStream(IMPL, 2) as stream:
        stream.start(bytearray(BLOCK_SIZE))
        assert _finalize(stream, cancel=True) is True


def test_readonly_destination_rejected():
    with DataDecompressionStream(IMPL, 1) as stream:
        with pytest.raises(ValueError):
            stream.start(bytes(16))


def test_misaligned_implementation_rejected():
    impl = Implementation(compress=_compress, decompress=_decompress, required_alignment=3)
    with pytest.raises(ValueError):
        DataDecompressionStream(impl, 1)


def test_zero_threads_rejected():
    with pytest.raises(ValueError):
        DataDecompressionStream(IMPL, 0)