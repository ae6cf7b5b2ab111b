"""Multi-threaded compressor that splits data into blocks of 842-compressed chunks."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from py842.block import (
    BLOCK_SIZE,
    CHUNK_SIZE,
    COMPRESSIBLE_THRESHOLD,
    NUM_CHUNKS_PER_BLOCK,
    Block,
    Buffer,
    ThreadPolicy,
)
from py842.implementation import Implementation
from py842.numa import spread_threads_among_numa_nodes
from py842.sync import Barrier, Latch

# Offset given to blocks whose compression failed
ERROR_OFFSET = -1

# An offset past any data, so that all threads stop taking new work
_STOP_OFFSET = 1 << 63

# Compressed chunks are spaced by a whole chunk size in the block buffer
CHUNK_PADDING = CHUNK_SIZE

BlockCallback = Callable[[Block], None]
FinalizeCallback = Callable[[bool], None]


class DataCompressionStream:
    """Compresses whole blocks of a buffer on a pool of worker threads.

    Each operation is begun with :meth:`start`, which hands every compressed
    block to a callback (from the worker threads, in no particular order), and
    ended with :meth:`finalize`, whose callback reports success. Only whole
    blocks are compressed; a trailing partial block is left to the caller.
    Blocks whose compression failed have ``offset == ERROR_OFFSET``.
    """

    def __init__(
        self,
        impl842: Implementation,
        num_threads: int,
        thread_policy: ThreadPolicy = ThreadPolicy.USE_DEFAULTS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._log = logger or logging.getLogger(__name__)
        if CHUNK_SIZE % impl842.required_alignment != 0:
            self._log.error("CHUNK_SIZE must be a multiple of the required 842 alignment")
            raise ValueError("CHUNK_SIZE must be a multiple of the required 842 alignment")
        if num_threads < 1:
            raise ValueError("num_threads must be at least 1")

        self._impl = impl842
        self._cond = threading.Condition()
        self._offset_lock = threading.Lock()
        self._threads_ready = Latch(num_threads)
        self._trigger = 0
        self._data: memoryview = memoryview(b"")
        self._size = 0
        self._block_callback: BlockCallback | None = None
        self._current_offset = 0
        self._error = False
        self._finalizing = False
        self._finalize_callback: FinalizeCallback | None = None
        self._finalize_barrier = Barrier(num_threads)
        self._quit = False
        self._epoch_log2: int | None = None

        self._threads = [
            threading.Thread(
                target=self._loop, args=(i,), name=f"842-compress-{i}", daemon=True
            )
            for i in range(num_threads)
        ]
        for thread in self._threads:
            thread.start()
        if thread_policy is ThreadPolicy.SPREAD_THREADS_AMONG_NUMA_NODES:
            spread_threads_among_numa_nodes(self._threads)

    def __enter__(self) -> DataCompressionStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_offset_sync_epoch_multiple(self, offset_sync_epoch_multiple: int) -> None:
        """Make all blocks before each multiple of this size be emitted before later ones.

        The size must be a power of two and a multiple of the block size;
        zero removes the restriction.
        """
        value = offset_sync_epoch_multiple
        if value < 0 or value % BLOCK_SIZE != 0 or value & (value - 1) != 0:
            raise ValueError(
                "offset sync epoch multiple must be a power of two multiple of the block size"
            )
        self._epoch_log2 = value.bit_length() - 1 if value else None

    def wait_until_ready(self) -> None:
        """Block until every worker thread is running."""
        self._threads_ready.wait()

    def start(self, data: Buffer, block_available_callback: BlockCallback) -> None:
        """Begin compressing ``data``, passing each block to the callback."""
        view = memoryview(data).cast("B")
        with self._cond:
            self._data = view
            self._size = len(view)
            self._block_callback = block_available_callback
            self._trigger += 1
            self._cond.notify_all()

    def finalize(self, cancel: bool, finalize_callback: FinalizeCallback) -> None:
        """End the operation; the callback receives True unless an error occurred.

        With ``cancel``, blocks not yet taken by a worker are skipped.
        """
        with self._cond:
            self._finalizing = True
            self._finalize_callback = finalize_callback
            if cancel:
                self._set_offset(_STOP_OFFSET)
            self._cond.notify_all()

    def close(self) -> None:
        """Stop the worker threads and wait for them to exit."""
        with self._cond:
            self._quit = True
            self._set_offset(_STOP_OFFSET)
            self._cond.notify_all()
            self._finalize_barrier.interrupt()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()

    def _set_offset(self, value: int) -> None:
        with self._offset_lock:
            self._current_offset = value

    def _fetch_add_offset(self) -> int:
        with self._offset_lock:
            offset = self._current_offset
            self._current_offset += BLOCK_SIZE
            return offset

    def _loop(self, thread_id: int) -> None:
        self._log.debug("Start compression thread with id %d", thread_id)
        self._threads_ready.count_down()

        last_trigger = 0
        while not self._quit:
            with self._cond:
                self._cond.wait_for(lambda: self._trigger != last_trigger or self._quit)
                last_trigger = self._trigger
                data, size, callback = self._data, self._size, self._block_callback

            handled = self._compress_blocks(data, size, callback)
            self._log.debug("Thread %d handled %d blocks", thread_id, handled)

            with self._cond:
                self._cond.wait_for(lambda: self._finalizing or self._quit)

            self._finalize_barrier.arrive_and_wait()
            if thread_id == 0:
                self._finish_operation()

        self._log.debug("End compression thread with id %d", thread_id)

    def _compress_blocks(
        self, data: memoryview, size: int, callback: BlockCallback | None
    ) -> int:
        handled = 0
        last_offset = 0
        last_valid_offset = size - size % BLOCK_SIZE
        while True:
            offset = self._fetch_add_offset()

            log2 = self._epoch_log2
            if log2 is not None:
                epochs = (min(offset, size) >> log2) - (last_offset >> log2)
                for _ in range(epochs):
                    self._finalize_barrier.arrive_and_wait()
            last_offset = offset

            if offset >= last_valid_offset:
                return handled

            handled += 1
            block = self._handle_block(data, offset)
            if block.offset == ERROR_OFFSET:
                self._report_error()
            if callback is not None:
                callback(block)

    def _report_error(self) -> None:
        with self._cond:
            first_error = not self._error
            self._error = True
            self._set_offset(_STOP_OFFSET)
        if first_error:
            self._log.error("Data compression failed, aborting operation")

    def _finish_operation(self) -> None:
        with self._cond:
            # When quitting, leave the state alone so the error flag survives
            if self._quit:
                return
            self._data = memoryview(b"")
            self._size = 0
            self._block_callback = None
            self._set_offset(0)
            error = self._error
            self._error = False
            self._finalizing = False
            callback = self._finalize_callback
            self._finalize_callback = None
        if callback is not None:
            callback(not error)

    def _handle_block(self, data: memoryview, offset: int) -> Block:
        source = data[offset : offset + BLOCK_SIZE]
        block = Block(offset=offset, chunk_padding=CHUNK_PADDING, source=source)
        buffer = block.allocate_buffer(CHUNK_PADDING)
        chunks = [
            source[i * CHUNK_SIZE : (i + 1) * CHUNK_SIZE]
            for i in range(NUM_CHUNKS_PER_BLOCK)
        ]

        try:
            results = self._impl.compress_chunked(
                chunks, [CHUNK_PADDING] * NUM_CHUNKS_PER_BLOCK
            )
        except Exception:
            self._log.debug("Compression of block at offset %d failed", offset, exc_info=True)
            block.offset = ERROR_OFFSET
            block.release_buffer()
            return block

        any_compressible = False
        for i, result in enumerate(results):
            if result.data is not None and len(result.data) <= COMPRESSIBLE_THRESHOLD:
                start = i * CHUNK_PADDING
                buffer[start : start + len(result.data)] = result.data
                block.sizes[i] = len(result.data)
                any_compressible = True
            else:
                block.sizes[i] = CHUNK_SIZE

        if not any_compressible:
            block.release_buffer()
        return block