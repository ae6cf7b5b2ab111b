"""Multi-threaded decompressor for blocks of 842-compressed chunks."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable

from py842.block import (
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

FinalizeCallback = Callable[[bool], None]


class DataDecompressionStream:
    """Decompresses queued blocks into a destination buffer on worker threads.

    An operation begins with :meth:`start`, which names the buffer that
    receives the data, is fed with :meth:`push_block`, and ends with
    :meth:`finalize`, whose callback reports success. Each block is written
    at its own offset in the destination.
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
        self._threads_ready = Latch(num_threads)
        self._trigger = 0
        self._destination: memoryview = memoryview(bytearray())
        self._queue: deque[Block] = deque()
        self._error = False
        self._finalizing = False
        self._finalize_callback: FinalizeCallback | None = None
        self._finalize_barrier = Barrier(num_threads)
        self._quit = False

        self._threads = [
            threading.Thread(
                target=self._loop, args=(i,), name=f"842-decompress-{i}", daemon=True
            )
            for i in range(num_threads)
        ]
        for thread in self._threads:
            thread.start()
        if thread_policy is ThreadPolicy.SPREAD_THREADS_AMONG_NUMA_NODES:
            spread_threads_among_numa_nodes(self._threads)

    def __enter__(self) -> DataDecompressionStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def wait_until_ready(self) -> None:
        """Block until every worker thread is running."""
        self._threads_ready.wait()

    def start(self, destination: Buffer) -> None:
        """Begin a new operation writing into the writable buffer ``destination``."""
        view = memoryview(destination).cast("B")
        if view.readonly:
            raise ValueError("destination buffer must be writable")
        with self._cond:
            self._destination = view
            self._trigger += 1
            self._cond.notify_all()

    def push_block(self, block: Block) -> bool:
        """Queue a block for decompression.

        Returns False if the operation already failed; the caller must still
        call :meth:`finalize`.
        """
        with self._cond:
            if self._finalizing:
                raise RuntimeError("cannot push blocks while finalizing")
            if self._error:
                return False
            self._queue.append(block)
            self._cond.notify_all()
            return True

    def finalize(self, cancel: bool, finalize_callback: FinalizeCallback) -> None:
        """Finish the operation once the queue is processed, then call the callback.

        With ``cancel``, queued blocks not yet taken by a worker are dropped.
        The callback receives True on success and False if an error happened.
        """
        with self._cond:
            self._finalizing = True
            self._finalize_callback = finalize_callback
            if cancel:
                self._queue.clear()
            self._cond.notify_all()

    def close(self) -> None:
        """Stop the worker threads and wait for them to exit."""
        with self._cond:
            self._quit = True
            self._cond.notify_all()
            self._finalize_barrier.interrupt()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()

    def _loop(self, thread_id: int) -> None:
        self._log.debug("Start decompression thread with id %d", thread_id)
        self._threads_ready.count_down()

        last_trigger = 0
        while not self._quit:
            with self._cond:
                self._cond.wait_for(lambda: self._trigger != last_trigger or self._quit)
                last_trigger = self._trigger
                destination = self._destination

            handled = 0
            while True:
                with self._cond:
                    self._cond.wait_for(
                        lambda: bool(self._queue) or self._finalizing or self._quit
                    )
                    if (self._finalizing and not self._queue) or self._quit:
                        break
                    block = self._queue.popleft()

                handled += 1
                if not self._handle_block(destination, block):
                    self._report_error()
            self._log.debug("Thread %d handled %d blocks", thread_id, handled)

            self._finalize_barrier.arrive_and_wait()
            if thread_id == 0:
                self._finish_operation()

        self._log.debug("End decompression thread with id %d", thread_id)

    def _report_error(self) -> None:
        with self._cond:
            first_error = not self._error
            self._error = True
            self._queue.clear()
        if first_error:
            self._log.error("Data decompression failed, aborting operation")

    def _finish_operation(self) -> None:
        with self._cond:
            # When quitting, leave the state alone so the error flag survives
            if self._quit:
                return
            error = self._error
            self._error = False
            self._finalizing = False
            callback = self._finalize_callback
            self._finalize_callback = None
        if callback is not None:
            callback(not error)

    def _handle_block(self, destination: memoryview, block: Block) -> bool:
        if block.offset < 0:
            return False

        chunks: list[memoryview | None] = []
        try:
            for i, size in enumerate(block.sizes):
                if size == 0:
                    # Chunk not present, e.g. placed on the destination directly
                    chunks.append(None)
                    continue
                start = block.offset + i * CHUNK_SIZE
                if size == CHUNK_SIZE:
                    if start + CHUNK_SIZE > len(destination):
                        return False
                    destination[start : start + CHUNK_SIZE] = block.chunk(i)
                    chunks.append(None)
                    continue
                if not 0 < size <= COMPRESSIBLE_THRESHOLD:
                    return False
                chunks.append(block.chunk(i))
        except (ValueError, IndexError):
            self._log.debug("Invalid block at offset %d", block.offset, exc_info=True)
            return False

        try:
            results = self._impl.decompress_chunked(
                chunks, [CHUNK_SIZE] * NUM_CHUNKS_PER_BLOCK
            )
        except Exception:
            self._log.debug(
                "Decompression of block at offset %d failed", block.offset, exc_info=True
            )
            return False

        for i, (chunk, result) in enumerate(zip(chunks, results)):
            if chunk is None:
                continue
            if result.data is None or len(result.data) != CHUNK_SIZE:
                return False
            start = block.offset + i * CHUNK_SIZE
            if start + CHUNK_SIZE > len(destination):
                return False
            destination[start : start + CHUNK_SIZE] = result.data
        return True