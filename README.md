# py842

Building blocks for the 842 compression format, and thread pools that
compress or decompress large buffers in parallel, block by block.

The package has no runtime dependencies.

## What the package does not do

The package does not include an 842 compressor or decompressor. It defines
the format's vocabulary (template codes, argument widths, the CRC), the
interface a codec must offer (`py842.implementation.Implementation`), and the
streams that drive such a codec over many threads. The `compress` and
`decompress` functions themselves are yours to supply. It also has no
hardware or GPU backends.

## Modules

### `py842.format`

Constants and tables of the 842 bitstream. These include `OP_REPEAT`,
`OP_ZEROS`, `OP_END`, `OP_SHORT_DATA`, the bit widths (`OP_BITS`,
`I2_BITS`, `I4_BITS`, `I8_BITS`, `CRC_BITS`, ...), `TEMPLATES`, `OPS_DICT`
and `COMPRESSED_CHUNK_MARKER`.

- `Action` is an enum of `INDEX`, `DATA` and `NOOP`.
- `TemplateOp(action, amount)` is one action of a template, such as `D2` or
  `I4`. Its `code` property gives the combined table value and its `bits`
  property gives the argument's width in the bitstream.
- `template_ops(code)` returns the four actions of a regular template. The
  code must be between 0x00 and 0x19; any other code raises `ValueError`.
- `template_code_for_index(index)` returns the entry of the compressor's
  224-entry lookup table.
- `static_log2(value)` is the floored base-2 logarithm of a 32-bit value.
  - Values whose highest set bit is bit 1 give 0.
  - Values below 2 give -1.
- `is_compressed_chunk(data)` tells whether `data` starts with
  `COMPRESSED_CHUNK_MARKER`.

### `py842.crc32`

This module provides the big-endian CRC-32 with polynomial `0x04C11DB7`. It
applies no bit reflection and no final inversion.

- `build_crc32_table()` returns the eight 256-entry slicing-by-8 tables.
- `crc32_be(crc, data)` continues a CRC from `crc` over `data`.

### `py842.implementation`

- `Implementation(compress, decompress, required_alignment=1, preferred_alignment=1)`
  wraps a codec. Both functions are called as `func(data, max_size)` and
  must return the output bytes.
  - They raise `NoSpaceError` when the output would exceed `max_size`.
  - They raise `InvalidDataError` for input they cannot handle.
- `compress_chunked(chunks, max_sizes)` and `decompress_chunked(chunks, max_sizes)`
  run the codec over each chunk in turn and return one `ChunkResult` per
  chunk.
  - A `None` chunk is skipped.
  - A `Lib842Error` raised for a chunk is recorded in its result rather than
    raised.
- `ChunkResult` has the fields `data` and `error`, and the properties `ok`
  and `skipped`.
- `Lib842Error` is the base error class. Each error carries an `errno`:
  `NoSpaceError` has `ENOSPC` and `InvalidDataError` has `EINVAL`.

### `py842.sync`

- `Barrier(num_threads)` is a reusable barrier with `arrive_and_wait()`.
  After `interrupt()` it releases every waiting thread and no longer blocks.
- `Latch(value)` is a single-use countdown with `count_down()` and `wait()`.

### `py842.block`

This module holds the stream constants:

- `CHUNK_SIZE` (65536)
- `NUM_CHUNKS_PER_BLOCK` (16)
- `BLOCK_SIZE`
- `COMPRESSIBLE_THRESHOLD`

It also provides `ThreadPolicy`, with the members `USE_DEFAULTS` and
`SPREAD_THREADS_AMONG_NUMA_NODES`.

`Block(offset, chunk_padding=0, source=None, sizes=...)` describes 16
chunks. The value of `sizes[i]` means:

- `0`: the chunk is absent.
- `CHUNK_SIZE`: the chunk is kept uncompressed and read from `source`.
- Any other value: the compressed size of a chunk held in the block's buffer
  at `i * chunk_padding`.

`allocate_buffer(chunk_padding)`, `release_buffer()`, the `chunk_buffer`
property and `chunk(chunk_no)` give access to that data.

### `py842.numa`

- `numa_cpusets(sysfs_root="/sys")` reads each node's `cpulist` under
  `devices/system/node`. It returns a list of CPU sets, or an empty list
  with a `RuntimeWarning` when no node is found.
- `spread_threads_among_numa_nodes(threads)` pins started threads
  round-robin to the nodes' CPU sets using `os.sched_setaffinity`. It returns
  the sets it assigned. It issues a warning and stops when affinity is not
  supported or cannot be set.
- `cpu_set_to_string(cpus)` renders a set of CPUs compactly, for example
  `{0, 1, 2, 3, 5}` becomes `"0-3,5"`.

### `py842.compstream`

`DataCompressionStream(impl842, num_threads, thread_policy=ThreadPolicy.USE_DEFAULTS, logger=None)`
compresses a buffer on a pool of worker threads. It can be used as a context
manager, which calls `close()` on exit.

Only whole blocks are compressed; a trailing part shorter than `BLOCK_SIZE`
is left to the caller. For each chunk:

- If it compresses to at most `COMPRESSIBLE_THRESHOLD` bytes, it is stored
  in the block's buffer.
- Otherwise it is marked as uncompressed.

A block whose compression failed has `offset == ERROR_OFFSET`.

The methods are:

- `wait_until_ready()` blocks until every worker is running.
- `start(data, block_available_callback)` begins an operation. The callback
  is called from worker threads, once per block, in no particular order.
- `finalize(cancel, finalize_callback)` ends the operation. The callback
  receives `True` unless a block failed. With `cancel=True`, blocks not yet
  taken by a worker are skipped.
- `set_offset_sync_epoch_multiple(size)` makes every block before each
  multiple of `size` be emitted before any later block. The size must be a
  power-of-two multiple of `BLOCK_SIZE`; `0` removes the restriction.
- `close()` stops and joins the workers.

### `py842.decompstream`

`DataDecompressionStream(impl842, num_threads, thread_policy=ThreadPolicy.USE_DEFAULTS, logger=None)`
writes each pushed block at its offset in a destination buffer. Chunks are
handled according to their size:

- Uncompressed chunks are copied.
- Compressed chunks are decompressed.
- Absent chunks are left untouched.

The methods are:

- `start(destination)` begins an operation. The destination must be a
  writable buffer.
- `push_block(block)` queues a block. It returns `False` once an error has
  occurred, and raises `RuntimeError` while finalizing.
- `finalize(cancel, finalize_callback)` calls back with `True` or `False`
  once the queue is drained. With `cancel=True`, queued blocks are dropped.
- `wait_until_ready()` and `close()` work as for the compression stream. The
  stream can also be used as a context manager.

## Example

The codec below is a stand-in built on `zlib`, only to show how an
`Implementation` plugs into the streams:

```python
import threading
import zlib

from py842.block import BLOCK_SIZE
from py842.compstream import DataCompressionStream
from py842.decompstream import DataDecompressionStream
from py842.implementation import Implementation, InvalidDataError, NoSpaceError


def compress(data, max_size):
    out = zlib.compress(data)
    if len(out) > max_size:
        raise NoSpaceError("output too large")
    return out


def decompress(data, max_size):
    try:
        out = zlib.decompress(data)
    except zlib.error as exc:
        raise InvalidDataError(str(exc)) from exc
    if len(out) > max_size:
        raise NoSpaceError("output too large")
    return out


impl = Implementation(compress, decompress)
data = bytes(4 * BLOCK_SIZE)

blocks, lock, done = [], threading.Lock(), threading.Event()

def on_block(block):
    with lock:
        blocks.append(block)

with DataCompressionStream(impl, num_threads=4) as comp:
    comp.wait_until_ready()
    comp.start(data, on_block)
    comp.finalize(False, lambda ok: done.set())
    done.wait()

destination = bytearray(len(data))
done.clear()
with DataDecompressionStream(impl, num_threads=4) as decomp:
    decomp.wait_until_ready()
    decomp.start(destination)
    for block in blocks:
        decomp.push_block(block)
    decomp.finalize(False, lambda ok: done.set())
    done.wait()

assert destination == data
```

The finalize callbacks are called from a worker thread.

## Command-line tools

To embed a text file, such as an OpenCL kernel, as a C string constant, run:

```
py842-cl2c input.cl output.c VARIABLE_NAME
```

It prints a usage line and exits with status 1 unless it is given exactly
three arguments.

To print the C source of the CRC-32 lookup tables to standard output, run:

```
py842-gencrctable
```

## Tests

```
pip install .[test]
pytest
```