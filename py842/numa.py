"""Spreading worker threads evenly among the machine's NUMA nodes."""

from __future__ import annotations

import functools
import itertools
import os
import re
import threading
import warnings
from collections.abc import Iterable, Sequence
from pathlib import Path

_NODE_NAME = re.compile(r"node(\d+)")


def cpu_set_to_string(cpus: Iterable[int]) -> str:
    """Render a set of CPU numbers in compact list form, e.g. ``0-3,5``."""
    ordered = sorted(set(cpus))
    parts = []
    for _, run in itertools.groupby(enumerate(ordered), key=lambda p: p[1] - p[0]):
        members = [cpu for _, cpu in run]
        first, last = members[0], members[-1]
        parts.append(str(first) if first == last else f"{first}-{last}")
    return ",".join(parts)


def _parse_cpulist(text: str) -> set[int]:
    cpus: set[int] = set()
    for part in text.strip().split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            first, last = part.split("-", 1)
            cpus.update(range(int(first), int(last) + 1))
        else:
            cpus.add(int(part))
    return cpus


def numa_cpusets(sysfs_root: str | os.PathLike[str] = "/sys") -> list[frozenset[int]]:
    """Return the set of CPUs of each NUMA node, ordered by node number.

    Returns an empty list, with a warning, when NUMA information is not available.
    """
    node_dir = Path(sysfs_root, "devices", "system", "node")
    nodes = []
    try:
        entries = list(node_dir.iterdir())
    except OSError:
        entries = []
    for entry in entries:
        match = _NODE_NAME.fullmatch(entry.name)
        if match and (entry / "cpulist").is_file():
            nodes.append((int(match[1]), entry / "cpulist"))

    if not nodes:
        warnings.warn(
            "NUMA not available, not spreading threads among NUMA nodes",
            RuntimeWarning,
            stacklevel=2,
        )
        return []

    nprocs = os.cpu_count() or 1
    return [
        frozenset(cpu for cpu in _parse_cpulist(path.read_text()) if cpu < nprocs)
        for _, path in sorted(nodes)
    ]


@functools.lru_cache(maxsize=None)
def _default_cpusets() -> tuple[frozenset[int], ...]:
    return tuple(numa_cpusets())


def spread_threads_among_numa_nodes(
    threads: Sequence[threading.Thread],
) -> list[frozenset[int]]:
    """Bind started threads round-robin to the CPUs of each NUMA node.

    Returns the CPU sets assigned, in thread order. Stops with a warning at
    the first thread whose affinity cannot be set.
    """
    if not hasattr(os, "sched_setaffinity"):
        warnings.warn(
            "thread affinity not supported, not spreading threads among NUMA nodes",
            RuntimeWarning,
            stacklevel=2,
        )
        return []

    cpusets = _default_cpusets()
    if not cpusets:
        return []

    assigned: list[frozenset[int]] = []
    for thread, cpus in zip(threads, itertools.cycle(cpusets)):
        if thread.native_id is None:
            raise ValueError(f"thread {thread.name} has not been started")
        try:
            os.sched_setaffinity(thread.native_id, cpus)
        except OSError as exc:
            warnings.warn(
                f"error setting thread affinity for NUMA spread ({exc.errno}): {exc.strerror}",
                RuntimeWarning,
                stacklevel=2,
            )
            return assigned
        assigned.append(cpus)
    return assigned