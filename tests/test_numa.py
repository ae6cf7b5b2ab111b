import os
import threading
import warnings
from unittest.mock import call, patch

import pytest

from py842.numa import cpu_set_to_string, numa_cpusets, spread_threads_among_numa_nodes


def _make_node(root, number, cpulist):
    node = root / "devices" / "system" / "node" / f"node{number}"
    node.mkdir(parents=True)
    (node / "cpulist").write_text(cpulist + "\n")


def test_cpu_set_to_string_ranges_and_singles():
    assert cpu_set_to_string({5, 0, 1, 2, 3}) == "0-3,5"


def test_cpu_set_to_string_single_cpu():
    assert cpu_set_to_string([7]) == "7"


def test_cpu_set_to_string_empty():
    assert cpu_set_to_string([]) == ""


@patch("os.cpu_count", return_value=16)
def test_numa_cpusets_ordered_by_node_number(_cpu_count, tmp_path):
    _make_node(tmp_path, 10, "8")
    _make_node(tmp_path, 0, "0-1")
    _make_node(tmp_path, 2, "4-5")
    _make_node(tmp_path, 1, "2,3")
    result = numa_cpusets(tmp_path)
    assert result == [
        frozenset({0, 1}),
        frozenset({2, 3}),
        frozenset({4, 5}),
        frozenset({8}),
    ]


@patch("os.cpu_count", return_value=4)
def test_numa_cpusets_drops_cpus_beyond_processor_count(_cpu_count, tmp_path):
    _make_node(tmp_path, 0, "2-5")
    assert numa_cpusets(tmp_path) == [frozenset({2, 3})]


@patch("os.cpu_count", return_value=64)
def test_numa_cpusets_round_trips_cpulist(_cpu_count, tmp_path):
    _make_node(tmp_path, 0, "0-2,4,6-9")
    (cpus,) = numa_cpusets(tmp_path)
    assert cpu_set_to_string(cpus) == "0-2,4,6-9"


def test_numa_cpusets_missing_information_warns(tmp_path):
    with pytest.warns(RuntimeWarning):
        result = numa_cpusets(tmp_path)
    assert result == []


def _run_idle_threads(count):
    stop = threading.Event()
    threads = [threading.Thread(target=stop.wait) for _ in range(count)]
    for thread in threads:
        thread.start()
    return stop, threads


def test_spread_assigns_each_thread_in_order():
    stop, threads = _run_idle_threads(3)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            with patch("os.sched_setaffinity", create=True) as setaffinity:
                result = spread_threads_among_numa_nodes(threads)
        assert len(result) in (0, len(threads))
        assert setaffinity.call_args_list == [
            call(thread.native_id, cpus) for thread, cpus in zip(threads, result)
        ]
    finally:
        stop.set()
        for thread in threads:
            thread.join()


def test_spread_stops_at_affinity_error():
    stop, threads = _run_idle_threads(2)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            with patch(
                "os.sched_setaffinity",
                create=True,
                side_effect=OSError(1, "Operation not permitted"),
            ):
                result = spread_threads_among_numa_nodes(threads)
        assert result == []
    finally:
        stop.set()
        for thread in threads:
            thread.join()


def test_spread_without_affinity_support_warns(monkeypatch):
    monkeypatch.delattr(os, "sched_setaffinity", raising=False)
    with pytest.warns(RuntimeWarning):
        result = spread_threads_among_numa_nodes([threading.current_thread()])
    assert result == []