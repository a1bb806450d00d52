from __future__ import annotations

import threading
import time

import pytest

from statement_ingest.pmap import p_map, p_map_skip


def test_preserves_input_order() -> None:
    def slow_first(x: int) -> int:
        time.sleep(0.03 if x == 0 else 0)
        return x * 10

    assert p_map(range(5), slow_first, concurrency=3) == [0, 10, 20, 30, 40]


def test_bounds_concurrency() -> None:
    lock = threading.Lock()
    inflight = 0
    peak = 0

    def work(_x: int) -> None:
        nonlocal inflight, peak
        with lock:
            inflight += 1
            peak = max(peak, inflight)
        time.sleep(0.01)
        with lock:
            inflight -= 1

    p_map(range(12), work, concurrency=3)
    assert peak <= 3


def test_skip_sentinel_drops_items() -> None:
    assert p_map([1, 2, 3, 4], lambda x: p_map_skip if x % 2 else x, concurrency=2) == [2, 4]


def test_stop_on_error_raises_first_failure() -> None:
    def boom(x: int) -> int:
        if x == 2:
            raise RuntimeError("bad item")
        return x

    with pytest.raises(RuntimeError, match="bad item"):
        p_map([1, 2, 3], boom, concurrency=1)


def test_collects_all_failures_when_not_stopping() -> None:
    def boom(x: int) -> int:
        raise ValueError(str(x))

    with pytest.raises(ExceptionGroup) as excinfo:
        p_map([1, 2], boom, concurrency=2, stop_on_error=False)
    assert sorted(str(e) for e in excinfo.value.exceptions) == ["1", "2"]


@pytest.mark.parametrize("bad", [0, -1, True])
def test_rejects_invalid_concurrency(bad: int) -> None:
    with pytest.raises(ValueError):
        p_map([1], lambda x: x, concurrency=bad)


def test_empty_input() -> None:
    assert p_map([], lambda x: x, concurrency=3) == []
