"""Order-preserving bounded-concurrency map over a thread pool, after `p-map`.

Used by remote extraction to run the chunks of one batch side by side. Each
input gets its own result slot, so the output order is the submission order
regardless of which call finishes first.

- ``concurrency`` caps how many mapper calls run at once.
- ``stop_on_error`` (default True) re-raises the first failure and cancels
  work that has not started; when False every call runs to completion and the
  failures are raised together as an ``ExceptionGroup``.
- A mapper may return ``p_map_skip`` to drop its item from the output.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ALL_COMPLETED, FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


class _Skip:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "p_map_skip"


p_map_skip: object = _Skip()


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT | object],
    *,
    concurrency: int,
    stop_on_error: bool = True,
    thread_name_prefix: str = "statement-ingest",
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` calls in flight."""

    if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    items = list(iterable)
    if not items:
        return []

    with ThreadPoolExecutor(
        max_workers=min(concurrency, len(items)), thread_name_prefix=thread_name_prefix
    ) as pool:
        futures: list[Future] = [pool.submit(mapper, item) for item in items]
        when = FIRST_EXCEPTION if stop_on_error else ALL_COMPLETED
        done, _pending = wait(futures, return_when=when)

        if stop_on_error:
            for fut in futures:
                if fut in done and fut.exception() is not None:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise fut.exception()  # type: ignore[misc]
            wait(futures)

    errors = [e for e in (f.exception() for f in futures) if e is not None]
    if errors:
        raise ExceptionGroup("p_map: one or more mapper calls failed", errors)

    out: list[OutT] = []
    for fut in futures:
        val = fut.result()
        if val is p_map_skip:
            continue
        out.append(val)  # type: ignore[arg-type]
    return out


__all__ = ["p_map", "p_map_skip"]
