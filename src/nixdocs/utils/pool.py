"""Bounded worker pool for data-parallel phases."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def parallel_map(func: Callable[[T], R], items: Iterable[T], *, workers: int) -> List[R]:
    """Apply ``func`` to every item on a worker pool, keeping input order.

    Workers never share state; callers merge the returned list themselves.
    The first exception raised by a worker propagates.
    """
    items = list(items)
    if not items:
        return []
    if workers <= 1 or len(items) == 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        return list(executor.map(func, items))
