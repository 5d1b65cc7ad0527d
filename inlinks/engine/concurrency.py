"""Bounded-parallelism task runner for network-bound stages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    mapper: Callable[[T, int], Awaitable[R]],
    concurrency: int,
    *,
    return_exceptions: bool = False,
) -> List[Any]:
    """Run ``mapper`` over ``items`` with at most ``concurrency`` tasks in flight.

    Workers pull the next pending index as soon as they finish an item, and
    every result is written into the slot matching its input position, so
    the returned list is always in input order. A failing item never cancels
    its siblings: when ``return_exceptions`` is true the exception object is
    stored in that item's slot, otherwise the first failure (by input
    position) is raised once every item has been processed.
    """

    if concurrency <= 0:
        raise ValueError("Concurrency must be a positive number.")

    results: List[Any] = [None] * len(items)
    failures: List[tuple[int, BaseException]] = []
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            try:
                results[index] = await mapper(items[index], index)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - collected per item
                logger.debug("Task %d failed: %r", index, exc)
                results[index] = exc
                failures.append((index, exc))

    workers = [worker() for _ in range(min(concurrency, len(items)))]
    await asyncio.gather(*workers)

    if failures and not return_exceptions:
        failures.sort(key=lambda item: item[0])
        raise failures[0][1]
    return results
