"""asyncio helpers that cap how much work is in flight.

``bounded_gather`` runs a list of coroutines with at most *limit* awaiting
at once and is what ``IngestionService.ingest_many`` uses to keep several
document pipelines from saturating the embedding API and the vector store
pool together.

``gather_in_batches`` processes a list slice by slice: every item in a
slice runs concurrently, and the next slice starts only once the current
one has finished.  The LLM cleanser uses it with a batch size of 5.

``KeyedLock`` hands out one :class:`asyncio.Lock` per key and forgets the
key once nobody holds or waits for it.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Generic, Hashable, Sequence, TypeVar

_T = TypeVar("_T")
_R = TypeVar("_R")
_K = TypeVar("_K", bound=Hashable)


async def bounded_gather(
    coros: Sequence[Awaitable[_T]],
    limit: int,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Await *coros* with at most *limit* running at a time.

    Parameters
    ----------
    coros:
        Awaitables to run.  Result order matches this order.
    limit:
        Maximum number awaited concurrently; values below 1 are treated
        as 1.
    return_exceptions:
        Passed through to :func:`asyncio.gather`.
    """
    gate = asyncio.Semaphore(max(1, limit))

    async def _gated(coro: Awaitable[_T]) -> _T:
        async with gate:
            return await coro

    return await asyncio.gather(*(_gated(c) for c in coros), return_exceptions=return_exceptions)


async def gather_in_batches(
    items: Sequence[_T],
    fn: Callable[[_T], Awaitable[_R]],
    batch_size: int = 5,
) -> list[_R]:
    """Map *fn* over *items*, one batch of ``batch_size`` at a time.

    The first exception inside a batch propagates; later batches never run.
    """
    step = max(1, batch_size)
    results: list[_R] = []
    for start in range(0, len(items), step):
        results.extend(await asyncio.gather(*(fn(item) for item in items[start : start + step])))
    return results


class KeyedLock(Generic[_K]):
    """Per-key mutual exclusion without an ever-growing lock table."""

    def __init__(self) -> None:
        self._entries: dict[_K, tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def locked(self, key: _K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry[0].locked()

    @asynccontextmanager
    async def hold(self, key: _K) -> AsyncIterator[None]:
        lock, users = self._entries.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        # Count waiters too, so the entry survives until the last one leaves.
        self._entries[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._entries[key]
            if users <= 1:
                del self._entries[key]
            else:
                self._entries[key] = (lock, users - 1)
