"""Bounded-concurrency executor for blocking ledger calls."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, Hashable, Iterable

from .constants import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)


class BatchExecutor:
    """Runs blocking calls on at most ``limit`` worker threads.

    Use as an async context manager; leaving the context waits for every
    worker thread to finish, so no call from one run outlives it.
    """

    def __init__(self, limit: int = DEFAULT_CONCURRENCY) -> None:
        if limit < 1:
            raise ValueError("concurrency limit must be >= 1")
        self.limit = limit
        self._pool: ThreadPoolExecutor | None = None

    async def __aenter__(self) -> "BatchExecutor":
        self._pool = ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix="pdascope")
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await asyncio.to_thread(pool.shutdown, True, cancel_futures=True)

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self._pool is None:
            raise RuntimeError("BatchExecutor used outside of its context")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, partial(fn, *args))

    async def map(
        self,
        fn: Callable[[Any], Any],
        keys: Iterable[Hashable],
        timeout: float | None = None,
    ) -> tuple[Dict[Hashable, Any], Dict[Hashable, BaseException], set]:
        """Call ``fn(key)`` for every key.

        Returns ``(results, errors, pending)``: values by key, exceptions by
        key, and the keys still outstanding when ``timeout`` expired.
        """
        tasks: Dict[asyncio.Task, Hashable] = {}
        for key in dict.fromkeys(keys):
            tasks[asyncio.ensure_future(self.call(fn, key))] = key
        if not tasks:
            return {}, {}, set()

        done, not_done = await asyncio.wait(tasks.keys(), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
            logger.warning("%d of %d calls still pending after %.1fs", len(not_done), len(tasks), timeout or 0)

        results: Dict[Hashable, Any] = {}
        errors: Dict[Hashable, BaseException] = {}
        for task in done:
            key = tasks[task]
            exc = task.exception()
            if exc is not None:
                errors[key] = exc
            else:
                results[key] = task.result()
        pending = {tasks[task] for task in not_done}
        return results, errors, pending
