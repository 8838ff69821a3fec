"""
At-most-one concurrent operation per key.

Used to make sure a given output folder is only built by one coroutine at a
time: later callers for the same key await the running task instead of
starting a duplicate build that would write into the same directory.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlight:
    """Map of key -> running task, shared by every caller of ``run``."""

    def __init__(self) -> None:
        self._tasks: dict[Hashable, asyncio.Task[Any]] = {}

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory()`` for ``key`` unless a run for ``key`` is already going.

        The entry is dropped once the task finishes, successfully or not, so a
        failed build is attempted again by the next caller.
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda _t, k=key: self._tasks.pop(k, None))
        else:
            logger.debug(f"Joining in-flight operation for {key}")
        return await asyncio.shield(task)

    def __contains__(self, key: object) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


__all__ = ["InFlight"]
