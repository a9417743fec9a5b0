from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from eco_route.exceptions import RequestSuperseded

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestLine:
    """A sequence of requests of one kind where only the latest may apply.

    ``run`` cancels whatever the line is currently doing before starting the
    new coroutine. A caller whose request was replaced, or cancelled through
    ``cancel``, gets ``RequestSuperseded``; this also holds when its request
    finished before the caller got to observe the result.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: asyncio.Task[Any] | None = None
        self._generation = 0

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> bool:
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled in-flight %s request", self.name)
        return True

    async def run(self, coro: Coroutine[Any, Any, T]) -> T:
        self.cancel()
        generation = self._generation
        task = asyncio.ensure_future(coro)
        self._task = task
        try:
            result = await task
        except (asyncio.CancelledError, Exception):
            if generation != self._generation:
                raise RequestSuperseded(self.name) from None
            raise
        finally:
            if self._task is task:
                self._task = None

        if generation != self._generation:
            logger.debug("Discarded stale %s result", self.name)
            raise RequestSuperseded(self.name)
        return result
