"""Latest-only query execution

A view that re-issues a query whenever a parameter changes must never let a
slow earlier response overwrite a newer one.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from domain.errors import RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestOnlyQuery:
    """Runs one query at a time; starting a new one cancels the previous"""

    def __init__(self, name: str = "query"):
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._closed = False

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run a new query, superseding any in-flight one.

        Raises RequestCancelledError when this query is itself superseded or
        the runner is closed before it completes.
        """
        if self._closed:
            raise RequestCancelledError(f"{self.name} is closed")

        self.cancel()
        self._generation += 1
        generation = self._generation
        task = asyncio.ensure_future(factory())
        self._task = task

        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise RequestCancelledError(f"{self.name} superseded")
            # the awaiting coroutine itself was cancelled
            task.cancel()
            raise
        finally:
            if self._task is task and task.done():
                self._task = None

        if generation != self._generation:
            logger.debug(f"{self.name}: discarding stale response #{generation}")
            raise RequestCancelledError(f"{self.name} superseded")
        return result

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            logger.debug(f"{self.name}: cancelling in-flight request")
            self._task.cancel()
        self._task = None

    def close(self) -> None:
        """Teardown: cancel unconditionally and refuse new queries"""
        self._closed = True
        self._generation += 1
        self.cancel()


class TimeRangeFeed:
    """Data behind a report view with a time-range selector"""

    def __init__(self, fetch: Callable[[str], Awaitable[Dict[str, Any]]], name: str = "feed"):
        self._fetch = fetch
        self._query = LatestOnlyQuery(name)
        self.time_range: Optional[str] = None
        self.data: Optional[Dict[str, Any]] = None

    async def select(self, time_range: str) -> Dict[str, Any]:
        """Switch time range; only the newest selection's data is applied"""
        self.time_range = time_range
        data = await self._query.run(lambda: self._fetch(time_range))
        self.data = data
        return data

    def close(self) -> None:
        self._query.close()
