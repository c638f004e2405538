"""Bounded-concurrency job runner and blocking work pool."""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Iterable, List, Optional

log = logging.getLogger(__name__)

MAX_JOBS = 64


class JobScheduler:
    """Runs awaitables with at most ``limit`` in flight.

    Failures never cancel siblings: every job is allowed to finish and the
    caller gets all outcomes back, in the order the jobs were given.
    """

    def __init__(self, limit: int = MAX_JOBS):
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit

    async def run(self, jobs: Iterable[Awaitable[Any]]) -> List[Any]:
        """Returns each job's result, or the exception it raised."""
        results: dict = {}
        pending: dict = {}
        count = 0

        def collect(done):
            for task in done:
                index = pending.pop(task)
                if task.exception() is not None:
                    results[index] = task.exception()
                else:
                    results[index] = task.result()

        # Jobs are pulled lazily so unstarted coroutines are only created as slots free up
        try:
            for index, job in enumerate(jobs):
                if len(pending) >= self.limit:
                    done, _ = await asyncio.wait(pending.keys(), return_when=asyncio.FIRST_COMPLETED)
                    collect(done)
                pending[asyncio.ensure_future(job)] = index
                count += 1
        finally:
            # Started jobs are drained even when the job source itself fails
            while pending:
                done, _ = await asyncio.wait(pending.keys(), return_when=asyncio.FIRST_COMPLETED)
                collect(done)

        return [results[i] for i in range(count)]

    async def run_all(self, jobs: Iterable[Awaitable[Any]]) -> List[Any]:
        """Like ``run`` but raises the first error found once every job has drained."""
        outputs = await self.run(jobs)
        for output in outputs:
            if isinstance(output, BaseException):
                raise output
        return outputs


class BlockingPool:
    """Dedicated thread pool for subprocesses and archive extraction."""

    def __init__(self, max_workers: Optional[int] = None):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='mcinstall-blocking')

    async def run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
