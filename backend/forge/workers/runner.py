"""In-process background job runner with bounded retries and exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from backend.forge.errors import ForgeError
from backend.forge.pipeline.results import TaskResult

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[TaskResult]]
Sleep = Callable[[float], Awaitable[None]]


class BackgroundJobRunner:
    """Executes work items, retrying failures that ask for it.

    A job is retried when it returns a failure marked ``retryable`` or when
    it raises. Non-retryable failures and successes are final.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        backoff_max_seconds: float = 60.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._sleep = sleep
        self._tasks: set[asyncio.Task[TaskResult]] = set()

    def backoff_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.backoff_seconds * (2 ** (attempt - 1)), self.backoff_max_seconds)

    async def run(self, name: str, job: Job) -> TaskResult:
        """Run a job to completion, retrying up to max_attempts times."""
        result = TaskResult.failure("job did not run")

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await job()
            except ForgeError as e:
                logger.warning(f"Job {name} attempt {attempt} raised {type(e).__name__}: {e}")
                result = TaskResult.failure(e.message, retryable=True)
            except Exception as e:
                logger.exception(f"Job {name} attempt {attempt} crashed")
                result = TaskResult.failure(str(e) or type(e).__name__, retryable=True)

            if result.ok or not result.retryable:
                return result

            if attempt < self.max_attempts:
                delay = self.backoff_for(attempt)
                logger.info(f"Retrying job {name} in {delay:.1f}s (attempt {attempt + 1})")
                await self._sleep(delay)

        logger.error(f"Job {name} gave up after {self.max_attempts} attempts: {result.error}")
        return result

    def submit(self, name: str, job: Job) -> "asyncio.Task[TaskResult]":
        """Run a job in the background on the current event loop."""
        task = asyncio.create_task(self.run(name, job), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all submitted jobs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
