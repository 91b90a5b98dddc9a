"""Rate-limited executor for record store calls.

Every outbound Notion API call goes through a single RateLimitedExecutor.
Tasks run one at a time in submission order, call starts are spaced by a
minimum interval, and calls rejected with ThrottledError are retried with
the server's Retry-After hint or exponential backoff.

Example:
    executor = RateLimitedExecutor(min_interval=0.35)
    page = await executor.execute(lambda: client.create_page(payload))
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

from src.services.errors import ThrottledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Notion allows ~3 requests/second; 350ms leaves some margin.
DEFAULT_MIN_INTERVAL = 0.35
DEFAULT_MAX_RETRIES = 5


class RateLimitedExecutor:
    """FIFO executor that serializes and paces calls to the record store.

    A single worker task drains the queue, so tasks never overlap even
    when execute() is awaited from many coroutines at once. The worker is
    started on demand and exits when the queue is empty.

    Attributes:
        _min_interval: Minimum seconds between the starts of two calls.
        _max_retries: Retries allowed after a throttled call.
        _clock: Monotonic clock, injectable for tests.
        _sleep: Async sleep, injectable for tests.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            min_interval: Minimum seconds between call starts.
            max_retries: Retries after a throttled call before giving up.
            clock: Monotonic clock returning seconds.
            sleep: Coroutine function used for every wait.
        """
        self._min_interval = min_interval
        self._max_retries = max_retries
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._worker: asyncio.Task | None = None
        self._last_call_started: float | None = None
        self._retry_attempts_total = 0

    @property
    def retry_attempts_total(self) -> int:
        """Total number of throttle retries performed by this executor."""
        return self._retry_attempts_total

    @property
    def pending(self) -> int:
        """Number of tasks waiting in the queue."""
        return len(self._queue)

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue a task and wait for its result.

        Args:
            task: Zero-argument coroutine function performing one call.

        Returns:
            The task's return value.

        Raises:
            ThrottledError: If the call was still throttled after all retries.
            Exception: Any other error raised by the task, unchanged.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((task, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return await future

    async def aclose(self) -> None:
        """Stop the worker and cancel every queued task.

        The caller of a task that is already running is cancelled too.
        """
        while self._queue:
            _, future = self._queue.popleft()
            future.cancel()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    async def _drain(self) -> None:
        """Run queued tasks one at a time until the queue is empty."""
        while self._queue:
            task, future = self._queue.popleft()
            if future.done():
                # Caller was cancelled while queued.
                continue
            try:
                result = await self._run_with_retry(task)
            except asyncio.CancelledError:
                # Executor shut down mid-call; release the waiting caller.
                future.cancel()
                raise
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)

    async def _run_with_retry(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run a task, retrying while the record store throttles it."""
        attempt = 0
        while True:
            await self._wait_for_slot()
            try:
                return await task()
            except ThrottledError as exc:
                if attempt >= self._max_retries:
                    logger.error(
                        "Record store still throttling after %d attempts; giving up",
                        attempt + 1,
                    )
                    raise
                if exc.retry_after is not None:
                    delay = max(exc.retry_after, 0.0)
                else:
                    delay = float(2 ** attempt)
                logger.warning(
                    "Record store throttled request (attempt %d/%d), retrying in %.1fs",
                    attempt + 1,
                    self._max_retries + 1,
                    delay,
                )
                self._retry_attempts_total += 1
                await self._sleep(delay)
                attempt += 1

    async def _wait_for_slot(self) -> None:
        """Sleep until min_interval has passed since the previous call started."""
        if self._last_call_started is not None:
            elapsed = self._clock() - self._last_call_started
            if elapsed < self._min_interval:
                await self._sleep(self._min_interval - elapsed)
        self._last_call_started = self._clock()
