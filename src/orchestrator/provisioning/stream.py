"""Bounded progress channel between a provisioning run and its consumer.

The provisioner runs on its own asyncio task and pushes events into a
bounded queue; the consumer drains it with ``async for``. The queue is
closed after the terminal event, which ends iteration. Because the queue
is bounded, a slow consumer (e.g. an SSE client) applies backpressure to
the run instead of letting events pile up.

Example:
    stream = start_provisioning(client, schema, "Sales CRM", parent_page_id)
    async for event in stream:
        print(event.message)
    print(stream.result.success)
"""

import asyncio
import logging
from typing import Awaitable, Callable

from src.orchestrator.provisioning.events import ProgressEvent
from src.orchestrator.provisioning.models import ProvisioningResult
from src.orchestrator.provisioning.provisioner import CRMProvisioner, EmitFn
from src.schema.models import CRMSchema
from src.services.notion_client import RecordStore
from src.services.rate_limiter import RateLimitedExecutor

logger = logging.getLogger(__name__)

DEFAULT_STREAM_SIZE = 32

_CLOSED = object()


class ProgressStream:
    """Async iterator over the events of one provisioning run.

    Attributes:
        result: The run's ProvisioningResult, set once the run finishes.
    """

    def __init__(self, maxsize: int = DEFAULT_STREAM_SIZE) -> None:
        """Initialize an empty, open stream.

        Args:
            maxsize: Events buffered before the producer blocks.
        """
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self._closed = False
        self._failure: BaseException | None = None
        self.result: ProvisioningResult | None = None

    def start(self, run: Callable[[EmitFn], Awaitable[ProvisioningResult]]) -> None:
        """Start the producer on its own task.

        Args:
            run: Coroutine function taking the emit callback and returning
                the run's result.
        """
        if self._task is not None:
            raise RuntimeError("ProgressStream already started")
        self._task = asyncio.get_running_loop().create_task(self._produce(run))

    async def send(self, event: ProgressEvent) -> None:
        """Push one event, waiting while the buffer is full."""
        await self._queue.put(event)

    async def _produce(self, run: Callable[[EmitFn], Awaitable[ProvisioningResult]]) -> None:
        """Run the producer, then close the channel."""
        try:
            self.result = await run(self.send)
        except Exception as e:
            logger.exception("Provisioning task died unexpectedly")
            self._failure = e
        await self._queue.put(_CLOSED)

    def __aiter__(self) -> "ProgressStream":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            if self._failure is not None:
                raise self._failure
            raise StopAsyncIteration
        return item

    async def collect(self) -> list[ProgressEvent]:
        """Drain the stream into a list."""
        return [event async for event in self]

    async def aclose(self) -> None:
        """Stop consuming and cancel the run if it is still going.

        Cancellation lands at the run's next suspension point; work that
        already reached the record store is not undone.
        """
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


def start_provisioning(
    client: RecordStore,
    schema: CRMSchema,
    page_title: str,
    parent_page_id: str | None = None,
    executor: RateLimitedExecutor | None = None,
    maxsize: int = DEFAULT_STREAM_SIZE,
) -> ProgressStream:
    """Start a provisioning run in the background and return its event stream.

    Must be called from a running event loop.

    Args:
        client: Record store client.
        schema: Databases to create (validate beforehand).
        page_title: Title of the parent page.
        parent_page_id: Page to nest under; workspace root when None.
        executor: Shared rate-limited executor, if any.
        maxsize: Event buffer size.

    Returns:
        ProgressStream yielding the run's events in order.
    """
    provisioner = CRMProvisioner(client, executor)
    stream = ProgressStream(maxsize=maxsize)
    stream.start(
        lambda emit: provisioner.provision(
            schema, page_title, emit, parent_page_id=parent_page_id
        )
    )
    return stream
