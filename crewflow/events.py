"""Progress event delivery: sink helper and an in-process broadcaster."""

import asyncio
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

from .models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


async def emit(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """
    Deliver an event to a sink, which may be sync or async.

    Sink failures are logged and never reach the caller.
    """
    if sink is None:
        return
    try:
        result = sink(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Progress sink failed on {event.type.value} for run {event.run_id}: {e}")


class ProgressBroadcaster:
    """Fans progress events out to per-run subscribers."""

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    def subscriber_count(self, run_id: str) -> int:
        return len(self._subscribers.get(run_id, []))

    async def publish(self, event: ProgressEvent) -> None:
        """
        Publish an event to all subscribers of its run.

        Args:
            event: The event to deliver; subscribers with full queues miss it
        """
        for queue in self._subscribers.get(event.run_id, []):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event.type.value} event for slow subscriber of run {event.run_id}")

    async def __call__(self, event: ProgressEvent) -> None:
        await self.publish(event)

    def open(self, run_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(run_id, []).append(queue)
        return queue

    def close(self, run_id: str, queue: asyncio.Queue) -> None:
        if run_id in self._subscribers:
            try:
                self._subscribers[run_id].remove(queue)
            except ValueError:
                pass
            if not self._subscribers[run_id]:
                del self._subscribers[run_id]

    async def subscribe(self, run_id: str) -> AsyncIterator[ProgressEvent]:
        """
        Yield events for one run until its terminal event.

        Args:
            run_id: Run to follow

        Yields:
            ProgressEvent objects, ending with run_complete or run_error
        """
        queue = self.open(run_id)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    break
        finally:
            self.close(run_id, queue)


# Global instance
broadcaster = ProgressBroadcaster()
