"""Delivery of normalized messages to the consumer."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from qqgate.errors import SinkClosed
from qqgate.models import ChannelMessage

# Raises SinkClosed once the consumer is gone.
MessageSink = Callable[[ChannelMessage], Awaitable[None]]


@dataclass
class QueueSink:
    """
    Queue-backed sink for a consumer task.

    Closing the sink also releases a producer blocked on a full queue.

    Usage:
        sink = QueueSink(maxsize=100)
        session_task = asyncio.create_task(session.run(sink))
        message = await sink.get()
    """

    maxsize: int = 0
    queue: asyncio.Queue[ChannelMessage] = field(init=False)
    closed_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        self.queue = asyncio.Queue(maxsize=self.maxsize)

    @property
    def closed(self) -> bool:
        return self.closed_event.is_set()

    async def __call__(self, message: ChannelMessage) -> None:
        if self.closed:
            raise SinkClosed("Message consumer has closed the sink")

        put_task = asyncio.create_task(self.queue.put(message))
        closed_task = asyncio.create_task(self.closed_event.wait())
        try:
            await asyncio.wait({put_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (put_task, closed_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if put_task.cancelled():
            raise SinkClosed("Message consumer has closed the sink")

    def close(self) -> None:
        self.closed_event.set()

    async def get(self) -> ChannelMessage:
        return await self.queue.get()
