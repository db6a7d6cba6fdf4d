"""Bounded producer/consumer channel and NDJSON encoding of stream events."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import TypeVar

from covercheck.models import TERMINAL_EVENTS, ErrorEvent, SourcesEvent, StreamEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


async def bounded(source: AsyncGenerator[T, None], maxsize: int = 32) -> AsyncIterator[T]:
    """Run ``source`` in its own task, handing items over through a queue.

    The producer blocks once ``maxsize`` items are waiting, so a slow
    consumer applies back-pressure. When the consumer stops early (for
    example because the HTTP client disconnected) the producer task is
    cancelled, which closes ``source`` and any connection it holds.
    Exceptions raised by ``source`` are re-raised in the consumer.
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def produce() -> None:
        try:
            async for item in source:
                await queue.put((item, None))
        except Exception as exc:
            await queue.put((_END, exc))
            return
        finally:
            await source.aclose()
        await queue.put((_END, None))

    producer = asyncio.create_task(produce())
    try:
        while True:
            item, error = await queue.get()
            if item is _END:
                if error is not None:
                    raise error
                return
            yield item
    finally:
        if not producer.done():
            logger.debug("Consumer stopped early, cancelling producer")
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)


def encode_event(event: StreamEvent) -> bytes:
    """Serialise one event as a newline-terminated JSON record."""
    return (json.dumps(event.to_record(), ensure_ascii=False) + "\n").encode("utf-8")


async def ndjson(events: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
    async for event in events:
        yield encode_event(event)


async def guarded(
    events: AsyncGenerator[StreamEvent, None],
    error_message: str = "An error occurred while processing your request",
) -> AsyncGenerator[StreamEvent, None]:
    """Keep the stream well-formed if ``events`` raises.

    An unexpected exception is logged and replaced by an error event,
    preceded by an empty sources event if none was sent yet.
    """
    sources_sent = False
    try:
        async for event in events:
            if isinstance(event, SourcesEvent):
                sources_sent = True
            yield event
            if isinstance(event, TERMINAL_EVENTS):
                return
    except Exception:
        logger.exception("Streaming error")
        if not sources_sent:
            yield SourcesEvent([])
        yield ErrorEvent(error_message)
    finally:
        await events.aclose()
