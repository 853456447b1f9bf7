from __future__ import annotations

"""Newline-delimited JSON progress stream.

An :class:`EventStream` is the channel between a background producer (the
agent initialization task) and the HTTP response that serializes its events.
The queue is bounded. Once a reader is attached a slow reader pushes back on
the producer. Before a reader attaches, or after it goes away, a full queue
drops events instead, so the producer always runs to completion.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from starlette.responses import StreamingResponse

logger = logging.getLogger("forge.streaming")

TERMINATE = "terminate"

STREAM_HEADERS = {
    # SSE content-type keeps proxies from buffering; the payload stays NDJSON.
    "Cache-Control": "no-cache, no-store, must-revalidate, no-transform",
    "Pragma": "no-cache",
    "Connection": "keep-alive",
}
STREAM_MEDIA_TYPE = "text/event-stream; charset=utf-8"

_CLOSE = object()


def encode_event(event: Any) -> bytes:
    return (json.dumps(event, default=str) + "\n").encode("utf-8")


class EventStream:
    def __init__(self, maxsize: int = 256) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._reader_attached = False
        self._reader_gone = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, event: Dict[str, Any] | str) -> None:
        """Queue one event; the literal ``"terminate"`` ends the stream."""

        if event == TERMINATE:
            await self.close()
            return
        if self._closed or self._reader_gone:
            logger.debug("Dropping event on finished stream")
            return
        if self._reader_attached:
            await self._queue.put(event)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Dropping event, no reader attached and buffer full")

    async def fail(self, message: str) -> None:
        await self.write({"error": message})
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._reader_gone:
            return
        if self._reader_attached:
            await self._queue.put(_CLOSE)
        elif not self._queue.full():
            self._queue.put_nowait(_CLOSE)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_bytes()

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        self._reader_attached = True
        try:
            # A close on a full, unread queue leaves no sentinel behind.
            while not (self._closed and self._queue.empty()):
                event = await self._queue.get()
                if event is _CLOSE:
                    return
                yield encode_event(event)
        finally:
            self._reader_gone = True
            # Unblock a producer waiting on a full queue.
            while not self._queue.empty():
                self._queue.get_nowait()


def ndjson_response(stream: EventStream, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> StreamingResponse:
    merged = dict(STREAM_HEADERS)
    merged.update(headers or {})
    return StreamingResponse(stream.iter_bytes(), status_code=status_code, media_type=STREAM_MEDIA_TYPE, headers=merged)
