"""Server-sent event framing for the relay's push protocol.

Response formatting:
    - chunk -> `data: {"chunk": "..."}`
    - done  -> `event: done` + `data: {"done": true}`
    - error -> `data: {"error": "...", "status": 500, "details": "..."}`
    Each frame ends with a blank line and is yielded as soon as it is produced.

Close semantics:
    `SSEEmitter` writes at most one terminal frame. Once it has been written the
    emitter is closed; further `emit`/`close` calls return `None` and write
    nothing. `sse_stream` funnels every exit path (normal end, sentinel,
    upstream failure, unexpected exception) through `SSEEmitter.close`.
"""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Optional

from promptrelay.core.event_types import EventKind, NormalizedEvent


logger = logging.getLogger(__name__)

OPENING_FRAME = ": connected\n\n"
INTERNAL_STREAM_ERROR = "Proxy failed"


def encode_event(event: NormalizedEvent) -> str:
    if event.kind is EventKind.CHUNK:
        return f"data: {json.dumps({'chunk': event.text})}\n\n"

    if event.kind is EventKind.DONE:
        return f"event: done\ndata: {json.dumps({'done': True})}\n\n"

    payload = {"error": event.text}
    if event.status is not None:
        payload["status"] = event.status
    if event.details:
        payload["details"] = event.details
    return f"data: {json.dumps(payload)}\n\n"


class SSEEmitter:
    """Encodes events for one caller stream and tracks closure."""

    def __init__(self):
        self.closed = False

    def emit(self, event: NormalizedEvent) -> Optional[str]:
        if self.closed:
            return None
        if event.terminal:
            self.closed = True
        return encode_event(event)

    def close(self, error: Optional[NormalizedEvent] = None) -> Optional[str]:
        """Write the terminal frame (`done` unless `error` is given), once."""
        if self.closed:
            return None
        return self.emit(error or NormalizedEvent.done())


async def sse_stream(
    events: AsyncIterator[NormalizedEvent],
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for a normalized event stream.

    Side effects:
        - Checks client connection state after each frame and stops on disconnect.
        - Closes `events` on every exit so the upstream connection is released.

    Error handling:
        Unexpected exceptions become one inline `error` frame; the stream is then
        closed like any other.
    """
    emitter = SSEEmitter()
    yield OPENING_FRAME

    try:
        async with aclosing(events) as stream:
            async for event in stream:
                frame = emitter.emit(event)
                if frame:
                    yield frame
                if emitter.closed:
                    break
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Client disconnected during stream")
                    return
    except Exception:
        logger.exception("Relay stream failed")
        frame = emitter.close(NormalizedEvent.error(INTERNAL_STREAM_ERROR))
        if frame:
            yield frame
        return

    frame = emitter.close()
    if frame:
        yield frame
