"""Tests for SSE framing and stream close semantics."""

import json

import pytest

from promptrelay.api.events import (
    INTERNAL_STREAM_ERROR,
    OPENING_FRAME,
    SSEEmitter,
    encode_event,
    sse_stream,
)
from promptrelay.core.event_types import NormalizedEvent
from tests.conftest import parse_sse


async def events_from(*items, closed=None):
    try:
        for item in items:
            if isinstance(item, Exception):
                raise item
            yield item
    finally:
        if closed is not None:
            closed.append(True)


async def render(events, is_disconnected=None):
    return "".join([frame async for frame in sse_stream(events, is_disconnected)])


# ─────────────────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────────────────


class TestEncodeEvent:
    def test_chunk(self):
        assert encode_event(NormalizedEvent.chunk("hi")) == 'data: {"chunk": "hi"}\n\n'

    def test_done(self):
        assert encode_event(NormalizedEvent.done()) == 'event: done\ndata: {"done": true}\n\n'

    def test_error_with_status_and_details(self):
        frame = encode_event(NormalizedEvent.error("Upstream error", status=500, details="rate limited"))
        assert frame.startswith("data: ")
        assert json.loads(frame[6:]) == {"error": "Upstream error", "status": 500, "details": "rate limited"}

    def test_error_without_optional_fields(self):
        frame = encode_event(NormalizedEvent.error("Proxy failed"))
        assert json.loads(frame[6:]) == {"error": "Proxy failed"}

    def test_chunk_text_is_json_escaped(self):
        frame = encode_event(NormalizedEvent.chunk('line1\n\n"quoted"'))
        assert frame.count("\n\n") == 1
        assert json.loads(frame[6:])["chunk"] == 'line1\n\n"quoted"'


# ─────────────────────────────────────────────────────────────────────
# Emitter
# ─────────────────────────────────────────────────────────────────────


class TestSSEEmitter:
    def test_close_writes_done_once(self):
        emitter = SSEEmitter()
        assert emitter.close() == encode_event(NormalizedEvent.done())
        assert emitter.closed
        assert emitter.close() is None

    def test_emit_after_terminal_is_noop(self):
        emitter = SSEEmitter()
        emitter.emit(NormalizedEvent.error("boom"))
        assert emitter.emit(NormalizedEvent.chunk("late")) is None
        assert emitter.close() is None

    def test_close_with_error(self):
        emitter = SSEEmitter()
        frame = emitter.close(NormalizedEvent.error("boom"))
        assert json.loads(frame[6:]) == {"error": "boom"}


# ─────────────────────────────────────────────────────────────────────
# Stream driver
# ─────────────────────────────────────────────────────────────────────


class TestSSEStream:
    @pytest.mark.asyncio
    async def test_opening_frame_then_events(self):
        raw = await render(events_from(NormalizedEvent.chunk("a"), NormalizedEvent.done()))
        assert raw.startswith(OPENING_FRAME)
        assert parse_sse(raw) == [("message", {"chunk": "a"}), ("done", {"done": True})]

    @pytest.mark.asyncio
    async def test_missing_terminal_gets_done(self):
        raw = await render(events_from(NormalizedEvent.chunk("a")))
        assert parse_sse(raw) == [("message", {"chunk": "a"}), ("done", {"done": True})]

    @pytest.mark.asyncio
    async def test_events_after_terminal_are_dropped(self):
        closed = []
        raw = await render(
            events_from(
                NormalizedEvent.error("Upstream error", status=500),
                NormalizedEvent.chunk("late"),
                NormalizedEvent.done(),
                closed=closed,
            )
        )
        assert parse_sse(raw) == [("message", {"error": "Upstream error", "status": 500})]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_exception_mid_stream_yields_single_error(self):
        closed = []
        raw = await render(
            events_from(NormalizedEvent.chunk("a"), RuntimeError("kaput"), closed=closed)
        )
        assert parse_sse(raw) == [
            ("message", {"chunk": "a"}),
            ("message", {"error": INTERNAL_STREAM_ERROR}),
        ]
        assert "kaput" not in raw
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_disconnect_stops_and_closes_upstream(self):
        closed = []
        checks = []

        async def is_disconnected():
            checks.append(True)
            return True

        raw = await render(
            events_from(NormalizedEvent.chunk("a"), NormalizedEvent.chunk("b"), closed=closed),
            is_disconnected,
        )

        assert parse_sse(raw) == [("message", {"chunk": "a"})]
        assert closed == [True]
        assert len(checks) == 1

    @pytest.mark.asyncio
    async def test_early_aclose_releases_upstream(self):
        closed = []
        stream = sse_stream(events_from(NormalizedEvent.chunk("a"), NormalizedEvent.chunk("b"), closed=closed))

        assert await stream.__anext__() == OPENING_FRAME
        await stream.__anext__()
        await stream.aclose()

        assert closed == [True]
