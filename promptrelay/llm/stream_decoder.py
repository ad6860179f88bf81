"""Incremental decoder for line-delimited upstream streams.

Architectural role:
    Turns the raw upstream byte stream (SSE-style `data: {...}` lines ending in a
    `[DONE]` sentinel) into provider-agnostic `NormalizedEvent`s.

State:
    One incremental UTF-8 decoder plus one pending-text buffer, carried across
    reads. Reads may split lines (and multi-byte characters) at any byte; the
    emitted event sequence does not depend on where the splits fall.

Per read:
    1. Decode the new bytes and append them to the buffer.
    2. Split on `\\n`; the last (possibly incomplete) fragment stays buffered.
    3. Strip a trailing `\\r` and a leading `data:` marker; skip blank lines.
    4. `[DONE]` -> `done`, and every later byte is ignored.
    5. JSON payload -> per-kind chunk extraction, `chunk` when non-empty.
       Unparseable line -> `chunk` carrying the raw text.

End of stream without a sentinel flushes the buffered tail and emits `done`.

Fragment pass-through:
    Some upstreams interleave non-JSON keep-alive or status lines that still
    carry text. These are forwarded verbatim instead of being dropped.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from typing import Any, AsyncIterator

from promptrelay.core.event_types import FrameKind, NormalizedEvent, StreamFrame
from promptrelay.llm.provider_config import ProviderKind


logger = logging.getLogger(__name__)

SENTINEL = "[DONE]"
LINE_PREFIX = re.compile(r"^data:\s*")


# ============================================================
# Frame classification
# ============================================================

def classify_line(line: str) -> StreamFrame | None:
    """Classify one complete upstream line, or return `None` for blank lines."""
    content = LINE_PREFIX.sub("", line, count=1)
    if not content.strip():
        return None

    if content.strip() == SENTINEL:
        return StreamFrame(FrameKind.SENTINEL, content)

    try:
        payload = json.loads(content)
    except ValueError:
        return StreamFrame(FrameKind.FRAGMENT, content)

    return StreamFrame(FrameKind.PAYLOAD, content, payload)


# ============================================================
# Chunk extraction (one case per provider kind)
# ============================================================

def gemini_text(payload: dict) -> str:
    """Concatenate `candidates[0].content.parts[*].text`."""
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def _content_of(value: Any) -> str:
    if isinstance(value, dict) and isinstance(value.get("content"), str):
        return value["content"]
    return ""


def extract_chunk(payload: Any, kind: ProviderKind) -> str:
    """Return the incremental text carried by one parsed frame, or `""`."""
    if not isinstance(payload, dict):
        return ""

    if kind is ProviderKind.GEMINI:
        return gemini_text(payload)

    choices = payload.get("choices")
    if isinstance(choices, list):
        if not choices or not isinstance(choices[0], dict):
            return ""
        choice = choices[0]
        text = _content_of(choice.get("delta")) or _content_of(choice.get("message"))
        if text:
            return text
        return choice["text"] if isinstance(choice.get("text"), str) else ""

    # Ollama native shape: {"message": {"content": ...}}
    return _content_of(payload.get("message"))


# ============================================================
# Decoder
# ============================================================

class StreamDecoder:
    """Synchronous line reassembly state machine for one upstream stream."""

    def __init__(self, kind: ProviderKind):
        self.kind = kind
        self.finished = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[NormalizedEvent]:
        """Consume one upstream read and return the events it completes."""
        if self.finished:
            return []
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def finish(self) -> list[NormalizedEvent]:
        """Flush at end of stream; always ends with `done` unless already finished."""
        if self.finished:
            return []
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        events = self._process(tail.split("\n"))
        if not self.finished:
            self.finished = True
            events.append(NormalizedEvent.done())
        return events

    def _process(self, lines: list[str]) -> list[NormalizedEvent]:
        events = []
        for line in lines:
            frame = classify_line(line.removesuffix("\r"))
            if frame is None:
                continue

            if frame.kind is FrameKind.SENTINEL:
                self.finished = True
                self._buffer = ""
                events.append(NormalizedEvent.done())
                break

            if frame.kind is FrameKind.PAYLOAD:
                text = extract_chunk(frame.payload, self.kind)
                if text:
                    events.append(NormalizedEvent.chunk(text))
            else:
                logger.debug("Forwarding unparseable frame %r", frame.text[:200])
                events.append(NormalizedEvent.chunk(frame.text))
        return events


async def decode_stream(
    reads: AsyncIterator[bytes],
    kind: ProviderKind,
) -> AsyncIterator[NormalizedEvent]:
    """Decode an async byte iterator into normalized events.

    The only suspension point is awaiting the next read; buffered lines are
    processed synchronously and in order. Stops reading as soon as the
    sentinel is seen. Always ends with exactly one `done` event.
    """
    decoder = StreamDecoder(kind)
    async for data in reads:
        for event in decoder.feed(data):
            yield event
        if decoder.finished:
            return

    for event in decoder.finish():
        yield event
