"""Stream frame and normalized event contracts.

Architectural role:
    Defines the data shared by the stream decoder (`promptrelay.llm.stream_decoder`),
    the request service (`promptrelay.llm.service`), and the SSE emitter
    (`promptrelay.api.events`).

Event protocol:
    A request produces zero or more `chunk` events followed by exactly one
    terminal event (`done` or `error`), which is always last.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FrameKind(str, Enum):
    SENTINEL = "sentinel"
    PAYLOAD = "payload"
    FRAGMENT = "fragment"


@dataclass(frozen=True)
class StreamFrame:
    """One decoded upstream line after prefix stripping.

    Attributes:
        kind: Sentinel, parsed structured payload, or unparseable fragment.
        text: Line content with the `data:` marker removed.
        payload: Parsed JSON value for `PAYLOAD` frames, otherwise `None`.
    """

    kind: FrameKind
    text: str
    payload: Any = None


class EventKind(str, Enum):
    CHUNK = "chunk"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class NormalizedEvent:
    kind: EventKind
    text: str = ""
    status: int | None = None
    details: str | None = None

    @classmethod
    def chunk(cls, text: str) -> "NormalizedEvent":
        return cls(EventKind.CHUNK, text)

    @classmethod
    def done(cls) -> "NormalizedEvent":
        return cls(EventKind.DONE)

    @classmethod
    def error(
        cls,
        message: str,
        status: int | None = None,
        details: str | None = None,
    ) -> "NormalizedEvent":
        return cls(EventKind.ERROR, message, status=status, details=details)

    @property
    def terminal(self) -> bool:
        return self.kind is not EventKind.CHUNK
