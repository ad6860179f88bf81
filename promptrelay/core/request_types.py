"""Completion request contracts.

Architectural role:
    Converts the loosely-typed caller payload (query parameters merged with a JSON
    body) into the immutable `CompletionRequest` consumed by the LLM layer.

Mode resolution:
    An explicit `mode` always wins. Otherwise the convenience flags are checked
    in fixed order: `code`, `shell`, `find` (-> `search`), `quiet`, `whole`.
    Unknown mode strings normalize to `normal`.

Streaming resolution:
    `quiet` and `whole` force non-streaming regardless of the `stream` flag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from promptrelay.core.errors import ValidationError


logger = logging.getLogger(__name__)

Mode = Literal["normal", "code", "shell", "search", "quiet", "whole"]

MODES: tuple[str, ...] = ("normal", "code", "shell", "search", "quiet", "whole")
NON_STREAMING_MODES = frozenset({"quiet", "whole"})

# Flag name -> mode, in precedence order.
MODE_FLAGS: tuple[tuple[str, str], ...] = (
    ("code", "code"),
    ("shell", "shell"),
    ("find", "search"),
    ("quiet", "quiet"),
    ("whole", "whole"),
)


@dataclass(frozen=True)
class Turn:
    role: str
    content: str

    def as_message(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """One caller request, constructed per call and discarded afterwards."""

    prompt: str
    temperature: float
    mode: Mode = "normal"
    provider_name: str | None = None
    model_override: str | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    prior_turns: tuple[Turn, ...] = ()
    streaming: bool = False
    preprompt: str | None = None


class PriorMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    content: str


class RelayRequestBody(BaseModel):
    """Wire schema for `/api/complete` (JSON body or query parameters)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    prompt: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    stream: bool = False
    mode: Optional[str] = None
    prev_messages: list[PriorMessage] = Field(default_factory=list, alias="prevMessages")
    preprompt: Optional[str] = None

    code: bool = False
    shell: bool = False
    find: bool = False
    quiet: bool = False
    whole: bool = False


def resolve_mode(body: RelayRequestBody) -> str:
    """Return the effective mode for a parsed request body."""
    if body.mode:
        mode = body.mode.strip().lower()
        if mode in MODES:
            return mode
        logger.debug("Unknown mode %r, using normal", body.mode)
        return "normal"

    for flag, mode in MODE_FLAGS:
        if getattr(body, flag):
            return mode

    return "normal"


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_request(
    payload: Mapping[str, Any],
    default_temperature: float,
) -> CompletionRequest:
    """Validate a merged caller payload and build a `CompletionRequest`.

    Args:
        payload: Query parameters merged with the JSON body (body keys win).
        default_temperature: Configured temperature used when the caller sends none.

    Returns:
        Immutable `CompletionRequest`.

    Raises:
        ValidationError: Malformed fields or a missing/empty prompt.
    """
    try:
        body = RelayRequestBody.model_validate(dict(payload))
    except SchemaValidationError as exc:
        issues = []
        for issue in exc.errors():
            loc = ".".join(str(part) for part in issue.get("loc", []))
            msg = issue.get("msg", "Invalid value")
            issues.append(f"{loc}: {msg}" if loc else msg)
        raise ValidationError("Invalid request", details="; ".join(issues)) from exc

    if not body.prompt or not body.prompt.strip():
        raise ValidationError("Missing prompt")

    mode = resolve_mode(body)
    streaming = body.stream and mode not in NON_STREAMING_MODES

    return CompletionRequest(
        prompt=body.prompt,
        temperature=body.temperature if body.temperature is not None else default_temperature,
        mode=mode,
        provider_name=_blank_to_none(body.provider),
        model_override=_blank_to_none(body.model),
        top_p=body.top_p,
        max_tokens=body.max_tokens,
        prior_turns=tuple(Turn(role=m.role, content=m.content) for m in body.prev_messages),
        streaming=streaming,
        preprompt=body.preprompt or None,
    )
