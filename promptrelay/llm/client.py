"""Upstream transport client for LLM requests.

Architectural role:
    Executes HTTP requests against a resolved provider and normalizes the result
    for the streaming and non-streaming paths.

Model invocation flow:
    `service.RelayService` -> `RelayClient.complete(...)` (one request/response
    cycle, single text result) or `RelayClient.stream_events(...)` (incremental
    `NormalizedEvent`s via `stream_decoder.decode_stream`).

Retry behavior:
    No retry loop is implemented. Each upstream call is attempted once. No timeout
    is enforced unless `RELAY_UPSTREAM_TIMEOUT` configures one.

Failure handling model:
    - Non-stream: non-success status or connection failure raises `UpstreamError`.
    - Stream: the same failures become one terminal `error` event; decoding is
      skipped entirely when the upstream status is not a success.
    Connection failure details are sanitized to the provider label and exception
    type; request URLs can embed credentials.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from promptrelay.core.errors import UpstreamError
from promptrelay.core.event_types import NormalizedEvent
from promptrelay.llm.provider_config import ProviderDescriptor, ProviderKind
from promptrelay.llm.stream_decoder import decode_stream, gemini_text


logger = logging.getLogger(__name__)

UPSTREAM_ERROR = "Upstream error"
UPSTREAM_LLM_ERROR = "Upstream LLM error"
UPSTREAM_REQUEST_FAILED = "Upstream request failed"


def _sanitize_request_error(descriptor: ProviderDescriptor, err: httpx.RequestError) -> str:
    """Build provider-labeled connection failure text without raw internals."""
    label = str(descriptor.name or "provider").upper()
    return f"{label} REQUEST FAILED ({type(err).__name__})"


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _choice_text(data: dict) -> str:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    choice = choices[0]

    message = choice.get("message")
    if isinstance(message, dict) and _string(message.get("content")):
        return message["content"]
    if _string(choice.get("text")):
        return choice["text"]
    delta = choice.get("delta")
    if isinstance(delta, dict) and _string(delta.get("content")):
        return delta["content"]
    return ""


def extract_text(data: Any, kind: ProviderKind) -> str:
    """Extract one text result from a non-streaming provider response.

    Checked in order: Gemini candidates (Gemini kind only), chat-message
    content, plain text field, delta content, top-level `output` / `response`.
    When nothing matches, the whole payload is serialized so the caller always
    receives a non-empty result for a nominally successful call.
    """
    text = ""
    if isinstance(data, dict):
        if kind is ProviderKind.GEMINI:
            text = gemini_text(data)
        text = text or _choice_text(data)
        text = text or _string(data.get("output")) or _string(data.get("response"))
    elif isinstance(data, str):
        text = data

    if not text:
        text = json.dumps(data, ensure_ascii=False)
    return text


class RelayClient:
    """Per-call `httpx.AsyncClient` wrapper; holds no state between requests."""

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout)

    async def complete(self, descriptor: ProviderDescriptor, body: dict) -> str:
        """Perform one request/response cycle and return the extracted text.

        Raises:
            UpstreamError: Non-success status (carries status and body) or a
                failed connection.
        """
        try:
            async with self._http() as client:
                response = await client.post(
                    descriptor.url(streaming=False),
                    headers=descriptor.headers(),
                    json=body,
                )
        except httpx.RequestError as err:
            logger.warning("Upstream %s request failed: %s", descriptor.name, type(err).__name__)
            raise UpstreamError(
                UPSTREAM_REQUEST_FAILED,
                details=_sanitize_request_error(descriptor, err),
            ) from err

        if not response.is_success:
            logger.warning("Upstream %s returned HTTP %s", descriptor.name, response.status_code)
            raise UpstreamError(
                UPSTREAM_LLM_ERROR,
                details=response.text,
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = response.text
        return extract_text(data, descriptor.kind)

    async def stream_events(
        self,
        descriptor: ProviderDescriptor,
        body: dict,
    ) -> AsyncIterator[NormalizedEvent]:
        """Stream normalized events for one upstream call.

        Always ends with exactly one terminal event. Closing this generator early
        (caller disconnect) exits the `async with` blocks and releases the
        upstream connection without further reads.
        """
        terminal_sent = False
        try:
            async with self._http() as client:
                async with client.stream(
                    "POST",
                    descriptor.url(streaming=True),
                    headers=descriptor.headers(),
                    json=body,
                ) as response:
                    if not response.is_success:
                        raw = await response.aread()
                        details = raw.decode("utf-8", errors="replace")
                        logger.warning(
                            "Upstream %s returned HTTP %s", descriptor.name, response.status_code
                        )
                        yield NormalizedEvent.error(
                            UPSTREAM_ERROR,
                            status=response.status_code,
                            details=details,
                        )
                        return

                    async for event in decode_stream(response.aiter_bytes(), descriptor.kind):
                        terminal_sent = event.terminal
                        yield event
        except httpx.RequestError as err:
            logger.warning("Upstream %s stream failed: %s", descriptor.name, type(err).__name__)
            if terminal_sent:
                return
            yield NormalizedEvent.error(
                UPSTREAM_REQUEST_FAILED,
                details=_sanitize_request_error(descriptor, err),
            )
