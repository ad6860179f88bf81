"""Request-to-upstream orchestration for the relay.

Architectural role:
    Provides the canonical entrypoint used by the HTTP adapter. Bridges request
    validation, prompt selection, provider resolution, and body composition to the
    transport (`promptrelay.llm.client`).

Model call flow:
    payload -> `CompletionRequest` -> disallow gate -> system prompt ->
    provider descriptor -> provider body -> `RelayClient`.

Ordering guarantee:
    The disallow gate runs before provider resolution, so a rejected prompt never
    resolves a descriptor or touches the network. Configuration failures are raised
    from `prepare`, before any streaming response has started.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping

from promptrelay.core.event_types import NormalizedEvent
from promptrelay.core.request_types import NON_STREAMING_MODES, CompletionRequest, parse_request
from promptrelay.llm.client import RelayClient
from promptrelay.llm.composer import compose
from promptrelay.llm.provider_config import ProviderDescriptor, RelayConfig
from promptrelay.prompting.prompt_builder import select_system_prompt
from promptrelay.safety.filter import reject_disallowed


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedCall:
    """A validated request with its resolved provider and composed body."""

    request: CompletionRequest
    descriptor: ProviderDescriptor
    body: dict[str, Any]


class RelayService:

    def __init__(self, config: RelayConfig, client: RelayClient | None = None):
        self.config = config
        self.client = client or RelayClient(timeout=config.settings.upstream_timeout)

    def parse(self, payload: Mapping[str, Any]) -> CompletionRequest:
        return parse_request(payload, self.config.settings.default_temperature)

    def prepare(self, request: CompletionRequest) -> PreparedCall:
        """Validate, resolve, and compose one call.

        Raises:
            ValidationError: Disallowed prompt content.
            ConfigurationError: Resolved provider has no credential.
        """
        reject_disallowed(request.prompt)
        system_prompt = select_system_prompt(request.mode, request.preprompt)
        descriptor = self.config.providers.resolve(request.provider_name, request.model_override)
        body = compose(request, descriptor, system_prompt)

        logger.info(
            "Relaying %s request to %s (model=%s, mode=%s)",
            "streaming" if request.streaming else "buffered",
            descriptor.name,
            descriptor.model,
            request.mode,
        )
        return PreparedCall(request=request, descriptor=descriptor, body=body)

    async def complete(self, call: PreparedCall) -> dict[str, str]:
        """Run a non-streaming call and build the `{text, mode?}` response."""
        text = await self.client.complete(call.descriptor, call.body)
        result = {"text": text}
        if call.request.mode not in NON_STREAMING_MODES:
            result["mode"] = call.request.mode
        return result

    def stream(self, call: PreparedCall) -> AsyncIterator[NormalizedEvent]:
        """Return the normalized event stream for a streaming call."""
        return self.client.stream_events(call.descriptor, call.body)
