"""Provider request body composition.

Model call flow:
    `CompletionRequest` + system prompt -> canonical chat body -> per-kind
    transform -> provider body.

Message ordering is fixed: `[system?, *prior_turns, user]`. The per-kind
transform only runs after the canonical message list is complete.

Parameter handling:
    - OpenAI-compatible: canonical body forwarded unchanged.
    - Gemini: messages collapse into one `"role: content"` text blob and sampling
      parameters map into `generationConfig`.
"""

from __future__ import annotations

from typing import Any

from promptrelay.core.request_types import CompletionRequest
from promptrelay.llm.provider_config import ProviderDescriptor, ProviderKind


def build_messages(request: CompletionRequest, system_prompt: str | None) -> list[dict]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.extend(turn.as_message() for turn in request.prior_turns)
    messages.append({"role": "user", "content": request.prompt})
    return messages


def _to_gemini(body: dict[str, Any]) -> dict[str, Any]:
    text = "\n".join(f"{m['role']}: {m['content']}" for m in body["messages"])
    gemini_body: dict[str, Any] = {
        "contents": [{"parts": [{"text": text}]}],
    }

    generation_config = {}
    if "temperature" in body:
        generation_config["temperature"] = body["temperature"]
    if "top_p" in body:
        generation_config["topP"] = body["top_p"]
    if "max_tokens" in body:
        generation_config["maxOutputTokens"] = body["max_tokens"]
    if generation_config:
        gemini_body["generationConfig"] = generation_config

    return gemini_body


def compose(
    request: CompletionRequest,
    descriptor: ProviderDescriptor,
    system_prompt: str | None,
) -> dict[str, Any]:
    """Build the provider-specific request body for one call.

    Args:
        request: Validated caller request.
        descriptor: Resolved provider (its `model` already reflects any override).
        system_prompt: Selected system prompt, or `None` to omit the system turn.

    Returns:
        JSON-serializable body for the provider.
    """
    body: dict[str, Any] = {
        "model": descriptor.model,
        "messages": build_messages(request, system_prompt),
        "temperature": request.temperature,
        "stream": request.streaming,
    }
    if request.top_p is not None:
        body["top_p"] = request.top_p
    if request.max_tokens is not None:
        body["max_tokens"] = request.max_tokens

    if descriptor.kind is ProviderKind.GEMINI:
        return _to_gemini(body)
    return body
