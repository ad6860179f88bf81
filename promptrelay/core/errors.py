"""Relay error taxonomy.

Architectural role:
    Defines the exceptions that cross layer boundaries between request parsing,
    provider resolution, upstream transport, and the HTTP adapter.

Status mapping (consumed by `promptrelay.api.http_api`):
    - `ValidationError`    -> HTTP 400, raised before any network call.
    - `ConfigurationError` -> HTTP 500, raised before any network call.
    - `UpstreamError`      -> HTTP 502 carrying the upstream status (non-stream)
      or an inline terminal `error` event (stream).

Frames that fail structured parsing during stream decoding are not errors;
they are classified as fragments by `promptrelay.llm.stream_decoder` and passed
through as chunks.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for failures surfaced to the caller as `{error, details}`."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(RelayError):
    """Missing, malformed, or disallowed request input."""

    status_code = 400


class ConfigurationError(RelayError):
    """The resolved provider cannot be used with the process configuration."""

    status_code = 500


class UpstreamError(RelayError):
    """The upstream provider returned a non-success status or was unreachable."""

    status_code = 502

    def __init__(
        self,
        message: str,
        details: str | None = None,
        upstream_status: int | None = None,
    ):
        super().__init__(message, details)
        self.upstream_status = upstream_status

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.upstream_status is not None:
            payload["status"] = self.upstream_status
        if self.details:
            payload["details"] = self.details
        return payload
