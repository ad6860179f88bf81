"""Relay API adapter package.

Architectural role:
- Defines the external interaction boundary: the HTTP app, its SSE framing, the
  server entrypoint, and a terminal client.
- Performs transport-level payload merging and response shaping.
- Delegates validation, provider resolution, and upstream calls to `promptrelay.llm`.
"""
