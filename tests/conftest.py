"""Shared test fixtures for promptrelay tests."""

import json

import pytest

from promptrelay.llm.provider_config import load_config


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

MOCK_COMPLETION_RESPONSE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "Recursion is when a function calls itself.",
            },
            "finish_reason": "stop",
        }
    ],
}


def openai_frame(text: str) -> str:
    """One OpenAI-style SSE delta frame."""
    payload = {"choices": [{"index": 0, "delta": {"content": text}}]}
    return f"data: {json.dumps(payload)}\n\n"


def sse_body(*texts: str, done: bool = True) -> bytes:
    body = "".join(openai_frame(t) for t in texts)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def parse_sse(raw: str) -> list[tuple[str, dict]]:
    """Parse relay SSE output into `(event_name, data)` pairs."""
    events = []
    for frame in raw.split("\n\n"):
        frame = frame.strip()
        if not frame or frame.startswith(":"):
            continue
        event_name = "message"
        data_lines = []
        for line in frame.splitlines():
            if line.startswith("event:"):
                event_name = line.split(":", 1)[1].strip()
            elif line.startswith("data:"):
                data_lines.append(line.split(":", 1)[1].strip())
        events.append((event_name, json.loads("\n".join(data_lines)) if data_lines else {}))
    return events


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_config(tmp_path):
    """Build a `RelayConfig` from an explicit environment, isolated from real key files."""
    def _make(**env):
        environ = {"RELAY_KEY_DIR": str(tmp_path / "keys"), **env}
        return load_config(environ)
    return _make


@pytest.fixture
def config(make_config):
    return make_config(OPENAI_API_KEY="sk-test", GEMINI_API_KEY="g-test")
