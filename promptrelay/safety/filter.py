"""Rule-based lexical disallow gate.

Purpose:
    Provide a deterministic pre-resolution check that rejects prompts carrying
    obvious exploit/abuse keywords before any provider is resolved or contacted.

Validation model:
    - Rule-based only (case-insensitive regular expression), no classifier/model
      inference.
    - Keywords: exploit, ddos, malware, phishing, password cracking,
      unauthorized access, bypass. Multi-word keywords match with a space,
      hyphen, or nothing between the words.

Blocking behavior:
    - `is_allowed` returns a boolean gate.
    - `reject_disallowed` raises `ValidationError` (HTTP 400) on a match.

Bypass risk:
    Pattern matching is trivially bypassed by obfuscation, misspellings, or
    other languages, and it also blocks benign questions that mention a keyword.
    This is a best-effort filter, not a security boundary.
"""

import re

from promptrelay.core.errors import ValidationError


DISALLOWED_PATTERN = re.compile(
    r"(exploit|ddos|malware|phishing|password[\s-]?cracking|unauthorized[\s-]?access|bypass)",
    re.IGNORECASE,
)

DISALLOWED_MESSAGE = "Prompt contains disallowed content."


def is_allowed(prompt: str) -> bool:
    """Return whether a prompt passes the lexical disallow gate.

    Empty input is allowed here; emptiness is a request-validation concern
    handled by `promptrelay.core.request_types`.
    """
    if not prompt:
        return True
    return DISALLOWED_PATTERN.search(prompt) is None


def reject_disallowed(prompt: str) -> None:
    """Raise `ValidationError` when `prompt` matches the disallow pattern."""
    if not is_allowed(prompt):
        raise ValidationError(DISALLOWED_MESSAGE)
