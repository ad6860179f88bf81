"""System prompt selection by interaction mode.

This module is intentionally narrow: it only picks the system prompt text for a
request. Input validation, provider resolution, and message ordering happen
outside this module.

Design constraints:
    - Deterministic selection for identical inputs.
    - No hidden side effects (no I/O, no global state mutation).

Prompt override model:
    A caller-supplied `preprompt` replaces the table entry verbatim. This gives
    the caller full control of the persona; the lexical disallow gate still
    runs on the user prompt.
"""

from types import MappingProxyType
from typing import Optional


DEFAULT_MODE = "normal"


# =========================================================
# SYSTEM PROMPTS (BY MODE)
# =========================================================
# `quiet` and `whole` are non-streaming modes; their prompts only shape the
# length and completeness of the single buffered answer.
# The user prompt always travels as its own user turn, so no entry carries an
# input placeholder.

SYSTEM_PROMPTS = MappingProxyType({

    "normal": (
        "You are a knowledgeable, direct technical assistant.\n"
        "Answer accurately and concisely, using markdown, code blocks, and lists\n"
        "where they improve clarity.\n"
        "Acknowledge uncertainty instead of guessing.\n"
        "Decline requests that would cause harm or break the law."
    ),

    "code": (
        "Your role: provide only code as output, without any description.\n"
        "Provide only plain text, without markdown formatting.\n"
        "Do not include markdown fences or language identifiers.\n"
        "If details are missing, provide the most logical solution.\n"
        "You are not allowed to ask for more details.\n"
        "Follow security best practices in the code."
    ),

    "shell": (
        "Your role: provide only a shell command for the requested task.\n"
        "Provide only plain text, without markdown formatting.\n"
        "Do not show warnings or describe your capabilities.\n"
        "Do not provide any description.\n"
        "If details are missing, provide the most logical solution.\n"
        "Ensure the output is a valid shell command; combine multiple steps\n"
        "with && or pipes.\n"
        "Assume a Linux/Unix environment unless told otherwise."
    ),

    "search": (
        "You are a search assistant.\n"
        "Work out which information best answers the question and provide a\n"
        "factual, accurate, and comprehensive answer.\n"
        "Cite sources when you rely on them."
    ),

    "quiet": (
        "Provide a concise response without loading indicators or extra formatting."
    ),

    "whole": (
        "Provide a complete, well-structured response in a single answer."
    ),

})


def select_system_prompt(mode: Optional[str], override: Optional[str] = None) -> str:
    """Return the system prompt for `mode`, or `override` when supplied.

    Args:
        mode: Interaction mode; unknown or absent values fall back to `normal`.
        override: Caller-supplied system prompt used verbatim when non-empty.

    Returns:
        System prompt text.
    """
    if override:
        return override
    return SYSTEM_PROMPTS.get(mode or DEFAULT_MODE, SYSTEM_PROMPTS[DEFAULT_MODE])
