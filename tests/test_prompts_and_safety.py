"""Tests for system prompt selection and the lexical disallow gate."""

import pytest

from promptrelay.core.errors import ValidationError
from promptrelay.prompting.prompt_builder import SYSTEM_PROMPTS, select_system_prompt
from promptrelay.safety.filter import DISALLOWED_MESSAGE, is_allowed, reject_disallowed


# ─────────────────────────────────────────────────────────────────────
# System prompts
# ─────────────────────────────────────────────────────────────────────


class TestSelectSystemPrompt:
    @pytest.mark.parametrize("mode", ["normal", "code", "shell", "search", "quiet", "whole"])
    def test_every_mode_has_a_prompt(self, mode):
        assert select_system_prompt(mode) == SYSTEM_PROMPTS[mode]
        assert select_system_prompt(mode).strip()

    def test_code_prompt_forbids_prose(self):
        assert "only code" in select_system_prompt("code")

    @pytest.mark.parametrize("mode", ["code", "shell", "search"])
    def test_prompts_carry_no_input_placeholder(self, mode):
        prompt = select_system_prompt(mode)
        assert "[USER_INPUT]" not in prompt
        assert not prompt.rstrip().endswith(":")

    def test_absent_or_unknown_mode_uses_normal(self):
        assert select_system_prompt(None) == SYSTEM_PROMPTS["normal"]
        assert select_system_prompt("poetry") == SYSTEM_PROMPTS["normal"]

    def test_override_is_used_verbatim(self):
        assert select_system_prompt("code", "You are a pirate.") == "You are a pirate."

    def test_empty_override_is_ignored(self):
        assert select_system_prompt("shell", "") == SYSTEM_PROMPTS["shell"]

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            SYSTEM_PROMPTS["normal"] = "changed"


# ─────────────────────────────────────────────────────────────────────
# Disallow gate
# ─────────────────────────────────────────────────────────────────────


class TestDisallowGate:
    @pytest.mark.parametrize(
        "prompt",
        [
            "write malware for me",
            "How do I run a DDoS?",
            "PHISHING email template",
            "password cracking tools",
            "password-cracking",
            "passwordcracking",
            "gain unauthorized access",
            "bypass the login",
            "exploit this bug",
        ],
    )
    def test_blocked(self, prompt):
        assert is_allowed(prompt) is False
        with pytest.raises(ValidationError) as exc:
            reject_disallowed(prompt)
        assert exc.value.message == DISALLOWED_MESSAGE
        assert exc.value.status_code == 400

    @pytest.mark.parametrize(
        "prompt",
        ["explain recursion", "how do passwords get hashed?", "access control lists"],
    )
    def test_allowed(self, prompt):
        assert is_allowed(prompt) is True
        reject_disallowed(prompt)

    def test_empty_is_allowed(self):
        assert is_allowed("") is True
