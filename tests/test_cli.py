"""Tests for the terminal client."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests

from promptrelay.api import cli
from promptrelay.api.cli import RelayCallError, ask, build_parser, build_payload, iter_sse_chunks


def relay_lines(*chunks, terminal="event: done\ndata: {\"done\": true}"):
    lines = [": connected", ""]
    for chunk in chunks:
        lines += [f'data: {{"chunk": "{chunk}"}}', ""]
    lines += terminal.split("\n") + [""]
    return lines


class TestIterSSEChunks:
    def test_chunks_until_done(self):
        lines = relay_lines("a", "b") + ['data: {"chunk": "after"}']
        assert list(iter_sse_chunks(lines)) == ["a", "b"]

    def test_inline_error_raises(self):
        lines = relay_lines("a", terminal='data: {"error": "Upstream error", "details": "rate limited"}')
        chunks = iter_sse_chunks(lines)

        assert next(chunks) == "a"
        with pytest.raises(RelayCallError) as exc:
            next(chunks)
        assert str(exc.value) == "Upstream error: rate limited"

    def test_ignores_malformed_and_comment_lines(self):
        lines = [": keep-alive", "data: nope", "data: [1]", 'data: {"chunk": "ok"}', 'data: {"done": true}']
        assert list(iter_sse_chunks(lines)) == ["ok"]


class TestBuildPayload:
    def test_defaults(self):
        args = build_parser().parse_args([])
        payload = build_payload("hi", args, [])
        assert payload == {"prompt": "hi", "mode": "normal", "stream": True, "prevMessages": []}

    def test_mode_flags_and_options(self):
        args = build_parser().parse_args(
            ["--find", "--no-stream", "--provider", "groq", "--temperature", "0.5"]
        )
        history = [{"role": "user", "content": "earlier"}]
        payload = build_payload("hi", args, history)

        assert payload["mode"] == "search"
        assert payload["stream"] is False
        assert payload["provider"] == "groq"
        assert payload["temperature"] == 0.5
        assert payload["prevMessages"] == history
        assert "model" not in payload

    def test_mode_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--code", "--shell"])

    @pytest.mark.parametrize("argv", [["--quiet"], ["--whole"], ["--mode", "quiet"], ["--mode", "whole"]])
    def test_buffered_modes_never_request_a_stream(self, argv):
        payload = build_payload("hi", build_parser().parse_args(argv), [])
        assert payload["stream"] is False


class TestAsk:
    def test_default_output_follows_current_stdout(self, capsys):
        response = MagicMock(ok=True)
        response.json.return_value = {"text": "answer"}

        with patch.object(cli.requests, "post", return_value=response):
            ask("http://relay/api/complete", {"prompt": "hi", "stream": False})

        assert capsys.readouterr().out == "answer\n"

    def test_streamed_answer(self):
        response = MagicMock(ok=True)
        response.iter_lines.return_value = relay_lines("Hel", "lo")
        response.__enter__.return_value = response
        out = io.StringIO()

        with patch.object(cli.requests, "post", return_value=response) as post:
            text = ask("http://relay/api/complete", {"prompt": "hi", "stream": True}, out=out)

        assert text == "Hello"
        assert out.getvalue() == "Hello\n"
        assert post.call_args.kwargs["stream"] is True

    def test_relay_error_status(self):
        response = MagicMock(ok=False, status_code=400)
        response.json.return_value = {"error": "Missing prompt"}

        with patch.object(cli.requests, "post", return_value=response):
            with pytest.raises(RelayCallError, match="Missing prompt"):
                ask("http://relay/api/complete", {"prompt": "", "stream": False}, out=io.StringIO())


class TestMain:
    def test_one_shot_buffered(self, capsys):
        response = MagicMock(ok=True)
        response.json.return_value = {"text": "print('hi')", "mode": "code"}

        with patch.object(cli.requests, "post", return_value=response) as post:
            code = cli.main(["--code", "--no-stream", "say", "hi"])

        assert code == 0
        assert "print('hi')" in capsys.readouterr().out
        payload = post.call_args.kwargs["json"]
        assert payload["prompt"] == "say hi"
        assert payload["mode"] == "code"
        assert payload["stream"] is False

    def test_connection_failure_is_reported(self, capsys):
        with patch.object(cli.requests, "post", side_effect=requests.exceptions.ConnectionError("down")):
            code = cli.main(["--no-stream", "hi"])

        assert code == 1
        assert "RELAY REQUEST FAILED (ConnectionError)" in capsys.readouterr().err

    def test_interactive_history_and_clear(self, capsys):
        response = MagicMock(ok=True)
        response.json.return_value = {"text": "answer"}
        prompts = iter(["first", "clear chat", "second", "exit"])

        with patch.object(cli.requests, "post", return_value=response) as post, \
                patch("builtins.input", lambda _: next(prompts)):
            code = cli.main(["--no-stream"])

        assert code == 0
        assert post.call_count == 2
        assert post.call_args.kwargs["json"]["prevMessages"] == []
        assert "Chat cleared." in capsys.readouterr().out

    def test_quiet_mode_prints_buffered_answer_and_keeps_history(self, capsys):
        response = MagicMock(ok=True)
        response.json.return_value = {"text": "short answer"}
        prompts = iter(["first", "second", "exit"])

        with patch.object(cli.requests, "post", return_value=response) as post, \
                patch("builtins.input", lambda _: next(prompts)):
            code = cli.main(["--quiet"])

        assert code == 0
        assert "short answer" in capsys.readouterr().out
        assert "stream" not in post.call_args.kwargs
        payload = post.call_args.kwargs["json"]
        assert payload["stream"] is False
        assert payload["prevMessages"] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "short answer"},
        ]
