"""
Interactive terminal client for the relay.

Architectural role:
- Talks to a running relay over HTTP (`/api/complete`); it never calls providers
  directly.
- Renders streamed chunks as they arrive, or a single buffered answer.

Request lifecycle (per user turn):
1. Read a prompt (from argv in one-shot mode, otherwise from stdin).
2. Handle local control commands (`exit`/`quit`, `clear chat`/`empty chat`).
3. POST the prompt plus in-memory prior turns as `prevMessages`.
4. Print chunks from the SSE stream, or the `text` field of the JSON response.

Error handling strategy:
- Relay error payloads are printed to stderr; the interactive loop continues.
- Connection failures are reported as sanitized `RELAY REQUEST FAILED` text.
- EOF and keyboard interrupts end the loop without a traceback.

Side effects:
- Prior turns live only in process memory and are dropped on exit.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import json
import os
import sys
from typing import Iterable, Iterator

import requests


DEFAULT_URL = "http://127.0.0.1:8000/api/complete"
MODE_CHOICES = ("normal", "code", "shell", "search", "quiet", "whole")
# The relay answers these modes with one JSON body even when streaming is requested.
BUFFERED_MODES = ("quiet", "whole")


class RelayCallError(Exception):
    """Error payload returned by the relay."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# =========================================================
# SSE PARSING
# =========================================================

def iter_sse_chunks(lines: Iterable[str]) -> Iterator[str]:
    """Yield chunk text from relay SSE lines until the terminal frame.

    Raises:
        RelayCallError: The stream ended with an inline error frame.
    """
    event = "message"
    for line in lines:
        if not line:
            event = "message"
            continue
        if line.startswith(":"):
            continue
        if line.startswith("event:"):
            event = line[6:].strip()
            continue
        if not line.startswith("data:"):
            continue

        try:
            data = json.loads(line[5:].strip())
        except ValueError:
            continue
        if not isinstance(data, dict):
            continue

        if event == "done" or data.get("done"):
            return
        if "error" in data:
            raise RelayCallError(str(data["error"]), data.get("details"))
        if isinstance(data.get("chunk"), str):
            yield data["chunk"]


# =========================================================
# RELAY CALLS
# =========================================================

def build_payload(prompt: str, args: argparse.Namespace, history: list[dict]) -> dict:
    payload = {
        "prompt": prompt,
        "mode": args.mode,
        "stream": not args.no_stream and args.mode not in BUFFERED_MODES,
        "prevMessages": list(history),
    }
    for key in ("provider", "model", "temperature", "preprompt"):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value
    return payload


def _raise_for_relay_error(response: requests.Response) -> None:
    if response.ok:
        return
    try:
        data = response.json()
    except ValueError:
        raise RelayCallError(f"HTTP {response.status_code}", response.text[:200])
    raise RelayCallError(str(data.get("error", f"HTTP {response.status_code}")), data.get("details"))


def ask(url: str, payload: dict, out=None) -> str:
    """Send one prompt to the relay, print the answer, and return its text."""
    out = out or sys.stdout
    if not payload.get("stream"):
        response = requests.post(url, json=payload, timeout=None)
        _raise_for_relay_error(response)
        text = str(response.json().get("text", ""))
        print(text, file=out)
        return text

    parts = []
    with requests.post(url, json=payload, stream=True, timeout=None) as response:
        _raise_for_relay_error(response)
        response.encoding = "utf-8"
        for chunk in iter_sse_chunks(response.iter_lines(decode_unicode=True)):
            parts.append(chunk)
            print(chunk, end="", flush=True, file=out)
    print(file=out)
    return "".join(parts)


def _run_turn(url: str, prompt: str, args: argparse.Namespace, history: list[dict]) -> bool:
    try:
        answer = ask(url, build_payload(prompt, args, history))
    except RelayCallError as err:
        print(f"\nRELAY ERROR: {err}", file=sys.stderr)
        return False
    except requests.exceptions.RequestException as err:
        print(f"\nRELAY REQUEST FAILED ({type(err).__name__})", file=sys.stderr)
        return False

    history.append({"role": "user", "content": prompt})
    history.append({"role": "assistant", "content": answer})
    return True


# =========================================================
# ARGUMENTS
# =========================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptrelay-cli", description="Terminal client for promptrelay.")
    parser.add_argument("prompt", nargs="*", help="One-shot prompt; omit for interactive mode.")
    parser.add_argument("--url", default=os.getenv("RELAY_URL", DEFAULT_URL))
    parser.add_argument("--provider")
    parser.add_argument("--model")
    parser.add_argument("--temperature", type=float)
    parser.add_argument("--preprompt")
    parser.add_argument("--no-stream", action="store_true")

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--mode", choices=MODE_CHOICES, default="normal")
    modes.add_argument("--code", dest="mode", action="store_const", const="code")
    modes.add_argument("--shell", dest="mode", action="store_const", const="shell")
    modes.add_argument("--find", dest="mode", action="store_const", const="search")
    modes.add_argument("--quiet", dest="mode", action="store_const", const="quiet")
    modes.add_argument("--whole", dest="mode", action="store_const", const="whole")
    return parser


# =========================================================
# MAIN APPLICATION LOOP
# =========================================================

def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    history: list[dict] = []

    if args.prompt:
        return 0 if _run_turn(args.url, " ".join(args.prompt), args, history) else 1

    print(f"promptrelay client ({args.url}). Type 'exit' to quit.\n")
    while True:
        try:
            prompt = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not prompt:
            continue
        if prompt.lower() in ("exit", "quit"):
            break
        if prompt.lower() in ("clear chat", "empty chat"):
            history.clear()
            print("Chat cleared.")
            continue

        _run_turn(args.url, prompt, args, history)
        print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
