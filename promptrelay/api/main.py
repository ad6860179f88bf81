"""
Server entrypoint for the relay.

Architectural role:
- Configures process logging.
- Serves `promptrelay.api.http_api:app` with uvicorn.

Relevant environment variables:
- `RELAY_HOST` (default `127.0.0.1`), `RELAY_PORT` (default `8000`).
- `LOG_LEVEL` (default `INFO`).
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os

import uvicorn


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the server process."""
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def get_port() -> int:
    """Return the port from `RELAY_PORT`, or 8000 when unset or invalid."""
    try:
        return int(os.getenv("RELAY_PORT", "8000"))
    except ValueError:
        return 8000


def main():
    configure_logging()
    host = os.getenv("RELAY_HOST", "127.0.0.1")
    uvicorn.run(
        "promptrelay.api.http_api:app",
        host=host,
        port=get_port(),
        log_level=logging.getLevelName(logging.getLogger().level).lower(),
    )


if __name__ == "__main__":
    main()
