"""
HTTP API adapter for the relay.

Architectural role:
- Expose the completion relay over HTTP (JSON or server-sent events).
- Merge query parameters and JSON body into one caller payload.
- Delegate validation, resolution, and upstream calls to `RelayService`.
- Map relay errors onto HTTP status codes.

Endpoint responsibilities:
- `GET|POST /api/complete`: one completion, streamed or buffered.
- `GET /api/providers`: configured providers and the default.
- `GET /health`: liveness probe.

API request lifecycle (`/api/complete`):
1. Read query parameters, then overlay the JSON body (body keys win).
2. Parse into `CompletionRequest` (mode flags, non-stream modes).
3. Apply the disallow gate, resolve the provider, compose the body.
4. Non-stream: return `{text, mode?}`.
   Stream: return SSE frames ending in exactly one terminal frame.

Error handling strategy:
- `ValidationError` -> 400, `ConfigurationError` -> 500, `UpstreamError` -> 502,
  all as `{error, details?}` JSON. These are raised before any SSE headers are sent.
- Once streaming has started, failures are reported inline by `sse_stream`.

Side effects:
- Loads environment variables at import time via `load_dotenv()`.
- The module-level `app` reads provider configuration once at import.
"""

from dotenv import load_dotenv

load_dotenv()

import json
import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from promptrelay.api.events import sse_stream
from promptrelay.core.errors import RelayError, ValidationError
from promptrelay.llm.provider_config import RelayConfig, load_config
from promptrelay.llm.service import RelayService


logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

router = APIRouter()


def get_service(request: Request) -> RelayService:
    return request.app.state.relay_service


async def read_payload(request: Request) -> dict:
    """Return query parameters overlaid with the JSON object body, if any."""
    payload = dict(request.query_params)

    raw = await request.body()
    if not raw.strip():
        return payload

    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    payload.update(body)
    return payload


# ============================================================
# Completion relay
# ============================================================

@router.api_route("/api/complete", methods=["GET", "POST"])
async def complete(request: Request, service: RelayService = Depends(get_service)):
    """
    Relay one completion request.

    Input validation behavior:
    - Missing/empty prompt, malformed fields, or disallowed content -> 400.
    - Resolved provider without credential -> 500.

    Response formatting:
    - Non-stream: `{"text": ..., "mode": ...}` (`mode` omitted for quiet/whole).
    - Stream: `text/event-stream` with `chunk` data frames and one terminal frame.
    """
    payload = await read_payload(request)
    completion = service.parse(payload)
    call = service.prepare(completion)

    if completion.streaming:
        return StreamingResponse(
            sse_stream(service.stream(call), request.is_disconnected),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return await service.complete(call)


# ============================================================
# Provider listing
# ============================================================

@router.get("/api/providers")
def list_providers(service: RelayService = Depends(get_service)):
    """Return configured providers without exposing credentials."""
    table = service.config.providers
    return {
        "default": table.default_name,
        "providers": [
            {
                "name": descriptor.name,
                "kind": descriptor.kind.value,
                "model": descriptor.model,
                "configured": descriptor.configured,
            }
            for descriptor in table
        ],
    }


@router.get("/health")
def health():
    return {"status": "ok"}


# ============================================================
# Application factory
# ============================================================

def create_app(config: RelayConfig | None = None, service: RelayService | None = None) -> FastAPI:
    """Build the FastAPI app around one immutable `RelayConfig`."""
    if service is None:
        service = RelayService(config or load_config())

    app = FastAPI(title="promptrelay")
    app.state.relay_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(service.config.settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def handle_relay_error(request: Request, exc: RelayError) -> JSONResponse:
        logger.debug("Request rejected with %s: %s", exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    app.include_router(router)
    return app


app = create_app()
