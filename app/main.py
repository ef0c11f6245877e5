"""
app/main.py — FastAPI application entry point
Includes: lifespan management (periodic sweeps, webhook client shutdown),
CORS, rate limiting, security headers, request logging, error rendering.
"""

from contextlib import asynccontextmanager
import time
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import Settings, get_settings, is_placeholder
from app.core import logging as app_logging
from app.core.errors import InternalError, RelayError, RateLimitExceededError
from app.core.logging import setup_logging
from app.core.rate_limiter import limiter
from app.routers import api, editor, requests
from app.services.relay import SERVICE_NAME, VERSION, ReviewRelay

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: logging, config warnings, periodic sweeps.
    Shutdown: cancel sweeps, close the webhook HTTP client.
    """
    settings: Settings = app.state.settings
    relay: ReviewRelay = app.state.relay

    setup_logging(settings.log_level)
    logger.info(f"{SERVICE_NAME} {VERSION} starting up...")
    _validate_env(settings)

    relay.start()
    logger.info(f"Startup complete. Edit links: {settings.base_url}/edit/<id>")
    yield
    logger.info(f"Shutting down {SERVICE_NAME}.")
    await relay.stop()


def _validate_env(settings: Settings) -> None:
    """
    Warn about settings still holding placeholders. The app starts anyway;
    affected features answer with explicit errors until configured.
    """
    checks = [
        (settings.n8n_webhook_url, "N8N_WEBHOOK_URL", "edit submissions will fail to forward"),
        (settings.n8n_action_webhook_url, "N8N_ACTION_WEBHOOK_URL", "approve/stop will fail to forward"),
        (settings.gemini_api_key, "GEMINI_API_KEY", "AI rewriting is disabled"),
    ]
    for value, env_name, effect in checks:
        if is_placeholder(value):
            logger.warning(f"{env_name} is not set: {effect}.")


# ──────────────────────────────────────────────────────────────────────────────
# Error rendering
# ──────────────────────────────────────────────────────────────────────────────

async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        app_logging.log_error("http", f"{request.method} {request.url.path}", exc)
    else:
        logger.debug(f"{request.method} {request.url.path} → {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _slowapi_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    error = RateLimitExceededError()
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    app_logging.log_error("http", f"{request.method} {request.url.path}", exc)
    error = InternalError("Internal server error")
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    relay: Optional[ReviewRelay] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Email Review Relay",
        description=(
            "Human-in-the-loop email review: single-use edit links, AI rewrite, "
            "and decision forwarding to a workflow webhook."
        ),
        version=VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay = relay if relay is not None else ReviewRelay(settings)

    # ── Rate limiting — slowapi (rewrite endpoint) ────────────────────────────
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _slowapi_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(RelayError, _relay_error_handler)

    # ── CORS — any origin; preflights never rejected ──────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── CORS + security headers on every response, request log ───────────────
    # Unhandled errors are rendered here so 500s carry the same headers.
    @app.middleware("http")
    async def add_response_headers(request: Request, call_next) -> Response:
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as exc:
            response = await _unhandled_error_handler(request, exc)
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        app_logging.log_http_request(
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - start) * 1000,
        )
        return response

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(api.router, prefix="/api", tags=["api"])
    app.include_router(editor.router, tags=["editor"])
    app.include_router(requests.router, tags=["requests"])

    @app.get("/", tags=["health"])
    async def root(request: Request):
        """Service info; POST / creates an edit request."""
        info = request.app.state.relay.health().model_dump(by_alias=True)
        info["endpoints"] = {
            "create": "POST / or /create",
            "edit": "GET /edit/{id}",
            "status": "GET /status/{id}",
            "submit": "POST /submit/{id}",
            "webhook": "POST /webhook",
            "action": "POST /webhook/action",
            "rewrite": "POST /api/rewrite",
        }
        return info

    @app.options("/{full_path:path}", include_in_schema=False)
    async def preflight(full_path: str) -> Response:
        return Response(status_code=200)

    return app


app = create_app()
