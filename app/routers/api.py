"""
app/routers/api.py — Programmatic API endpoints
Endpoints: /api/rewrite, /api/health, /api/ping
"""

from fastapi import APIRouter, Depends, Request

from app.core.rate_limiter import limiter, rewrite_rate_limit
from app.models import HealthResponse, RewriteBody, RewriteResponse
from app.routers.requests import get_relay, read_body
from app.services.relay import VERSION, ReviewRelay
from app.utils.validators import parse_model

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/rewrite — AI rewrite of the current draft
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/rewrite", response_model=RewriteResponse)
@limiter.limit(rewrite_rate_limit)
async def rewrite_draft(
    request: Request,
    relay: ReviewRelay = Depends(get_relay),
) -> RewriteResponse:
    """
    Rewrite currentBody according to feedback.
    Nothing is stored: the reviewer still has to submit the new text.
    Provider failures come back with their own errorType so the form can
    show the message and let the reviewer retry or give up on the rewrite.
    """
    body = parse_model(RewriteBody, await read_body(request), "rewrite")
    return await relay.rewrite(body)


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/health
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
async def health(relay: ReviewRelay = Depends(get_relay)) -> HealthResponse:
    return relay.health()


@router.get("/ping", tags=["health"])
async def ping():
    """Keep-alive probe. Does NOT call any external services."""
    return {"status": "ok", "version": VERSION}
