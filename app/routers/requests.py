"""
app/routers/requests.py — Edit request lifecycle endpoints
POST / | /create, GET /status/{id}, POST /submit/{id},
POST /webhook, POST /webhook/action.
Bodies are accepted as JSON or form-urlencoded.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from app.clients.webhook_client import WebhookResult
from app.core.rate_limiter import client_key
from app.models import (
    CreateBody,
    CreateResponse,
    StatusResponse,
    SubmitBody,
    SubmitResponse,
    WebhookBody,
)
from app.services.relay import ReviewRelay
from app.utils.validators import parse_model, parse_request_body

router = APIRouter()


def get_relay(request: Request) -> ReviewRelay:
    return request.app.state.relay


async def read_body(request: Request) -> dict[str, Any]:
    """Raw body → dict. Unparseable input is treated as empty."""
    raw = await request.body()
    return parse_request_body(raw, request.headers.get("content-type"))


def _relay_response(result: WebhookResult | SubmitResponse) -> Response | SubmitResponse:
    if isinstance(result, WebhookResult):
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.content_type,
        )
    return result


# ──────────────────────────────────────────────────────────────────────────────
# POST / and /create — issue an edit link
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/", response_model=CreateResponse)
@router.post("/create", response_model=CreateResponse)
async def create_request(
    request: Request,
    relay: ReviewRelay = Depends(get_relay),
) -> CreateResponse:
    """Store a pending draft and return its single-use edit link. 429 when rate limited."""
    body = parse_model(CreateBody, await read_body(request), "create")
    return relay.create_request(body, client_key(request))


# ──────────────────────────────────────────────────────────────────────────────
# GET /status/{id}
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/status/{request_id}", response_model=StatusResponse)
async def request_status(
    request_id: str,
    relay: ReviewRelay = Depends(get_relay),
) -> StatusResponse:
    return relay.status(request_id)


# ──────────────────────────────────────────────────────────────────────────────
# POST /submit/{id} — legacy direct submit, no forwarding
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/submit/{request_id}", response_model=SubmitResponse)
async def submit_request(
    request_id: str,
    request: Request,
    relay: ReviewRelay = Depends(get_relay),
) -> SubmitResponse:
    body = parse_model(SubmitBody, await read_body(request), "submit")
    return relay.submit_direct(request_id, body)


# ──────────────────────────────────────────────────────────────────────────────
# POST /webhook and /webhook/action — finalize, then proxy the workflow response
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/webhook")
async def forward_edit(
    request: Request,
    relay: ReviewRelay = Depends(get_relay),
):
    """Edit submission (action defaults to 'edit'). Remote status and body are returned verbatim."""
    body = parse_model(WebhookBody, await read_body(request), "webhook")
    return _relay_response(await relay.submit_decision(body))


@router.post("/webhook/action")
async def forward_action(
    request: Request,
    relay: ReviewRelay = Depends(get_relay),
):
    """approve / stop decision, mirrored into the action webhook's query string."""
    body = parse_model(WebhookBody, await read_body(request), "webhook/action")
    return _relay_response(await relay.submit_decision(body, decision_only=True))
