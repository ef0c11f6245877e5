"""
app/routers/editor.py — HTML edit form
GET /edit/{id} renders the form for loaded, expired and unknown links.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.models import LookupStatus
from app.routers.requests import get_relay
from app.services.form_renderer import render_edit_form
from app.services.relay import ReviewRelay

router = APIRouter()


@router.get("/edit/{request_id}", response_class=HTMLResponse)
async def edit_form(
    request_id: str,
    relay: ReviewRelay = Depends(get_relay),
) -> HTMLResponse:
    """Expired and unknown links render a notice with a 404 status."""
    status, entry = relay.lookup(request_id)
    html = render_edit_form(entry, status, rewrite_enabled=relay.gateway.enabled)
    status_code = 200 if status is LookupStatus.LOADED else 404
    return HTMLResponse(content=html, status_code=status_code)
