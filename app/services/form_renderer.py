"""
app/services/form_renderer.py — Edit form rendering
Pure function of (entry, status): no store access, no side effects.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.models import EditRequest, LookupStatus

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

STATUS_MESSAGES = {
    LookupStatus.LOADED: "Email loaded - ready to edit",
    LookupStatus.EXPIRED: "This edit link has expired",
    LookupStatus.NOT_FOUND: "Edit request not found",
}


@lru_cache()
def _get_jinja_env() -> Environment:
    """Build Jinja2 environment for the form template."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )


def render_edit_form(
    entry: Optional[EditRequest],
    status: LookupStatus,
    rewrite_enabled: bool = False,
) -> str:
    """
    Render the review form. Only a LOADED status shows editable content;
    expired and unknown links render the notice without any draft text.
    """
    loaded = status is LookupStatus.LOADED and entry is not None
    template = _get_jinja_env().get_template("edit_form.html")
    return template.render(
        status=status.value,
        status_message=STATUS_MESSAGES[status],
        loaded=loaded,
        already_submitted=bool(loaded and entry.submitted),
        request_id=entry.id if loaded else "",
        email=entry.contact_email if loaded else "",
        subject=entry.subject if loaded else "",
        body=entry.body if loaded else "",
        rewrite_enabled=rewrite_enabled,
        edit_endpoint="/webhook",
        action_endpoint="/webhook/action",
        rewrite_endpoint="/api/rewrite",
    )
