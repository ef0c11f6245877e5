"""
app/models.py — Pydantic data schemas
EditRequest (the stored entity), lifecycle enums, inbound request bodies
and outbound JSON responses. Wire format is camelCase.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ──────────────────────────────────────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────────────────────────────────────

class Action(str, Enum):
    EDIT = "edit"
    APPROVE = "approve"
    STOP = "stop"


# Actions routed to the separate action webhook
DECISION_ACTIONS = frozenset({Action.APPROVE, Action.STOP})


class RequestStatus(str, Enum):
    """Status reported by GET /status/{id}."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    NOT_FOUND = "not_found"


class LookupStatus(str, Enum):
    """Status the edit form is rendered with."""
    LOADED = "loaded"
    EXPIRED = "expired"
    NOT_FOUND = "notfound"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────────────────────────────────────────────────────────
# Stored entity
# ──────────────────────────────────────────────────────────────────────────────

class EditRequest(CamelModel):
    id: str
    contact_email: str = ""
    subject: str = ""
    body: str = ""
    action: Optional[Action] = None
    created_at: datetime
    submitted: bool = False
    submitted_at: Optional[datetime] = None

    @property
    def status(self) -> RequestStatus:
        return RequestStatus.SUBMITTED if self.submitted else RequestStatus.PENDING


# ──────────────────────────────────────────────────────────────────────────────
# Inbound bodies — parsed leniently from JSON or form-urlencoded dicts
# ──────────────────────────────────────────────────────────────────────────────

class _LenientBody(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        # None → "" and scalars → str; the action enum is validated separately
        if v is None:
            return ""
        if isinstance(v, (int, float, bool)):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v


class CreateBody(_LenientBody):
    """POST / and /create"""
    email: str = ""
    subject: str = ""
    body: str = ""


class SubmitBody(_LenientBody):
    """POST /submit/{id} (legacy direct submit)"""
    subject: str = ""
    body: str = ""


class WebhookBody(_LenientBody):
    """POST /webhook and /webhook/action"""
    request_id: str = ""
    email: str = ""
    subject: str = ""
    body: str = ""
    action: str = ""
    timestamp: str = ""
    source: str = ""


class RewriteBody(_LenientBody):
    """POST /api/rewrite"""
    current_body: str = ""
    feedback: str = ""


# ──────────────────────────────────────────────────────────────────────────────
# Outbound payloads
# ──────────────────────────────────────────────────────────────────────────────

class WebhookPayload(CamelModel):
    """JSON posted to the downstream workflow webhook."""
    request_id: Optional[str] = None
    email: str = ""
    subject: str = ""
    body: str = ""
    action: Action = Action.EDIT
    timestamp: str
    source: str


class CreateResponse(CamelModel):
    success: bool = True
    request_id: str
    edit_link: str
    email: str
    expires_in: str


class StatusResponse(CamelModel):
    found: bool
    status: RequestStatus
    subject: Optional[str] = None
    body: Optional[str] = None
    created_at: Optional[str] = None
    submitted_at: Optional[str] = None


class RewriteResponse(CamelModel):
    success: bool = True
    rewritten_body: str


class SubmitResponse(CamelModel):
    success: bool = True


class StoreStats(CamelModel):
    live: int = 0
    pending: int = 0
    submitted: int = 0


class HealthResponse(CamelModel):
    status: str
    service: str
    version: str
    store: StoreStats = Field(default_factory=StoreStats)
    rate_limited_clients: int = 0
    rewrite_enabled: bool = False
    webhooks_configured: dict[str, bool] = {}
