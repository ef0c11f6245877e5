"""
app/services/relay.py — Review relay service
Owns the request store, the creation rate limiter, the webhook forwarder,
the rewrite gateway and their periodic sweeps. Route handlers receive the
instance from app.state and never touch module-level state.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

from app.clients.gemini_client import RewriteGateway
from app.clients.webhook_client import WebhookForwarder, WebhookResult
from app.config import Settings, is_placeholder
from app.core import logging as app_logging
from app.core.errors import (
    RateLimitExceededError,
    RequestNotFoundError,
    SubmissionValidationError,
)
from app.core.rate_limiter import SlidingWindowRateLimiter
from app.core.request_store import RequestStore
from app.models import (
    Action,
    CreateBody,
    CreateResponse,
    DECISION_ACTIONS,
    EditRequest,
    HealthResponse,
    LookupStatus,
    RewriteBody,
    RewriteResponse,
    StatusResponse,
    SubmitBody,
    SubmitResponse,
    WebhookBody,
    WebhookPayload,
)
from app.services.cleanup import PeriodicSweeper, SweepJob
from app.utils.timezone import to_iso, utc_now

SERVICE_NAME = "email-review-relay"
VERSION = "1.0.0"


def _format_ttl(ttl: timedelta) -> str:
    hours = int(ttl.total_seconds() // 3600)
    if hours and ttl.total_seconds() % 3600 == 0:
        return f"{hours} hours" if hours != 1 else "1 hour"
    minutes = int(ttl.total_seconds() // 60)
    return f"{minutes} minutes"


def _parse_action(raw: str, default: Optional[Action] = None) -> Action:
    if not raw:
        if default is None:
            raise SubmissionValidationError("An action is required: 'approve' or 'stop'.")
        return default
    try:
        return Action(raw.lower())
    except ValueError:
        raise SubmissionValidationError(
            f"Unknown action {raw!r}. Expected one of: edit, approve, stop."
        ) from None


def _require_content(subject: str, body: str) -> None:
    if not subject and not body:
        raise SubmissionValidationError("Please enter at least a subject or body.")


class ReviewRelay:
    """
    Request lifecycle handlers:
        create_request → edit link
        lookup / status → read-only views
        submit_direct / submit_decision → finalize (+ forward)
        rewrite → AI gateway, no state change
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[RequestStore] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        forwarder: Optional[WebhookForwarder] = None,
        gateway: Optional[RewriteGateway] = None,
    ) -> None:
        self.settings = settings
        self.store = store if store is not None else RequestStore(
            ttl=timedelta(hours=settings.request_ttl_hours),
            id_bytes=settings.request_id_bytes,
        )
        self.rate_limiter = rate_limiter if rate_limiter is not None else SlidingWindowRateLimiter.from_rate(
            settings.create_rate_limit
        )
        self.forwarder = forwarder if forwarder is not None else WebhookForwarder(
            edit_url=settings.n8n_webhook_url,
            action_url=settings.n8n_action_webhook_url,
            timeout=settings.webhook_timeout_seconds,
        )
        self.gateway = gateway if gateway is not None else RewriteGateway(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.rewrite_timeout_seconds,
            max_output_tokens=settings.rewrite_max_output_tokens,
            temperature=settings.rewrite_temperature,
        )
        self.sweeper = PeriodicSweeper([
            SweepJob(
                name="request_store",
                interval_seconds=settings.store_sweep_interval_seconds,
                sweep=self.store.sweep,
                size=self.store.__len__,
            ),
            SweepJob(
                name="rate_limiter",
                interval_seconds=settings.limiter_sweep_interval_seconds,
                sweep=self.rate_limiter.sweep,
                size=self.rate_limiter.__len__,
            ),
        ])

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.forwarder.aclose()

    # ──────────────────────────────────────────────────────────────────────────
    # Creation & reads
    # ──────────────────────────────────────────────────────────────────────────

    def edit_link(self, request_id: str) -> str:
        return f"{self.settings.base_url}/edit/{request_id}"

    def create_request(self, body: CreateBody, client: str) -> CreateResponse:
        """Rate-limited per client. Raises RateLimitExceededError."""
        if not self.rate_limiter.allow(client):
            raise RateLimitExceededError()

        request_id = self.store.create(
            contact_email=body.email,
            subject=body.subject,
            body=body.body,
        )
        app_logging.log_request_created(request_id, client, has_email=bool(body.email))
        return CreateResponse(
            request_id=request_id,
            edit_link=self.edit_link(request_id),
            email=body.email,
            expires_in=_format_ttl(self.store.ttl),
        )

    def lookup(self, request_id: str) -> tuple[LookupStatus, Optional[EditRequest]]:
        return self.store.lookup(request_id)

    def status(self, request_id: str) -> StatusResponse:
        entry = self.store.get(request_id)
        if entry is None:
            raise RequestNotFoundError(request_id)
        return StatusResponse(
            found=True,
            status=entry.status,
            subject=entry.subject,
            body=entry.body,
            created_at=to_iso(entry.created_at),
            submitted_at=to_iso(entry.submitted_at),
        )

    # ──────────────────────────────────────────────────────────────────────────
    # Submission
    # ──────────────────────────────────────────────────────────────────────────

    def _live_entry(self, request_id: str) -> EditRequest:
        entry = self.store.get(request_id)
        if entry is None:
            raise RequestNotFoundError(request_id)
        return entry

    def submit_direct(self, request_id: str, body: SubmitBody) -> SubmitResponse:
        """Legacy path: finalize as an edit without forwarding."""
        self._live_entry(request_id)
        _require_content(body.subject, body.body)
        applied = self.store.finalize(request_id, body.subject, body.body, Action.EDIT)
        app_logging.log_submission(request_id, Action.EDIT.value, applied, via="submit")
        return SubmitResponse()

    async def submit_decision(
        self,
        body: WebhookBody,
        decision_only: bool = False,
    ) -> Union[WebhookResult, SubmitResponse]:
        """
        Finalize locally, then forward downstream.

        Local state commits before the forward, so a delivery failure leaves
        the request submitted. A repeat submission for an already-submitted
        id answers success and is neither stored nor forwarded.
        A stop without subject and body keeps the stored draft text.
        Without a requestId the payload is forwarded as-is (standalone form).
        """
        action = _parse_action(body.action, default=None if decision_only else Action.EDIT)
        if decision_only and action not in DECISION_ACTIONS:
            raise SubmissionValidationError("Action must be 'approve' or 'stop'.")

        entry = self._live_entry(body.request_id) if body.request_id else None
        if action is not Action.STOP:
            _require_content(body.subject, body.body)

        subject, text, email = body.subject, body.body, body.email
        if entry is not None:
            if not subject and not text:
                subject, text = entry.subject, entry.body
            email = email or entry.contact_email
            via = "webhook/action" if decision_only else "webhook"
            applied = self.store.finalize(entry.id, subject, text, action)
            app_logging.log_submission(entry.id, action.value, applied, via=via)
            if not applied:
                return SubmitResponse()

        payload = WebhookPayload(
            request_id=body.request_id or None,
            email=email,
            subject=subject,
            body=text,
            action=action,
            timestamp=body.timestamp or to_iso(utc_now()),
            source=body.source or self.settings.webhook_source,
        )
        return await self.forwarder.forward(payload)

    # ──────────────────────────────────────────────────────────────────────────
    # AI rewrite
    # ──────────────────────────────────────────────────────────────────────────

    async def rewrite(self, body: RewriteBody) -> RewriteResponse:
        if not body.current_body:
            raise SubmissionValidationError("There is no email body to rewrite.")
        if not body.feedback:
            raise SubmissionValidationError("Please describe how the email should change.")
        rewritten = await self.gateway.rewrite(body.current_body, body.feedback)
        return RewriteResponse(rewritten_body=rewritten)

    # ──────────────────────────────────────────────────────────────────────────
    # Health
    # ──────────────────────────────────────────────────────────────────────────

    def health(self) -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=VERSION,
            store=self.store.stats(),
            rate_limited_clients=len(self.rate_limiter),
            rewrite_enabled=self.gateway.enabled,
            webhooks_configured={
                "edit": not is_placeholder(self.forwarder.edit_url),
                "action": not is_placeholder(self.forwarder.action_url),
            },
        )
