"""
app/clients/webhook_client.py — Downstream workflow (n8n) webhook forwarder
edit → edit webhook; approve/stop → action webhook with action, requestId
and email mirrored into the query string. No retries: workflow triggers
are not idempotent on the receiving side.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core import logging as app_logging
from app.core.errors import UpstreamDeliveryError
from app.models import DECISION_ACTIONS, WebhookPayload


@dataclass
class WebhookResult:
    """Remote response, relayed to the caller verbatim."""
    status_code: int
    body: bytes
    content_type: str = "application/json"

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class WebhookForwarder:
    """
    POSTs finalized decisions to the workflow engine.

    The httpx client is created on first use, shared for the lifetime of the
    app and closed by the lifespan handler. Pass a client built on
    httpx.MockTransport in tests.
    """

    def __init__(
        self,
        edit_url: str,
        action_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ) -> None:
        self.edit_url = edit_url
        self.action_url = action_url
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def target_for(self, payload: WebhookPayload) -> httpx.URL:
        """
        Endpoint for the payload's action. Decisions get action, requestId and
        email merged into the action webhook's existing query string.
        """
        if payload.action in DECISION_ACTIONS:
            return httpx.URL(self.action_url).copy_merge_params({
                "action": payload.action.value,
                "requestId": payload.request_id or "",
                "email": payload.email,
            })
        return httpx.URL(self.edit_url)

    async def forward(self, payload: WebhookPayload) -> WebhookResult:
        """
        Deliver the payload once.
        Any HTTP response (2xx–5xx) is returned as-is.
        Raises UpstreamDeliveryError when no response was received.
        """
        url = self.target_for(payload)
        endpoint = str(url).split("?", 1)[0]
        start = time.monotonic()
        try:
            response = await self.client.post(
                url,
                json=payload.model_dump(mode="json", by_alias=True),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            latency_ms = (time.monotonic() - start) * 1000
            app_logging.log_webhook_forward(
                request_id=payload.request_id,
                action=payload.action.value,
                target=endpoint,
                success=False,
                latency_ms=latency_ms,
                error=str(exc) or type(exc).__name__,
            )
            raise UpstreamDeliveryError(
                "Failed to forward to webhook",
                details={"details": str(exc) or type(exc).__name__},
            ) from exc

        latency_ms = (time.monotonic() - start) * 1000
        app_logging.log_webhook_forward(
            request_id=payload.request_id,
            action=payload.action.value,
            target=endpoint,
            success=response.is_success,
            latency_ms=latency_ms,
            status_code=response.status_code,
        )
        return WebhookResult(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type", "application/json"),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
