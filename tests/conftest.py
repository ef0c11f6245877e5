"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from app.clients.gemini_client import RewriteGateway
from app.clients.webhook_client import WebhookForwarder
from app.config import Settings
from app.core.rate_limiter import SlidingWindowRateLimiter, limiter
from app.core.request_store import RequestStore
from app.main import create_app
from app.services.relay import ReviewRelay
from app.utils.timezone import UTC

EDIT_URL = "https://workflow.test/webhook/edit-hook"
ACTION_URL = "https://workflow.test/webhook/action-hook"


class FakeClock:
    """Datetime clock advanced by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Float clock for the rate limiter."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class WebhookRecorder:
    """httpx MockTransport handler that records requests and replays a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: bytes = b'{"received": true}'
        self.content_type = "application/json"
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": self.content_type},
        )

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture(autouse=True)
def reset_slowapi_limiter():
    limiter.reset()
    yield


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="testing",
        base_url="http://relay.test/",
        n8n_webhook_url=EDIT_URL,
        n8n_action_webhook_url=ACTION_URL,
        gemini_api_key="",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def store(clock) -> RequestStore:
    return RequestStore(ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def rate_limiter(monotonic) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(max_requests=10, window_seconds=60, clock=monotonic)


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def forwarder(webhook) -> WebhookForwarder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook))
    return WebhookForwarder(edit_url=EDIT_URL, action_url=ACTION_URL, client=client)


@pytest.fixture
def relay(settings, store, rate_limiter, forwarder) -> ReviewRelay:
    return ReviewRelay(
        settings,
        store=store,
        rate_limiter=rate_limiter,
        forwarder=forwarder,
        gateway=RewriteGateway(api_key=""),
    )


@pytest.fixture
def make_client(settings) -> Callable[[ReviewRelay], TestClient]:
    def _make(relay: ReviewRelay) -> TestClient:
        return TestClient(create_app(settings=settings, relay=relay))
    return _make


@pytest.fixture
def client(make_client, relay) -> TestClient:
    return make_client(relay)
