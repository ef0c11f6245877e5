"""
tests/test_api.py — HTTP contract tests (FastAPI TestClient)
"""
from __future__ import annotations

import asyncio
import re
from unittest.mock import AsyncMock, patch

import httpx
from fastapi.testclient import TestClient

from app.clients.gemini_client import RewriteGateway
from app.core.errors import AuthenticationError
from app.models import Action, WebhookBody


def _create(client, **fields):
    payload = {"email": "a@b.com", "subject": "Hi", "body": "Hello"}
    payload.update(fields)
    resp = client.post("/create", json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()


# ──────────────────────────────────────────────────────────────────────────────
# Creation
# ──────────────────────────────────────────────────────────────────────────────

def test_create_returns_edit_link(client):
    data = _create(client)
    assert data["success"] is True
    assert re.fullmatch(r"[0-9a-f]{16}", data["requestId"])
    assert data["editLink"] == f"http://relay.test/edit/{data['requestId']}"
    assert data["email"] == "a@b.com"
    assert data["expiresIn"] == "24 hours"


def test_create_scenario_loaded_and_pending(client):
    request_id = _create(client)["requestId"]

    page = client.get(f"/edit/{request_id}")
    assert page.status_code == 200
    assert 'class="status-badge loaded"' in page.text
    assert 'value="Hi"' in page.text
    assert "Hello" in page.text

    status = client.get(f"/status/{request_id}").json()
    assert status["found"] is True
    assert status["status"] == "pending"
    assert status["subject"] == "Hi"
    assert status["body"] == "Hello"
    assert status["createdAt"].endswith("Z")
    assert status["submittedAt"] is None


def test_root_post_accepts_form_encoding(client):
    resp = client.post(
        "/",
        content="email=a%40b.com&subject=Form+subject&body=Form+body",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200
    status = client.get(f"/status/{resp.json()['requestId']}").json()
    assert status["subject"] == "Form subject"


def test_garbage_body_creates_blank_request(client):
    resp = client.post("/create", content=b"{oops", headers={"content-type": "application/json"})
    assert resp.status_code == 200
    assert resp.json()["email"] == ""


def test_create_is_rate_limited_per_client(client):
    headers = {"X-Forwarded-For": "203.0.113.5"}
    for _ in range(10):
        assert client.post("/create", json={}, headers=headers).status_code == 200
    blocked = client.post("/create", json={}, headers=headers)
    assert blocked.status_code == 429
    assert blocked.json()["errorType"] == "rate_limited"
    other = client.post("/create", json={}, headers={"X-Forwarded-For": "203.0.113.6"})
    assert other.status_code == 200


# ──────────────────────────────────────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────────────────────────────────────

def test_unknown_id_is_404_everywhere(client):
    status = client.get("/status/ffffffffffffffff")
    assert status.status_code == 404
    assert status.json()["found"] is False
    assert status.json()["status"] == "not_found"

    page = client.get("/edit/ffffffffffffffff")
    assert page.status_code == 404
    assert 'class="status-badge notfound"' in page.text


def test_expired_link_renders_expired_without_content(client, clock):
    request_id = _create(client, body="secret draft")["requestId"]
    clock.advance(hours=25)
    page = client.get(f"/edit/{request_id}")
    assert page.status_code == 404
    assert 'class="status-badge expired"' in page.text
    assert "secret draft" not in page.text
    assert client.get(f"/status/{request_id}").status_code == 404


def test_form_escapes_draft_content(client):
    request_id = _create(client, subject='"><script>alert(1)</script>')["requestId"]
    page = client.get(f"/edit/{request_id}")
    assert "<script>alert(1)</script>" not in page.text
    assert "&lt;script&gt;" in page.text


# ──────────────────────────────────────────────────────────────────────────────
# Submission & forwarding
# ──────────────────────────────────────────────────────────────────────────────

def test_webhook_submission_finalizes_then_forwards(client, webhook, store):
    request_id = _create(client)["requestId"]
    webhook.status_code = 202
    webhook.body = b'{"workflow": "resumed"}'

    resp = client.post("/webhook", json={"requestId": request_id, "subject": "X", "body": "Y"})

    assert resp.status_code == 202
    assert resp.json() == {"workflow": "resumed"}
    entry = store.get(request_id)
    assert entry.submitted is True
    assert entry.subject == "X"
    assert entry.action == Action.EDIT

    sent = webhook.json_bodies()[0]
    assert sent["requestId"] == request_id
    assert sent["email"] == "a@b.com"  # filled from the stored request
    assert sent["action"] == "edit"
    assert sent["source"] == "email-editor"
    assert sent["timestamp"].endswith("Z")


def test_second_submission_is_silently_ignored(client, webhook, store, clock):
    request_id = _create(client)["requestId"]
    payload = {"requestId": request_id, "subject": "X", "body": "Y"}
    client.post("/webhook", json=payload)
    first = store.get(request_id).submitted_at

    clock.advance(minutes=3)
    again = client.post("/webhook", json=dict(payload, subject="Z"))

    assert again.status_code == 200
    assert again.json() == {"success": True}
    entry = store.get(request_id)
    assert entry.submitted_at == first
    assert entry.subject == "X"
    assert len(webhook.requests) == 1
    assert client.get(f"/status/{request_id}").json()["status"] == "submitted"


def test_stop_action_reaches_action_webhook_in_body_and_query(client, webhook):
    request_id = _create(client)["requestId"]
    resp = client.post(
        "/webhook/action",
        json={"requestId": request_id, "action": "stop", "subject": "Hi", "body": "Hello"},
    )
    assert resp.status_code == 200
    sent = webhook.requests[0]
    assert sent.url.path == "/webhook/action-hook"
    assert sent.url.params["action"] == "stop"
    assert sent.url.params["requestId"] == request_id
    assert sent.url.params["email"] == "a@b.com"
    assert webhook.json_bodies()[0]["action"] == "stop"


def test_approve_carries_latest_edited_text(client, webhook, store):
    request_id = _create(client)["requestId"]
    client.post(
        "/webhook/action",
        content=f"requestId={request_id}&action=approve&subject=Final&body=Edited",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    entry = store.get(request_id)
    assert (entry.subject, entry.body, entry.action) == ("Final", "Edited", Action.APPROVE)
    assert webhook.json_bodies()[0]["body"] == "Edited"


def test_action_endpoint_requires_decision(client, webhook):
    request_id = _create(client)["requestId"]
    for action in ("", "edit", "publish"):
        resp = client.post("/webhook/action", json={"requestId": request_id, "action": action, "body": "x"})
        assert resp.status_code == 400
        assert resp.json()["errorType"] == "validation_error"
    assert webhook.requests == []


def test_empty_subject_and_body_is_validation_error(client, store):
    request_id = _create(client)["requestId"]
    resp = client.post("/webhook", json={"requestId": request_id, "subject": " ", "body": ""})
    assert resp.status_code == 400
    assert store.get(request_id).submitted is False


def test_unknown_request_is_not_forwarded(client, webhook):
    resp = client.post("/webhook", json={"requestId": "ffffffffffffffff", "subject": "X"})
    assert resp.status_code == 404
    assert resp.json()["status"] == "not_found"
    assert webhook.requests == []


def test_webhook_without_request_id_forwards_as_is(client, webhook):
    resp = client.post("/webhook", json={"email": "c@d.com", "subject": "Standalone", "body": "B"})
    assert resp.status_code == 200
    sent = webhook.json_bodies()[0]
    assert sent["requestId"] is None
    assert sent["email"] == "c@d.com"


def test_delivery_failure_keeps_local_submission(client, webhook, store):
    request_id = _create(client)["requestId"]
    webhook.error = httpx.ConnectError("connection refused")

    resp = client.post("/webhook", json={"requestId": request_id, "subject": "X", "body": "Y"})

    assert resp.status_code == 500
    body = resp.json()
    assert body["errorType"] == "delivery_error"
    assert "connection refused" in body["details"]
    assert store.get(request_id).submitted is True


def test_remote_error_status_is_proxied(client, webhook):
    request_id = _create(client)["requestId"]
    webhook.status_code = 404
    webhook.body = b'{"message": "webhook not registered"}'
    resp = client.post("/webhook", json={"requestId": request_id, "subject": "X"})
    assert resp.status_code == 404
    assert resp.json() == {"message": "webhook not registered"}


def test_legacy_submit_finalizes_without_forwarding(client, webhook, store):
    request_id = _create(client)["requestId"]
    resp = client.post(f"/submit/{request_id}", json={"subject": "S", "body": "B"})
    assert resp.json() == {"success": True}
    assert store.get(request_id).subject == "S"
    assert webhook.requests == []
    assert client.post("/submit/ffffffffffffffff", json={"subject": "S"}).status_code == 404


def test_stop_without_text_keeps_stored_draft(client, webhook, store):
    request_id = _create(client)["requestId"]

    resp = client.post("/webhook/action", json={"requestId": request_id, "action": "stop"})

    assert resp.status_code == 200
    entry = store.get(request_id)
    assert (entry.subject, entry.body, entry.action) == ("Hi", "Hello", Action.STOP)
    sent = webhook.json_bodies()[0]
    assert (sent["subject"], sent["body"]) == ("Hi", "Hello")


def test_unknown_id_wins_over_empty_content(client, webhook):
    assert client.post("/submit/ffffffffffffffff", json={}).status_code == 404
    assert client.post("/webhook", json={"requestId": "ffffffffffffffff"}).status_code == 404
    assert webhook.requests == []


def test_concurrent_decisions_forward_once(relay, webhook, store):
    request_id = store.create("a@b.com", "Hi", "Hello")

    async def race():
        bodies = [
            WebhookBody(request_id=request_id, subject=f"s{n}", body="b", action="approve")
            for n in range(5)
        ]
        return await asyncio.gather(*(relay.submit_decision(b, decision_only=True) for b in bodies))

    asyncio.run(race())
    assert len(webhook.requests) == 1


# ──────────────────────────────────────────────────────────────────────────────
# AI rewrite
# ──────────────────────────────────────────────────────────────────────────────

def test_rewrite_without_key_is_configuration_error(client):
    resp = client.post("/api/rewrite", json={"currentBody": "hey send it", "feedback": "make it formal"})
    assert resp.status_code == 503
    assert resp.json()["success"] is False
    assert resp.json()["errorType"] == "configuration_error"


def test_rewrite_requires_body_and_feedback(client):
    resp = client.post("/api/rewrite", json={"currentBody": "", "feedback": "formal"})
    assert resp.status_code == 400


def test_rewrite_success_does_not_touch_store(relay, make_client, store):
    request_id = store.create("a@b.com", "Hi", "hey send it")
    relay.gateway = RewriteGateway(api_key="test-key")
    with patch.object(relay.gateway, "rewrite", AsyncMock(return_value="Dear team, please send it.")):
        resp = make_client(relay).post(
            "/api/rewrite", json={"currentBody": "hey send it", "feedback": "make it formal"}
        )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "rewrittenBody": "Dear team, please send it."}
    assert store.get(request_id).body == "hey send it"


def test_rewrite_provider_errors_keep_their_category(relay, make_client):
    error = AuthenticationError("AI provider rejected the API key.")
    with patch.object(relay.gateway, "rewrite", AsyncMock(side_effect=error)):
        resp = make_client(relay).post("/api/rewrite", json={"currentBody": "a", "feedback": "b"})
    assert resp.status_code == 502
    assert resp.json()["error"] == "AI provider rejected the API key."
    assert resp.json()["errorType"] == "authentication_error"


# ──────────────────────────────────────────────────────────────────────────────
# Surface: info, CORS, lifespan
# ──────────────────────────────────────────────────────────────────────────────

def test_root_info_and_health(client):
    _create(client)
    info = client.get("/").json()
    assert info["status"] == "ok"
    assert info["store"]["pending"] == 1
    assert info["rewriteEnabled"] is False
    assert info["webhooksConfigured"] == {"edit": True, "action": True}
    assert client.get("/api/health").json()["store"]["live"] == 1
    assert client.get("/api/ping").json()["status"] == "ok"


def test_cors_headers_on_every_response(client):
    resp = client.get("/status/ffffffffffffffff")
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert resp.headers["access-control-allow-headers"] == "Content-Type"


def test_options_anywhere_is_ok(client):
    assert client.options("/webhook").status_code == 200
    preflight = client.options(
        "/create",
        headers={"Origin": "https://mail.example", "Access-Control-Request-Method": "POST"},
    )
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "*"


def test_preflight_with_extra_request_headers_is_ok(client):
    preflight = client.options(
        "/webhook",
        headers={
            "Origin": "https://mail.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type, x-requested-with",
        },
    )
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "*"


def test_unexpected_error_is_500_with_cors_headers(relay, client):
    with patch.object(relay, "status", side_effect=RuntimeError("boom")):
        resp = client.get("/status/0123456789abcdef")
    assert resp.status_code == 500
    assert resp.json()["errorType"] == "internal_error"
    assert "boom" not in resp.text
    assert resp.headers["access-control-allow-origin"] == "*"


def test_lifespan_starts_and_stops_sweeps(settings, relay):
    from app.main import create_app

    with TestClient(create_app(settings=settings, relay=relay)) as client:
        assert relay.sweeper.running
        assert client.get("/api/ping").status_code == 200
    assert not relay.sweeper.running
