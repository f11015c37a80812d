"""Tests for the Supabase signup webhook."""

import hashlib
import hmac
import json

from clixen.api.webhooks import verify_signature
from clixen.core.config import settings
from clixen.models.workspace import UserWorkspace

URL = "/api/webhooks/supabase/signup"


def _payload(user_id="new-user", email="new@example.com", event="INSERT") -> bytes:
    return json.dumps({
        "type": event,
        "table": "users",
        "schema": "auth",
        "record": {"id": user_id, "email": email},
    }).encode()


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature:

    def test_valid(self):
        body = b'{"type": "INSERT"}'
        assert verify_signature(body, _sign(body, "s3cret"), "s3cret")

    def test_wrong_secret(self):
        body = b'{"type": "INSERT"}'
        assert not verify_signature(body, _sign(body, "other"), "s3cret")

    def test_missing_prefix(self):
        body = b"{}"
        digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        assert not verify_signature(body, digest, "s3cret")
        assert not verify_signature(body, "", "s3cret")


class TestSignupWebhook:

    def test_insert_assigns_folder_and_workspace(self, client, db):
        resp = client.post(URL, content=_payload(), headers={"Content-Type": "application/json"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "assigned"
        assert data["project_id"].startswith("CLIXEN-PROJ-")
        assert data["folder_id"].startswith("FOLDER-P")

        workspace = db.query(UserWorkspace).filter_by(user_id="new-user").one()
        assert workspace.workspace_name == "new's workspace"

    def test_repeat_delivery_is_idempotent(self, client):
        first = client.post(URL, content=_payload()).json()
        second = client.post(URL, content=_payload()).json()
        assert first["folder_id"] == second["folder_id"]

    def test_other_events_ignored(self, client):
        resp = client.post(URL, content=_payload(event="UPDATE"))
        assert resp.status_code == 200
        assert resp.json()["status"] == "ignored"

    def test_record_without_id(self, client):
        body = json.dumps({"type": "INSERT", "record": {"email": "x@example.com"}}).encode()
        resp = client.post(URL, content=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_malformed_body(self, client):
        resp = client.post(URL, content=b"not json")
        assert resp.status_code == 400

    def test_signature_required_when_secret_set(self, client, monkeypatch):
        monkeypatch.setattr(settings, "supabase_webhook_secret", "s3cret")
        body = _payload()

        rejected = client.post(URL, content=body, headers={"X-Webhook-Signature": _sign(body, "wrong")})
        assert rejected.status_code == 401
        assert rejected.json()["error"] == "WEBHOOK_VALIDATION_FAILED"

        accepted = client.post(URL, content=body, headers={"X-Webhook-Signature": _sign(body, "s3cret")})
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "assigned"
