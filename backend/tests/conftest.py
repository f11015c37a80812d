"""Shared test fixtures for the Clixen backend test suite.

Tests run against an in-memory SQLite database; every test starts from
freshly created tables. n8n and OpenAI are replaced by in-process fakes,
so no external service is contacted.
"""

import os

# Force auth off, an in-memory database and no external services before any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
for _var in (
    "N8N_API_KEY", "CHAT_MODEL", "CHAT_API_KEY", "SUPABASE_URL", "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_JWT_SECRET", "SUPABASE_WEBHOOK_SECRET",
):
    os.environ[_var] = ""

import itertools
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from clixen.api.workflows import get_workflow_service
from clixen.clients import get_n8n_client
from clixen.clients.circuit_breaker import reset_all
from clixen.clients.n8n_client import N8nClient, N8nClientError
from clixen.core.config import settings
from clixen.core.token_factory import create_token
from clixen.database import Base, get_db, engine, SessionLocal
from clixen.main import app
from clixen.middleware.request_context import _rate_buckets
from clixen.services.workflow_generator import GeneratedWorkflow
from clixen.services.workflow_service import WorkflowService

TEST_USER = settings.dev_user_id


@pytest.fixture(autouse=True)
def _clean_state():
    """Recreate all tables and reset process-wide state before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    _rate_buckets.clear()
    reset_all()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


class FakeN8nClient(N8nClient):
    """In-memory n8n: workflows and executions live in dicts.

    Set ``fail_with`` to make every call raise that N8nClientError.
    """

    def __init__(self):
        super().__init__("http://n8n.test/api/v1", "test-key")
        self.workflows: Dict[str, Dict[str, Any]] = {}
        self.executions: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_with: Optional[N8nClientError] = None
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def list_workflows(self, active=None, limit=100):
        self._check()
        return [
            dict(wf) for wf in self.workflows.values()
            if active is None or wf.get("active") == active
        ]

    def get_workflow(self, workflow_id):
        self._check()
        wf = self.workflows.get(workflow_id)
        return dict(wf) if wf else None

    def create_workflow(self, workflow):
        self._check()
        n8n_id = f"n8n-{next(self._ids)}"
        record = dict(self.writable_payload(workflow), id=n8n_id, active=False)
        self.workflows[n8n_id] = record
        return dict(record)

    def update_workflow(self, workflow_id, workflow):
        self._check()
        if workflow_id not in self.workflows:
            raise N8nClientError("n8n API Error 404: Not Found", status_code=404)
        self.workflows[workflow_id].update(self.writable_payload(workflow))
        return dict(self.workflows[workflow_id])

    def delete_workflow(self, workflow_id):
        self._check()
        return self.workflows.pop(workflow_id, None) is not None

    def activate_workflow(self, workflow_id):
        return self._set_active(workflow_id, True)

    def deactivate_workflow(self, workflow_id):
        return self._set_active(workflow_id, False)

    def _set_active(self, workflow_id, active):
        self._check()
        if workflow_id not in self.workflows:
            raise N8nClientError("n8n API Error 404: Not Found", status_code=404)
        self.workflows[workflow_id]["active"] = active
        return dict(self.workflows[workflow_id])

    def list_executions(self, workflow_id=None, limit=20, status=None):
        self._check()
        return list(self.executions.get(workflow_id, []))[:limit]

    def health_check(self):
        return self.fail_with is None


class FakeGenerator:
    """Stands in for WorkflowGenerator; returns a copy of ``workflow``."""

    def __init__(self, workflow: Optional[dict] = None, error: Optional[Exception] = None):
        self.workflow = workflow or make_workflow_json()
        self.error = error
        self.prompts: List[str] = []

    def is_configured(self) -> bool:
        return True

    def generate(self, prompt: str, name: Optional[str] = None) -> GeneratedWorkflow:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        import copy
        workflow = copy.deepcopy(self.workflow)
        if name:
            workflow["name"] = name
        return GeneratedWorkflow(
            workflow_json=workflow,
            name=workflow["name"],
            description=f"Auto-generated workflow: {prompt}",
            model="test-model",
        )


@pytest.fixture()
def fake_n8n():
    return FakeN8nClient()


@pytest.fixture()
def fake_generator():
    return FakeGenerator()


@pytest.fixture()
def client(db, fake_n8n, fake_generator):
    """TestClient with the DB session and external clients replaced by test doubles."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_n8n_client] = lambda: fake_n8n
    app.dependency_overrides[get_workflow_service] = lambda: WorkflowService(
        db, n8n=fake_n8n, generator=fake_generator
    )
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> dict:
    """Valid bearer token for endpoints when auth is enabled."""
    token = create_token(
        subject="test-user",
        secret=settings.jwt_secret_key,
        role="admin",
        email="admin@example.com",
    )
    return {"Authorization": f"Bearer {token}"}


def make_workflow_json(name: str = "Weather report", **overrides) -> dict:
    """A small valid n8n workflow: webhook -> HTTP request -> email."""
    workflow = {
        "name": name,
        "nodes": [
            {
                "id": "1",
                "name": "Webhook",
                "type": "n8n-nodes-base.webhook",
                "typeVersion": 1,
                "position": [250, 300],
                "parameters": {"path": "weather", "httpMethod": "POST"},
            },
            {
                "id": "2",
                "name": "Fetch Weather",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 1,
                "position": [450, 300],
                "parameters": {"url": "https://api.example.com/weather"},
            },
            {
                "id": "3",
                "name": "Send Email",
                "type": "n8n-nodes-base.emailSend",
                "typeVersion": 1,
                "position": [650, 300],
                "parameters": {"toEmail": "me@example.com", "subject": "Weather"},
            },
        ],
        "connections": {
            "Webhook": {"main": [[{"node": "Fetch Weather", "type": "main", "index": 0}]]},
            "Fetch Weather": {"main": [[{"node": "Send Email", "type": "main", "index": 0}]]},
        },
        "settings": {},
    }
    workflow.update(overrides)
    return workflow


def make_project(client, name: str = "Automations") -> dict:
    resp = client.post("/api/projects", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()
