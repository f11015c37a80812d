"""Tests for the n8n -> database sync pass and the cleanup jobs."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from clixen.clients.n8n_client import N8nClientError
from clixen.models.telemetry import SyncLog
from clixen.models.workflow import Workflow
from clixen.services.sync_service import SyncService
from conftest import FakeN8nClient, make_workflow_json


@pytest.fixture()
def n8n():
    return FakeN8nClient()


def _deployed(db, n8n, workflow_id, user_id="u1", active=True, name="Report"):
    full_name = f"[USR-{user_id}] {name}"
    remote = n8n.create_workflow(make_workflow_json(full_name))
    n8n.workflows[remote["id"]]["active"] = active
    workflow = Workflow(
        id=workflow_id,
        user_id=user_id,
        name=full_name,
        workflow_json=make_workflow_json(full_name),
        status="deployed",
        deployment_status="deployed",
        n8n_workflow_id=remote["id"],
        is_active=True,
    )
    db.add(workflow)
    db.commit()
    return workflow


class TestSyncWorkflow:

    def test_copies_execution_counters(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1")
        n8n.executions[workflow.n8n_workflow_id] = [
            {"id": "3", "status": "error", "startedAt": "2024-05-02T10:00:00Z"},
            {"id": "2", "status": "success", "startedAt": "2024-05-01T10:00:00Z"},
            {"id": "1", "status": "success", "startedAt": "2024-04-30T10:00:00Z"},
        ]

        outcome = SyncService(db, n8n).sync_workflow(workflow)

        assert outcome.status == "success"
        assert outcome.executions_updated == 3
        db.refresh(workflow)
        assert workflow.execution_count == 3
        assert workflow.successful_executions == 2
        assert workflow.failed_executions == 1
        assert workflow.last_execution_at == "2024-05-02T10:00:00Z"
        assert workflow.last_execution_status == "error"
        assert workflow.last_sync_at is not None

    def test_legacy_execution_shape(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1")
        n8n.executions[workflow.n8n_workflow_id] = [
            {"id": "2", "finished": True, "startedAt": "t2"},
            {"id": "1", "finished": False, "stoppedAt": "t1"},
        ]
        SyncService(db, n8n).sync_workflow(workflow)
        assert workflow.successful_executions == 1
        assert workflow.failed_executions == 1
        assert workflow.last_execution_status == "success"

    def test_inactive_in_n8n_becomes_draft(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1", active=False)
        outcome = SyncService(db, n8n).sync_workflow(workflow)
        assert outcome.status_changed is True
        assert workflow.status == "draft"
        assert workflow.is_active is True

    def test_missing_remote_is_error(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1")
        n8n.workflows.clear()
        outcome = SyncService(db, n8n).sync_workflow(workflow)
        assert outcome.status == "error"
        assert outcome.error == "Workflow not found in n8n"

    def test_undeployed_is_skipped(self, db, n8n):
        workflow = Workflow(id="wf-2", user_id="u1", name="[USR-u1] Draft", workflow_json={})
        assert SyncService(db, n8n).sync_workflow(workflow).status == "skipped"

    def test_client_error_is_returned(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1")
        n8n.fail_with = N8nClientError("n8n unreachable")
        outcome = SyncService(db, n8n).sync_workflow(workflow)
        assert outcome.status == "error"
        assert outcome.error == "n8n unreachable"


class TestSyncAll:

    def test_success_writes_log(self, db, n8n):
        first = _deployed(db, n8n, "wf-1")
        _deployed(db, n8n, "wf-2")
        n8n.executions[first.n8n_workflow_id] = [{"id": "1", "status": "success"}]

        result = SyncService(db, n8n).sync_all()

        assert result.status == "success"
        assert result.workflows_processed == 2
        assert result.successful_syncs == 2
        assert result.failed_syncs == 0
        assert result.executions_updated == 1

        log = db.query(SyncLog).one()
        assert log.sync_type == "workflow_sync"
        assert log.status == "success"
        assert log.workflows_processed == 2
        assert log.errors is None

    def test_partial_success(self, db, n8n):
        _deployed(db, n8n, "wf-1")
        broken = _deployed(db, n8n, "wf-2", name="Broken")
        del n8n.workflows[broken.n8n_workflow_id]

        result = SyncService(db, n8n).sync_all()

        assert result.status == "partial_success"
        assert result.successful_syncs == 1
        assert result.failed_syncs == 1
        assert result.errors == ["[USR-u1] Broken: Workflow not found in n8n"]
        assert json.loads(db.query(SyncLog).one().errors) == result.errors

    def test_scoped_to_user(self, db, n8n):
        _deployed(db, n8n, "wf-1", user_id="u1")
        _deployed(db, n8n, "wf-2", user_id="u2")

        result = SyncService(db, n8n).sync_all(user_id="u2")

        assert result.workflows_processed == 1
        assert db.query(SyncLog).one().user_id == "u2"

    def test_archived_are_not_synced(self, db, n8n):
        workflow = _deployed(db, n8n, "wf-1")
        workflow.is_active = False
        db.commit()
        assert SyncService(db, n8n).sync_all().workflows_processed == 0


class TestCleanup:

    def test_removes_old_inactive(self, db, n8n):
        old = _deployed(db, n8n, "wf-old")
        recent = _deployed(db, n8n, "wf-new")
        old.is_active = False
        old.updated_at = datetime.now(timezone.utc) - timedelta(hours=48)
        recent.is_active = False
        db.commit()
        old_remote = old.n8n_workflow_id

        result = SyncService(db, n8n).cleanup_inactive(max_age_hours=24)

        assert result.deleted == 1
        assert result.failed == 0
        assert old_remote not in n8n.workflows
        assert db.get(Workflow, "wf-old") is None
        assert db.get(Workflow, "wf-new") is not None

    def test_n8n_failure_keeps_row(self, db, n8n):
        old = _deployed(db, n8n, "wf-old")
        old.is_active = False
        old.updated_at = datetime.now(timezone.utc) - timedelta(hours=48)
        db.commit()
        n8n.fail_with = N8nClientError("n8n unreachable")

        result = SyncService(db, n8n).cleanup_inactive(max_age_hours=24)

        assert result.deleted == 0
        assert result.failed == 1
        assert db.get(Workflow, "wf-old") is not None


class TestLegacyCleanup:

    def _seed(self, n8n):
        n8n.create_workflow(make_workflow_json("[USR-u1] Mine"))
        legacy = n8n.create_workflow(make_workflow_json("Old demo"))
        n8n.workflows[legacy["id"]]["active"] = True
        return legacy["id"]

    def test_dry_run_counts_only(self, db, n8n):
        self._seed(n8n)
        result = SyncService(db, n8n).cleanup_legacy(dry_run=True)
        assert result.candidates == 1
        assert result.deleted == 0
        assert len(n8n.workflows) == 2

    def test_execute_deletes_unprefixed(self, db, n8n):
        legacy_id = self._seed(n8n)
        result = SyncService(db, n8n).cleanup_legacy(dry_run=False)
        assert result.deleted == 1
        assert legacy_id not in n8n.workflows
        assert [wf["name"] for wf in n8n.workflows.values()] == ["[USR-u1] Mine"]
