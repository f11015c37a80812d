"""Poll n8n and copy workflow state and execution counters into the database.

n8n is the execution engine, the database is what the dashboard reads. A
sync pass walks every active deployed workflow, reads its ``active`` flag
and its last 100 executions, and writes the counters back. Each pass
appends one ``sync_logs`` row.

Also hosts the two cleanup jobs: removal of archived workflows after a
grace period, and removal of legacy n8n workflows that predate the
``[USR-...]`` naming convention.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..clients.n8n_client import N8nClient, N8nClientError
from ..models.telemetry import SyncLog
from ..models.workflow import Workflow
from ..repositories.workflow_repository import WorkflowRepository
from ..schemas.sync import CleanupResult, SyncResult
from .isolation import is_legacy
from .workflow_service import execution_failed, execution_succeeded

logger = logging.getLogger(__name__)

EXECUTION_SAMPLE_SIZE = 100


@dataclass
class WorkflowSyncOutcome:
    workflow_id: str
    status: str  # success, error, skipped
    executions_updated: int = 0
    status_changed: bool = False
    error: Optional[str] = None


class SyncService:

    def __init__(self, db: Session, n8n: N8nClient):
        self.db = db
        self.n8n = n8n
        self.repo = WorkflowRepository(db)

    def sync_workflow(self, workflow: Workflow) -> WorkflowSyncOutcome:
        """Refresh one row from n8n. Never raises; failures are returned."""
        outcome = WorkflowSyncOutcome(workflow_id=workflow.id, status="success")
        if not workflow.n8n_workflow_id:
            outcome.status = "skipped"
            return outcome

        try:
            remote = self.n8n.get_workflow(workflow.n8n_workflow_id)
            if remote is None:
                outcome.status = "error"
                outcome.error = "Workflow not found in n8n"
                logger.warning("n8n workflow not found: %s", workflow.n8n_workflow_id)
                return outcome

            current_status = "deployed" if remote.get("active") else "draft"
            if workflow.status != current_status:
                logger.info(
                    "Status updated for workflow %s: %s -> %s",
                    workflow.id, workflow.status, current_status,
                )
                workflow.status = current_status
                outcome.status_changed = True

            executions = self.n8n.list_executions(workflow.n8n_workflow_id, limit=EXECUTION_SAMPLE_SIZE)
            if executions:
                latest = executions[0]
                workflow.execution_count = len(executions)
                workflow.successful_executions = sum(1 for e in executions if execution_succeeded(e))
                workflow.failed_executions = sum(1 for e in executions if execution_failed(e))
                workflow.last_execution_at = latest.get("startedAt")
                workflow.last_execution_status = latest.get("status") or (
                    "success" if latest.get("finished") else None
                )
                outcome.executions_updated = len(executions)

            workflow.last_sync_at = datetime.now(timezone.utc)
            self.db.commit()
        except N8nClientError as e:
            self.db.rollback()
            outcome.status = "error"
            outcome.error = str(e)
            logger.warning("Error syncing workflow %s: %s", workflow.id, e)
        return outcome

    def sync_all(self, user_id: Optional[str] = None) -> SyncResult:
        """Sync every active deployed workflow, optionally for one user."""
        started = time.monotonic()
        processed = successful = failed = executions_updated = 0
        errors: List[str] = []

        try:
            workflows = self.repo.list_syncable(user_id)
            processed = len(workflows)
            for workflow in workflows:
                outcome = self.sync_workflow(workflow)
                if outcome.status == "success":
                    successful += 1
                    executions_updated += outcome.executions_updated
                elif outcome.status == "error":
                    failed += 1
                    errors.append(f"{workflow.name}: {outcome.error}")
            status = "partial_success" if failed else "success"
        except sqlalchemy.exc.SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Fatal sync error")
            errors.append(f"Fatal error: {e}")
            status = "error"

        duration_ms = int((time.monotonic() - started) * 1000)
        result = SyncResult(
            status=status,
            workflows_processed=processed,
            successful_syncs=successful,
            failed_syncs=failed,
            executions_updated=executions_updated,
            duration_ms=duration_ms,
            errors=errors,
        )
        logger.info(
            "Sync completed: %d successful, %d failed (%dms)",
            successful, failed, duration_ms,
            extra={"user_id": user_id, "sync_status": status},
        )
        self._write_log(result, user_id)
        return result

    def _write_log(self, result: SyncResult, user_id: Optional[str]) -> None:
        """Append a sync_logs row. Never raises."""
        try:
            self.db.add(SyncLog(
                sync_type="workflow_sync",
                user_id=user_id,
                status=result.status,
                workflows_processed=result.workflows_processed,
                successful_syncs=result.successful_syncs,
                failed_syncs=result.failed_syncs,
                executions_updated=result.executions_updated,
                duration_ms=result.duration_ms,
                errors=json.dumps(result.errors) if result.errors else None,
            ))
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError as e:
            logger.warning("Failed to write sync log: %s", e)
            self.db.rollback()

    def cleanup_inactive(self, max_age_hours: int = 24) -> CleanupResult:
        """Delete archived workflows older than *max_age_hours* from n8n and the database."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        deleted = failed = 0
        errors: List[str] = []

        for workflow in self.repo.list_inactive_before(cutoff):
            try:
                if workflow.n8n_workflow_id:
                    self.n8n.delete_workflow(workflow.n8n_workflow_id)
                self.repo.delete(workflow)
                self.db.commit()
                deleted += 1
            except N8nClientError as e:
                self.db.rollback()
                failed += 1
                errors.append(f"{workflow.id}: {e}")
                logger.warning("Failed to clean up workflow %s: %s", workflow.id, e)

        logger.info("Cleanup completed: %d deleted, %d failed", deleted, failed)
        return CleanupResult(deleted=deleted, failed=failed, errors=errors)

    def find_legacy(self) -> List[dict]:
        """n8n workflows whose names carry no ``[USR-`` prefix."""
        return [wf for wf in self.n8n.list_workflows() if is_legacy(wf.get("name", ""))]

    def cleanup_legacy(self, dry_run: bool = True) -> CleanupResult:
        """Delete legacy workflows from n8n. A dry run only counts them."""
        legacy = self.find_legacy()
        if dry_run:
            for wf in legacy:
                logger.info("Would delete legacy workflow %s (%s)", wf.get("id"), wf.get("name"))
            return CleanupResult(deleted=0, failed=0, errors=[], candidates=len(legacy))

        deleted = failed = 0
        errors: List[str] = []
        for wf in legacy:
            try:
                if wf.get("active"):
                    self.n8n.deactivate_workflow(wf["id"])
                self.n8n.delete_workflow(wf["id"])
                deleted += 1
            except N8nClientError as e:
                failed += 1
                errors.append(f"{wf.get('name')}: {e}")
        logger.info("Legacy cleanup: %d deleted, %d failed", deleted, failed)
        return CleanupResult(deleted=deleted, failed=failed, errors=errors, candidates=len(legacy))
