"""Workspace quotas.

Each user gets one workspace row holding their limits. Usage is counted on
demand from the workflow, project and telemetry tables; nothing is cached.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import QuotaExceededError, ValidationError
from ..models.workspace import UserWorkspace
from ..repositories.project_repository import ProjectRepository
from ..repositories.workflow_repository import WorkflowRepository
from ..schemas.assignment import QuotaLimits, QuotaResponse, QuotaUsage
from . import telemetry_service

logger = logging.getLogger(__name__)

QUOTA_ACTIONS = ("create_workflow", "execute_workflow", "create_project", "api_call")

# Telemetry event types counted against the daily API quota.
API_CALL_EVENTS = ("api_call",)


@dataclass(frozen=True)
class QuotaCheckResult:
    allowed: bool
    action: str
    current: int
    limit: int
    reason: str = ""

    @property
    def usage_percentage(self) -> float:
        if self.limit <= 0:
            return 100.0
        return round(self.current / self.limit * 100, 1)


class WorkspaceService:
    """Workspace creation, usage and quota checks."""

    def __init__(self, db: Session):
        self.db = db
        self.workflow_repo = WorkflowRepository(db)
        self.project_repo = ProjectRepository(db)

    def get_workspace(self, user_id: str) -> Optional[UserWorkspace]:
        return self.db.query(UserWorkspace).filter(UserWorkspace.user_id == user_id).first()

    def ensure_workspace(self, user_id: str, email: Optional[str] = None) -> UserWorkspace:
        """Return the user's workspace, creating it with default quotas if missing."""
        workspace = self.get_workspace(user_id)
        if workspace is not None:
            return workspace

        owner = (email or user_id).split("@")[0]
        workspace = UserWorkspace(
            id=f"ws-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            workspace_name=f"{owner}'s workspace",
            max_workflows=settings.default_max_workflows,
            max_executions=settings.default_max_executions,
            max_projects=settings.default_max_projects,
            max_api_calls_per_day=settings.default_max_api_calls_per_day,
            status="active",
        )
        self.db.add(workspace)
        self.db.commit()
        self.db.refresh(workspace)
        logger.info("Workspace created", extra={"user_id": user_id, "workspace_id": workspace.id})
        return workspace

    def usage(self, user_id: str) -> QuotaUsage:
        midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return QuotaUsage(
            workflows=self.workflow_repo.count_for_user(user_id),
            projects=self.project_repo.count_for_user(user_id),
            executions=self.workflow_repo.execution_total(user_id),
            api_calls_today=telemetry_service.count_since(
                self.db, user_id, midnight, event_types=API_CALL_EVENTS
            ),
        )

    def quota(self, user_id: str) -> QuotaResponse:
        workspace = self.ensure_workspace(user_id)
        return QuotaResponse(
            user_id=user_id,
            workspace_name=workspace.workspace_name,
            status=workspace.status,
            usage=self.usage(user_id),
            limits=QuotaLimits(
                max_workflows=workspace.max_workflows,
                max_projects=workspace.max_projects,
                max_executions=workspace.max_executions,
                max_api_calls_per_day=workspace.max_api_calls_per_day,
            ),
        )

    def check_quota(self, user_id: str, action: str) -> QuotaCheckResult:
        """Whether *action* fits in the user's remaining quota."""
        if action not in QUOTA_ACTIONS:
            raise ValidationError(f"Unknown quota action: {action}", field="action")

        workspace = self.ensure_workspace(user_id)
        if workspace.status != "active":
            return QuotaCheckResult(False, action, 0, 0, reason="Workspace is not active")

        usage = self.usage(user_id)
        if action == "create_workflow":
            current, limit, label = usage.workflows, workspace.max_workflows, "Workflow limit"
        elif action == "execute_workflow":
            current, limit, label = usage.executions, workspace.max_executions, "Execution limit"
        elif action == "create_project":
            current, limit, label = usage.projects, workspace.max_projects, "Project limit"
        else:
            current = usage.api_calls_today
            limit = workspace.max_api_calls_per_day or settings.default_max_api_calls_per_day
            label = "Daily API limit"

        if current >= limit:
            return QuotaCheckResult(False, action, current, limit, reason=f"{label} exceeded ({current}/{limit})")
        return QuotaCheckResult(True, action, current, limit)

    def enforce_quota(self, user_id: str, action: str) -> QuotaCheckResult:
        """Like ``check_quota`` but raises QuotaExceededError when not allowed."""
        result = self.check_quota(user_id, action)
        if not result.allowed:
            logger.warning(
                "Quota exceeded: %s", result.reason,
                extra={"user_id": user_id, "action": action},
            )
            raise QuotaExceededError(action, result.reason, result.current, result.limit)
        return result

    def record_api_call(self, user_id: str, operation: str) -> None:
        """Count one metered model call against the daily API quota."""
        telemetry_service.log(
            self.db, user_id, "api_call", "usage", data={"operation": operation}
        )
