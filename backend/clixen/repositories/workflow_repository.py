"""Repository for workflow and deployment database operations."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func

from .base import BaseRepository
from ..exceptions import WorkflowNotFoundError
from ..models.workflow import Workflow, Deployment


class WorkflowRepository(BaseRepository[Workflow]):
    """Data access layer for workflows."""

    model_class = Workflow
    not_found_error = WorkflowNotFoundError

    def add(self, workflow: Workflow) -> Workflow:
        self.db.add(workflow)
        self.db.flush()
        return workflow

    def list_for_user(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Workflow]:
        query = self.db.query(Workflow).filter(Workflow.user_id == user_id)
        if project_id:
            query = query.filter(Workflow.project_id == project_id)
        if not include_archived:
            query = query.filter(Workflow.status != "archived")
        return (
            query.order_by(Workflow.created_at.desc(), Workflow.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_for_user(self, user_id: str) -> int:
        """Live (non-archived) workflows counted against the quota."""
        return (
            self.db.query(Workflow)
            .filter(Workflow.user_id == user_id, Workflow.status != "archived")
            .count()
        )

    def execution_total(self, user_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(Workflow.execution_count), 0))
            .filter(Workflow.user_id == user_id)
            .scalar()
        )
        return int(total or 0)

    def list_syncable(self, user_id: Optional[str] = None) -> List[Workflow]:
        """Active workflows that exist in n8n."""
        query = self.db.query(Workflow).filter(
            Workflow.is_active.is_(True),
            Workflow.n8n_workflow_id.isnot(None),
        )
        if user_id:
            query = query.filter(Workflow.user_id == user_id)
        return query.order_by(Workflow.id).all()

    def list_inactive_before(self, cutoff: datetime) -> List[Workflow]:
        return (
            self.db.query(Workflow)
            .filter(Workflow.is_active.is_(False), Workflow.updated_at < cutoff)
            .order_by(Workflow.id)
            .all()
        )

    def delete(self, workflow: Workflow) -> None:
        self.db.delete(workflow)
        self.db.flush()

    def record_deployment(
        self,
        workflow: Workflow,
        n8n_workflow_id: str,
        deployment_url: str,
        activated: bool,
    ) -> Deployment:
        deployment = Deployment(
            user_id=workflow.user_id,
            workflow_id=workflow.id,
            n8n_workflow_id=n8n_workflow_id,
            deployment_version=workflow.version,
            status="deployed",
            deployment_url=deployment_url,
            activated=activated,
        )
        self.db.add(deployment)
        self.db.flush()
        return deployment


    def deployments_for(self, workflow_id: str) -> List[Deployment]:
        """Deployment history, newest first."""
        return (
            self.db.query(Deployment)
            .filter(Deployment.workflow_id == workflow_id)
            .order_by(Deployment.id.desc())
            .all()
        )

    def mark_rolled_back(self, workflow_id: str, message: str) -> int:
        """Flag every live deployment of the workflow as rolled back. Returns the count."""
        return (
            self.db.query(Deployment)
            .filter(Deployment.workflow_id == workflow_id, Deployment.status == "deployed")
            .update({Deployment.status: "rolled_back", Deployment.error_message: message})
        )
