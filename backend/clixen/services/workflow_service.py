"""Workflow lifecycle: generate, store, deploy to n8n, report status.

Every n8n call goes through ``N8nClient``; client errors become
``UpstreamServiceError`` so the API answers 502 instead of 500. Deployment
state is written before and after the n8n round trip, so a failed push is
visible as ``deployment_status = failed`` with the error message.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..clients.n8n_client import N8nClient, N8nClientError
from ..exceptions import (
    ServiceNotConfiguredError,
    UpstreamServiceError,
    WorkflowArchivedError,
    WorkflowInvalidError,
    WorkflowNotDeployedError,
)
from ..models.workflow import Deployment, Workflow
from ..repositories.project_repository import ProjectRepository
from ..repositories.workflow_repository import WorkflowRepository
from ..schemas.workflow import DeployResponse, GenerateWorkflowRequest, WorkflowStatusResponse
from . import telemetry_service
from .isolation import isolate_name
from .workflow_generator import WorkflowGenerator
from .workflow_validator import ValidationReport, auto_fix, validate_workflow
from .workspace_service import WorkspaceService

logger = logging.getLogger(__name__)

# Executions sampled for the health score on the status endpoint.
HEALTH_SAMPLE_SIZE = 10

FAILED_EXECUTION_STATUSES = frozenset({"error", "failed", "crashed"})


@dataclass
class GenerationOutcome:
    workflow: Workflow
    report: ValidationReport
    auto_fixed: bool


def new_workflow_id() -> str:
    return f"wf-{uuid.uuid4().hex[:12]}"


def execution_succeeded(execution: Dict[str, Any]) -> bool:
    status = execution.get("status")
    if status:
        return status == "success"
    return bool(execution.get("finished"))


def execution_failed(execution: Dict[str, Any]) -> bool:
    status = execution.get("status")
    if status:
        return status in FAILED_EXECUTION_STATUSES
    return execution.get("finished") is False and bool(execution.get("stoppedAt"))


class WorkflowService:
    """Workflow operations for one user at a time.

    Public methods:
        generate   -- prompt -> validated, isolated, stored draft
        deploy     -- push to n8n, optionally activate
        status     -- stored state plus live n8n health
        get / list_workflows
        set_active -- activate or deactivate in n8n
        deployments / rollback -- history, and removal from n8n back to draft
        archive    -- deactivate and soft-delete
    """

    def __init__(
        self,
        db: Session,
        n8n: Optional[N8nClient] = None,
        generator: Optional[WorkflowGenerator] = None,
    ):
        self.db = db
        self.repo = WorkflowRepository(db)
        self.project_repo = ProjectRepository(db)
        self.workspaces = WorkspaceService(db)
        self._n8n = n8n
        self.generator = generator or WorkflowGenerator()

    @property
    def n8n(self) -> N8nClient:
        if self._n8n is None:
            from ..clients import get_n8n_client
            self._n8n = get_n8n_client()
        return self._n8n

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, user_id: str, request: GenerateWorkflowRequest) -> GenerationOutcome:
        """Generate a workflow from a prompt and store it as a draft.

        Invalid output is auto-fixed once; whatever remains is stored with
        its score so the user can see what needs attention.
        """
        self.workspaces.enforce_quota(user_id, "create_workflow")
        project = self.project_repo.get_owned(request.project_id, user_id)
        self.workspaces.enforce_quota(user_id, "api_call")

        self.workspaces.record_api_call(user_id, "generate_workflow")
        started = time.monotonic()
        try:
            generated = self.generator.generate(request.prompt, name=request.name)
        except Exception as e:
            telemetry_service.log(
                self.db, user_id, "workflow_generation_failed", "error",
                project_id=project.id,
                data={"prompt_length": len(request.prompt)},
                success=False,
                error_message=str(e),
            )
            raise

        workflow_json = generated.workflow_json
        report = validate_workflow(workflow_json)
        auto_fixed = False
        if not report.is_valid:
            logger.info(
                "Generated workflow has %d error(s), attempting auto-fix",
                len(report.errors),
                extra={"user_id": user_id},
            )
            workflow_json = auto_fix(workflow_json, report.errors)
            report = validate_workflow(workflow_json)
            auto_fixed = True

        name = isolate_name(generated.name, user_id)
        workflow_json["name"] = name

        workflow = self.repo.add(Workflow(
            id=new_workflow_id(),
            user_id=user_id,
            project_id=project.id,
            name=name,
            description=request.description or generated.description,
            original_prompt=request.prompt,
            workflow_json=workflow_json,
            validation_score=report.score,
            status="validated" if report.is_valid else "draft",
            deployment_status="not_deployed",
            version=1,
            is_active=True,
        ))
        self.db.commit()
        self.db.refresh(workflow)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Workflow generated",
            extra={"user_id": user_id, "workflow_id": workflow.id, "score": report.score},
        )
        telemetry_service.log(
            self.db, user_id, "workflow_generated", "workflow",
            project_id=project.id,
            workflow_id=workflow.id,
            data={
                "workflow_name": name,
                "prompt_length": len(request.prompt),
                "node_count": len(workflow_json.get("nodes") or []),
                "validation_score": report.score,
                "auto_fixed": auto_fixed,
                "model": generated.model,
            },
            duration_ms=duration_ms,
        )
        return GenerationOutcome(workflow=workflow, report=report, auto_fixed=auto_fixed)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, user_id: str, workflow_id: str) -> Workflow:
        return self.repo.get_owned(workflow_id, user_id)

    def list_workflows(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Workflow]:
        if project_id:
            self.project_repo.get_owned(project_id, user_id)
        return self.repo.list_for_user(
            user_id, project_id=project_id, include_archived=include_archived, skip=skip, limit=limit
        )

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    def deploy(self, user_id: str, workflow_id: str, activate: bool = True) -> DeployResponse:
        """Validate the stored JSON and push it to n8n.

        A workflow that already exists in n8n is updated in place. The n8n id
        is saved as soon as n8n has created the workflow, so a failed
        activation is retried against the same workflow.
        """
        workflow = self.repo.get_owned(workflow_id, user_id)
        self._require_live(workflow)

        report = validate_workflow(workflow.workflow_json)
        if not report.is_valid:
            messages = [issue.message for issue in report.errors]
            self._mark_failed(workflow, f"Validation failed: {', '.join(messages)}")
            raise WorkflowInvalidError(workflow.id, messages)
        if activate:
            self.workspaces.enforce_quota(user_id, "execute_workflow")

        n8n = self.n8n

        redeploy = bool(workflow.n8n_workflow_id)
        workflow.deployment_status = "updating" if redeploy else "deploying"
        self.db.commit()

        started = time.monotonic()
        payload = dict(workflow.workflow_json)
        payload["name"] = workflow.name

        try:
            n8n_id = None
            if redeploy and n8n.get_workflow(workflow.n8n_workflow_id) is not None:
                n8n.update_workflow(workflow.n8n_workflow_id, payload)
                n8n_id = workflow.n8n_workflow_id
            if n8n_id is None:
                n8n_id = str(n8n.create_workflow(payload)["id"])
                workflow.n8n_workflow_id = n8n_id
                self.db.commit()
            if activate:
                n8n.activate_workflow(n8n_id)
        except N8nClientError as e:
            self._mark_failed(workflow, str(e))
            raise UpstreamServiceError("n8n", str(e), upstream_status=e.status_code)

        webhook_urls = n8n.webhook_urls(payload)
        deployment_url = n8n.editor_url(n8n_id)

        workflow.deployment_status = "deployed"
        workflow.status = "deployed"
        workflow.deployment_url = deployment_url
        workflow.deployment_error = None
        workflow.last_deployed_at = datetime.now(timezone.utc)
        workflow.is_active = True
        self.repo.record_deployment(workflow, n8n_id, deployment_url, activated=activate)
        self.db.commit()

        logger.info(
            "Workflow deployed",
            extra={"user_id": user_id, "workflow_id": workflow.id, "n8n_workflow_id": n8n_id},
        )
        telemetry_service.log(
            self.db, user_id, "workflow_deployed", "deployment",
            project_id=workflow.project_id,
            workflow_id=workflow.id,
            data={
                "n8n_workflow_id": n8n_id,
                "webhook_count": len(webhook_urls),
                "activated": activate,
                "redeploy": redeploy,
            },
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return DeployResponse(
            workflow_id=workflow.id,
            n8n_workflow_id=n8n_id,
            deployment_status="deployed",
            activated=activate,
            deployment_url=deployment_url,
            webhook_urls=webhook_urls,
        )

    def _mark_failed(self, workflow: Workflow, message: str) -> None:
        workflow.deployment_status = "failed"
        workflow.deployment_error = message
        self.db.commit()
        logger.error(
            "Workflow deployment failed: %s", message,
            extra={"user_id": workflow.user_id, "workflow_id": workflow.id},
        )
        telemetry_service.log(
            self.db, workflow.user_id, "workflow_deployment_failed", "error",
            project_id=workflow.project_id,
            workflow_id=workflow.id,
            data={"error": message},
            success=False,
            error_message=message,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, user_id: str, workflow_id: str) -> WorkflowStatusResponse:
        """Stored state, plus live health from n8n for deployed workflows.

        n8n being unreachable is reported in ``validation_issues`` rather
        than raised.
        """
        workflow = self.repo.get_owned(workflow_id, user_id)
        result = WorkflowStatusResponse(
            workflow_id=workflow.id,
            status=workflow.status,
            deployment_status=workflow.deployment_status,
            is_active=workflow.is_active,
            n8n_workflow_id=workflow.n8n_workflow_id,
            deployment_url=workflow.deployment_url,
            last_deployed_at=workflow.last_deployed_at,
            execution_count=workflow.execution_count or 0,
            successful_executions=workflow.successful_executions or 0,
            failed_executions=workflow.failed_executions or 0,
            last_execution_at=workflow.last_execution_at,
        )

        if not workflow.n8n_workflow_id or workflow.deployment_status != "deployed":
            return result

        try:
            n8n = self.n8n
            remote = n8n.get_workflow(workflow.n8n_workflow_id)
            executions = n8n.list_executions(workflow.n8n_workflow_id, limit=HEALTH_SAMPLE_SIZE)
        except (N8nClientError, ServiceNotConfiguredError) as e:
            logger.warning("Could not fetch status from n8n: %s", e, extra={"workflow_id": workflow.id})
            result.validation_issues = ["Could not connect to n8n for detailed status"]
            return result

        if remote is None:
            result.validation_issues = ["Workflow no longer exists in n8n"]
            return result

        if executions:
            succeeded = [e for e in executions if execution_succeeded(e)]
            failed = [e for e in executions if execution_failed(e)]
            result.health_score = round(len(succeeded) / len(executions) * 100)
            result.validation_issues = [
                f"Execution failed: {e.get('error') or 'Unknown error'}" for e in failed
            ]
        result.webhook_urls = n8n.webhook_urls(remote)
        return result

    # ------------------------------------------------------------------
    # Activation / archive
    # ------------------------------------------------------------------

    def set_active(self, user_id: str, workflow_id: str, active: bool) -> Workflow:
        """Activate or deactivate the workflow in n8n."""
        workflow = self.repo.get_owned(workflow_id, user_id)
        self._require_live(workflow)
        if not workflow.n8n_workflow_id:
            raise WorkflowNotDeployedError(workflow_id)
        if active:
            self.workspaces.enforce_quota(user_id, "execute_workflow")

        try:
            if active:
                self.n8n.activate_workflow(workflow.n8n_workflow_id)
            else:
                self.n8n.deactivate_workflow(workflow.n8n_workflow_id)
        except N8nClientError as e:
            raise UpstreamServiceError("n8n", str(e), upstream_status=e.status_code)

        workflow.status = "deployed" if active else "draft"
        self.db.commit()
        self.db.refresh(workflow)
        telemetry_service.log(
            self.db, user_id,
            "workflow_activated" if active else "workflow_deactivated",
            "workflow",
            project_id=workflow.project_id,
            workflow_id=workflow.id,
        )
        return workflow

    @staticmethod
    def _require_live(workflow: Workflow) -> None:
        if workflow.status == "archived":
            raise WorkflowArchivedError(workflow.id)

    # ------------------------------------------------------------------
    # Deployment history / rollback
    # ------------------------------------------------------------------

    def deployments(self, user_id: str, workflow_id: str) -> List[Deployment]:
        workflow = self.repo.get_owned(workflow_id, user_id)
        return self.repo.deployments_for(workflow.id)

    def rollback(self, user_id: str, workflow_id: str, reason: Optional[str] = None) -> Workflow:
        """Delete the workflow from n8n and return it to an undeployed draft.

        The stored JSON is kept; live deployment rows are marked ``rolled_back``.
        """
        workflow = self.repo.get_owned(workflow_id, user_id)
        self._require_live(workflow)
        if not workflow.n8n_workflow_id:
            raise WorkflowNotDeployedError(workflow_id)

        n8n_id = workflow.n8n_workflow_id
        try:
            if not self.n8n.delete_workflow(n8n_id):
                logger.info("Rolled back workflow already gone from n8n", extra={"workflow_id": workflow.id})
        except N8nClientError as e:
            raise UpstreamServiceError("n8n", str(e), upstream_status=e.status_code)

        note = f"Rolled back: {reason or 'Manual rollback'}"
        rolled_back = self.repo.mark_rolled_back(workflow.id, note)
        workflow.n8n_workflow_id = None
        workflow.deployment_url = None
        workflow.deployment_error = None
        workflow.deployment_status = "not_deployed"
        workflow.status = "draft"
        self.db.commit()
        self.db.refresh(workflow)

        logger.info(
            "Workflow rolled back",
            extra={"user_id": user_id, "workflow_id": workflow.id, "n8n_workflow_id": n8n_id},
        )
        telemetry_service.log(
            self.db, user_id, "workflow_rolled_back", "deployment",
            project_id=workflow.project_id,
            workflow_id=workflow.id,
            data={"n8n_workflow_id": n8n_id, "deployments": rolled_back, "reason": note},
        )
        return workflow

    def archive(self, user_id: str, workflow_id: str) -> Workflow:
        """Deactivate in n8n and mark the row archived.

        The row and the n8n workflow are removed later by the cleanup job.
        """
        workflow = self.repo.get_owned(workflow_id, user_id)
        if workflow.n8n_workflow_id:
            try:
                self.n8n.deactivate_workflow(workflow.n8n_workflow_id)
            except N8nClientError as e:
                if e.status_code != 404:
                    raise UpstreamServiceError("n8n", str(e), upstream_status=e.status_code)
                logger.info("Archived workflow already gone from n8n", extra={"workflow_id": workflow.id})

        workflow.status = "archived"
        workflow.is_active = False
        self.db.commit()
        self.db.refresh(workflow)
        telemetry_service.log(
            self.db, user_id, "workflow_archived", "workflow",
            project_id=workflow.project_id,
            workflow_id=workflow.id,
        )
        return workflow
