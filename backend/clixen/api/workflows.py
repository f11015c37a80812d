"""Workflow API: generate, validate, deploy and manage the caller's workflows.

All lifecycle logic lives in WorkflowService; the routes only translate
between HTTP and the service. ``get_workflow_service`` is a dependency so
tests can inject a service wired to fake n8n and OpenAI clients.
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.workflow import (
    DeployRequest,
    DeployResponse,
    DeploymentResponse,
    GenerateWorkflowRequest,
    GenerateWorkflowResponse,
    RollbackRequest,
    ValidateWorkflowRequest,
    ValidationResult,
    WorkflowResponse,
    WorkflowStatusResponse,
    WorkflowSummary,
)
from ..services.workflow_service import WorkflowService
from ..services.workflow_validator import ValidationReport, auto_fix, validate_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


def get_workflow_service(db: Session = Depends(get_db)) -> WorkflowService:
    return WorkflowService(db)


def _validation_result(report: ValidationReport, fixed_workflow: Optional[dict] = None) -> ValidationResult:
    return ValidationResult(**report.to_dict(), fixed_workflow=fixed_workflow)


@router.post("/generate", response_model=GenerateWorkflowResponse, status_code=201)
def generate_workflow(
    request: GenerateWorkflowRequest,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    """Generate a workflow from a natural-language prompt and store it as a draft."""
    outcome = service.generate(auth.user_id, request)
    return GenerateWorkflowResponse(
        workflow=WorkflowResponse.model_validate(outcome.workflow),
        validation=_validation_result(outcome.report),
        auto_fixed=outcome.auto_fixed,
    )


@router.post("/validate", response_model=ValidationResult)
def validate(
    request: ValidateWorkflowRequest,
    auth: AuthContext = Depends(require_auth),
):
    """Validate raw n8n JSON. With ``auto_fix`` the repaired JSON is returned and re-scored."""
    report = validate_workflow(request.workflow)
    if request.auto_fix and not report.is_valid:
        fixed = auto_fix(request.workflow, report.errors)
        return _validation_result(validate_workflow(fixed), fixed_workflow=fixed)
    return _validation_result(report)


@router.get("", response_model=List[WorkflowSummary])
def list_workflows(
    project_id: Optional[str] = Query(None),
    include_archived: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.list_workflows(
        auth.user_id,
        project_id=project_id,
        include_archived=include_archived,
        skip=skip,
        limit=limit,
    )


@router.get("/{workflow_id}", response_model=WorkflowResponse)
def get_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.get(auth.user_id, workflow_id)


@router.post("/{workflow_id}/deploy", response_model=DeployResponse)
def deploy_workflow(
    workflow_id: str,
    request: Optional[DeployRequest] = None,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    """Push the workflow to n8n and activate it unless ``activate`` is false."""
    activate = request.activate if request is not None else True
    return service.deploy(auth.user_id, workflow_id, activate=activate)


@router.get("/{workflow_id}/deployments", response_model=List[DeploymentResponse])
def list_deployments(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    """Deployment history, newest first."""
    return service.deployments(auth.user_id, workflow_id)


@router.post("/{workflow_id}/rollback", response_model=WorkflowResponse)
def rollback_workflow(
    workflow_id: str,
    request: Optional[RollbackRequest] = None,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    """Remove the workflow from n8n and return it to an undeployed draft."""
    reason = request.reason if request is not None else None
    return service.rollback(auth.user_id, workflow_id, reason=reason)


@router.get("/{workflow_id}/status", response_model=WorkflowStatusResponse)
def workflow_status(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.status(auth.user_id, workflow_id)


@router.post("/{workflow_id}/activate", response_model=WorkflowResponse)
def activate_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.set_active(auth.user_id, workflow_id, True)


@router.post("/{workflow_id}/deactivate", response_model=WorkflowResponse)
def deactivate_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.set_active(auth.user_id, workflow_id, False)


@router.delete("/{workflow_id}", response_model=WorkflowResponse)
def archive_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    auth: AuthContext = Depends(require_auth),
):
    """Deactivate in n8n and archive. The cleanup job removes it later."""
    return service.archive(auth.user_id, workflow_id)
