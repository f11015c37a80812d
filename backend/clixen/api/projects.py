"""Project API: CRUD for the caller's projects and their workflows."""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse
from ..schemas.workflow import WorkflowSummary
from ..services.project_service import ProjectService
from ..services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Create a project. Counts against the workspace project quota."""
    service = ProjectService(db)
    project = service.create(auth.user_id, data)
    return service.to_response(project, workflow_count=0)


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ProjectService(db).list_responses(auth.user_id)


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    service = ProjectService(db)
    return service.to_response(service.get(auth.user_id, project_id))


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    data: ProjectUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    service = ProjectService(db)
    return service.to_response(service.update(auth.user_id, project_id, data))


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Delete an empty project. 409 while it still has workflows."""
    ProjectService(db).delete(auth.user_id, project_id)


@router.get("/{project_id}/workflows", response_model=List[WorkflowSummary])
def list_project_workflows(
    project_id: str,
    include_archived: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    service = WorkflowService(db)
    return service.list_workflows(
        auth.user_id,
        project_id=project_id,
        include_archived=include_archived,
        skip=skip,
        limit=limit,
    )
