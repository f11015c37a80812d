"""Project CRUD scoped to the owning user."""

import logging
import uuid
from typing import List

from sqlalchemy.orm import Session

from ..exceptions import ProjectNotEmptyError
from ..models.project import Project
from ..repositories.project_repository import ProjectRepository
from ..schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from . import telemetry_service
from .workspace_service import WorkspaceService

logger = logging.getLogger(__name__)


class ProjectService:

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProjectRepository(db)
        self.workspaces = WorkspaceService(db)

    def create(self, user_id: str, data: ProjectCreate) -> Project:
        self.workspaces.enforce_quota(user_id, "create_project")
        project = self.repo.create(
            project_id=f"proj-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            name=data.name,
            description=data.description,
            color=data.color,
        )
        self.db.commit()
        self.db.refresh(project)
        telemetry_service.log(
            self.db, user_id, "project_created", "project",
            project_id=project.id,
            data={"name": project.name},
        )
        return project

    def get(self, user_id: str, project_id: str) -> Project:
        return self.repo.get_owned(project_id, user_id)

    def list_projects(self, user_id: str) -> List[Project]:
        return self.repo.list_for_user(user_id)

    def update(self, user_id: str, project_id: str, data: ProjectUpdate) -> Project:
        project = self.repo.get_owned(project_id, user_id)
        if data.name is not None:
            project.name = data.name.strip()
        if data.description is not None:
            project.description = data.description
        if data.color is not None:
            project.color = data.color
        self.db.commit()
        self.db.refresh(project)
        return project

    def delete(self, user_id: str, project_id: str) -> None:
        """Delete an empty project. Raises ProjectNotEmptyError otherwise."""
        project = self.repo.get_owned(project_id, user_id)
        count = self.repo.workflow_count(project.id)
        if count > 0:
            raise ProjectNotEmptyError(project.id, count)
        self.repo.delete(project)
        self.db.commit()
        logger.info("Project deleted", extra={"user_id": user_id, "project_id": project_id})
        telemetry_service.log(self.db, user_id, "project_deleted", "project", project_id=project_id)

    def to_response(self, project: Project, workflow_count: int = None) -> ProjectResponse:
        if workflow_count is None:
            workflow_count = self.repo.workflow_count(project.id)
        response = ProjectResponse.model_validate(project)
        response.workflow_count = workflow_count
        return response

    def list_responses(self, user_id: str) -> List[ProjectResponse]:
        counts = self.repo.workflow_counts(user_id)
        return [self.to_response(p, counts.get(p.id, 0)) for p in self.list_projects(user_id)]
