"""Repository for project database operations."""

from typing import List, Optional

from sqlalchemy import func

from .base import BaseRepository
from ..exceptions import ProjectNotFoundError
from ..models.project import Project
from ..models.workflow import Workflow


class ProjectRepository(BaseRepository[Project]):
    """Data access layer for projects."""

    model_class = Project
    not_found_error = ProjectNotFoundError

    def create(
        self,
        project_id: str,
        user_id: str,
        name: str,
        description: Optional[str],
        color: str,
    ) -> Project:
        project = Project(
            id=project_id,
            user_id=user_id,
            name=name,
            description=description,
            color=color,
        )
        self.db.add(project)
        self.db.flush()
        return project

    def list_for_user(self, user_id: str) -> List[Project]:
        return (
            self.db.query(Project)
            .filter(Project.user_id == user_id)
            .order_by(Project.created_at.desc(), Project.name)
            .all()
        )

    def count_for_user(self, user_id: str) -> int:
        return self.db.query(Project).filter(Project.user_id == user_id).count()

    def workflow_count(self, project_id: str) -> int:
        """Workflows in the project that are not archived."""
        return (
            self.db.query(Workflow)
            .filter(Workflow.project_id == project_id, Workflow.status != "archived")
            .count()
        )

    def workflow_counts(self, user_id: str) -> dict:
        """{project_id: count} for every project the user has workflows in."""
        rows = (
            self.db.query(Workflow.project_id, func.count(Workflow.id))
            .filter(Workflow.user_id == user_id, Workflow.status != "archived")
            .group_by(Workflow.project_id)
            .all()
        )
        return {project_id: count for project_id, count in rows if project_id}

    def delete(self, project: Project) -> None:
        # Archived workflows still reference the project until cleanup removes them.
        self.db.query(Workflow).filter(Workflow.project_id == project.id).update(
            {Workflow.project_id: None}, synchronize_session=False
        )
        self.db.delete(project)
        self.db.flush()
