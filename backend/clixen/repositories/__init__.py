"""Data access repositories."""

from .base import BaseRepository
from .project_repository import ProjectRepository
from .workflow_repository import WorkflowRepository
from .assignment_repository import AssignmentRepository

__all__ = [
    "BaseRepository",
    "ProjectRepository",
    "WorkflowRepository",
    "AssignmentRepository",
]
