"""Repository for the folder pool and user assignments."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func

from .base import BaseRepository
from ..exceptions import AssignmentNotFoundError
from ..models.assignment import FolderAssignment, UserAssignment


class AssignmentRepository(BaseRepository[UserAssignment]):
    """Data access for ``folder_assignments`` and ``user_assignments``."""

    model_class = UserAssignment
    id_column = "user_id"
    not_found_error = AssignmentNotFoundError

    # ----- folder pool -----------------------------------------------------

    def existing_slots(self) -> set:
        rows = self.db.query(FolderAssignment.project_number, FolderAssignment.user_slot).all()
        return {(p, s) for p, s in rows}

    def add_folder(self, project_number: int, slot: int, tag: str) -> FolderAssignment:
        folder = FolderAssignment(
            project_number=project_number,
            user_slot=slot,
            folder_tag_name=tag,
            status="available",
        )
        self.db.add(folder)
        return folder

    def active_folder_for(self, user_id: str) -> Optional[FolderAssignment]:
        return (
            self.db.query(FolderAssignment)
            .filter(FolderAssignment.user_id == user_id, FolderAssignment.status == "active")
            .first()
        )

    def first_available(self, project_number: Optional[int] = None) -> Optional[FolderAssignment]:
        """Lowest available slot, in one project or across the pool.

        Rows locked by a concurrent claim are skipped (no-op on SQLite).
        """
        query = self.db.query(FolderAssignment).filter(FolderAssignment.status == "available")
        if project_number is not None:
            query = query.filter(FolderAssignment.project_number == project_number)
        return (
            query.order_by(FolderAssignment.project_number, FolderAssignment.user_slot)
            .with_for_update(skip_locked=True)
            .first()
        )

    def claim_folder(self, folder_id: int, user_id: str) -> bool:
        """Mark the folder active for *user_id* if it is still available."""
        claimed = (
            self.db.query(FolderAssignment)
            .filter(FolderAssignment.id == folder_id, FolderAssignment.status == "available")
            .update({
                FolderAssignment.user_id: user_id,
                FolderAssignment.status: "active",
                FolderAssignment.assigned_at: datetime.now(timezone.utc),
            })
        )
        return claimed == 1

    def status_counts(self) -> Dict[str, int]:
        rows = (
            self.db.query(FolderAssignment.status, func.count(FolderAssignment.id))
            .group_by(FolderAssignment.status)
            .all()
        )
        return {status: count for status, count in rows}

    def available_by_project(self) -> Dict[int, int]:
        rows = (
            self.db.query(FolderAssignment.project_number, func.count(FolderAssignment.id))
            .filter(FolderAssignment.status == "available")
            .group_by(FolderAssignment.project_number)
            .all()
        )
        return {project: count for project, count in rows}

    def all_folders(self) -> List[FolderAssignment]:
        return (
            self.db.query(FolderAssignment)
            .order_by(FolderAssignment.project_number, FolderAssignment.user_slot)
            .all()
        )

    # ----- user assignments ------------------------------------------------

    def upsert_assignment(self, user_id: str, project_id: str, folder_id: str) -> UserAssignment:
        assignment = self.get_by_id_optional(user_id)
        if assignment is None:
            assignment = UserAssignment(user_id=user_id, project_id=project_id, folder_id=folder_id)
            self.db.add(assignment)
        else:
            assignment.project_id = project_id
            assignment.folder_id = folder_id
        assignment.status = "active"
        assignment.assigned_at = datetime.now(timezone.utc)
        self.db.flush()
        return assignment
