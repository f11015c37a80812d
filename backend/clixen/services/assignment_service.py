"""User -> project -> folder assignment.

Users are spread over a fixed pool of n8n projects by hashing their id. Each
project has a handful of folder slots; a new user takes the lowest free slot
in their hashed project, or the lowest free slot anywhere when that project
is full. The claim is a locking SELECT followed by an UPDATE guarded on
the slot still being available.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import CapacityExhaustedError
from ..models.assignment import FolderAssignment, UserAssignment
from ..repositories.assignment_repository import AssignmentRepository
from ..schemas.assignment import CapacityResponse
from . import telemetry_service

logger = logging.getLogger(__name__)


def string_hash(value: str) -> int:
    """32-bit signed ``h = h * 31 + c`` hash, as computed by the signup handler."""
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def project_number_for_user(user_id: str, project_count: Optional[int] = None) -> int:
    count = project_count or settings.project_count
    return abs(string_hash(user_id)) % count + 1


def project_tag(project_number: int) -> str:
    return f"CLIXEN-PROJ-{project_number:02d}"


def project_for_user(user_id: str, project_count: Optional[int] = None) -> str:
    """Deterministic project id, e.g. ``CLIXEN-PROJ-07``."""
    return project_tag(project_number_for_user(user_id, project_count))


def folder_tag(project_number: int, slot: int) -> str:
    return f"FOLDER-P{project_number:02d}-U{slot}"


class AssignmentService:
    """Folder pool management.

    Public methods:
        seed_folders   -- create missing pool rows; idempotent
        assign_user    -- idempotent; hashed project first, then any project
        get_assignment -- current mapping or None
        release_user   -- return the folder to the pool
        capacity       -- occupancy summary
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = AssignmentRepository(db)

    def seed_folders(
        self,
        project_count: Optional[int] = None,
        slots_per_project: Optional[int] = None,
    ) -> int:
        """Insert every missing ``(project, slot)`` row. Returns the number created."""
        projects = project_count or settings.project_count
        slots = slots_per_project or settings.slots_per_project

        existing = self.repo.existing_slots()
        created = 0
        for project_number in range(1, projects + 1):
            for slot in range(1, slots + 1):
                if (project_number, slot) in existing:
                    continue
                self.repo.add_folder(project_number, slot, folder_tag(project_number, slot))
                created += 1
        self.db.commit()
        if created:
            logger.info("Seeded %d folders (%d projects x %d slots)", created, projects, slots)
        return created

    def assign_user(self, user_id: str) -> UserAssignment:
        """Give *user_id* a folder. Returns the existing assignment when there is one.

        Raises:
            CapacityExhaustedError: every folder in the pool is taken.
        """
        current = self.repo.active_folder_for(user_id)
        if current is not None:
            assignment = self.repo.get_by_id_optional(user_id)
            if assignment is not None and assignment.status == "active":
                return assignment
            # Folder held without an assignment row; repair the mapping.
            assignment = self.repo.upsert_assignment(
                user_id, project_tag(current.project_number), current.folder_tag_name
            )
            self.db.commit()
            return assignment

        hashed_project = project_number_for_user(user_id)
        folder = self._claim_next(user_id, hashed_project)
        assignment = self.repo.upsert_assignment(
            user_id, project_tag(folder.project_number), folder.folder_tag_name
        )
        self.db.commit()
        self.db.refresh(assignment)

        logger.info(
            "User assigned %s -> %s",
            assignment.project_id,
            assignment.folder_id,
            extra={"user_id": user_id, "fallback": folder.project_number != hashed_project},
        )
        telemetry_service.log(
            self.db,
            user_id=user_id,
            event_type="folder_assigned",
            category="assignment",
            data={
                "project_id": assignment.project_id,
                "folder_id": assignment.folder_id,
                "fallback": folder.project_number != hashed_project,
            },
        )
        return assignment

    def get_assignment(self, user_id: str) -> Optional[UserAssignment]:
        assignment = self.repo.get_by_id_optional(user_id)
        if assignment is None or assignment.status != "active":
            return None
        return assignment

    def release_user(self, user_id: str) -> bool:
        """Free the user's folder. Returns False when the user held none."""
        folder = self.repo.active_folder_for(user_id)
        assignment = self.repo.get_by_id_optional(user_id)
        if folder is None and (assignment is None or assignment.status != "active"):
            return False

        if folder is not None:
            folder.user_id = None
            folder.status = "available"
            folder.assigned_at = None
        if assignment is not None:
            assignment.status = "inactive"
        self.db.commit()

        logger.info("Released folder for user", extra={"user_id": user_id})
        telemetry_service.log(
            self.db,
            user_id=user_id,
            event_type="folder_released",
            category="assignment",
            data={"folder_id": folder.folder_tag_name if folder else None},
        )
        return True

    def capacity(self) -> CapacityResponse:
        counts = self.repo.status_counts()
        by_project = {
            project_tag(number): available
            for number, available in sorted(self.repo.available_by_project().items())
        }
        return CapacityResponse(
            total=sum(counts.values()),
            available=counts.get("available", 0),
            active=counts.get("active", 0),
            inactive=counts.get("inactive", 0),
            by_project=by_project,
        )

    def list_folders(self) -> List[FolderAssignment]:
        return self.repo.all_folders()

    def _claim_next(self, user_id: str, hashed_project: int) -> FolderAssignment:
        """Claim the lowest free slot, retrying when another signup took it first."""
        while True:
            folder = self.repo.first_available(hashed_project)
            if folder is None:
                logger.info(
                    "No folders available in %s, trying system-wide",
                    project_tag(hashed_project),
                )
                folder = self.repo.first_available()
            if folder is None:
                total = sum(self.repo.status_counts().values())
                logger.error("Folder pool exhausted", extra={"user_id": user_id, "total_folders": total})
                raise CapacityExhaustedError(total)
            if self.repo.claim_folder(folder.id, user_id):
                self.db.refresh(folder)
                return folder
            logger.info("Folder %s was claimed concurrently, retrying", folder.folder_tag_name)
