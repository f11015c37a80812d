"""Folder pool and user assignment models.

The pool is a fixed grid of ``project_count`` x ``slots_per_project`` folders
tagged ``FOLDER-P{project:02d}-U{slot}``. A user holds at most one active
folder; the matching ``UserAssignment`` row records which hashed project the
user belongs to and which folder they ended up with.
"""

from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from ..database import Base


class FolderAssignment(Base):
    """One slot of the folder pool.

    Status values: available, active, inactive.
    """

    __tablename__ = "folder_assignments"
    __table_args__ = (
        UniqueConstraint("project_number", "user_slot", name="uq_folder_project_slot"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_number = Column(Integer, nullable=False)
    user_slot = Column(Integer, nullable=False)
    folder_tag_name = Column(String(50), nullable=False, unique=True)
    user_id = Column(String(50), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="available", index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserAssignment(Base):
    """User -> project -> folder mapping, one row per user."""

    __tablename__ = "user_assignments"

    user_id = Column(String(50), primary_key=True)
    project_id = Column(String(50), nullable=False)  # CLIXEN-PROJ-{nn}
    folder_id = Column(String(50), nullable=False)   # FOLDER-P{nn}-U{n}
    status = Column(String(20), nullable=False, default="active")
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
