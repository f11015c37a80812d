"""Per-user workspace with quota limits."""

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func
from ..database import Base


class UserWorkspace(Base):
    """Quota container created on signup. One per user."""

    __tablename__ = "user_workspaces"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), nullable=False, unique=True)
    workspace_name = Column(String(255), nullable=False)
    max_workflows = Column(Integer, nullable=False, default=10)
    max_executions = Column(Integer, nullable=False, default=1000)
    max_projects = Column(Integer, nullable=False, default=5)
    max_api_calls_per_day = Column(Integer, nullable=False, default=1000)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
