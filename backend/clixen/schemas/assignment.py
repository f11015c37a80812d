"""Assignment and workspace quota schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Dict


class AssignmentResponse(BaseModel):
    user_id: str
    project_id: str
    folder_id: str
    status: str
    assigned_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CapacityResponse(BaseModel):
    """Folder pool occupancy, overall and per project."""
    total: int
    available: int
    active: int
    inactive: int
    by_project: Dict[str, int] = {}


class QuotaUsage(BaseModel):
    workflows: int
    projects: int
    executions: int
    api_calls_today: int


class QuotaLimits(BaseModel):
    max_workflows: int
    max_projects: int
    max_executions: int
    max_api_calls_per_day: int


class QuotaResponse(BaseModel):
    user_id: str
    workspace_name: str
    status: str
    usage: QuotaUsage
    limits: QuotaLimits
