"""Project schemas."""

import re
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional

DEFAULT_PROJECT_COLOR = "#3B82F6"

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not _HEX_COLOR.match(v):
        raise ValueError("Color must be a hex value like #3B82F6")
    return v


class ProjectCreate(BaseModel):
    """Schema for creating a project."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: str = DEFAULT_PROJECT_COLOR

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        return v

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: str) -> str:
        return _check_color(v)


class ProjectUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class ProjectResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    color: str
    workflow_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
