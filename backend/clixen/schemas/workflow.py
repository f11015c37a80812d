"""Workflow schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any

MAX_PROMPT_LENGTH = 2000
MAX_NAME_LENGTH = 255


class GenerateWorkflowRequest(BaseModel):
    """Natural-language request for a new workflow."""
    prompt: str
    project_id: str
    name: Optional[str] = None
    description: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "prompt": "Every morning at 8am fetch the weather for Paris and email it to me",
                    "project_id": "proj-1a2b3c4d",
                    "name": "Morning weather",
                }
            ]
        }
    }

    @field_validator('prompt')
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Prompt is required")
        if len(v) > MAX_PROMPT_LENGTH:
            raise ValueError(f"Prompt too long (max {MAX_PROMPT_LENGTH} characters)")
        return v

    @field_validator('project_id')
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project ID is required")
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
        return v or None


class ValidateWorkflowRequest(BaseModel):
    """Validate (and optionally auto-fix) raw n8n JSON."""
    workflow: Dict[str, Any]
    auto_fix: bool = False


class DeployRequest(BaseModel):
    activate: bool = True


class RollbackRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ValidationIssue(BaseModel):
    """One error or warning from the validator."""
    type: str
    message: str
    node: Optional[str] = None
    parameter: Optional[str] = None


class ValidationResult(BaseModel):
    is_valid: bool
    score: int
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    suggestions: List[str] = []
    fixed_workflow: Optional[Dict[str, Any]] = None


class WorkflowResponse(BaseModel):
    """Workflow row as returned to clients."""
    id: str
    user_id: str
    project_id: Optional[str] = None
    name: str
    display_name: str = ""
    description: Optional[str] = None
    original_prompt: Optional[str] = None
    workflow_json: Dict[str, Any]
    validation_score: Optional[int] = None
    version: int
    status: str
    is_active: bool
    n8n_workflow_id: Optional[str] = None
    deployment_status: str
    deployment_url: Optional[str] = None
    deployment_error: Optional[str] = None
    last_deployed_at: Optional[datetime] = None
    execution_count: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    last_execution_at: Optional[str] = None
    last_execution_status: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkflowSummary(BaseModel):
    """List item without the workflow JSON."""
    id: str
    project_id: Optional[str] = None
    name: str
    display_name: str = ""
    status: str
    deployment_status: str
    is_active: bool
    execution_count: int = 0
    validation_score: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GenerateWorkflowResponse(BaseModel):
    workflow: WorkflowResponse
    validation: ValidationResult
    auto_fixed: bool = False


class DeployResponse(BaseModel):
    workflow_id: str
    n8n_workflow_id: str
    deployment_status: str
    activated: bool
    deployment_url: str
    webhook_urls: List[str] = []


class WorkflowStatusResponse(BaseModel):
    workflow_id: str
    status: str
    deployment_status: str
    is_active: bool
    n8n_workflow_id: Optional[str] = None
    deployment_url: Optional[str] = None
    last_deployed_at: Optional[datetime] = None
    execution_count: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    last_execution_at: Optional[str] = None
    health_score: Optional[int] = None
    webhook_urls: List[str] = []
    validation_issues: List[str] = []


class DeploymentResponse(BaseModel):
    """One entry of a workflow's deployment history."""
    id: int
    workflow_id: str
    n8n_workflow_id: str
    deployment_version: int
    status: str
    deployment_url: Optional[str] = None
    activated: bool
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
