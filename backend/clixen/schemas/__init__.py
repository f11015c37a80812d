"""Pydantic schemas for API validation."""

from .project import ProjectCreate, ProjectUpdate, ProjectResponse
from .workflow import (
    GenerateWorkflowRequest,
    ValidateWorkflowRequest,
    DeployRequest,
    ValidationIssue,
    ValidationResult,
    WorkflowResponse,
    WorkflowSummary,
    GenerateWorkflowResponse,
    DeployResponse,
    WorkflowStatusResponse,
)
from .assignment import AssignmentResponse, CapacityResponse, QuotaResponse
from .chat import ChatRequest, ChatReply, ConversationSummary, ConversationResponse
from .webhook import SignupWebhookPayload, WebhookResponse
from .sync import SyncResult, CleanupResult

__all__ = [
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectResponse",
    "GenerateWorkflowRequest",
    "ValidateWorkflowRequest",
    "DeployRequest",
    "ValidationIssue",
    "ValidationResult",
    "WorkflowResponse",
    "WorkflowSummary",
    "GenerateWorkflowResponse",
    "DeployResponse",
    "WorkflowStatusResponse",
    "AssignmentResponse",
    "CapacityResponse",
    "QuotaResponse",
    "ChatRequest",
    "ChatReply",
    "ConversationSummary",
    "ConversationResponse",
    "SignupWebhookPayload",
    "WebhookResponse",
    "SyncResult",
    "CleanupResult",
]
