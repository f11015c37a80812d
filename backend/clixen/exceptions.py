"""Custom exception hierarchy for Clixen."""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Workflow errors
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    WORKFLOW_NOT_DEPLOYED = "WORKFLOW_NOT_DEPLOYED"
    WORKFLOW_INVALID = "WORKFLOW_INVALID"
    WORKFLOW_ARCHIVED = "WORKFLOW_ARCHIVED"
    GENERATION_FAILED = "GENERATION_FAILED"

    # Project errors
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    PROJECT_NOT_EMPTY = "PROJECT_NOT_EMPTY"

    # Assignment / workspace errors
    ASSIGNMENT_NOT_FOUND = "ASSIGNMENT_NOT_FOUND"
    CAPACITY_EXHAUSTED = "CAPACITY_EXHAUSTED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # Chat errors
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # External services
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    SERVICE_NOT_CONFIGURED = "SERVICE_NOT_CONFIGURED"

    # Webhook errors
    WEBHOOK_VALIDATION_FAILED = "WEBHOOK_VALIDATION_FAILED"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ClixenException(Exception):
    """
    Base exception for all Clixen errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class WorkflowNotFoundError(ClixenException):
    """Workflow not found, or not owned by the caller."""

    def __init__(self, workflow_id: str):
        super().__init__(
            f"Workflow not found or access denied: {workflow_id}",
            ErrorCode.WORKFLOW_NOT_FOUND,
            status_code=404,
            details={"workflow_id": workflow_id}
        )


class WorkflowNotDeployedError(ClixenException):
    """Operation needs a workflow that exists in n8n."""

    def __init__(self, workflow_id: str):
        super().__init__(
            f"Workflow has not been deployed: {workflow_id}",
            ErrorCode.WORKFLOW_NOT_DEPLOYED,
            status_code=409,
            details={"workflow_id": workflow_id}
        )


class WorkflowInvalidError(ClixenException):
    """Stored workflow JSON fails validation and cannot be deployed."""

    def __init__(self, workflow_id: str, errors: List[str]):
        super().__init__(
            f"Validation failed: {', '.join(errors)}",
            ErrorCode.WORKFLOW_INVALID,
            status_code=422,
            details={"workflow_id": workflow_id, "errors": errors}
        )


class WorkflowArchivedError(ClixenException):
    """Archived workflows are waiting for cleanup and cannot change state."""

    def __init__(self, workflow_id: str):
        super().__init__(
            f"Workflow is archived: {workflow_id}",
            ErrorCode.WORKFLOW_ARCHIVED,
            status_code=409,
            details={"workflow_id": workflow_id}
        )


class GenerationError(ClixenException):
    """The model reply could not be turned into a workflow."""

    def __init__(self, message: str):
        super().__init__(
            f"Failed to generate workflow: {message}",
            ErrorCode.GENERATION_FAILED,
            status_code=502,
        )


class ProjectNotFoundError(ClixenException):
    """Project not found, or not owned by the caller."""

    def __init__(self, project_id: str):
        super().__init__(
            f"Project not found or access denied: {project_id}",
            ErrorCode.PROJECT_NOT_FOUND,
            status_code=404,
            details={"project_id": project_id}
        )


class ProjectNotEmptyError(ClixenException):
    """Projects with workflows cannot be deleted."""

    def __init__(self, project_id: str, workflow_count: int):
        super().__init__(
            "Cannot delete project with existing workflows. Please delete all workflows first.",
            ErrorCode.PROJECT_NOT_EMPTY,
            status_code=409,
            details={"project_id": project_id, "workflow_count": workflow_count}
        )


class AssignmentNotFoundError(ClixenException):
    """User has no active folder assignment."""

    def __init__(self, user_id: str):
        super().__init__(
            f"No active folder assignment found for user: {user_id}",
            ErrorCode.ASSIGNMENT_NOT_FOUND,
            status_code=404,
            details={"user_id": user_id}
        )


class CapacityExhaustedError(ClixenException):
    """Every folder in the pool is taken."""

    def __init__(self, total_folders: int):
        super().__init__(
            "No available folders - system at capacity",
            ErrorCode.CAPACITY_EXHAUSTED,
            status_code=503,
            details={"total_folders": total_folders}
        )


class QuotaExceededError(ClixenException):
    """Workspace quota does not allow the requested action."""

    def __init__(self, action: str, reason: str, current: int, limit: int):
        super().__init__(
            reason,
            ErrorCode.QUOTA_EXCEEDED,
            status_code=429,
            details={"action": action, "current": current, "limit": limit}
        )


class ConversationNotFoundError(ClixenException):
    """Chat conversation not found, or not owned by the caller."""

    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation not found: {conversation_id}",
            ErrorCode.CONVERSATION_NOT_FOUND,
            status_code=404,
            details={"conversation_id": conversation_id}
        )


class ValidationError(ClixenException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class UpstreamServiceError(ClixenException):
    """n8n, Supabase or OpenAI returned an error or was unreachable."""

    def __init__(self, service: str, message: str, upstream_status: int = 0):
        super().__init__(
            f"{service} request failed: {message}",
            ErrorCode.UPSTREAM_ERROR,
            status_code=502,
            details={"service": service, "upstream_status": upstream_status}
        )


class ServiceNotConfiguredError(ClixenException):
    """An external integration has no credentials configured."""

    def __init__(self, service: str, hint: str = ""):
        super().__init__(
            f"{service} is not configured. {hint}".strip(),
            ErrorCode.SERVICE_NOT_CONFIGURED,
            status_code=503,
            details={"service": service}
        )


class WebhookValidationError(ClixenException):
    """Webhook signature validation failed."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            message,
            ErrorCode.WEBHOOK_VALIDATION_FAILED,
            status_code=401,
        )


class AuthenticationError(ClixenException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(ClixenException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )
