"""Database models."""

from .assignment import FolderAssignment, UserAssignment
from .workspace import UserWorkspace
from .project import Project
from .workflow import Workflow, Deployment
from .telemetry import TelemetryEvent, SyncLog
from .chat import ChatConversation, ChatMessage

__all__ = [
    "FolderAssignment", "UserAssignment",
    "UserWorkspace",
    "Project",
    "Workflow", "Deployment",
    "TelemetryEvent", "SyncLog",
    "ChatConversation", "ChatMessage",
]
