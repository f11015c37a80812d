"""API routes."""

from .projects import router as projects_router
from .workflows import router as workflows_router
from .assignments import router as assignments_router, workspace_router
from .sync import router as sync_router
from .chat import router as chat_router
from .webhooks import router as webhooks_router

__all__ = [
    "projects_router",
    "workflows_router",
    "assignments_router",
    "workspace_router",
    "sync_router",
    "chat_router",
    "webhooks_router",
]
