"""Supabase database-webhook schemas."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class SignupWebhookPayload(BaseModel):
    """Payload of the ``auth.users`` insert webhook.

    ``record`` is the new row; only ``id`` and ``email`` are read.
    """
    type: str
    table: Optional[str] = None
    schema_name: Optional[str] = Field(None, alias="schema")
    record: Optional[Dict[str, Any]] = None


class WebhookResponse(BaseModel):
    """Response after receiving a webhook."""
    status: str
    message: str
    project_id: Optional[str] = None
    folder_id: Optional[str] = None
