"""Chat schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_id: Optional[str] = None
    project_id: Optional[str] = None


class ChatReply(BaseModel):
    conversation_id: str
    reply: str
    model: str


class ChatMessageResponse(BaseModel):
    role: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationSummary(BaseModel):
    id: str
    title: str
    project_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationResponse(ConversationSummary):
    messages: List[ChatMessageResponse] = []
