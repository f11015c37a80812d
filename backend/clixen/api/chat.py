"""Chat API: workflow assistant over persisted conversations."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.chat import ChatReply, ChatRequest, ConversationResponse, ConversationSummary
from ..services.chat_service import ChatService

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatReply)
def send_message(
    request: ChatRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Send a message. Starts a new conversation unless ``conversation_id`` is given."""
    return ChatService(db).send(
        auth.user_id,
        request.message,
        conversation_id=request.conversation_id,
        project_id=request.project_id,
    )


@router.get("/conversations", response_model=List[ConversationSummary])
def list_conversations(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ChatService(db).list_conversations(auth.user_id, limit=limit)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ChatService(db).get_conversation(auth.user_id, conversation_id)
