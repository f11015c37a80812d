"""Workflow assistant chat over persisted conversations.

Each turn stores the user message, sends the system prompt plus the most
recent history to the model via LiteLLM, and stores the reply.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..clients.circuit_breaker import CircuitBreakerOpen, run_with_timeout
from ..core.config import settings
from ..exceptions import ConversationNotFoundError
from ..models.chat import ChatConversation, ChatMessage
from ..schemas.chat import ChatReply
from . import telemetry_service
from .workspace_service import WorkspaceService

logger = logging.getLogger(__name__)

BREAKER_LABEL = "openai"

SYSTEM_PROMPT = (
    "You are Clixen, an assistant that helps users automate tasks with n8n workflows. "
    "Ask clarifying questions when a request is ambiguous, explain which trigger and "
    "nodes a workflow would use, and keep answers short. Workflows cannot use nodes that "
    "need per-user OAuth (Gmail, Slack, Google Sheets, ...); suggest HTTP Request or "
    "Email Send instead. When the user is ready, tell them to generate the workflow."
)

NOT_CONFIGURED_REPLY = (
    "Chat is not configured. Set CHAT_MODEL and CHAT_API_KEY to enable the assistant."
)
UNAVAILABLE_REPLY = "Unable to generate an answer right now. Please try again later."

TITLE_LENGTH = 60


class ChatService:
    """Conversation storage plus one completion call per turn."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def is_configured() -> bool:
        return settings.chat_configured

    def send(
        self,
        user_id: str,
        message: str,
        conversation_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> ChatReply:
        workspaces = WorkspaceService(self.db)
        if self.is_configured():
            workspaces.enforce_quota(user_id, "api_call")

        conversation = (
            self.get_conversation(user_id, conversation_id)
            if conversation_id
            else self._start(user_id, message, project_id)
        )

        self.db.add(ChatMessage(conversation_id=conversation.id, role="user", content=message))
        self.db.commit()

        if not self.is_configured():
            reply, model = NOT_CONFIGURED_REPLY, ""
        else:
            workspaces.record_api_call(user_id, "chat")
            reply, model = self._complete(self._history(conversation.id)), settings.chat_model

        self.db.add(ChatMessage(conversation_id=conversation.id, role="assistant", content=reply, model=model or None))
        conversation.updated_at = datetime.now(timezone.utc)
        self.db.commit()

        telemetry_service.log(
            self.db, user_id, "chat_message", "chat",
            project_id=conversation.project_id,
            data={"conversation_id": conversation.id, "message_length": len(message)},
            success=reply != UNAVAILABLE_REPLY,
        )
        return ChatReply(conversation_id=conversation.id, reply=reply, model=model)

    def list_conversations(self, user_id: str, limit: int = 50) -> List[ChatConversation]:
        return (
            self.db.query(ChatConversation)
            .filter(ChatConversation.user_id == user_id)
            .order_by(ChatConversation.updated_at.desc(), ChatConversation.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_conversation(self, user_id: str, conversation_id: str) -> ChatConversation:
        conversation = (
            self.db.query(ChatConversation)
            .filter(ChatConversation.id == conversation_id, ChatConversation.user_id == user_id)
            .first()
        )
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _start(self, user_id: str, first_message: str, project_id: Optional[str]) -> ChatConversation:
        title = first_message.strip().splitlines()[0][:TITLE_LENGTH] if first_message.strip() else "New conversation"
        conversation = ChatConversation(
            id=f"conv-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            project_id=project_id,
            title=title,
        )
        self.db.add(conversation)
        self.db.flush()
        return conversation

    def _history(self, conversation_id: str) -> List[dict]:
        """System prompt plus the last ``chat_history_limit`` messages, oldest first."""
        recent = (
            self.db.query(ChatMessage)
            .filter(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.id.desc())
            .limit(settings.chat_history_limit)
            .all()
        )
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend({"role": m.role, "content": m.content} for m in reversed(recent))
        return messages

    def _complete(self, messages: List[dict]) -> str:
        import litellm

        chat_kwargs: dict = {
            "model": settings.chat_model,
            "api_key": settings.chat_api_key,
            "messages": messages,
            "max_tokens": 1024,
            "temperature": 0.5,
            "timeout": settings.chat_timeout,
        }
        if settings.chat_api_base:
            chat_kwargs["api_base"] = settings.chat_api_base

        try:
            response = run_with_timeout(
                lambda: litellm.completion(**chat_kwargs),
                timeout=settings.chat_timeout,
                label=BREAKER_LABEL,
            )
            return response.choices[0].message.content or UNAVAILABLE_REPLY
        except CircuitBreakerOpen as e:
            logger.warning("Chat skipped: %s", e)
            return UNAVAILABLE_REPLY
        except Exception:
            logger.exception("Chat completion failed")
            return UNAVAILABLE_REPLY
