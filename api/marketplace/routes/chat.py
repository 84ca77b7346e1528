"""
AI assistant chat. Each exchange is stored in the user's chat log.
"""
import logging

from fastapi import APIRouter, Query

from marketplace.dependencies import AIServiceDep, CurrentUserDep, StorageDep
from marketplace.schemas.ai import ChatReply, ChatRequest
from marketplace.schemas.marketplace import ChatMessage, ChatMessageCreate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=ChatReply)
def chat(payload: ChatRequest, storage: StorageDep, ai: AIServiceDep, user: CurrentUserDep):
    """Answer a question with role-specific guidance.

    Upstream failures still return 200 with the fallback message.
    """
    reply = ai.chat_assistant(payload.message, user.role, payload.context)
    storage.create_chat_message(
        ChatMessageCreate(
            user_id=user.id,
            message=payload.message,
            response=reply.message,
            context=reply.context,
        )
    )
    return reply


@router.get("/history", response_model=list[ChatMessage])
async def chat_history(
    storage: StorageDep,
    user: CurrentUserDep,
    limit: int = Query(50, ge=1, le=200),
):
    """The caller's exchanges, most recent first."""
    return storage.get_chat_history(user.id, limit)
