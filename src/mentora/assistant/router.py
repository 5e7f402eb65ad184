"""Study assistant endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.assistant.schemas import ChatRequest, ChatResponse
from mentora.assistant.service import BaseLLMProvider, answer, get_providers
from mentora.auth.dependencies import get_current_user
from mentora.db.models import User
from mentora.dependencies import get_db

router = APIRouter(prefix="/api/v1/assistant", tags=["Assistant"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    providers: list[BaseLLMProvider] = Depends(get_providers),
):
    """Answer with the first provider that replies, else a template answer."""
    # Client-supplied system messages are dropped; the server sets the persona
    messages = [{"role": m.role, "content": m.content} for m in body.messages if m.role != "system"]
    reply, source = await answer(db, messages, body.course_id, providers)
    return ChatResponse(reply=reply, source=source)
