"""Persisted AI chat conversations."""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studystreak.core.config import settings
from studystreak.core.timeutil import utcnow
from studystreak.models.ai import AIConversation, AIMessage
from studystreak.models.user import User

TITLE_LENGTH = 50


def title_from_message(message: str) -> str:
    text = " ".join(message.split())
    if len(text) <= TITLE_LENGTH:
        return text or "New conversation"
    return text[: TITLE_LENGTH - 3].rstrip() + "..."


async def get_owned_conversation(
    db: AsyncSession, conversation_id: int, user: User, with_messages: bool = False
) -> AIConversation:
    query = select(AIConversation).where(AIConversation.id == conversation_id)
    if with_messages:
        query = query.options(selectinload(AIConversation.messages))
    conversation = (await db.execute(query)).scalar_one_or_none()
    if conversation is None or conversation.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


async def start_or_resume(
    db: AsyncSession, user: User, message: str, conversation_id: int | None
) -> AIConversation:
    if conversation_id is not None:
        return await get_owned_conversation(db, conversation_id, user)
    conversation = AIConversation(user_id=user.id, title=title_from_message(message))
    db.add(conversation)
    await db.flush()
    return conversation


async def recent_history(db: AsyncSession, conversation_id: int) -> list[dict[str, str]]:
    """Last AI_HISTORY_LIMIT messages, oldest first, in chat-completion format."""
    rows = (
        await db.execute(
            select(AIMessage)
            .where(AIMessage.conversation_id == conversation_id)
            .order_by(AIMessage.id.desc())
            .limit(settings.AI_HISTORY_LIMIT)
        )
    ).scalars().all()
    return [{"role": m.role.lower(), "content": m.content} for m in reversed(rows)]


async def append_exchange(
    db: AsyncSession,
    conversation: AIConversation,
    user_message: str,
    reply: str,
    tokens: int | None,
) -> None:
    db.add(AIMessage(conversation_id=conversation.id, role="USER", content=user_message))
    db.add(AIMessage(conversation_id=conversation.id, role="ASSISTANT", content=reply, tokens=tokens))
    conversation.updated_at = utcnow()
    await db.commit()


async def list_conversations(db: AsyncSession, user: User) -> list[AIConversation]:
    result = await db.execute(
        select(AIConversation)
        .where(AIConversation.user_id == user.id)
        .order_by(AIConversation.updated_at.desc(), AIConversation.id.desc())
    )
    return list(result.scalars().all())


async def delete_conversation(db: AsyncSession, conversation_id: int, user: User) -> None:
    conversation = await get_owned_conversation(db, conversation_id, user, with_messages=True)
    await db.delete(conversation)
    await db.commit()
