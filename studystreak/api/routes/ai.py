"""AI assistant endpoints."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user, get_current_user_optional
from studystreak.core.config import settings
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.ai import (
    BreakSuggestion,
    ChatRequest,
    ChatResponse,
    ConversationDetail,
    ConversationSummary,
    RecommendationsResponse,
    StudyPlanRequest,
    StudyPlanResponse,
)
from studystreak.services.ai_agents import (
    STUDY_ASSISTANT,
    create_study_plan,
    handle_chat_message,
    personalized_recommendations,
    suggest_break,
)
from studystreak.services.conversation_service import (
    append_exchange,
    delete_conversation,
    get_owned_conversation,
    list_conversations,
    recent_history,
    start_or_resume,
)
from studystreak.services.llm_client import get_llm_client
from studystreak.services.rate_limiter import check_scope, client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: Request,
    response: Response,
    payload: ChatRequest,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict:
    started = time.perf_counter()
    identifier = (
        f"user:{user.id}"
        if user
        else f"ip:{client_ip(request.headers, request.client.host if request.client else None)}"
    )
    limit = await check_scope("ai", identifier)
    if not limit.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please wait before sending more messages.",
            headers={"X-RateLimit-Remaining": "0", "Retry-After": str(limit.retry_after)},
        )
    response.headers["X-RateLimit-Remaining"] = str(limit.remaining)

    context = payload.context.model_dump(exclude_none=True) if payload.context else {}
    context["user_id"] = user.id if user else "anonymous"

    conversation = None
    if user:
        conversation = await start_or_resume(db, user, payload.message, payload.conversation_id)
        history = await recent_history(db, conversation.id)
    else:
        history = []
    history.append({"role": "user", "content": payload.message})

    reply = await handle_chat_message(history, STUDY_ASSISTANT, context)

    if conversation is not None:
        await append_exchange(db, conversation, payload.message, reply["content"], reply["tokens"])

    logger.info(
        "AI chat request completed user=%s tokens=%s elapsed=%.0fms",
        context["user_id"],
        reply["tokens"],
        (time.perf_counter() - started) * 1000,
    )
    return {**reply, "conversation_id": conversation.id if conversation else None}


@router.get("/chat")
async def chat_health() -> dict:
    """Health check for the AI endpoint."""
    return {
        "status": "healthy",
        "service": "ai-chat",
        "configured": get_llm_client().configured,
        "model": settings.AI_MODEL,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/conversations", response_model=list[ConversationSummary])
async def conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_conversations(db, user)


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def conversation_detail(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_owned_conversation(db, conversation_id, user, with_messages=True)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_conversation(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await delete_conversation(db, conversation_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/study-plan", response_model=StudyPlanResponse)
async def study_plan(
    payload: StudyPlanRequest,
    user: User = Depends(get_current_user),
) -> dict:
    return await create_study_plan(payload.subject, payload.hours_available, payload.deadline)


@router.get("/break-suggestion", response_model=BreakSuggestion)
async def break_suggestion(study_minutes: int = Query(0, ge=0, le=1440)) -> dict:
    return suggest_break(study_minutes)


@router.get("/recommendations", response_model=RecommendationsResponse)
async def recommendations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await personalized_recommendations(db, user)
