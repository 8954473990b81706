"""AI agents: system prompts, cached single-turn replies and multi-turn chat."""

from __future__ import annotations

import json
import logging
import math
import random
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

import httpx
from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.config import settings
from studystreak.core.logging import log_duration
from studystreak.core.redis_keys import key_ai_response
from studystreak.core.timeutil import local_today, utcnow
from studystreak.models.focus import FocusSession
from studystreak.models.user import User
from studystreak.services import cache
from studystreak.services.analytics import daily_range
from studystreak.services.llm_client import (
    LLMNotConfiguredError,
    extract_openai_content,
    extract_total_tokens,
    get_llm_client,
)

logger = logging.getLogger(__name__)

STUDY_ASSISTANT = "study-assistant"
ADMIN_ANALYZER = "admin-analyzer"
PERSONALIZATION = "personalization"

SYSTEM_PROMPTS = {
    STUDY_ASSISTANT: """You are StudyBuddy, an AI study assistant for StudyStreak.
You help students with:
- Creating effective study plans and schedules
- Breaking down complex topics into manageable chunks
- Suggesting study techniques (Pomodoro, active recall, spaced repetition)
- Providing motivation and encouragement
- Answering questions about their study materials
- Recommending focus session durations

Always be encouraging, supportive, and practical. Keep responses concise but helpful.
Use emojis sparingly to keep things friendly.""",
    ADMIN_ANALYZER: """You are an expert backend performance analyst.
Your capabilities include:
- Analyzing API response times and suggesting optimizations
- Reviewing database queries for efficiency
- Identifying bottlenecks and slow endpoints
- Recommending caching strategies
- Suggesting index optimizations

Provide technical, actionable insights.""",
    PERSONALIZATION: """You are a personalization AI that analyzes study behavior.
Your role is to:
- Identify optimal study times for the user
- Suggest relevant challenges and goals
- Recommend focus session lengths and break habits
- Provide insights on consistency and engagement

Base recommendations on the data provided. Be privacy-conscious.""",
}

BREAK_ACTIVITIES = [
    "Take a short walk",
    "Do some stretches",
    "Grab a healthy snack",
    "Practice deep breathing",
    "Look out the window",
]

SESSION_MINUTES = 30


def system_prompt(agent: str, context: dict[str, Any] | None = None) -> str:
    prompt = SYSTEM_PROMPTS[agent]
    if context:
        prompt += f"\n\nContext: {json.dumps(context, ensure_ascii=False, default=str)}"
    return prompt


async def _complete(agent: str, messages: list[dict[str, str]], context: dict[str, Any] | None) -> dict:
    """Run one completion; maps provider failures to 503/502."""
    client = get_llm_client()
    started = time.perf_counter()
    try:
        result = await client.call_openai(
            [{"role": "system", "content": system_prompt(agent, context)}, *messages]
        )
    except LLMNotConfiguredError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI assistant is not configured",
        )
    except httpx.HTTPError as e:
        logger.error("AI generation failed [%s]: %s", agent, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to process your request. Please try again.",
        )

    tokens = extract_total_tokens(result)
    elapsed_ms = (time.perf_counter() - started) * 1000
    log_duration(logger, f"ai.{agent}", elapsed_ms, model=settings.AI_MODEL, tokens=tokens)
    return {
        "content": extract_openai_content(result, ""),
        "tokens": tokens,
        "model": result.get("model") or settings.AI_MODEL,
    }


async def generate_ai_response(agent: str, message: str, context: dict[str, Any] | None = None) -> dict:
    """Single-turn reply, cached per (agent, message, context)."""
    key = key_ai_response(agent, message, context)
    hit, cached = await cache.get_cached(key)
    if hit and cached:
        logger.info("AI cache hit [%s]", agent)
        return {**cached, "cached": True}

    response = await _complete(agent, [{"role": "user", "content": message}], context)
    await cache.store(key, response, settings.AI_CACHE_TTL, jitter=0)
    return {**response, "cached": False}


async def handle_chat_message(
    messages: list[dict[str, str]],
    agent: str = STUDY_ASSISTANT,
    context: dict[str, Any] | None = None,
) -> dict:
    """Multi-turn reply over the given history; never cached."""
    formatted = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m.get("role") in ("user", "assistant")
    ]
    response = await _complete(agent, formatted, context)
    return {**response, "cached": False}


# ==================== STUDY HELPERS ====================


def study_plan_outline(hours_available: float) -> dict:
    return {
        "sessions": math.ceil(hours_available * 2),
        "session_minutes": SESSION_MINUTES,
        "daily_hours": math.ceil(hours_available / 7),
    }


async def create_study_plan(subject: str, hours_available: float, deadline: datetime | None = None) -> dict:
    deadline_text = f" before {deadline.date().isoformat()}" if deadline else ""
    prompt = (
        f'Create a study plan for "{subject}" with {hours_available:g} hours available{deadline_text}. '
        "Break it into specific sessions with topics and durations."
    )
    response = await generate_ai_response(
        STUDY_ASSISTANT,
        prompt,
        {
            "subject": subject,
            "hours_available": hours_available,
            "deadline": deadline.isoformat() if deadline else None,
        },
    )
    return {
        "subject": subject,
        "plan": response["content"],
        "outline": study_plan_outline(hours_available),
        "model": response["model"],
    }


def suggest_break(study_minutes: int, rng: random.Random | None = None) -> dict:
    chooser = rng or random
    return {
        "break_length": 15 if study_minutes >= 50 else 5,
        "activity": chooser.choice(BREAK_ACTIVITIES),
    }


# ==================== PERSONALIZATION ====================


async def collect_study_behavior(db: AsyncSession, user: User, days: int = 30) -> dict:
    """Study-hour pattern, streak history and task completion rate for the personalization agent."""
    since = utcnow() - timedelta(days=days)
    sessions = (
        await db.execute(
            select(FocusSession).where(
                FocusSession.user_id == user.id,
                FocusSession.completed.is_(True),
                FocusSession.started_at >= since,
            )
        )
    ).scalars().all()

    minutes_by_hour: Counter = Counter()
    for session in sessions:
        minutes_by_hour[session.started_at.hour] += session.duration
    pattern = [{"hour": hour, "duration": minutes} for hour, minutes in sorted(minutes_by_hour.items())]

    rows = await daily_range(db, user.id, local_today(user.timezone), 14)
    streak_history = [1 if row.streak_day else 0 for _, row in sorted(rows.items())]

    total = user.total_tasks or 0
    completion_rate = round((user.completed_tasks or 0) / total, 2) if total else 0.0
    return {
        "study_patterns": pattern,
        "streak_history": streak_history,
        "current_streak": user.current_streak or 0,
        "completion_rate": completion_rate,
        "optimal_study_hour": minutes_by_hour.most_common(1)[0][0] if minutes_by_hour else None,
    }


async def personalized_recommendations(db: AsyncSession, user: User) -> dict:
    behavior = await collect_study_behavior(db, user)
    prompt = (
        "Based on this user behavior data, provide personalized recommendations:\n\n"
        f"{json.dumps(behavior, indent=2)}\n\n"
        "Include: optimal study times, suggested challenges, focus session lengths."
    )
    response = await generate_ai_response(PERSONALIZATION, prompt, {"user_id": user.id})
    return {
        "recommendations": response["content"],
        "optimal_study_hour": behavior["optimal_study_hour"],
        "model": response["model"],
    }


async def analyze_performance(metrics: dict[str, Any]) -> str:
    prompt = (
        "Analyze these API performance metrics and provide optimization recommendations:\n\n"
        f"{json.dumps(metrics, indent=2, default=str)}\n\n"
        "Focus on: slow queries, cache health and memory pressure."
    )
    response = await handle_chat_message([{"role": "user", "content": prompt}], ADMIN_ANALYZER)
    return response["content"]
