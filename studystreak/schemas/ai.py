"""AI assistant schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatContext(BaseModel):
    current_task: Optional[str] = None
    study_goal: Optional[str] = None
    time_available: Optional[float] = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    conversation_id: Optional[int] = None
    context: Optional[ChatContext] = None


class ChatResponse(BaseModel):
    content: str
    tokens: Optional[int] = None
    model: str
    cached: bool = False
    conversation_id: Optional[int] = None


class AIMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    content: str
    tokens: Optional[int] = None
    created_at: datetime


class ConversationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    created_at: datetime
    updated_at: datetime


class ConversationDetail(ConversationSummary):
    messages: list[AIMessageResponse] = []


class StudyPlanRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    hours_available: float = Field(ge=0.5, le=200)
    deadline: Optional[datetime] = None


class StudyPlanOutline(BaseModel):
    sessions: int
    session_minutes: int = 30
    daily_hours: int


class StudyPlanResponse(BaseModel):
    subject: str
    plan: str
    outline: StudyPlanOutline
    model: str


class BreakSuggestion(BaseModel):
    break_length: int
    activity: str


class RecommendationsResponse(BaseModel):
    recommendations: str
    optimal_study_hour: Optional[int] = None
    model: str
