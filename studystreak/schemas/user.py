"""Preferences, streak and dashboard schemas."""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studystreak.core.timeutil import is_valid_timezone
from studystreak.schemas.focus import FocusSessionResponse
from studystreak.schemas.task import TaskResponse


class PreferencesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theme: str
    focus_duration: int
    short_break_duration: int
    long_break_duration: int
    long_break_interval: int
    daily_goal: int
    notifications_enabled: bool
    sound_enabled: bool
    reduced_motion: bool
    ai_personalization: bool
    timezone: str = "UTC"


class PreferencesUpdate(BaseModel):
    theme: Optional[Literal["light", "dark", "system"]] = None
    focus_duration: Optional[int] = Field(default=None, ge=5, le=120)
    short_break_duration: Optional[int] = Field(default=None, ge=1, le=30)
    long_break_duration: Optional[int] = Field(default=None, ge=5, le=60)
    long_break_interval: Optional[int] = Field(default=None, ge=2, le=8)
    daily_goal: Optional[int] = Field(default=None, ge=15, le=720)
    notifications_enabled: Optional[bool] = None
    sound_enabled: Optional[bool] = None
    reduced_motion: Optional[bool] = None
    ai_personalization: Optional[bool] = None
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_timezone(v):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class StreakDay(BaseModel):
    date: date
    active: bool
    study_minutes: int


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_active_date: Optional[date] = None
    history: list[StreakDay]


class LevelProgress(BaseModel):
    level: int
    current_xp: int
    xp_into_level: int
    xp_for_next_level: int
    percent: float


class TodayProgress(BaseModel):
    date: date
    study_minutes: int
    daily_goal: int
    percent: float
    focus_sessions: int
    tasks_completed: int


class DashboardResponse(BaseModel):
    user_id: int
    name: str
    current_streak: int
    longest_streak: int
    total_focus_time: int
    level: LevelProgress
    today: TodayProgress
    task_counts: dict[str, int]
    upcoming_tasks: list[TaskResponse]
    recent_sessions: list[FocusSessionResponse]
    active_session: Optional[FocusSessionResponse] = None


class AchievementStatus(BaseModel):
    code: str
    name: str
    description: str
    icon: str
    category: str
    requirement: int
    xp_reward: int
    unlocked: bool
    unlocked_at: Optional[datetime] = None
    progress: int
    percent: float
