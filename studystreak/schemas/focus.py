"""Focus session and timer schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from studystreak.schemas.common import Pagination

SessionType = Literal["POMODORO", "DEEP_WORK", "CUSTOM"]


class FocusSessionStart(BaseModel):
    type: SessionType = "POMODORO"
    duration: Optional[int] = Field(default=None, ge=1, le=240, description="planned minutes")
    task_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class FocusSessionUpdate(BaseModel):
    action: Literal["complete", "cancel", "update"] = "update"
    notes: Optional[str] = Field(default=None, max_length=1000)
    pause_count: Optional[int] = Field(default=None, ge=0)


class FocusSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: Optional[int] = None
    type: str
    planned_duration: int
    duration: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    completed: bool
    pause_count: int
    notes: Optional[str] = None


class FocusStats(BaseModel):
    total_sessions: int
    total_minutes: int
    avg_duration: int
    total_pauses: int


class FocusSessionListResponse(BaseModel):
    sessions: list[FocusSessionResponse]
    pagination: Pagination
    stats: FocusStats


class UnlockedAchievement(BaseModel):
    code: str
    name: str
    icon: str
    xp_reward: int


class FocusSessionResult(BaseModel):
    session: FocusSessionResponse
    xp_gained: int = 0
    current_streak: Optional[int] = None
    unlocked_achievements: list[UnlockedAchievement] = []


class TimerPlan(BaseModel):
    mode: Literal["focus", "short_break", "long_break"]
    duration_minutes: int
    completed_today: int
    sessions_until_long_break: int
