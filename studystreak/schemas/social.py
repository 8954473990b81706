"""Friends and challenges schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from studystreak.core.timeutil import to_naive_utc

ChallengeType = Literal["STUDY_TIME", "TASK_COMPLETION", "STREAK", "CUSTOM"]
PresenceStatus = Literal["studying", "break", "online", "offline"]


# ── Friends ──


class FriendRequestCreate(BaseModel):
    email: EmailStr


class FriendRequestResponse(BaseModel):
    id: int
    from_user_id: int
    from_name: str
    to_user_id: int
    status: str
    created_at: datetime


class FriendResponse(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    current_streak: int
    level: int
    status: PresenceStatus
    friends_since: Optional[datetime] = None


class FriendListResponse(BaseModel):
    friends: list[FriendResponse]
    online_count: int


# ── Challenges ──


class ChallengeCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: ChallengeType
    goal: int = Field(ge=1)
    unit: str = Field(min_length=1, max_length=20)
    start_date: datetime
    end_date: datetime
    is_public: bool = True

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def end_after_start(self) -> "ChallengeCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class ChallengeProgressUpdate(BaseModel):
    progress: int = Field(ge=0)


class ChallengeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    type: str
    goal: int
    unit: str
    start_date: datetime
    end_date: datetime
    is_public: bool
    creator_id: int
    participant_count: int = 0
    joined: bool = False
    my_progress: Optional[int] = None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    avatar: Optional[str] = None
    progress: int
    percent: float
    completed: bool


class ChallengeDetail(ChallengeSummary):
    leaderboard: list[LeaderboardEntry] = []
