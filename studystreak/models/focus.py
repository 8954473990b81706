"""Focus session and daily analytics models."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from studystreak.core.database import Base
from studystreak.core.timeutil import utcnow

SESSION_TYPES = ("POMODORO", "DEEP_WORK", "CUSTOM")


class FocusSession(Base):
    """A timed study interval. ended_at is NULL while the session runs."""

    __tablename__ = "focus_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(20), default="POMODORO", comment=", ".join(SESSION_TYPES))
    planned_duration: Mapped[int] = mapped_column(Integer, nullable=False, comment="minutes")
    duration: Mapped[int] = mapped_column(Integer, default=0, comment="actual minutes")
    started_at: Mapped[datetime] = mapped_column(default=utcnow)
    ended_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    pause_count: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_focus_sessions_user_started", "user_id", "started_at"),
        Index("ix_focus_sessions_user_ended", "user_id", "ended_at"),
        # at most one running session per user
        Index(
            "uq_focus_sessions_one_active",
            "user_id",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
    )


class UserAnalytics(Base):
    """Per-user, per-local-day activity totals."""

    __tablename__ = "user_analytics"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    study_minutes: Mapped[int] = mapped_column(Integer, default=0)
    tasks_completed: Mapped[int] = mapped_column(Integer, default=0)
    focus_sessions: Mapped[int] = mapped_column(Integer, default=0)
    streak_day: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_user_analytics_user_date"),
    )
