"""Task model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from studystreak.core.database import Base
from studystreak.core.timeutil import utcnow

TASK_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "ARCHIVED")
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")


class Task(Base):
    """Study task."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", comment=", ".join(TASK_STATUSES))
    priority: Mapped[str] = mapped_column(String(10), default="MEDIUM", comment=", ".join(TASK_PRIORITIES))
    due_date: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    estimated_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="minutes")
    total_focus_time: Mapped[int] = mapped_column(Integer, default=0, comment="minutes")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_tasks_user_status", "user_id", "status"),
    )
