"""Task schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studystreak.schemas.common import Pagination

TaskStatus = Literal["PENDING", "IN_PROGRESS", "COMPLETED", "ARCHIVED"]
TaskPriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
TaskSortField = Literal["created_at", "updated_at", "due_date", "priority", "title"]


def _check_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    if len(tags) > 10:
        raise ValueError("At most 10 tags")
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if len(tag) > 30:
            raise ValueError("Tags must be at most 30 characters")
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: TaskPriority = "MEDIUM"
    due_date: Optional[datetime] = None
    estimated_time: Optional[int] = Field(default=None, ge=1, le=480)
    tags: Optional[list[str]] = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_tags(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    estimated_time: Optional[int] = Field(default=None, ge=1, le=480)
    tags: Optional[list[str]] = None

    @field_validator("title", "priority", "status")
    @classmethod
    def not_null(cls, v):
        # omit the field to leave it unchanged; these columns have no empty value
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_tags(v)


class TaskFilter(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[str] = Field(default=None, description="comma-separated")
    sort_by: TaskSortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @property
    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        return [t.strip() for t in self.tags.split(",") if t.strip()]


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    estimated_time: Optional[int] = None
    total_focus_time: int
    tags: list[str] = []
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class TaskListResponse(BaseModel):
    items: list[TaskResponse]
    pagination: Pagination
