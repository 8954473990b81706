"""Authentication related schemas."""

import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")


class RegisterRequest(BaseModel):
    """Sign-up payload."""

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str
    accept_terms: bool = False

    @field_validator("name")
    @classmethod
    def name_letters_only(cls, v: str) -> str:
        if not _NAME_PATTERN.match(v):
            raise ValueError("Name can only contain letters and spaces")
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        if not re.search(r"[^A-Za-z0-9]", v):
            raise ValueError("Password must contain at least one special character")
        return v

    @model_validator(mode="after")
    def check_confirmation(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if not self.accept_terms:
            raise ValueError("You must accept the terms")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    remember: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UserProfile(BaseModel):
    """User info with gamification stats."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    name: str
    role: str
    avatar: Optional[str] = None
    timezone: str
    current_streak: int
    longest_streak: int
    last_active_date: Optional[date] = None
    total_focus_time: int
    total_tasks: int
    completed_tasks: int
    experience: int
    level: int
    created_at: datetime


class AuthResponse(BaseModel):
    access_token: str
    # None while Redis is unavailable
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int
    user: UserProfile
