"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and validate request bodies before
they reach the services. Validation failures are reported as 400 by the
handler registered in `studygroups.main`.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("invalid email address")
    return value


class SignUpIn(BaseModel):
    """Payload for account registration."""
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=1)
    department: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _normalize_email(value)


class SignInIn(BaseModel):
    """Payload for the sign-in endpoint."""
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _normalize_email(value)


class ProfileUpdateIn(BaseModel):
    """Partial profile update; unknown keys are ignored.

    Only fields present in the request body are applied, so callers can
    clear `department` by sending an empty string.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    courses: Optional[List[str]] = None
    study_preferences: Optional[Dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        if value is None or not value.strip():
            return None
        return _normalize_email(value)


class GroupCreateIn(BaseModel):
    """Request format for creating a study group."""
    name: str
    subject: str
    description: Optional[str] = None
    is_public: bool = False


class GoalIn(BaseModel):
    """Request format for creating a study goal."""
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    deadline: datetime


class GoalUpdateIn(BaseModel):
    """Partial update for a study goal; `progress` is a percentage."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    completed: Optional[bool] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)


class StudySessionIn(BaseModel):
    """Request format for scheduling a study session."""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    date: datetime
    duration: int = Field(gt=0, description="Length in minutes")
    group_id: int


class AttendanceIn(BaseModel):
    """Mark the caller as attending (or no longer attending) a session."""
    attending: bool = True


class SessionStatusIn(BaseModel):
    """New status for a study session."""
    status: str
