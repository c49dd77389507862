"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Group membership, admin rights, pending join requests and session
attendance are stored as link tables keyed by `(owner_id, user_id)`; the
unique constraint on that pair gives each of them set semantics, and the
surrogate `id` keeps listings in insertion order.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login identifier
    - `password_hash`: hashed password string (never store plaintext)
    - `courses` / `study_preferences`: free-form profile data stored as JSON
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    department: str = "Not specified"
    courses: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    study_preferences: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow)


class Group(SQLModel, table=True):
    """A study group. Membership sets live in the link tables below."""
    __tablename__ = "study_group"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    subject: str = Field(index=True)
    description: Optional[str] = None
    is_public: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class GroupMember(SQLModel, table=True):
    """`user_id` belongs to the `members` set of `group_id`."""
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_member_group_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="study_group.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class GroupAdmin(SQLModel, table=True):
    """`user_id` belongs to the `admins` set of `group_id`."""
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_admin_group_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="study_group.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class JoinRequest(SQLModel, table=True):
    """A pending request by `user_id` to join private group `group_id`."""
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_request_group_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="study_group.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class Document(SQLModel, table=True):
    """Metadata for a file uploaded to a group."""
    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="study_group.id", index=True)
    uploader_id: int = Field(foreign_key="user.id")
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    upload_date: datetime = Field(default_factory=_utcnow)


class StudyGoal(SQLModel, table=True):
    """A personal study goal with a completion percentage."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: str
    deadline: datetime
    completed: bool = False
    progress: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class StudySession(SQLModel, table=True):
    """A scheduled study session belonging to a group.

    `status` is one of `SESSION_STATUSES`; `duration` is in minutes.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    date: datetime = Field(index=True)
    duration: int
    group_id: int = Field(foreign_key="study_group.id", index=True)
    created_by: int = Field(foreign_key="user.id")
    status: str = "scheduled"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


SESSION_STATUSES = ("scheduled", "completed", "cancelled")


class SessionAttendee(SQLModel, table=True):
    """`user_id` attends study session `session_id`."""
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_attendee_session_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="studysession.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=_utcnow)
