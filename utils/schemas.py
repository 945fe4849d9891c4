"""
Pydantic schemas for the Classroom credential gateway.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════════════════════
# Stored records
# ═══════════════════════════════════════════════════════════════════════════════


class UserAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: Optional[str] = None
    picture_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CredentialRecord(BaseModel):
    """
    One row per (user, provider).

    ``encrypted_refresh_token``, ``nonce`` and ``auth_tag`` are either all set
    or all ``None``.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    provider: str
    access_token: Optional[str] = None
    encrypted_refresh_token: Optional[bytes] = None
    nonce: Optional[bytes] = None
    auth_tag: Optional[bytes] = None
    expiry: Optional[datetime] = None
    scope: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_refresh_token(self) -> bool:
        return (
            self.encrypted_refresh_token is not None
            and self.nonce is not None
            and self.auth_tag is not None
        )


# ═══════════════════════════════════════════════════════════════════════════════
# OAuth inputs
# ═══════════════════════════════════════════════════════════════════════════════


class ProfileInfo(BaseModel):
    """Identity claims returned by the OAuth userinfo endpoint."""

    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class TokenSet(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    scope: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Classroom projections
# ═══════════════════════════════════════════════════════════════════════════════


class Role(str, Enum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    UNKNOWN = "UNKNOWN"


class Course(BaseModel):
    id: str
    name: str = ""
    section: Optional[str] = None
    state: Optional[str] = None
    owner_id: Optional[str] = None
    alternate_link: Optional[str] = None
    room: Optional[str] = None
    creation_time: Optional[str] = None
    update_time: Optional[str] = None


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None


class CourseworkItem(BaseModel):
    id: str
    course_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None  # "YYYY-MM-DDTHH:MM:SS.000Z"
    max_points: Optional[float] = None
    state: Optional[str] = None
    work_type: Optional[str] = None
    alternate_link: Optional[str] = None
    creation_time: Optional[str] = None
    update_time: Optional[str] = None


class SubmissionHistoryEntry(BaseModel):
    state: Optional[str] = None
    grade: Optional[float] = None
    timestamp: Optional[str] = None


class Submission(BaseModel):
    id: str
    course_id: Optional[str] = None
    course_work_id: Optional[str] = None
    user_id: Optional[str] = None
    state: Optional[str] = None  # NEW, CREATED, TURNED_IN, RETURNED, RECLAIMED_BY_STUDENT
    assigned_grade: Optional[float] = None
    draft_grade: Optional[float] = None
    late: Optional[bool] = None
    update_time: Optional[str] = None
    history: List[SubmissionHistoryEntry] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorEnvelope(BaseModel):
    code: str
    http_status: int
    message: str
