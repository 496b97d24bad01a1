"""
DeenVerse Backend: Account Schemas
===================================

What:  Request and response contracts for registration, profiles and the
       teacher directory.

AccountSummary is the minimal public projection attached to connection
records, follower lists and notification senders. AccountResponse is the
full profile; email is only included for the owner (ProfileResponse).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from deenverse.models.account import AccountRole
from deenverse.schemas.common import ApiModel


class AccountSummary(ApiModel):
    id: uuid.UUID
    display_name: str
    role: AccountRole
    is_verified: bool


class AccountResponse(ApiModel):
    """Public profile of an account."""

    id: uuid.UUID
    display_name: str
    role: AccountRole
    bio: Optional[str] = None
    specializations: List[str] = Field(default_factory=list)
    is_verified: bool
    connections_count: int
    created_at: datetime


class ProfileResponse(AccountResponse):
    """The caller's own profile."""

    email: str
    is_active: bool


class TeacherResponse(AccountResponse):
    """Teacher profile as seen by another account."""

    is_connected: bool = False


class RegisterRequest(ApiModel):
    email: EmailStr
    display_name: str = Field(min_length=1, max_length=100)
    role: AccountRole = AccountRole.STUDENT
    bio: Optional[str] = Field(default=None, max_length=500)
    specializations: List[str] = Field(default_factory=list, max_length=20)

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Display name cannot be blank")
        return stripped


class ProfileUpdateRequest(ApiModel):
    """Only the listed fields are writable by the owner."""

    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=500)
    specializations: Optional[List[str]] = Field(default=None, max_length=20)

    model_config = {"extra": "forbid"}


class SessionResponse(ApiModel):
    """Registration result: the new account and its bearer token."""

    account: ProfileResponse
    token: str
    token_type: str = "bearer"


class VerifyRequest(ApiModel):
    verified: bool = True
