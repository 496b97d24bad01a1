"""
DeenVerse Backend: Account SQLAlchemy Models
=============================================

What:  ORM models for the `accounts` and `account_sessions` tables.
Who:   AccountDirectory (lookups, counters, profile), auth dependencies
       (session resolution), ConnectionLedger (relationship targets).

Table Design:
    - email is stored lower-cased and unique, so lookups are case-insensitive
      by construction
    - connections_count is a denormalized counter; it is only ever changed by
      relative UPDATE statements (see AccountDirectory)
    - accounts are never deleted; deactivation flips is_active
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deenverse.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class Account(Base):
    """
    A registered identity.

    Lifecycle:
        1. Created on registration (teachers start unverified)
        2. Profile fields mutated by the owner; is_verified by an admin
        3. connections_count moved by the connection workflow
        4. Deactivated, never deleted
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Lower-cased email address",
    )

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[AccountRole] = mapped_column(
        Enum(
            AccountRole,
            name="account_role",
            native_enum=False,
            length=20,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=AccountRole.STUDENT,
    )

    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Teacher profile: free-form subjects ("Tajweed", "Fiqh", ...)
    specializations: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    connections_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    sessions: Mapped[List["AccountSession"]] = relationship(
        back_populates="account",
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_accounts_role_active", "role", "is_active", "is_verified"),
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == AccountRole.TEACHER

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, role='{self.role.value}', active={self.is_active})>"


class AccountSession(Base):
    """
    Opaque bearer token bound to an account.

    A token is valid while revoked_at is NULL and the account is active.
    """

    __tablename__ = "account_sessions"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    account: Mapped[Account] = relationship(back_populates="sessions", lazy="raise")

    def __repr__(self) -> str:
        return f"<AccountSession(account_id={self.account_id}, revoked={self.revoked_at is not None})>"
