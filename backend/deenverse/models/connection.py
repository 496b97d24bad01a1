"""
DeenVerse Backend: ConnectionRequest SQLAlchemy Model
======================================================

What:  ORM model for the `connection_requests` table: the connection ledger.
Who:   ConnectionLedger is the only writer.

State Machine:
            create()                 accept()
     [none] --------> [pending] --------------> [accepted]
                          |                          |
                          | reject()                 | block()
                          v                          v
                     [rejected]                  [blocked]

    pending may also be blocked. A rejected record is reopened to pending
    when the pair requests again (one record per pair).

Table Design:
    - pair_key holds the unordered pair "<low-id>:<high-id>" under a UNIQUE
      constraint, so two records for the same two accounts cannot exist
      whichever side inserts first
    - CHECK requester_id <> recipient_id backs the service-level guard
    - accepted_at is written once, by the conditional accept UPDATE
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deenverse.database import Base
from deenverse.models.account import Account, utcnow


MESSAGE_MAX_LENGTH = 200


class ConnectionStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class ConnectionType(str, enum.Enum):
    STUDENT_TEACHER = "student-teacher"
    PEER = "peer"
    MENTOR_MENTEE = "mentor-mentee"


def make_pair_key(account_a: uuid.UUID, account_b: uuid.UUID) -> str:
    """Order-independent key for a pair of accounts."""
    low, high = sorted((str(account_a), str(account_b)))
    return f"{low}:{high}"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ConnectionRequest(Base):
    """
    A directed connection proposal between two accounts.

    Query Patterns:
        - Pending inbox: WHERE recipient_id = :me AND status = 'pending'
          ORDER BY last_interaction_at DESC → idx_connections_recipient_status
        - Pair lookup: WHERE pair_key = :key → unique index
        - Followers / following: WHERE recipient_id|requester_id = :user
          AND status = 'accepted', same ordering

    last_interaction_at is the time of the latest request or response, so a
    reopened request sorts as new while created_at keeps the first request.
    """

    __tablename__ = "connection_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )

    pair_key: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
        unique=True,
        comment="Unordered pair '<low-id>:<high-id>'",
    )

    status: Mapped[ConnectionStatus] = mapped_column(
        Enum(
            ConnectionStatus,
            name="connection_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ConnectionStatus.PENDING,
    )

    type: Mapped[ConnectionType] = mapped_column(
        Enum(
            ConnectionType,
            name="connection_type",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    message: Mapped[str] = mapped_column(
        String(MESSAGE_MAX_LENGTH),
        nullable=False,
        default="",
    )

    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    last_interaction_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
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

    # Display-only joins; loaded explicitly with selectinload()
    requester: Mapped[Account] = relationship(foreign_keys=[requester_id], lazy="raise")
    recipient: Mapped[Account] = relationship(foreign_keys=[recipient_id], lazy="raise")

    __table_args__ = (
        CheckConstraint("requester_id <> recipient_id", name="ck_connection_not_self"),
        Index("idx_connections_recipient_status", "recipient_id", "status"),
        Index("idx_connections_requester_status", "requester_id", "status"),
        Index("idx_connections_status_created", "status", "created_at"),
    )

    def involves(self, account_id: uuid.UUID) -> bool:
        return account_id in (self.requester_id, self.recipient_id)

    def __repr__(self) -> str:
        return (
            f"<ConnectionRequest(id={self.id}, status='{self.status.value}', "
            f"type='{self.type.value}')>"
        )
