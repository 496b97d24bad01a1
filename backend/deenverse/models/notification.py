"""
DeenVerse Backend: Notification SQLAlchemy Model
=================================================

What:  ORM model for the `notifications` table: one-way, user-targeted
       event notices.
Who:   NotificationSink writes and reads; nothing else touches the table.

Table Design:
    - related_entity_id / related_entity_type form a tagged pointer into one
      of several id namespaces. No foreign key, never joined eagerly.
    - priority is derived from type at creation (PRIORITY_BY_TYPE) unless
      the caller supplies one
    - rows are append-mostly: only is_read / read_at change
"""

import enum
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deenverse.database import Base
from deenverse.models.account import Account, utcnow


TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 300


class NotificationType(str, enum.Enum):
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"
    COMMENT_LIKE = "comment_like"
    NEW_FOLLOWER = "new_follower"
    LESSON_REMINDER = "lesson_reminder"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    MESSAGE_RECEIVED = "message_received"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RelatedEntityType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"
    CONNECTION = "connection"
    LESSON = "lesson"


PRIORITY_BY_TYPE: Dict[NotificationType, NotificationPriority] = {
    NotificationType.CONNECTION_REQUEST: NotificationPriority.MEDIUM,
    NotificationType.CONNECTION_ACCEPTED: NotificationPriority.MEDIUM,
    NotificationType.POST_LIKE: NotificationPriority.LOW,
    NotificationType.POST_COMMENT: NotificationPriority.MEDIUM,
    NotificationType.COMMENT_LIKE: NotificationPriority.LOW,
    NotificationType.NEW_FOLLOWER: NotificationPriority.LOW,
    NotificationType.LESSON_REMINDER: NotificationPriority.HIGH,
    NotificationType.SYSTEM_ANNOUNCEMENT: NotificationPriority.HIGH,
    NotificationType.MESSAGE_RECEIVED: NotificationPriority.HIGH,
}


def priority_for(notification_type: Any) -> NotificationPriority:
    """Table lookup; unknown types fall back to medium."""
    try:
        return PRIORITY_BY_TYPE[NotificationType(notification_type)]
    except (ValueError, KeyError):
        return NotificationPriority.MEDIUM


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Notification(Base):
    """
    Represents one notice delivered to one account.

    Query Patterns:
        - Inbox: WHERE recipient_id = :me [AND is_read = false]
          ORDER BY created_at DESC → idx_notifications_recipient_read
        - Unread badge: COUNT(*) WHERE recipient_id = :me AND is_read = false
    """

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )

    # NULL for system notifications
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=True
    )

    type: Mapped[NotificationType] = mapped_column(
        Enum(
            NotificationType,
            name="notification_type",
            native_enum=False,
            length=40,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(String(MESSAGE_MAX_LENGTH), nullable=False)

    related_entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    related_entity_type: Mapped[Optional[RelatedEntityType]] = mapped_column(
        Enum(
            RelatedEntityType,
            name="related_entity_type",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(
            NotificationPriority,
            name="notification_priority",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )

    # Free-form payload for client rendering (ids, display names)
    action_data: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    sender: Mapped[Optional[Account]] = relationship(foreign_keys=[sender_id], lazy="raise")

    __table_args__ = (
        Index("idx_notifications_recipient_read", "recipient_id", "is_read", "created_at"),
        Index("idx_notifications_recipient_type", "recipient_id", "type", "created_at"),
        Index("idx_notifications_sender_type", "sender_id", "type"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, type='{self.type.value}', "
            f"read={self.is_read})>"
        )
