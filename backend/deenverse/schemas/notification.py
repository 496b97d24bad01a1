"""
DeenVerse Backend: Notification Schemas
========================================

What:  Notification as rendered for its recipient, the inbox page and the
       small count payloads of the read endpoints.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field

from deenverse.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedEntityType,
)
from deenverse.schemas.account import AccountSummary
from deenverse.schemas.common import ApiModel, PaginationMeta


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """
    Relative display time: "Just now", "5m ago", "3h ago", "2d ago",
    or the calendar date once older than 30 days.
    """
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        # SQLite hands back naive values; storage is always UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = int((now - created_at).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 2592000:
        return f"{seconds // 86400}d ago"
    return created_at.date().isoformat()


class NotificationResponse(ApiModel):
    id: uuid.UUID
    sender: Optional[AccountSummary] = None
    type: NotificationType
    title: str
    message: str
    related_entity_id: Optional[uuid.UUID] = None
    related_entity_type: Optional[RelatedEntityType] = None
    is_read: bool
    read_at: Optional[datetime] = None
    priority: NotificationPriority
    action_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    time_ago: str = ""

    @classmethod
    def from_model(cls, notification) -> "NotificationResponse":
        response = cls.model_validate(notification)
        response.time_ago = time_ago(notification.created_at)
        return response


class NotificationPage(ApiModel):
    """Inbox page; carries the unread badge count alongside the items."""

    items: List[NotificationResponse]
    pagination: PaginationMeta
    unread_count: int


class UnreadCountResponse(ApiModel):
    count: int


class MarkAllReadResponse(ApiModel):
    updated: int
