"""
DeenVerse Backend: Notification Sink
=====================================

What:  Records and retrieves cross-user event notices.
Who:   ConnectionService emits; the notifications routes read and mark.

Two Write Paths:
    create()  strict: validates, writes, raises on failure. For callers whose
              own outcome *is* the notification (e.g. an announcement).
    emit()    best-effort side channel for domain workflows. The write runs
              inside a SAVEPOINT and is retried on transient store errors
              with tenacity; whatever still fails is logged and dropped.
              The caller's transaction and result are never affected.

Resilience Flow (emit):
    ┌────────────┐   OperationalError   ┌──────────────┐
    │ SAVEPOINT  │ ───────────────────▶ │ tenacity     │ ── attempts left ──▶ retry
    │ INSERT     │                      │ (bounded)    │
    └────────────┘                      └──────────────┘
          │ other error / exhausted            │
          ▼                                    ▼
    ROLLBACK TO SAVEPOINT, log WARNING, return None
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from deenverse.config import settings
from deenverse.exceptions import DatabaseError, InvalidOperationError, NotFoundError
from deenverse.models.notification import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedEntityType,
    priority_for,
)

logger = logging.getLogger(__name__)


class NotificationSink:
    """
    Stateless service over the notifications table.

    Reads always load the sender projection so responses can be rendered
    without lazy loading.
    """

    def _build(
        self,
        recipient_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        sender_id: Optional[UUID] = None,
        related_entity_id: Optional[UUID] = None,
        related_entity_type: Optional[RelatedEntityType] = None,
        priority: Optional[NotificationPriority] = None,
        action_data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification_type = NotificationType(type)
        if (related_entity_id is None) != (related_entity_type is None):
            raise InvalidOperationError(
                message="relatedEntity and relatedEntityType must be given together",
                field="relatedEntityType",
            )
        if not title or len(title) > TITLE_MAX_LENGTH:
            raise InvalidOperationError(
                message=f"Title must be 1-{TITLE_MAX_LENGTH} characters", field="title"
            )
        if not message or len(message) > MESSAGE_MAX_LENGTH:
            raise InvalidOperationError(
                message=f"Message must be 1-{MESSAGE_MAX_LENGTH} characters",
                field="message",
            )

        return Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=notification_type,
            title=title,
            message=message,
            related_entity_id=related_entity_id,
            related_entity_type=(
                RelatedEntityType(related_entity_type) if related_entity_type else None
            ),
            priority=(
                NotificationPriority(priority) if priority else priority_for(notification_type)
            ),
            action_data=dict(action_data or {}),
            is_read=False,
        )

    async def create(self, db: AsyncSession, **fields: Any) -> Notification:
        """
        Write one notification and flush it.

        Accepts the keyword arguments of _build(): recipient_id, type, title,
        message, and optionally sender_id, related_entity_id,
        related_entity_type, priority, action_data.

        Raises:
            InvalidOperationError: malformed fields
            SQLAlchemyError: the store write failed
        """
        notification = self._build(**fields)
        db.add(notification)
        await db.flush()
        return notification

    async def emit(self, db: AsyncSession, **fields: Any) -> Optional[Notification]:
        """
        Best-effort create(). Never raises.

        Returns the notification, or None when it could not be stored.
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(OperationalError),
                stop=stop_after_attempt(settings.notification_retry_attempts),
                wait=wait_fixed(settings.notification_retry_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    async with db.begin_nested():
                        notification = await self.create(db, **fields)
            logger.info(
                "Notification %s (%s) delivered to %s",
                notification.id,
                notification.type.value,
                notification.recipient_id,
            )
            return notification
        except Exception as e:
            logger.warning(
                "Dropping %s notification for %s: %s",
                fields.get("type"),
                fields.get("recipient_id"),
                str(e),
                exc_info=True,
            )
            return None

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_for_recipient(
        self,
        db: AsyncSession,
        recipient_id: UUID,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> Tuple[List[Notification], int]:
        """Newest first. Returns (page items, total matching)."""
        conditions = [Notification.recipient_id == recipient_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        try:
            items_result = await db.execute(
                select(Notification)
                .where(*conditions)
                .options(selectinload(Notification.sender))
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            total_result = await db.execute(
                select(func.count(Notification.id)).where(*conditions)
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing notifications: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve notifications. Please try again.")

        return list(items_result.scalars().all()), total_result.scalar() or 0

    async def unread_count(self, db: AsyncSession, recipient_id: UUID) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    # ── Read markers ──────────────────────────────────────────────────────

    async def mark_read(
        self, db: AsyncSession, notification_id: UUID, recipient_id: UUID
    ) -> Notification:
        """
        Mark one notification read. Idempotent: read_at keeps its first value.

        Raises:
            NotFoundError: no such notification for this recipient
        """
        result = await db.execute(
            select(Notification)
            .where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
            .options(selectinload(Notification.sender))
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, recipient_id: UUID) -> int:
        """Mark every unread notification of the recipient; returns how many."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


notification_sink = NotificationSink()
