"""
DeenVerse Backend: Notification Sink Tests
===========================================

What we test:
    ✅ Priority derived from type, explicit priority wins
    ✅ Field validation (tagged pointer pair, title/message lengths)
    ✅ emit(): retries transient store errors, drops everything else
    ✅ Inbox listing, unread count, mark read (ownership, idempotence),
       mark all read
    ✅ time_ago display helper
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from sqlalchemy.exc import OperationalError

from deenverse.exceptions import InvalidOperationError, NotFoundError
from deenverse.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedEntityType,
    priority_for,
)
from deenverse.schemas.notification import NotificationResponse, time_ago
from deenverse.services.notification_sink import NotificationSink


def transient_error():
    return OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))


class TestPriority:
    """Priority lookup table."""

    @pytest.mark.parametrize(
        "notification_type,expected",
        [
            (NotificationType.POST_LIKE, NotificationPriority.LOW),
            (NotificationType.CONNECTION_REQUEST, NotificationPriority.MEDIUM),
            (NotificationType.CONNECTION_ACCEPTED, NotificationPriority.MEDIUM),
            (NotificationType.LESSON_REMINDER, NotificationPriority.HIGH),
            (NotificationType.SYSTEM_ANNOUNCEMENT, NotificationPriority.HIGH),
            (NotificationType.NEW_FOLLOWER, NotificationPriority.LOW),
        ],
    )
    def test_priority_for_type(self, notification_type, expected):
        assert priority_for(notification_type) == expected

    def test_unknown_type_defaults_to_medium(self):
        assert priority_for("carrier_pigeon") == NotificationPriority.MEDIUM


class TestCreate:
    """Tests for the strict create() path."""

    def setup_method(self):
        self.sink = NotificationSink()

    @pytest.mark.asyncio
    async def test_create_derives_priority(self, db, make_account):
        recipient = await make_account("Sara")

        notification = await self.sink.create(
            db,
            recipient_id=recipient.id,
            type=NotificationType.LESSON_REMINDER,
            title="Lesson soon",
            message="Tajweed class starts in 10 minutes",
        )

        assert notification.priority == NotificationPriority.HIGH
        assert notification.is_read is False
        assert notification.read_at is None
        assert notification.action_data == {}

    @pytest.mark.asyncio
    async def test_explicit_priority_wins(self, db, make_account):
        recipient = await make_account("Sara")

        notification = await self.sink.create(
            db,
            recipient_id=recipient.id,
            type=NotificationType.POST_LIKE,
            title="Like",
            message="Someone liked your post",
            priority=NotificationPriority.URGENT,
        )

        assert notification.priority == NotificationPriority.URGENT

    @pytest.mark.asyncio
    async def test_related_entity_needs_both_fields(self, mock_db_session):
        with pytest.raises(InvalidOperationError):
            await self.sink.create(
                mock_db_session,
                recipient_id=uuid4(),
                type=NotificationType.POST_COMMENT,
                title="Comment",
                message="New comment",
                related_entity_id=uuid4(),
            )
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,message", [("", "m"), ("t" * 101, "m"), ("t", "m" * 301)])
    async def test_length_limits(self, mock_db_session, title, message):
        with pytest.raises(InvalidOperationError):
            await self.sink.create(
                mock_db_session,
                recipient_id=uuid4(),
                type=NotificationType.SYSTEM_ANNOUNCEMENT,
                title=title,
                message=message,
            )


class TestEmit:
    """Tests for the best-effort emit() path."""

    def setup_method(self):
        self.sink = NotificationSink()

    @pytest.mark.asyncio
    async def test_emit_stores_notification(self, db, make_account):
        recipient = await make_account("Sara")
        sender = await make_account("Omar")

        notification = await self.sink.emit(
            db,
            recipient_id=recipient.id,
            sender_id=sender.id,
            type=NotificationType.NEW_FOLLOWER,
            title="New follower",
            message="Omar follows you",
            related_entity_id=sender.id,
            related_entity_type=RelatedEntityType.USER,
        )

        assert notification is not None
        assert await self.sink.unread_count(db, recipient.id) == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, db):
        stored = MagicMock()
        with patch.object(
            self.sink, "create", AsyncMock(side_effect=[transient_error(), stored])
        ) as create:
            result = await self.sink.emit(db, recipient_id=uuid4(), type="post_like")

        assert result is stored
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_attempts(self, db):
        with patch.object(
            self.sink, "create", AsyncMock(side_effect=transient_error())
        ) as create, patch("deenverse.services.notification_sink.settings") as mock_settings:
            mock_settings.notification_retry_attempts = 3
            mock_settings.notification_retry_wait = 0
            result = await self.sink.emit(db, recipient_id=uuid4(), type="post_like")

        assert result is None
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, db):
        with patch.object(
            self.sink, "create", AsyncMock(side_effect=InvalidOperationError("bad"))
        ) as create:
            result = await self.sink.emit(db, recipient_id=uuid4(), type="post_like")

        assert result is None
        assert create.await_count == 1


class TestInbox:
    """Listing and read markers."""

    def setup_method(self):
        self.sink = NotificationSink()

    async def _notify(self, db, recipient, sender=None, n=1):
        created = []
        for i in range(n):
            created.append(
                await self.sink.create(
                    db,
                    recipient_id=recipient.id,
                    sender_id=sender.id if sender else None,
                    type=NotificationType.SYSTEM_ANNOUNCEMENT,
                    title=f"Notice {i}",
                    message=f"Message {i}",
                )
            )
        return created

    @pytest.mark.asyncio
    async def test_list_newest_first_with_sender(self, db, make_account):
        recipient = await make_account("Sara")
        sender = await make_account("Omar")
        await self._notify(db, recipient, sender, n=3)

        items, total = await self.sink.list_for_recipient(db, recipient.id, page=1, limit=2)

        assert total == 3
        assert [n.title for n in items] == ["Notice 2", "Notice 1"]
        assert items[0].sender.display_name == "Omar"

        response = NotificationResponse.from_model(items[0])
        assert response.time_ago == "Just now"
        assert response.sender.display_name == "Omar"

    @pytest.mark.asyncio
    async def test_mark_read_is_owner_only_and_idempotent(self, db, make_account):
        recipient = await make_account("Sara")
        other = await make_account("Omar")
        notification = (await self._notify(db, recipient))[0]

        with pytest.raises(NotFoundError):
            await self.sink.mark_read(db, notification.id, other.id)

        first = await self.sink.mark_read(db, notification.id, recipient.id)
        read_at = first.read_at
        second = await self.sink.mark_read(db, notification.id, recipient.id)

        assert second.is_read is True
        assert second.read_at == read_at
        assert await self.sink.unread_count(db, recipient.id) == 0

    @pytest.mark.asyncio
    async def test_unread_only_and_mark_all(self, db, make_account):
        recipient = await make_account("Sara")
        notices = await self._notify(db, recipient, n=3)
        await self.sink.mark_read(db, notices[0].id, recipient.id)

        items, total = await self.sink.list_for_recipient(db, recipient.id, unread_only=True)
        assert total == 2
        assert all(not n.is_read for n in items)

        assert await self.sink.mark_all_read(db, recipient.id) == 2
        assert await self.sink.unread_count(db, recipient.id) == 0
        assert await self.sink.mark_all_read(db, recipient.id) == 0


class TestTimeAgo:
    """Relative display time."""

    def setup_method(self):
        self.now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3, minutes=59), "3h ago"),
            (timedelta(days=2), "2d ago"),
            (timedelta(days=29), "29d ago"),
        ],
    )
    def test_relative(self, delta, expected):
        assert time_ago(self.now - delta, now=self.now) == expected

    def test_older_than_a_month_shows_date(self):
        assert time_ago(self.now - timedelta(days=45), now=self.now) == "2024-01-16"

    def test_naive_values_are_utc(self):
        naive = (self.now - timedelta(minutes=2)).replace(tzinfo=None)
        assert time_ago(naive, now=self.now) == "2m ago"
