"""
DeenVerse Backend: Connection Service
======================================

What:  The request → accept/reject → counters → notify workflow behind the
       users and imaam routes.
Who:   Route handlers. This is the only caller of ConnectionLedger and of
       AccountDirectory.increment_connections_count().

Accept Flow:
    ┌────────────────┐   ┌──────────────────────┐   ┌────────────────────┐
    │ ledger.accept  │──▶│ counters +1 (both)   │──▶│ sink.emit          │
    │ (guarded)      │   │ relative UPDATE      │   │ connection_accepted│
    └────────────────┘   └──────────────────────┘   └────────────────────┘
           │ NotFound                                   │ failure
           ▼                                            ▼
      propagates, nothing changed              logged, accept still succeeds

The first two steps share the request transaction, so a counter failure
rolls the acceptance back with it. The notification runs in its own
SAVEPOINT and can only be lost, never take the acceptance down.
"""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.exceptions import ConflictError, InvalidOperationError, NotFoundError
from deenverse.models.account import Account
from deenverse.models.connection import (
    ConnectionRequest,
    ConnectionStatus,
    ConnectionType,
)
from deenverse.models.notification import NotificationType, RelatedEntityType
from deenverse.services.account_directory import account_directory
from deenverse.services.connection_ledger import (
    ALREADY_PENDING,
    FOLLOWERS,
    FOLLOWING,
    connection_ledger,
)
from deenverse.services.notification_sink import notification_sink

logger = logging.getLogger(__name__)

# Conflict wording per flow, keyed by the status of the existing pair record
TEACHER_CONFLICTS = {
    "accepted": "Already connected to this Imaam",
    "pending": ALREADY_PENDING,
}
PEER_CONFLICTS = {
    "accepted": "Already following this user",
    "pending": ALREADY_PENDING,
}


class ConnectionService:
    """
    Orchestrates directory, ledger and notification sink.

    Every method takes the request's AsyncSession as its first argument and
    leaves committing to the session dependency.
    """

    # ── Opening connections ───────────────────────────────────────────────

    async def _open(
        self,
        db: AsyncSession,
        requester: Account,
        recipient_id: UUID,
        connection_type: ConnectionType,
        message: Optional[str],
        conflicts: Dict[str, str],
    ) -> ConnectionRequest:
        try:
            connection = await connection_ledger.create(
                db, requester.id, recipient_id, connection_type, message
            )
        except ConflictError as e:
            status = e.context.get("status")
            raise ConflictError(message=conflicts.get(status, e.message), context=e.context)
        return await connection_ledger.get_with_parties(db, connection.id)

    async def request_teacher_connection(
        self,
        db: AsyncSession,
        student: Account,
        teacher_id: UUID,
        message: Optional[str] = None,
    ) -> ConnectionRequest:
        """
        Send a student-teacher connection request.

        Raises:
            InvalidOperationError: requesting yourself
            NotFoundError: teacher missing, inactive or unverified
            ConflictError: already connected or a request is pending
        """
        if student.id == teacher_id:
            raise InvalidOperationError(message="Cannot connect to yourself")

        teacher = await account_directory.find_verified_teacher(db, teacher_id)
        if teacher is None:
            raise NotFoundError(
                resource="teacher",
                resource_id=str(teacher_id),
                message="Imaam not found or not verified",
            )

        connection = await self._open(
            db,
            student,
            teacher.id,
            ConnectionType.STUDENT_TEACHER,
            message,
            TEACHER_CONFLICTS,
        )
        await notification_sink.emit(
            db,
            recipient_id=teacher.id,
            sender_id=student.id,
            type=NotificationType.CONNECTION_REQUEST,
            title="New Connection Request",
            message=f"{student.display_name} wants to connect with you",
            related_entity_id=connection.id,
            related_entity_type=RelatedEntityType.CONNECTION,
            action_data={
                "connectionId": str(connection.id),
                "requesterName": student.display_name,
            },
        )
        return connection

    async def follow(
        self, db: AsyncSession, user: Account, target_id: UUID
    ) -> ConnectionRequest:
        """
        Send a peer follow request. The target accepts it like any other
        connection request.
        """
        if user.id == target_id:
            raise InvalidOperationError(message="Cannot follow yourself")
        target = await account_directory.get_active(db, target_id)

        connection = await self._open(
            db, user, target.id, ConnectionType.PEER, None, PEER_CONFLICTS
        )
        await notification_sink.emit(
            db,
            recipient_id=target.id,
            sender_id=user.id,
            type=NotificationType.CONNECTION_REQUEST,
            title="New Follow Request",
            message=f"{user.display_name} wants to follow you",
            related_entity_id=connection.id,
            related_entity_type=RelatedEntityType.CONNECTION,
            action_data={
                "connectionId": str(connection.id),
                "requesterName": user.display_name,
            },
        )
        return connection

    # ── Responding ────────────────────────────────────────────────────────

    async def accept(
        self,
        db: AsyncSession,
        connection_id: UUID,
        acting: Account,
        connection_type: Optional[ConnectionType] = None,
    ) -> ConnectionRequest:
        """
        Accept a pending request addressed to `acting`, optionally only of
        one connection type.

        Raises:
            NotFoundError: no pending request with this id (and type) for
                this account
        """
        connection = await connection_ledger.accept(
            db, connection_id, acting.id, connection_type
        )
        await account_directory.increment_connections_count(
            db, [connection.requester_id, connection.recipient_id], 1
        )
        await notification_sink.emit(
            db,
            recipient_id=connection.requester_id,
            sender_id=acting.id,
            type=NotificationType.CONNECTION_ACCEPTED,
            title="Connection Accepted",
            message=f"{acting.display_name} accepted your connection request",
            related_entity_id=connection.id,
            related_entity_type=RelatedEntityType.CONNECTION,
            action_data={
                "connectionId": str(connection.id),
                "imaamName": acting.display_name,
            },
        )
        return await connection_ledger.get_with_parties(db, connection.id)

    async def reject(
        self,
        db: AsyncSession,
        connection_id: UUID,
        acting: Account,
        connection_type: Optional[ConnectionType] = None,
    ) -> ConnectionRequest:
        """Reject a pending request. Counters are untouched; nobody is notified."""
        return await connection_ledger.reject(db, connection_id, acting.id, connection_type)

    async def block(
        self, db: AsyncSession, connection_id: UUID, acting: Account
    ) -> ConnectionRequest:
        """Block a pending or accepted connection from either side."""
        connection, previous = await connection_ledger.block(db, connection_id, acting.id)
        if previous == ConnectionStatus.ACCEPTED:
            await account_directory.increment_connections_count(
                db, [connection.requester_id, connection.recipient_id], -1
            )
            # Counters changed under the loaded parties
            connection = await connection_ledger.get_with_parties(db, connection.id)
        return connection

    async def unfollow(self, db: AsyncSession, user: Account, target_id: UUID) -> None:
        """
        Remove the accepted connection between `user` and `target_id`,
        whichever side requested it.

        Raises:
            NotFoundError: the two accounts are not connected
        """
        removed = await connection_ledger.remove_accepted(db, user.id, target_id)
        if not removed:
            raise NotFoundError(
                resource="connection",
                message="Not following this user",
            )
        await account_directory.increment_connections_count(db, [user.id, target_id], -1)
        logger.info("%s unfollowed %s", user.id, target_id)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_pending(
        self,
        db: AsyncSession,
        user: Account,
        page: int = 1,
        limit: int = 10,
        connection_type: Optional[ConnectionType] = None,
    ) -> Tuple[List[ConnectionRequest], int]:
        return await connection_ledger.list_pending_for_recipient(
            db, user.id, page, limit, connection_type
        )

    async def list_followers(
        self, db: AsyncSession, user_id: UUID, page: int = 1, limit: int = 10
    ) -> Tuple[List[Account], int]:
        """Accounts whose accepted request the user received."""
        await account_directory.get_active(db, user_id)
        connections, total = await connection_ledger.list_accepted(
            db, user_id, FOLLOWERS, page, limit
        )
        return [c.requester for c in connections], total

    async def list_following(
        self, db: AsyncSession, user_id: UUID, page: int = 1, limit: int = 10
    ) -> Tuple[List[Account], int]:
        """Accounts that accepted a request the user sent."""
        await account_directory.get_active(db, user_id)
        connections, total = await connection_ledger.list_accepted(
            db, user_id, FOLLOWING, page, limit
        )
        return [c.recipient for c in connections], total

    async def is_connected(
        self, db: AsyncSession, account_a: UUID, account_b: UUID
    ) -> bool:
        connection = await connection_ledger.find_by_pair(db, account_a, account_b)
        return connection is not None and connection.status == ConnectionStatus.ACCEPTED


connection_service = ConnectionService()
