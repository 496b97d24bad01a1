"""
DeenVerse Backend: Connection Ledger
=====================================

What:  Durable storage and state-transition enforcement for
       ConnectionRequest records.
Who:   ConnectionService only. The ledger never touches counters or
       notifications; the service coordinates those around it.

Transition Guards:
    accept / reject run as ONE conditional UPDATE:

        UPDATE connection_requests
           SET status = :new, ...
         WHERE id = :id AND recipient_id = :me AND status = 'pending'
               [AND type = :type]

    Zero affected rows means the record is missing, addressed to someone
    else, of another type, or no longer pending, and all of these surface
    as NotFoundError.
    Two concurrent accepts of the same request therefore produce one
    success and one NotFoundError, never two acceptances.

Pair Uniqueness:
    create() checks the unordered pair first (for a precise error message)
    and then inserts inside a SAVEPOINT. The UNIQUE pair_key constraint
    catches the check-then-insert race; the IntegrityError is mapped to the
    same ConflictError the pre-check would have produced.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from deenverse.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidOperationError,
    NotFoundError,
)
from deenverse.models.connection import (
    MESSAGE_MAX_LENGTH,
    ConnectionRequest,
    ConnectionStatus,
    ConnectionType,
    make_pair_key,
)

logger = logging.getLogger(__name__)

# Messages shared by the pre-check and the duplicate-key path
ALREADY_CONNECTED = "Already connected"
ALREADY_PENDING = "Connection request already pending"
BLOCKED = "Connection is not available"

FOLLOWERS = "followers"
FOLLOWING = "following"


def _conflict_for(existing: ConnectionRequest) -> Optional[ConflictError]:
    """ConflictError for a pair record that forbids a new request, else None."""
    if existing.status == ConnectionStatus.ACCEPTED:
        return ConflictError(message=ALREADY_CONNECTED, context={"status": "accepted"})
    if existing.status == ConnectionStatus.PENDING:
        return ConflictError(message=ALREADY_PENDING, context={"status": "pending"})
    if existing.status == ConnectionStatus.BLOCKED:
        return ConflictError(message=BLOCKED, context={"status": "blocked"})
    return None


class ConnectionLedger:
    """Stateless ledger over the connection_requests table."""

    # ── Lookups ───────────────────────────────────────────────────────────

    async def find_by_pair(
        self, db: AsyncSession, account_a: UUID, account_b: UUID
    ) -> Optional[ConnectionRequest]:
        """Unordered lookup: (a, b) and (b, a) find the same record."""
        result = await db.execute(
            select(ConnectionRequest)
            .where(ConnectionRequest.pair_key == make_pair_key(account_a, account_b))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_with_parties(
        self, db: AsyncSession, connection_id: UUID
    ) -> ConnectionRequest:
        """Record with requester and recipient loaded, freshly read."""
        result = await db.execute(
            select(ConnectionRequest)
            .where(ConnectionRequest.id == connection_id)
            .options(
                selectinload(ConnectionRequest.requester),
                selectinload(ConnectionRequest.recipient),
            )
            .execution_options(populate_existing=True)
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise NotFoundError(resource="connection", resource_id=str(connection_id))
        return connection

    # ── Creation ──────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        requester_id: UUID,
        recipient_id: UUID,
        connection_type: ConnectionType,
        message: Optional[str] = None,
    ) -> ConnectionRequest:
        """
        Open a pending request from requester to recipient.

        A pair whose last request was rejected is reopened in place: the
        record flips back to pending with the new direction, type and
        message, keeping one record per pair.

        Raises:
            InvalidOperationError: requester == recipient, message too long
            ConflictError: the pair is pending, accepted or blocked
            DatabaseError: the insert failed for any other store reason
        """
        if requester_id == recipient_id:
            raise InvalidOperationError(message="Cannot connect to yourself")
        message = (message or "").strip()
        if len(message) > MESSAGE_MAX_LENGTH:
            raise InvalidOperationError(
                message=f"Message cannot exceed {MESSAGE_MAX_LENGTH} characters",
                field="message",
            )

        existing = await self.find_by_pair(db, requester_id, recipient_id)
        if existing is not None:
            conflict = _conflict_for(existing)
            if conflict is not None:
                raise conflict
            return await self._reopen(db, existing, requester_id, recipient_id, connection_type, message)

        now = datetime.now(timezone.utc)
        connection = ConnectionRequest(
            requester_id=requester_id,
            recipient_id=recipient_id,
            pair_key=make_pair_key(requester_id, recipient_id),
            status=ConnectionStatus.PENDING,
            type=ConnectionType(connection_type),
            message=message,
            accepted_at=None,
            last_interaction_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(connection)
        except IntegrityError:
            logger.info(
                "Duplicate connection insert for pair %s lost the race",
                connection.pair_key,
            )
            raise await self._conflict_after_race(db, requester_id, recipient_id)
        except SQLAlchemyError as e:
            logger.error("Database error creating connection %s: %s", connection.pair_key, str(e))
            raise DatabaseError(context={"pair_key": connection.pair_key})

        logger.info(
            "Connection %s created: %s -> %s (%s)",
            connection.id,
            requester_id,
            recipient_id,
            connection.type.value,
        )
        return connection

    async def _reopen(
        self,
        db: AsyncSession,
        connection: ConnectionRequest,
        requester_id: UUID,
        recipient_id: UUID,
        connection_type: ConnectionType,
        message: str,
    ) -> ConnectionRequest:
        """rejected → pending on the existing record (conditional UPDATE)."""
        result = await db.execute(
            update(ConnectionRequest)
            .where(
                ConnectionRequest.id == connection.id,
                ConnectionRequest.status == ConnectionStatus.REJECTED,
            )
            .values(
                requester_id=requester_id,
                recipient_id=recipient_id,
                status=ConnectionStatus.PENDING,
                type=ConnectionType(connection_type),
                message=message,
                last_interaction_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Someone else reopened or blocked it first
            raise await self._conflict_after_race(db, requester_id, recipient_id)

        logger.info("Connection %s reopened: %s -> %s", connection.id, requester_id, recipient_id)
        return await self.get_with_parties(db, connection.id)

    async def _conflict_after_race(
        self, db: AsyncSession, requester_id: UUID, recipient_id: UUID
    ) -> ConflictError:
        existing = await self.find_by_pair(db, requester_id, recipient_id)
        conflict = _conflict_for(existing) if existing is not None else None
        return conflict or ConflictError(message=ALREADY_PENDING, context={"status": "pending"})

    # ── Transitions ───────────────────────────────────────────────────────

    async def _transition(
        self,
        db: AsyncSession,
        connection_id: UUID,
        acting_user_id: UUID,
        new_status: ConnectionStatus,
        connection_type: Optional[ConnectionType] = None,
        **extra_values,
    ) -> ConnectionRequest:
        now = datetime.now(timezone.utc)
        conditions = [
            ConnectionRequest.id == connection_id,
            ConnectionRequest.recipient_id == acting_user_id,
            ConnectionRequest.status == ConnectionStatus.PENDING,
        ]
        if connection_type is not None:
            conditions.append(ConnectionRequest.type == ConnectionType(connection_type))
        try:
            result = await db.execute(
                update(ConnectionRequest)
                .where(*conditions)
                .values(status=new_status, last_interaction_at=now, **extra_values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            logger.error("Database error updating connection %s: %s", connection_id, str(e))
            raise DatabaseError(context={"connection_id": str(connection_id)})

        if result.rowcount != 1:
            raise NotFoundError(
                resource="connection",
                resource_id=str(connection_id),
                message="Connection request not found",
            )

        logger.info("Connection %s: pending -> %s", connection_id, new_status.value)
        return await self.get_with_parties(db, connection_id)

    async def accept(
        self,
        db: AsyncSession,
        connection_id: UUID,
        acting_user_id: UUID,
        connection_type: Optional[ConnectionType] = None,
    ) -> ConnectionRequest:
        """
        pending → accepted; sets accepted_at exactly once.

        With `connection_type`, a request of any other type is treated as
        missing.
        """
        return await self._transition(
            db,
            connection_id,
            acting_user_id,
            ConnectionStatus.ACCEPTED,
            connection_type,
            accepted_at=datetime.now(timezone.utc),
        )

    async def reject(
        self,
        db: AsyncSession,
        connection_id: UUID,
        acting_user_id: UUID,
        connection_type: Optional[ConnectionType] = None,
    ) -> ConnectionRequest:
        """pending → rejected. The record is kept."""
        return await self._transition(
            db, connection_id, acting_user_id, ConnectionStatus.REJECTED, connection_type
        )

    async def block(
        self, db: AsyncSession, connection_id: UUID, acting_user_id: UUID
    ) -> Tuple[ConnectionRequest, ConnectionStatus]:
        """
        pending|accepted → blocked, by either party.

        Returns the record and the status it was blocked from, so the caller
        can settle counters for a blocked acceptance.
        """
        connection = await self.get_with_parties(db, connection_id)
        if not connection.involves(acting_user_id):
            raise NotFoundError(
                resource="connection",
                resource_id=str(connection_id),
                message="Connection not found",
            )
        previous = connection.status
        if previous not in (ConnectionStatus.PENDING, ConnectionStatus.ACCEPTED):
            raise ConflictError(
                message=f"Cannot block a {previous.value} connection",
                context={"status": previous.value},
            )

        result = await db.execute(
            update(ConnectionRequest)
            .where(
                ConnectionRequest.id == connection_id,
                ConnectionRequest.status == previous,
            )
            .values(
                status=ConnectionStatus.BLOCKED,
                last_interaction_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(message="Connection changed while blocking; try again")

        logger.info("Connection %s: %s -> blocked", connection_id, previous.value)
        return await self.get_with_parties(db, connection_id), previous

    async def remove_accepted(
        self, db: AsyncSession, account_a: UUID, account_b: UUID
    ) -> bool:
        """
        Delete the accepted record of the pair (unfollow).

        Returns False when the pair has no accepted record.
        """
        result = await db.execute(
            delete(ConnectionRequest)
            .where(
                ConnectionRequest.pair_key == make_pair_key(account_a, account_b),
                ConnectionRequest.status == ConnectionStatus.ACCEPTED,
            )
            .execution_options(synchronize_session=False)
        )
        removed = result.rowcount == 1
        if removed:
            logger.info("Accepted connection between %s and %s removed", account_a, account_b)
        return removed

    # ── Listings ──────────────────────────────────────────────────────────

    async def list_pending_for_recipient(
        self,
        db: AsyncSession,
        recipient_id: UUID,
        page: int = 1,
        limit: int = 10,
        connection_type: Optional[ConnectionType] = None,
    ) -> Tuple[List[ConnectionRequest], int]:
        """
        Pending requests addressed to the recipient, most recently requested
        first (a reopened request counts from its reopening).
        """
        conditions = [
            ConnectionRequest.recipient_id == recipient_id,
            ConnectionRequest.status == ConnectionStatus.PENDING,
        ]
        if connection_type is not None:
            conditions.append(ConnectionRequest.type == ConnectionType(connection_type))
        return await self._page(db, conditions, page, limit)

    async def list_accepted(
        self,
        db: AsyncSession,
        account_id: UUID,
        direction: str,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[ConnectionRequest], int]:
        """
        Accepted records where the account is the recipient (followers) or
        the requester (following), newest first.
        """
        if direction == FOLLOWERS:
            side = ConnectionRequest.recipient_id == account_id
        elif direction == FOLLOWING:
            side = ConnectionRequest.requester_id == account_id
        else:
            raise InvalidOperationError(message=f"Unknown direction '{direction}'")
        conditions = [side, ConnectionRequest.status == ConnectionStatus.ACCEPTED]
        return await self._page(db, conditions, page, limit)

    async def _page(
        self, db: AsyncSession, conditions, page: int, limit: int
    ) -> Tuple[List[ConnectionRequest], int]:
        try:
            items_result = await db.execute(
                select(ConnectionRequest)
                .where(*conditions)
                .options(
                    selectinload(ConnectionRequest.requester),
                    selectinload(ConnectionRequest.recipient),
                )
                .order_by(
                    ConnectionRequest.last_interaction_at.desc(),
                    ConnectionRequest.id.desc(),
                )
                .offset((page - 1) * limit)
                .limit(limit)
            )
            total_result = await db.execute(
                select(func.count(ConnectionRequest.id)).where(*conditions)
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing connections: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve connections. Please try again.")
        return list(items_result.scalars().all()), total_result.scalar() or 0


connection_ledger = ConnectionLedger()
