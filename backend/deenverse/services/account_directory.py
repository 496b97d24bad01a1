"""
DeenVerse Backend: Account Directory
=====================================

What:  Identity lookups, registration, bearer sessions, profile updates and
       the denormalized connections counter.
Who:   Auth dependencies, ConnectionService, the users/imaam/auth routes.

Counter Contract:
    connections_count is only ever moved by increment_connections_count(),
    which issues one relative UPDATE:

        UPDATE accounts SET connections_count = connections_count + :delta
        WHERE id IN (:ids)

    Two accepts landing on the same account at the same time both apply;
    a fetch-modify-store round trip would lose one of them.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.config import settings
from deenverse.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidOperationError,
    NotFoundError,
)
from deenverse.models.account import Account, AccountRole, AccountSession

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountDirectory:
    """
    Stateless service over the accounts and account_sessions tables.

    Every method takes the request's AsyncSession; nothing is committed here.
    The session dependency commits once the whole request succeeded.
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def find_by_id(self, db: AsyncSession, account_id: UUID) -> Optional[Account]:
        return await db.get(Account, account_id)

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[Account]:
        """Case-insensitive: emails are stored lower-cased."""
        result = await db.execute(
            select(Account).where(Account.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_active(self, db: AsyncSession, account_id: UUID) -> Account:
        """
        Fetch an active account or raise NotFoundError.

        Deactivated accounts are reported exactly like missing ones.
        """
        account = await self.find_by_id(db, account_id)
        if account is None or not account.is_active:
            raise NotFoundError(resource="user", message="User not found")
        return account

    async def find_verified_teacher(
        self, db: AsyncSession, account_id: UUID
    ) -> Optional[Account]:
        result = await db.execute(
            select(Account).where(
                Account.id == account_id,
                Account.role == AccountRole.TEACHER,
                Account.is_verified.is_(True),
                Account.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    def _contains(self, column, text: str):
        """Case-insensitive substring match; LIKE wildcards in `text` are literal."""
        return func.lower(column, type_=String).contains(text.strip().lower(), autoescape=True)

    def _specializations_contain(self, text: str):
        # Matches inside the JSON-encoded list, so "fiq" finds ["Fiqh", ...]
        return self._contains(cast(Account.specializations, String), text)

    def _teacher_conditions(self) -> list:
        return [
            Account.role == AccountRole.TEACHER,
            Account.is_verified.is_(True),
            Account.is_active.is_(True),
        ]

    async def _page_accounts(
        self, db: AsyncSession, conditions: list, order_by: tuple, page: int, limit: int
    ) -> Tuple[List[Account], int]:
        try:
            items_result = await db.execute(
                select(Account)
                .where(*conditions)
                .order_by(*order_by)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            total_result = await db.execute(
                select(func.count(Account.id)).where(*conditions)
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing accounts: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve accounts. Please try again.")
        return list(items_result.scalars().all()), total_result.scalar() or 0

    async def list_teachers(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        query: Optional[str] = None,
        specialization: Optional[str] = None,
    ) -> Tuple[List[Account], int]:
        """
        Verified, active teachers, most connected first.

        Filters (case-insensitive substring matches):
            query:          display name, bio or any specialization
            specialization: any specialization
        """
        conditions = self._teacher_conditions()
        if query and query.strip():
            conditions.append(
                or_(
                    self._contains(Account.display_name, query),
                    self._contains(func.coalesce(Account.bio, ""), query),
                    self._specializations_contain(query),
                )
            )
        if specialization and specialization.strip():
            conditions.append(self._specializations_contain(specialization))

        return await self._page_accounts(
            db,
            conditions,
            (Account.connections_count.desc(), Account.display_name.asc()),
            page,
            limit,
        )

    async def list_featured_teachers(self, db: AsyncSession, limit: int = 6) -> List[Account]:
        """The most connected verified teachers with at least
        `featured_min_connections` connections."""
        conditions = self._teacher_conditions()
        conditions.append(Account.connections_count >= settings.featured_min_connections)
        items, _ = await self._page_accounts(
            db,
            conditions,
            (Account.connections_count.desc(), Account.display_name.asc()),
            1,
            limit,
        )
        return items

    async def list_users(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        role: Optional[AccountRole] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Account], int]:
        """
        Active accounts, newest first, optionally of one role and matching
        `search` in display name or email.
        """
        conditions = [Account.is_active.is_(True)]
        if role is not None:
            conditions.append(Account.role == AccountRole(role))
        if search and search.strip():
            conditions.append(
                or_(
                    self._contains(Account.display_name, search),
                    self._contains(Account.email, search),
                )
            )
        return await self._page_accounts(
            db,
            conditions,
            (Account.created_at.desc(), Account.id.desc()),
            page,
            limit,
        )

    # ── Registration & profile ────────────────────────────────────────────

    async def register(
        self,
        db: AsyncSession,
        email: str,
        display_name: str,
        role: AccountRole = AccountRole.STUDENT,
        bio: Optional[str] = None,
        specializations: Optional[Iterable[str]] = None,
    ) -> Account:
        """
        Create an account.

        Teachers start unverified and stay invisible to students until an
        admin verifies them. Admin accounts cannot self-register.

        Raises:
            InvalidOperationError: role is admin
            ConflictError: email already registered (any letter case)
        """
        role = AccountRole(role)
        if role == AccountRole.ADMIN:
            raise InvalidOperationError(
                message="Admin accounts cannot be self-registered",
                field="role",
            )

        email = normalize_email(email)
        if await self.find_by_email(db, email) is not None:
            raise ConflictError(message="An account with this email already exists")

        account = Account(
            email=email,
            display_name=display_name.strip(),
            role=role,
            bio=bio,
            specializations=[s.strip() for s in (specializations or []) if s.strip()],
            is_verified=role != AccountRole.TEACHER,
            is_active=True,
            connections_count=0,
        )
        try:
            async with db.begin_nested():
                db.add(account)
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise ConflictError(message="An account with this email already exists")

        logger.info("Account registered: %s (role=%s)", account.id, role.value)
        return account

    async def update_profile(
        self,
        db: AsyncSession,
        account: Account,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
        specializations: Optional[Iterable[str]] = None,
    ) -> Account:
        if display_name is not None:
            if not display_name.strip():
                raise InvalidOperationError(
                    message="Display name cannot be blank", field="displayName"
                )
            account.display_name = display_name.strip()
        if bio is not None:
            account.bio = bio
        if specializations is not None:
            account.specializations = [s.strip() for s in specializations if s.strip()]
        await db.flush()
        return account

    async def deactivate(self, db: AsyncSession, account: Account) -> Account:
        """
        Soft delete: the account stays for history, the email is freed and
        every session is revoked.
        """
        now = datetime.now(timezone.utc)
        account.is_active = False
        account.email = f"deleted_{int(now.timestamp())}_{account.email}"
        await db.execute(
            update(AccountSession)
            .where(
                AccountSession.account_id == account.id,
                AccountSession.revoked_at.is_(None),
            )
            .values(revoked_at=now)
        )
        await db.flush()
        logger.info("Account deactivated: %s", account.id)
        return account

    async def set_verified(
        self, db: AsyncSession, account_id: UUID, verified: bool = True
    ) -> Account:
        account = await self.get_active(db, account_id)
        account.is_verified = verified
        await db.flush()
        logger.info("Account %s verification set to %s", account.id, verified)
        return account

    # ── Sessions ──────────────────────────────────────────────────────────

    async def open_session(self, db: AsyncSession, account: Account) -> str:
        """Issue a new opaque bearer token for the account."""
        token = secrets.token_urlsafe(settings.session_token_bytes)
        db.add(AccountSession(token=token, account_id=account.id))
        await db.flush()
        return token

    async def resolve_session(self, db: AsyncSession, token: str) -> Optional[Account]:
        """Account for a live token, or None (unknown, revoked, inactive)."""
        result = await db.execute(
            select(Account)
            .join(AccountSession, AccountSession.account_id == Account.id)
            .where(
                AccountSession.token == token,
                AccountSession.revoked_at.is_(None),
                Account.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def revoke_session(self, db: AsyncSession, token: str) -> None:
        await db.execute(
            update(AccountSession)
            .where(AccountSession.token == token, AccountSession.revoked_at.is_(None))
            .values(revoked_at=datetime.now(timezone.utc))
        )

    # ── Counters ──────────────────────────────────────────────────────────

    async def increment_connections_count(
        self, db: AsyncSession, account_ids: Iterable[UUID], delta: int
    ) -> None:
        """
        Atomically add `delta` to each account's connections_count.

        Raises:
            DatabaseError: the UPDATE failed
        """
        ids = list(account_ids)
        if not ids or delta == 0:
            return
        try:
            await db.execute(
                update(Account)
                .where(Account.id.in_(ids))
                .values(connections_count=Account.connections_count + delta)
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            logger.error("Counter update failed for %s: %s", ids, str(e))
            raise DatabaseError(
                context={"operation": "increment_connections_count", "delta": delta}
            )


account_directory = AccountDirectory()
