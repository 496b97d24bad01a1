"""
DeenVerse Backend: Authentication Dependencies
===============================================

What:  FastAPI dependencies that turn an `Authorization: Bearer <token>`
       header into the acting Account, and role guards on top of it.
How:   Tokens are opaque strings stored in account_sessions. A token is
       valid while it is not revoked and its account is active.

Usage:
    @router.get("/users/profile")
    async def get_profile(account: Account = Depends(get_current_account)):
        ...

    @router.post("/users/{user_id}/verify")
    async def verify(admin: Account = Depends(require_role(AccountRole.ADMIN))):
        ...
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.database import get_db_session
from deenverse.exceptions import ForbiddenError, UnauthenticatedError
from deenverse.models.account import Account, AccountRole
from deenverse.services.account_directory import account_directory

logger = logging.getLogger(__name__)

# auto_error=False: a missing header is reported through UnauthenticatedError
# so it gets the standard error envelope
bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError(message="Not authorized, no token")
    return credentials.credentials


async def get_current_account(
    request: Request,
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> Account:
    """
    Resolve the bearer token to an active account.

    Raises:
        UnauthenticatedError: unknown or revoked token, deactivated account
    """
    account = await account_directory.resolve_session(db, token)
    if account is None:
        raise UnauthenticatedError(message="Not authorized, token is invalid")
    # Picked up by the access log middleware
    request.state.account_id = str(account.id)
    return account


def require_role(*roles: AccountRole) -> Callable:
    """Dependency factory: the acting account must hold one of `roles`."""
    allowed = {AccountRole(role) for role in roles}

    async def dependency(account: Account = Depends(get_current_account)) -> Account:
        if account.role not in allowed:
            logger.info(
                "Account %s with role %s denied (requires %s)",
                account.id,
                account.role.value,
                sorted(r.value for r in allowed),
            )
            raise ForbiddenError(
                message=f"Role '{account.role.value}' is not authorized to access this route"
            )
        return account

    return dependency
