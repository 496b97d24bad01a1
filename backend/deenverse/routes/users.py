"""
DeenVerse Backend: User Route Handlers
=======================================

What:  The active-account directory, own profile, public profiles, the
       peer follow graph and the generic connection inbox (peer and
       student-teacher requests alike).
Who:   Any authenticated account; verification is admin-only.

Path order matters: the fixed paths (/users/profile,
/users/connections/...) are declared before /users/{user_id}.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.auth import get_current_account, require_role
from deenverse.database import get_db_session
from deenverse.models.account import Account, AccountRole
from deenverse.models.connection import ConnectionType
from deenverse.routes.pagination import PageParams
from deenverse.schemas.account import (
    AccountResponse,
    AccountSummary,
    ProfileResponse,
    ProfileUpdateRequest,
    VerifyRequest,
)
from deenverse.schemas.common import ApiResponse, ErrorResponse, Page, PaginationMeta
from deenverse.schemas.connection import ConnectionResponse
from deenverse.services.account_directory import account_directory
from deenverse.services.connection_service import connection_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

_AUTH_ERRORS = {401: {"description": "Missing or invalid token", "model": ErrorResponse}}
_NOT_FOUND = {404: {"description": "User not found", "model": ErrorResponse}}


# ── Directory ─────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=ApiResponse[Page[AccountResponse]],
    responses=_AUTH_ERRORS,
    summary="List active accounts",
    description="Newest first. `search` matches display name or email; `role` filters by role.",
)
async def list_users(
    params: PageParams = Depends(),
    role: Optional[AccountRole] = Query(default=None, description="Filter by role"),
    search: Optional[str] = Query(default=None, max_length=100, description="Search text"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountResponse]]:
    items, total = await account_directory.list_users(
        db, params.page, params.limit, role=role, search=search
    )
    return ApiResponse(
        data=Page[AccountResponse](
            items=[AccountResponse.model_validate(u) for u in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        )
    )


# ── Own profile ───────────────────────────────────────────────────────────

@router.get(
    "/profile",
    response_model=ApiResponse[ProfileResponse],
    responses=_AUTH_ERRORS,
    summary="Get the caller's profile",
)
async def get_profile(
    account: Account = Depends(get_current_account),
) -> ApiResponse[ProfileResponse]:
    return ApiResponse(data=ProfileResponse.model_validate(account))


@router.put(
    "/profile",
    response_model=ApiResponse[ProfileResponse],
    responses={**_AUTH_ERRORS, 400: {"description": "Invalid fields", "model": ErrorResponse}},
    summary="Update the caller's profile",
    description="Only displayName, bio and specializations can be changed.",
)
async def update_profile(
    body: ProfileUpdateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ProfileResponse]:
    account = await account_directory.update_profile(
        db,
        account,
        display_name=body.display_name,
        bio=body.bio,
        specializations=body.specializations,
    )
    return ApiResponse(
        message="Profile updated successfully",
        data=ProfileResponse.model_validate(account),
    )


@router.delete(
    "/profile",
    response_model=ApiResponse[None],
    responses=_AUTH_ERRORS,
    summary="Deactivate the caller's account",
)
async def deactivate_account(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await account_directory.deactivate(db, account)
    return ApiResponse(message="Account deactivated successfully")


# ── Connection inbox ──────────────────────────────────────────────────────

@router.get(
    "/connections/requests",
    response_model=ApiResponse[Page[ConnectionResponse]],
    responses=_AUTH_ERRORS,
    summary="List pending connection requests addressed to the caller",
)
async def list_connection_requests(
    params: PageParams = Depends(),
    connection_type: Optional[ConnectionType] = Query(
        default=None, alias="type", description="Filter by connection type"
    ),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[ConnectionResponse]]:
    items, total = await connection_service.list_pending(
        db, account, params.page, params.limit, connection_type
    )
    return ApiResponse(
        data=Page[ConnectionResponse](
            items=[ConnectionResponse.model_validate(c) for c in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        )
    )


@router.post(
    "/connections/{connection_id}/accept",
    response_model=ApiResponse[ConnectionResponse],
    responses={
        **_AUTH_ERRORS,
        404: {"description": "No pending request with this id for the caller", "model": ErrorResponse},
    },
    summary="Accept a pending connection request",
)
async def accept_connection(
    connection_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.accept(db, connection_id, account)
    return ApiResponse(
        message="Connection request accepted successfully",
        data=ConnectionResponse.model_validate(connection),
    )


@router.post(
    "/connections/{connection_id}/reject",
    response_model=ApiResponse[ConnectionResponse],
    responses={
        **_AUTH_ERRORS,
        404: {"description": "No pending request with this id for the caller", "model": ErrorResponse},
    },
    summary="Reject a pending connection request",
)
async def reject_connection(
    connection_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.reject(db, connection_id, account)
    return ApiResponse(
        message="Connection request rejected successfully",
        data=ConnectionResponse.model_validate(connection),
    )


# ── Other accounts ────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=ApiResponse[AccountResponse],
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="Get a public profile",
)
async def get_user(
    user_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AccountResponse]:
    user = await account_directory.get_active(db, user_id)
    return ApiResponse(data=AccountResponse.model_validate(user))


@router.post(
    "/{user_id}/follow",
    response_model=ApiResponse[ConnectionResponse],
    responses={
        **_AUTH_ERRORS,
        **_NOT_FOUND,
        400: {"description": "Self-follow, already following or pending", "model": ErrorResponse},
    },
    summary="Send a follow request",
)
async def follow_user(
    user_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.follow(db, account, user_id)
    return ApiResponse(
        message="Follow request sent successfully",
        data=ConnectionResponse.model_validate(connection),
    )


@router.delete(
    "/{user_id}/unfollow",
    response_model=ApiResponse[None],
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Not following this user", "model": ErrorResponse},
    },
    summary="Remove an accepted connection",
)
async def unfollow_user(
    user_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await connection_service.unfollow(db, account, user_id)
    return ApiResponse(message="Unfollowed successfully")


@router.get(
    "/{user_id}/followers",
    response_model=ApiResponse[Page[AccountSummary]],
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="List accounts connected to the user as requesters",
)
async def list_followers(
    user_id: UUID,
    params: PageParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountSummary]]:
    items, total = await connection_service.list_followers(
        db, user_id, params.page, params.limit
    )
    return ApiResponse(
        data=Page[AccountSummary](
            items=[AccountSummary.model_validate(a) for a in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        )
    )


@router.get(
    "/{user_id}/following",
    response_model=ApiResponse[Page[AccountSummary]],
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="List accounts the user is connected to as requester",
)
async def list_following(
    user_id: UUID,
    params: PageParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountSummary]]:
    items, total = await connection_service.list_following(
        db, user_id, params.page, params.limit
    )
    return ApiResponse(
        data=Page[AccountSummary](
            items=[AccountSummary.model_validate(a) for a in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        )
    )


@router.post(
    "/{user_id}/verify",
    response_model=ApiResponse[AccountResponse],
    responses={
        **_AUTH_ERRORS,
        **_NOT_FOUND,
        403: {"description": "Caller is not an admin", "model": ErrorResponse},
    },
    summary="Set an account's verified flag (admin)",
)
async def verify_user(
    user_id: UUID,
    body: Optional[VerifyRequest] = Body(default=None),
    admin: Account = Depends(require_role(AccountRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AccountResponse]:
    verified = body.verified if body is not None else True
    user = await account_directory.set_verified(db, user_id, verified)
    logger.info("Admin %s set verified=%s on %s", admin.id, verified, user.id)
    return ApiResponse(
        message="Verification updated successfully",
        data=AccountResponse.model_validate(user),
    )
