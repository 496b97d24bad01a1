"""
DeenVerse Backend: Auth Route Handlers
=======================================

What:  Registration (account + first bearer token) and sign-out.

Password login is not part of this service; tokens are issued at
registration and revoked on logout.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.auth import get_bearer_token, get_current_account
from deenverse.database import get_db_session
from deenverse.models.account import Account
from deenverse.schemas.account import ProfileResponse, RegisterRequest, SessionResponse
from deenverse.schemas.common import ApiResponse, ErrorResponse
from deenverse.services.account_directory import account_directory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SessionResponse],
    responses={
        400: {"description": "Invalid input or email already registered", "model": ErrorResponse},
    },
    summary="Register a new account",
    description=(
        "Creates a student or teacher account and returns it with a bearer "
        "token. Teacher accounts are hidden from the directory until verified."
    ),
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[SessionResponse]:
    account = await account_directory.register(
        db,
        email=body.email,
        display_name=body.display_name,
        role=body.role,
        bio=body.bio,
        specializations=body.specializations,
    )
    token = await account_directory.open_session(db, account)
    return ApiResponse(
        message="Account registered successfully",
        data=SessionResponse(account=ProfileResponse.model_validate(account), token=token),
    )


@router.post(
    "/logout",
    response_model=ApiResponse[None],
    responses={401: {"description": "Missing or invalid token", "model": ErrorResponse}},
    summary="Revoke the current bearer token",
)
async def logout(
    account: Account = Depends(get_current_account),
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await account_directory.revoke_session(db, token)
    logger.info("Account %s signed out", account.id)
    return ApiResponse(message="Logged out successfully")
