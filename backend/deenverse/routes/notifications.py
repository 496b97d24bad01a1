"""
DeenVerse Backend: Notification Route Handlers
===============================================

What:  The caller's inbox: list, unread badge count, mark one or all read.
Who:   Any authenticated account, always scoped to its own notifications.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.auth import get_current_account
from deenverse.database import get_db_session
from deenverse.models.account import Account
from deenverse.routes.pagination import PageParams
from deenverse.schemas.common import ApiResponse, ErrorResponse, PaginationMeta
from deenverse.schemas.notification import (
    MarkAllReadResponse,
    NotificationPage,
    NotificationResponse,
    UnreadCountResponse,
)
from deenverse.services.notification_sink import notification_sink

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

_AUTH_ERRORS = {401: {"description": "Missing or invalid token", "model": ErrorResponse}}


@router.get(
    "",
    response_model=ApiResponse[NotificationPage],
    responses=_AUTH_ERRORS,
    summary="List the caller's notifications",
    description="Newest first. The page carries the total unread count for badges.",
)
async def list_notifications(
    params: PageParams = Depends(),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NotificationPage]:
    items, total = await notification_sink.list_for_recipient(
        db, account.id, params.page, params.limit, unread_only
    )
    unread = await notification_sink.unread_count(db, account.id)
    return ApiResponse(
        data=NotificationPage(
            items=[NotificationResponse.from_model(n) for n in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
            unread_count=unread,
        )
    )


@router.get(
    "/unread-count",
    response_model=ApiResponse[UnreadCountResponse],
    responses=_AUTH_ERRORS,
    summary="Count the caller's unread notifications",
)
async def get_unread_count(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UnreadCountResponse]:
    count = await notification_sink.unread_count(db, account.id)
    return ApiResponse(data=UnreadCountResponse(count=count))


@router.patch(
    "/read-all",
    response_model=ApiResponse[MarkAllReadResponse],
    responses=_AUTH_ERRORS,
    summary="Mark every notification of the caller as read",
)
async def mark_all_read(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MarkAllReadResponse]:
    updated = await notification_sink.mark_all_read(db, account.id)
    return ApiResponse(
        message="All notifications marked as read",
        data=MarkAllReadResponse(updated=updated),
    )


@router.patch(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Notification not found", "model": ErrorResponse},
    },
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NotificationResponse]:
    notification = await notification_sink.mark_read(db, notification_id, account.id)
    return ApiResponse(
        message="Notification marked as read",
        data=NotificationResponse.from_model(notification),
    )
