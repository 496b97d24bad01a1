"""
DeenVerse Backend: Imaam (Teacher) Route Handlers
==================================================

What:  The verified-teacher directory (listing, featured, search, by
       specialization) and the student-teacher connection workflow:
       request, inbox, accept, reject.
Who:   Any authenticated account browses and requests; the inbox and the
       accept/reject actions require the teacher role and only act on
       student-teacher requests (peer requests are answered under /api/users).

Path order matters: the fixed paths are declared before /imaam/{teacher_id}.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from deenverse.auth import get_current_account, require_role
from deenverse.config import settings
from deenverse.database import get_db_session
from deenverse.exceptions import NotFoundError
from deenverse.models.account import Account, AccountRole
from deenverse.models.connection import ConnectionType
from deenverse.routes.pagination import PageParams
from deenverse.schemas.account import AccountResponse, TeacherResponse
from deenverse.schemas.common import ApiResponse, ErrorResponse, Page, PaginationMeta
from deenverse.schemas.connection import ConnectionCreateRequest, ConnectionResponse
from deenverse.services.account_directory import account_directory
from deenverse.services.connection_service import connection_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/imaam", tags=["Imaam"])

_AUTH_ERRORS = {401: {"description": "Missing or invalid token", "model": ErrorResponse}}
_TEACHER_ONLY = {
    **_AUTH_ERRORS,
    403: {"description": "Caller is not a teacher", "model": ErrorResponse},
}

require_teacher = require_role(AccountRole.TEACHER)


def _teacher_page(items, total, params: PageParams) -> ApiResponse[Page[AccountResponse]]:
    return ApiResponse(
        data=Page[AccountResponse](
            items=[AccountResponse.model_validate(t) for t in items],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        )
    )


@router.get(
    "",
    response_model=ApiResponse[Page[AccountResponse]],
    responses=_AUTH_ERRORS,
    summary="List verified teachers",
    description="Most connected first. `q` searches name, bio and specializations, case-insensitively.",
)
async def list_teachers(
    params: PageParams = Depends(),
    q: Optional[str] = Query(default=None, max_length=100, description="Search text"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountResponse]]:
    items, total = await account_directory.list_teachers(db, params.page, params.limit, q)
    return _teacher_page(items, total, params)


@router.get(
    "/featured",
    response_model=ApiResponse[List[AccountResponse]],
    responses=_AUTH_ERRORS,
    summary="List featured teachers",
    description="The most connected verified teachers. Not paged.",
)
async def list_featured_teachers(
    limit: int = Query(default=6, ge=1, le=settings.featured_max_limit),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[List[AccountResponse]]:
    teachers = await account_directory.list_featured_teachers(db, limit)
    return ApiResponse(data=[AccountResponse.model_validate(t) for t in teachers])


@router.get(
    "/search",
    response_model=ApiResponse[Page[AccountResponse]],
    responses={**_AUTH_ERRORS, 400: {"description": "Missing search text", "model": ErrorResponse}},
    summary="Search verified teachers",
    description="Matches name, bio and specializations, case-insensitively.",
)
async def search_teachers(
    q: str = Query(min_length=1, max_length=100, description="Search text"),
    params: PageParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountResponse]]:
    items, total = await account_directory.list_teachers(db, params.page, params.limit, query=q)
    return _teacher_page(items, total, params)


@router.get(
    "/specialization/{specialization}",
    response_model=ApiResponse[Page[AccountResponse]],
    responses=_AUTH_ERRORS,
    summary="List verified teachers by specialization",
)
async def list_teachers_by_specialization(
    specialization: str,
    params: PageParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[AccountResponse]]:
    items, total = await account_directory.list_teachers(
        db, params.page, params.limit, specialization=specialization
    )
    return _teacher_page(items, total, params)


# ── Teacher inbox ─────────────────────────────────────────────────────────

@router.get(
    "/connections/requests",
    response_model=ApiResponse[Page[ConnectionResponse]],
    responses=_TEACHER_ONLY,
    summary="List pending student requests addressed to the teacher",
)
async def list_connection_requests(
    params: PageParams = Depends(),
    teacher: Account = Depends(require_teacher),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[Page[ConnectionResponse]]:
    items, total = await connection_service.list_pending(
        db, teacher, params.page, params.limit, ConnectionType.STUDENT_TEACHER
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
        **_TEACHER_ONLY,
        404: {"description": "No pending student request with this id for the teacher", "model": ErrorResponse},
    },
    summary="Accept a student's connection request",
)
async def accept_connection(
    connection_id: UUID,
    teacher: Account = Depends(require_teacher),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.accept(
        db, connection_id, teacher, ConnectionType.STUDENT_TEACHER
    )
    return ApiResponse(
        message="Connection request accepted successfully",
        data=ConnectionResponse.model_validate(connection),
    )


@router.post(
    "/connections/{connection_id}/reject",
    response_model=ApiResponse[ConnectionResponse],
    responses={
        **_TEACHER_ONLY,
        404: {"description": "No pending student request with this id for the teacher", "model": ErrorResponse},
    },
    summary="Reject a student's connection request",
)
async def reject_connection(
    connection_id: UUID,
    teacher: Account = Depends(require_teacher),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.reject(
        db, connection_id, teacher, ConnectionType.STUDENT_TEACHER
    )
    return ApiResponse(
        message="Connection request rejected successfully",
        data=ConnectionResponse.model_validate(connection),
    )


# ── Single teacher ────────────────────────────────────────────────────────

@router.get(
    "/{teacher_id}",
    response_model=ApiResponse[TeacherResponse],
    responses={
        **_AUTH_ERRORS,
        404: {"description": "Imaam not found or not verified", "model": ErrorResponse},
    },
    summary="Get a verified teacher's profile",
    description="`isConnected` tells whether the caller has an accepted connection.",
)
async def get_teacher(
    teacher_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[TeacherResponse]:
    teacher = await account_directory.find_verified_teacher(db, teacher_id)
    if teacher is None:
        raise NotFoundError(
            resource="teacher",
            resource_id=str(teacher_id),
            message="Imaam not found",
        )
    response = TeacherResponse.model_validate(teacher)
    response.is_connected = await connection_service.is_connected(db, account.id, teacher.id)
    return ApiResponse(data=response)


@router.post(
    "/{teacher_id}/connect",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ConnectionResponse],
    responses={
        **_AUTH_ERRORS,
        400: {"description": "Self-connect, already connected or pending", "model": ErrorResponse},
        404: {"description": "Imaam not found or not verified", "model": ErrorResponse},
    },
    summary="Request a connection with a teacher",
)
async def request_connection(
    teacher_id: UUID,
    body: Optional[ConnectionCreateRequest] = Body(default=None),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[ConnectionResponse]:
    connection = await connection_service.request_teacher_connection(
        db, account, teacher_id, body.message if body is not None else None
    )
    return ApiResponse(
        message="Connection request sent successfully",
        data=ConnectionResponse.model_validate(connection),
    )
