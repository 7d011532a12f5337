from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.rbac import check_permission
from feeledger.auth.schemas import CurrentUser
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db, get_session_factory

from .schemas import GuardianCreate, GuardianResponse, StudentCreate, StudentResponse, StudentTransfer, StudentWriteResponse
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentWriteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def enroll_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentWriteResponse:
    try:
        return await service.enroll_student(db, session_factory, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/guardians",
    response_model=GuardianResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def create_guardian(
    payload: GuardianCreate,
    db: AsyncSession = Depends(get_db),
) -> GuardianResponse:
    try:
        return await service.create_guardian(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    obj = await service.get_student(db, student_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return obj


@router.post(
    "/{student_id}/transfer",
    response_model=StudentWriteResponse,
    dependencies=[Depends(check_permission("students", "update"))],
)
async def transfer_student(
    student_id: UUID,
    payload: StudentTransfer,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentWriteResponse:
    try:
        return await service.transfer_student(db, session_factory, student_id, payload.class_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
