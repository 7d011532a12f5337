"""Fee structures router: fee categories, class fee schedules, preview and apply."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.rbac import check_permission
from feeledger.auth.schemas import CurrentUser
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db, get_session_factory

from .schemas import (
    ApplyFeeStructuresRequest,
    FeeCategoryCreate,
    FeeCategoryResponse,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    FeeStructureWriteResponse,
    PreviewFeeStructuresRequest,
    PreviewResponse,
    PropagationSummary,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-structures", tags=["fee-structures"])
categories_router = APIRouter(prefix="/api/v1/fee-categories", tags=["fee-structures"])


# --- Fee Category ---
@categories_router.post(
    "",
    response_model=FeeCategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_category(
    payload: FeeCategoryCreate,
    db: AsyncSession = Depends(get_db),
) -> FeeCategoryResponse:
    try:
        return await service.create_fee_category(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@categories_router.get(
    "",
    response_model=List[FeeCategoryResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_categories(db: AsyncSession = Depends(get_db)) -> List[FeeCategoryResponse]:
    return await service.list_fee_categories(db)


# --- Class Fee Structure ---
@router.post(
    "",
    response_model=FeeStructureWriteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureWriteResponse:
    try:
        return await service.create_fee_structure(db, session_factory, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    class_id: UUID,
    academic_year: int = Query(..., ge=2000, le=3000),
    db: AsyncSession = Depends(get_db),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(db, class_id, academic_year)


@router.patch(
    "/{structure_id}",
    response_model=FeeStructureWriteResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_structure(
    structure_id: UUID,
    payload: FeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureWriteResponse:
    try:
        return await service.update_fee_structure(db, session_factory, structure_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/preview",
    response_model=PreviewResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def preview_fee_structures(
    payload: PreviewFeeStructuresRequest,
    db: AsyncSession = Depends(get_db),
) -> PreviewResponse:
    return await service.preview_class_fees(
        db, payload.class_id, payload.academic_year, term=payload.effective_term
    )


@router.post(
    "/apply",
    response_model=PropagationSummary,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def apply_fee_structures(
    payload: ApplyFeeStructuresRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> PropagationSummary:
    result = await service.propagate_class_fees(
        session_factory,
        payload.class_id,
        payload.academic_year,
        current_user,
        term=payload.effective_term,
        reason=payload.reason,
    )
    return result.to_summary()
