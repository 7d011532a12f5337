"""Fees router: learner fee lines, manual payment, payment history."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.rbac import check_permission
from feeledger.auth.schemas import CurrentUser
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db

from .schemas import PaymentCreate, PaymentResponse, PaymentResult, StudentFeeResponse
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get(
    "/student/{student_id}",
    response_model=List[StudentFeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fees(
    student_id: UUID,
    academic_year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[StudentFeeResponse]:
    return await service.get_student_fees(db, student_id, academic_year=academic_year)


# --- Payment ---
@router.post(
    "/pay/{student_fee_id}",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    student_fee_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResult:
    try:
        return await service.record_payment(
            db,
            student_fee_id,
            payload,
            recorded_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/payment-history/{student_id}",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_payment_history(
    student_id: UUID,
    academic_year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    return await service.get_payment_history(db, student_id, academic_year=academic_year)
