"""Fees service: learner fee lines, manual (non M-Pesa) payments, payment history."""

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import PaymentMethod
from feeledger.core.exceptions import ServiceError
from feeledger.core.models import FeeCategory, Payment, StudentFee
from feeledger.db.repositories import FeeLineRepository, PaymentRepository

from .audit_service import log_fee_audit
from .ledger import apply_payment, to_minor_units
from .schemas import PaymentCreate, PaymentResponse, PaymentResult, StudentFeeResponse


def _sf_to_response(sf: StudentFee, category: Optional[Tuple[str, str]] = None) -> StudentFeeResponse:
    code, name = category or (None, None)
    return StudentFeeResponse(
        id=sf.id,
        student_id=sf.student_id,
        fee_category_id=sf.fee_category_id,
        fee_category_code=code,
        fee_category_name=name,
        term=sf.term,
        academic_year=sf.academic_year,
        base_amount=sf.base_amount,
        amount_due=sf.amount_due,
        amount_paid=sf.amount_paid or 0,
        balance=sf.balance,
        locked=bool(sf.locked),
        status=sf.status,
        source_structure_id=sf.source_structure_id,
        discount_reason=sf.discount_reason,
        due_date=sf.due_date,
        created_at=sf.created_at,
        updated_at=sf.updated_at,
    )


def _payment_to_response(p: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        student_fee_id=p.student_fee_id,
        amount=p.amount,
        method=p.method,
        reference=p.reference,
        recorded_by=p.recorded_by,
        created_at=p.created_at,
    )


async def _category_labels(db: AsyncSession, category_ids) -> Dict[UUID, Tuple[str, str]]:
    if not category_ids:
        return {}
    rows = (
        await db.execute(
            select(FeeCategory.id, FeeCategory.code, FeeCategory.name).where(FeeCategory.id.in_(set(category_ids)))
        )
    ).all()
    return {r[0]: (r[1], r[2]) for r in rows}


async def get_student_fees(
    db: AsyncSession,
    student_id: UUID,
    academic_year: Optional[int] = None,
) -> List[StudentFeeResponse]:
    lines = await FeeLineRepository(db).list_for_student(student_id, academic_year=academic_year)
    labels = await _category_labels(db, [sf.fee_category_id for sf in lines])
    return [_sf_to_response(sf, labels.get(sf.fee_category_id)) for sf in lines]


async def record_payment(
    db: AsyncSession,
    student_fee_id: UUID,
    payload: PaymentCreate,
    recorded_by: Optional[UUID],
) -> PaymentResult:
    """Record a cash/bank/cheque payment collected at the office. M-Pesa goes through the C2B webhook."""
    if payload.method == PaymentMethod.MPESA:
        raise ServiceError(
            "M-Pesa payments are recorded from the C2B confirmation only",
            status.HTTP_400_BAD_REQUEST,
        )
    amount_minor = to_minor_units(payload.amount)
    applied = await apply_payment(
        db,
        student_fee_id,
        amount_minor,
        payload.method,
        reference=(payload.reference or "").strip() or None,
        recorded_by=recorded_by,
        allow_overpay=False,
    )
    await log_fee_audit(
        db, "payments", applied.payment.id, "CREATE",
        new_value={
            "amount": amount_minor,
            "method": applied.payment.method,
            "student_fee_id": str(student_fee_id),
            "student_fee_old_status": applied.previous_status,
            "student_fee_new_status": applied.student_fee.status,
        },
        changed_by=recorded_by,
    )
    await db.commit()
    await db.refresh(applied.payment)
    await db.refresh(applied.student_fee)
    labels = await _category_labels(db, [applied.student_fee.fee_category_id])
    return PaymentResult(
        payment=_payment_to_response(applied.payment),
        student_fee=_sf_to_response(applied.student_fee, labels.get(applied.student_fee.fee_category_id)),
    )


async def get_payment_history(
    db: AsyncSession,
    student_id: UUID,
    academic_year: Optional[int] = None,
) -> List[PaymentResponse]:
    payments = await PaymentRepository(db).list_for_student(student_id, academic_year=academic_year)
    return [_payment_to_response(p) for p in payments]
