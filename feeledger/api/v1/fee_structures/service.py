"""
Fee structures service: fee categories, class fee schedules, and propagation of a class
schedule into every enrolled learner's fee lines.

Propagation runs one learner per transaction with bounded concurrency. A failure for one
learner is collected and reported; the rest of the class still gets updated. Rerunning is
safe because the per-line rule is idempotent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feeledger.api.v1.fees.audit_service import log_fee_audit
from feeledger.api.v1.fees.ledger import to_minor_units
from feeledger.auth.schemas import CurrentUser
from feeledger.core.config import settings
from feeledger.core.enums import Term
from feeledger.core.exceptions import ServiceError
from feeledger.core.models import ClassFeeStructure, FeeCategory, SchoolClass, StudentFee
from feeledger.db.repositories import DirectoryRepository, FeeLineRepository, FeeScheduleRepository

from .engine import apply_structure_change
from .schemas import (
    FeeCategoryCreate,
    FeeCategoryResponse,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    FeeStructureWriteResponse,
    PreviewLine,
    PreviewResponse,
    PropagationFailureItem,
    PropagationSummary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleLine:
    """Detached copy of a ClassFeeStructure row, safe to share across sessions."""

    id: UUID
    fee_category_id: UUID
    term: str  # yearly rows already mapped to TERM1
    amount: int


@dataclass
class PropagationFailure:
    student_id: UUID
    error: str


@dataclass
class PropagationResult:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failures: List[PropagationFailure] = field(default_factory=list)

    @property
    def affected(self) -> int:
        return self.created + self.updated

    def to_summary(self) -> PropagationSummary:
        return PropagationSummary(
            created=self.created,
            updated=self.updated,
            unchanged=self.unchanged,
            affected=self.affected,
            failures=[PropagationFailureItem(student_id=f.student_id, error=f.error) for f in self.failures],
        )


# --- Fee Category ---
async def create_fee_category(db: AsyncSession, payload: FeeCategoryCreate) -> FeeCategoryResponse:
    category = FeeCategory(
        name=payload.name.strip(),
        code=payload.code.strip().upper(),
        description=payload.description,
        frequency=payload.frequency.value,
        is_recurring=payload.is_recurring,
    )
    db.add(category)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Fee category name or code already exists", status.HTTP_409_CONFLICT)
    await db.refresh(category)
    return FeeCategoryResponse.model_validate(category)


async def list_fee_categories(db: AsyncSession) -> List[FeeCategoryResponse]:
    result = await db.execute(select(FeeCategory).order_by(FeeCategory.name))
    return [FeeCategoryResponse.model_validate(c) for c in result.scalars().all()]


# --- Class Fee Structure ---
def _schedule_lines(structures: Sequence[ClassFeeStructure], term: Optional[Term] = None) -> List[ScheduleLine]:
    """Snapshot schedule rows; with a term, keep that term's rows (and yearly rows under TERM1)."""
    term_value = Term(term).value if term else None
    lines = []
    for s in structures:
        target_term = s.term or Term.TERM1.value
        if term_value and target_term != term_value:
            continue
        lines.append(ScheduleLine(id=s.id, fee_category_id=s.fee_category_id, term=target_term, amount=s.amount))
    return lines


async def list_fee_structures(
    db: AsyncSession,
    class_id: UUID,
    academic_year: int,
) -> List[FeeStructureResponse]:
    structures = await FeeScheduleRepository(db).structures_for_class(class_id, academic_year)
    return [FeeStructureResponse.model_validate(s) for s in structures]


async def create_fee_structure(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    payload: FeeStructureCreate,
    actor: CurrentUser,
) -> FeeStructureWriteResponse:
    if not await db.get(SchoolClass, payload.class_id):
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)
    if not await db.get(FeeCategory, payload.fee_category_id):
        raise ServiceError("Fee category not found", status.HTTP_404_NOT_FOUND)

    structure = ClassFeeStructure(
        class_id=payload.class_id,
        fee_category_id=payload.fee_category_id,
        term=payload.term.value if payload.term else None,
        academic_year=payload.academic_year,
        amount=to_minor_units(payload.amount),
    )
    db.add(structure)
    try:
        await db.flush()
        await log_fee_audit(
            db, "class_fee_structures", structure.id, "CREATE",
            new_value={
                "class_id": str(structure.class_id),
                "fee_category_id": str(structure.fee_category_id),
                "term": structure.term,
                "academic_year": structure.academic_year,
                "amount": structure.amount,
            },
            changed_by=actor.id,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            "Fee structure already exists for this class, category, term and year",
            status.HTTP_409_CONFLICT,
        )
    await db.refresh(structure)
    response = FeeStructureResponse.model_validate(structure)

    result = await propagate_class_fees(
        session_factory, structure.class_id, structure.academic_year, actor,
        reason="fee structure created",
    )
    return FeeStructureWriteResponse(structure=response, propagation=result.to_summary())


async def update_fee_structure(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    structure_id: UUID,
    payload: FeeStructureUpdate,
    actor: CurrentUser,
) -> FeeStructureWriteResponse:
    structure = await db.get(ClassFeeStructure, structure_id)
    if not structure:
        raise ServiceError("Fee structure not found", status.HTTP_404_NOT_FOUND)

    old_amount = structure.amount
    structure.amount = to_minor_units(payload.amount)
    await log_fee_audit(
        db, "class_fee_structures", structure.id, "UPDATE",
        old_value={"amount": old_amount},
        new_value={"amount": structure.amount},
        changed_by=actor.id,
        reason=payload.reason,
    )
    await db.commit()
    await db.refresh(structure)
    response = FeeStructureResponse.model_validate(structure)

    result = await propagate_class_fees(
        session_factory, structure.class_id, structure.academic_year, actor,
        reason=payload.reason or "fee structure updated",
    )
    return FeeStructureWriteResponse(structure=response, propagation=result.to_summary())


async def preview_class_fees(
    db: AsyncSession,
    class_id: UUID,
    academic_year: int,
    term: Optional[Term] = None,
) -> PreviewResponse:
    """Lines a propagation run would create or update. Writes nothing."""
    structures = await FeeScheduleRepository(db).structures_for_class(class_id, academic_year)
    schedule = _schedule_lines(structures, term)
    student_ids = await DirectoryRepository(db).active_student_ids_in_class(class_id)
    data = [
        PreviewLine(
            student_id=student_id,
            fee_category_id=s.fee_category_id,
            term=s.term,
            academic_year=academic_year,
            amount=s.amount,
            source_structure_id=s.id,
        )
        for student_id in student_ids
        for s in schedule
    ]
    return PreviewResponse(data=data, count=len(data))


# --- Propagation ---
async def _propagate_student(
    session_factory: async_sessionmaker,
    student_id: UUID,
    schedule: Sequence[ScheduleLine],
    academic_year: int,
) -> Tuple[int, int, int]:
    """Bring one learner's lines in line with the schedule inside a single transaction."""
    created = updated = unchanged = 0
    async with session_factory() as db:
        async with db.begin():
            lines = FeeLineRepository(db)
            for s in schedule:
                line = await lines.find_line(student_id, s.fee_category_id, s.term, academic_year, for_update=True)
                change = apply_structure_change(line, s.amount)
                if line is None:
                    lines.add(
                        StudentFee(
                            student_id=student_id,
                            fee_category_id=s.fee_category_id,
                            term=s.term,
                            academic_year=academic_year,
                            base_amount=s.amount,
                            amount_due=change.amount_due,
                            amount_paid=0,
                            locked=False,
                            status=change.status,
                            source_structure_id=s.id,
                        )
                    )
                    created += 1
                    continue

                if not line.locked:
                    line.base_amount = change.amount_due
                    line.amount_due = change.amount_due
                    line.locked = change.locked
                    line.status = change.status
                line.source_structure_id = s.id
                if change.changed:
                    updated += 1
                else:
                    unchanged += 1
    return created, updated, unchanged


async def propagate_class_fees(
    session_factory: async_sessionmaker,
    class_id: UUID,
    academic_year: int,
    actor: CurrentUser,
    term: Optional[Term] = None,
    student_ids: Optional[Sequence[UUID]] = None,
    concurrency: Optional[int] = None,
    reason: Optional[str] = None,
) -> PropagationResult:
    """
    Apply the class schedule for `academic_year` to every active learner in the class
    (or only `student_ids`). With `term`, only that term's rows are applied; yearly rows
    count as TERM1. Never deletes a fee line.
    """
    concurrency = concurrency or settings.propagation_concurrency
    term_value = Term(term).value if term else None

    async with session_factory() as db:
        structures = await FeeScheduleRepository(db).structures_for_class(class_id, academic_year)
        schedule = _schedule_lines(structures, term)
        if student_ids is None:
            student_ids = await DirectoryRepository(db).active_student_ids_in_class(class_id)

    result = PropagationResult()
    if not schedule or not student_ids:
        logger.info(
            "Nothing to propagate for class=%s year=%s (%s schedule rows, %s learners)",
            class_id, academic_year, len(schedule), len(student_ids or []),
        )
        return result

    semaphore = asyncio.Semaphore(concurrency)

    async def _worker(student_id: UUID) -> None:
        async with semaphore:
            try:
                created, updated, unchanged = await _propagate_student(
                    session_factory, student_id, schedule, academic_year
                )
            except Exception as e:
                logger.warning("Fee propagation failed for student=%s: %s", student_id, e, exc_info=True)
                result.failures.append(PropagationFailure(student_id=student_id, error=str(e) or type(e).__name__))
                return
            result.created += created
            result.updated += updated
            result.unchanged += unchanged

    await asyncio.gather(*(_worker(sid) for sid in student_ids))

    async with session_factory() as db:
        await log_fee_audit(
            db, "fee_structure_apply", f"{class_id}:{academic_year}:{term_value or '-'}", "APPLY",
            new_value={
                "class_id": str(class_id),
                "academic_year": academic_year,
                "term": term_value,
                "learners": len(student_ids),
                "created": result.created,
                "updated": result.updated,
                "unchanged": result.unchanged,
                "failed": [str(f.student_id) for f in result.failures],
            },
            changed_by=actor.id,
            reason=reason,
        )
        await db.commit()

    logger.info(
        "Propagated class=%s year=%s term=%s: created=%s updated=%s unchanged=%s failed=%s",
        class_id, academic_year, term_value or "-", result.created, result.updated, result.unchanged,
        len(result.failures),
    )
    return result
