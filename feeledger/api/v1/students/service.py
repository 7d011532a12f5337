"""
Learner directory writes. Enrollment and class transfer apply the destination class's fee
schedule for the current academic year to the learner.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from feeledger.api.v1.fee_structures.service import propagate_class_fees
from feeledger.auth.schemas import CurrentUser
from feeledger.core.config import settings
from feeledger.core.exceptions import ServiceError
from feeledger.core.models import Guardian, SchoolClass, Student

from .schemas import GuardianCreate, GuardianResponse, StudentCreate, StudentResponse, StudentWriteResponse

logger = logging.getLogger(__name__)


async def _ensure_class(db: AsyncSession, class_id: Optional[UUID]) -> None:
    if class_id is not None and not await db.get(SchoolClass, class_id):
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)


async def _apply_class_fees(
    session_factory: async_sessionmaker,
    student: Student,
    actor: CurrentUser,
    reason: str,
    academic_year: Optional[int] = None,
):
    if student.class_id is None:
        return None
    result = await propagate_class_fees(
        session_factory,
        student.class_id,
        academic_year or settings.current_academic_year,
        actor,
        student_ids=[student.id],
        reason=reason,
    )
    return result.to_summary()


async def enroll_student(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    payload: StudentCreate,
    actor: CurrentUser,
) -> StudentWriteResponse:
    await _ensure_class(db, payload.class_id)
    student = Student(
        admission_number=payload.admission_number.strip(),
        full_name=payload.full_name.strip(),
        phone=payload.phone,
        class_id=payload.class_id,
        is_active=True,
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Admission number already exists", status.HTTP_409_CONFLICT)
    await db.refresh(student)
    logger.info("Enrolled student %s (%s)", student.id, student.admission_number)

    propagation = await _apply_class_fees(session_factory, student, actor, "student enrolled")
    return StudentWriteResponse(student=StudentResponse.model_validate(student), propagation=propagation)


async def transfer_student(
    db: AsyncSession,
    session_factory: async_sessionmaker,
    student_id: UUID,
    class_id: UUID,
    actor: CurrentUser,
) -> StudentWriteResponse:
    """Move a learner to another class. Existing fee lines stay; only the destination schedule is applied."""
    student = await db.get(Student, student_id)
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    await _ensure_class(db, class_id)

    previous_class_id = student.class_id
    student.class_id = class_id
    await db.commit()
    await db.refresh(student)
    logger.info("Transferred student %s from class %s to %s", student.id, previous_class_id, class_id)

    propagation = await _apply_class_fees(session_factory, student, actor, "student transferred")
    return StudentWriteResponse(student=StudentResponse.model_validate(student), propagation=propagation)


async def get_student(db: AsyncSession, student_id: UUID) -> Optional[StudentResponse]:
    student = await db.get(Student, student_id)
    return StudentResponse.model_validate(student) if student else None


async def create_guardian(db: AsyncSession, payload: GuardianCreate) -> GuardianResponse:
    students = []
    if payload.student_ids:
        result = await db.execute(select(Student).where(Student.id.in_(set(payload.student_ids))))
        students = list(result.scalars().all())
        missing = set(payload.student_ids) - {s.id for s in students}
        if missing:
            raise ServiceError(
                f"Student(s) not found: {', '.join(sorted(str(m) for m in missing))}",
                status.HTTP_404_NOT_FOUND,
            )

    guardian = Guardian(full_name=payload.full_name.strip(), phone=payload.phone, students=students)
    db.add(guardian)
    await db.commit()

    result = await db.execute(
        select(Guardian).options(selectinload(Guardian.students)).where(Guardian.id == guardian.id)
    )
    guardian = result.scalar_one()
    return GuardianResponse(
        id=guardian.id,
        full_name=guardian.full_name,
        phone=guardian.phone,
        student_ids=[s.id for s in guardian.students],
        created_at=guardian.created_at,
    )
