"""
Repositories over the fee-ledger aggregates. Each wraps the caller's AsyncSession and never commits;
the service that owns the unit of work decides when to flush and commit.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import MpesaTransactionStatus
from feeledger.core.models import (
    ClassFeeStructure,
    FeeCategory,
    Guardian,
    MpesaTransaction,
    Payment,
    Student,
    StudentFee,
    StudentPhoneAlias,
    guardian_students,
)


def _oldest_first(stmt):
    # Oldest obligation first: earlier year, then yearly (NULL term) before TERM1..TERM3
    return stmt.order_by(
        StudentFee.academic_year.asc(),
        StudentFee.term.asc().nullsfirst(),
        StudentFee.created_at.asc(),
    )


class FeeLineRepository:
    """Student fee lines."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, student_fee_id: UUID, for_update: bool = False) -> Optional[StudentFee]:
        stmt = select(StudentFee).where(StudentFee.id == student_fee_id)
        if for_update:
            # Reload over any copy already in the identity map so the locked values win
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def find_line(
        self,
        student_id: UUID,
        fee_category_id: UUID,
        term: Optional[str],
        academic_year: int,
        for_update: bool = False,
    ) -> Optional[StudentFee]:
        term_clause = StudentFee.term.is_(None) if term is None else StudentFee.term == term
        stmt = select(StudentFee).where(
            StudentFee.student_id == student_id,
            StudentFee.fee_category_id == fee_category_id,
            term_clause,
            StudentFee.academic_year == academic_year,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def oldest_outstanding(
        self,
        student_id: UUID,
        fee_category_id: Optional[UUID] = None,
        exclude_category_id: Optional[UUID] = None,
    ) -> Optional[StudentFee]:
        """Oldest line with amount_due > amount_paid, optionally within / outside one category."""
        stmt = select(StudentFee).where(
            StudentFee.student_id == student_id,
            StudentFee.amount_due > StudentFee.amount_paid,
        )
        if fee_category_id is not None:
            stmt = stmt.where(StudentFee.fee_category_id == fee_category_id)
        if exclude_category_id is not None:
            stmt = stmt.where(StudentFee.fee_category_id != exclude_category_id)
        stmt = _oldest_first(stmt).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def list_for_student(self, student_id: UUID, academic_year: Optional[int] = None) -> List[StudentFee]:
        stmt = select(StudentFee).where(StudentFee.student_id == student_id)
        if academic_year is not None:
            stmt = stmt.where(StudentFee.academic_year == academic_year)
        result = await self.db.execute(_oldest_first(stmt))
        return list(result.scalars().all())

    def add(self, line: StudentFee) -> StudentFee:
        self.db.add(line)
        return line


class PaymentRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        return payment

    async def list_for_student(self, student_id: UUID, academic_year: Optional[int] = None) -> List[Payment]:
        stmt = (
            select(Payment)
            .join(StudentFee, Payment.student_fee_id == StudentFee.id)
            .where(StudentFee.student_id == student_id)
        )
        if academic_year is not None:
            stmt = stmt.where(StudentFee.academic_year == academic_year)
        stmt = stmt.order_by(Payment.created_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())


class TransactionRecordRepository:
    """M-Pesa transaction records. Existence of a row for a TransID is the idempotency check."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, transaction_id: str) -> bool:
        stmt = select(MpesaTransaction.id).where(MpesaTransaction.transaction_id == transaction_id).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[MpesaTransaction]:
        stmt = select(MpesaTransaction).where(MpesaTransaction.transaction_id == transaction_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    def add(self, record: MpesaTransaction) -> MpesaTransaction:
        self.db.add(record)
        return record

    async def list_pending(self, take: int, reason: Optional[str] = None) -> List[MpesaTransaction]:
        stmt = select(MpesaTransaction).where(MpesaTransaction.status == MpesaTransactionStatus.PENDING.value)
        if reason:
            stmt = stmt.where(MpesaTransaction.review_reason == reason)
        stmt = stmt.order_by(MpesaTransaction.created_at.desc()).limit(take)
        return list((await self.db.execute(stmt)).scalars().all())


class AliasRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def student_ids_for_phone(self, phone: str) -> List[UUID]:
        stmt = select(StudentPhoneAlias.student_id).where(StudentPhoneAlias.phone == phone)
        return list((await self.db.execute(stmt)).scalars().all())

    async def ensure(self, student_id: UUID, phone: str) -> bool:
        """Create the (student, phone) alias unless it exists. Returns True when a row was added."""
        stmt = select(StudentPhoneAlias.id).where(
            StudentPhoneAlias.student_id == student_id,
            StudentPhoneAlias.phone == phone,
        )
        if (await self.db.execute(stmt)).scalar_one_or_none() is not None:
            return False
        self.db.add(StudentPhoneAlias(student_id=student_id, phone=phone))
        return True


class DirectoryRepository:
    """Read-only learner/guardian lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def student_ids_by_guardian_phone(self, phone: str) -> List[UUID]:
        stmt = (
            select(guardian_students.c.student_id)
            .join(Guardian, Guardian.id == guardian_students.c.guardian_id)
            .where(Guardian.phone == phone)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def student_ids_by_own_phone(self, phone: str) -> List[UUID]:
        stmt = select(Student.id).where(Student.phone == phone)
        return list((await self.db.execute(stmt)).scalars().all())

    async def student_by_admission_number(self, admission_number: str) -> Optional[Student]:
        stmt = select(Student).where(Student.admission_number == admission_number)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def active_student_ids_in_class(self, class_id: UUID) -> List[UUID]:
        stmt = (
            select(Student.id)
            .where(Student.class_id == class_id, Student.is_active.is_(True))
            .order_by(Student.admission_number)
        )
        return list((await self.db.execute(stmt)).scalars().all())


class FeeScheduleRepository:
    """Fee categories and class fee structures."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def category_by_code(self, code: str) -> Optional[FeeCategory]:
        stmt = select(FeeCategory).where(FeeCategory.code == code.strip().upper())
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def structures_for_class(self, class_id: UUID, academic_year: int) -> Sequence[ClassFeeStructure]:
        stmt = (
            select(ClassFeeStructure)
            .where(
                ClassFeeStructure.class_id == class_id,
                ClassFeeStructure.academic_year == academic_year,
            )
            .order_by(ClassFeeStructure.term.asc().nullsfirst(), ClassFeeStructure.created_at)
        )
        return (await self.db.execute(stmt)).scalars().all()
