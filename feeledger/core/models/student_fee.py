"""Student fee line: one obligation per learner, fee category, term and academic year."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.core.enums import StudentFeeStatus
from feeledger.db.session import Base


class StudentFee(Base):
    """
    Due/paid balance for one obligation. amount_paid only grows, through the ledger applier.
    While locked, amount_due/base_amount are frozen whatever the class schedule says.
    Rows are never deleted, only adjusted.
    """

    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "fee_category_id",
            "term",
            "academic_year",
            name="uq_student_fee_student_category_term_year",
        ),
        CheckConstraint(
            "status IN ('unpaid','partially_paid','paid')",
            name="chk_student_fee_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    term = Column(String(10), nullable=True)
    academic_year = Column(Integer, nullable=False)

    # All amounts in minor units
    base_amount = Column(Integer, nullable=True)
    amount_due = Column(Integer, nullable=False)
    amount_paid = Column(Integer, nullable=False, default=0)
    locked = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=StudentFeeStatus.unpaid.value)

    source_structure_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_fee_structures.id", ondelete="SET NULL"),
        nullable=True,
    )
    discount_reason = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])
    fee_category = relationship("FeeCategory")
    source_structure = relationship("ClassFeeStructure")

    @property
    def balance(self) -> int:
        return (self.amount_due or 0) - (self.amount_paid or 0)
