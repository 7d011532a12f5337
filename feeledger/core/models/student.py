"""Learner and guardian directory. Phones are stored normalized so payer lookups are exact matches."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Table
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, validates

from feeledger.core.config import settings
from feeledger.core.phone import normalize_phone_for_storage
from feeledger.db.session import Base

guardian_students = Table(
    "guardian_students",
    Base.metadata,
    Column("guardian_id", UUID(as_uuid=True), ForeignKey("guardians.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class Student(Base):
    """Learner. admission_number doubles as the student reference in M-Pesa bill references."""

    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    admission_number = Column(String(50), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True, index=True)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    guardians = relationship("Guardian", secondary=guardian_students, back_populates="students")

    @validates("phone")
    def _normalize_phone(self, key, value):
        return normalize_phone_for_storage(value, settings.phone_country_code)


class Guardian(Base):
    """Parent/guardian. Payments from a guardian's phone may belong to any linked learner."""

    __tablename__ = "guardians"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    students = relationship("Student", secondary=guardian_students, back_populates="guardians")

    @validates("phone")
    def _normalize_phone(self, key, value):
        return normalize_phone_for_storage(value, settings.phone_country_code)
