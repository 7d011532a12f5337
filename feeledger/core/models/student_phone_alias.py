"""Learned phone -> learner mapping, built from past unambiguous M-Pesa payments."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class StudentPhoneAlias(Base):
    __tablename__ = "student_phone_aliases"
    __table_args__ = (UniqueConstraint("student_id", "phone", name="uq_student_phone_alias"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    phone = Column(String(30), nullable=False, index=True)  # normalized MSISDN
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", backref="phone_aliases")
