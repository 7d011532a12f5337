"""Class fee structure: amount per class, fee category, term and academic year."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class ClassFeeStructure(Base):
    """Authoritative schedule the propagator copies into each learner's fee lines. term NULL = yearly."""

    __tablename__ = "class_fee_structures"
    __table_args__ = (
        UniqueConstraint(
            "class_id",
            "fee_category_id",
            "term",
            "academic_year",
            name="uq_class_fee_structure_class_category_term_year",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_category_id = Column(
        UUID(as_uuid=True),
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    term = Column(String(10), nullable=True)  # TERM1, TERM2, TERM3; NULL for yearly / one-time
    academic_year = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)  # minor units
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    fee_category = relationship("FeeCategory")
