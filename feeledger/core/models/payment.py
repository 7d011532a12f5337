"""Payment: immutable record of one settlement against one student fee line."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class Payment(Base):
    """Created only by the ledger applier, together with the matching amount_paid increment."""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_fee_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Integer, nullable=False)  # minor units
    method = Column(String(20), nullable=False)  # MPESA, CASH, BANK, CHEQUE
    reference = Column(String(100), nullable=True)
    recorded_by = Column(UUID(as_uuid=True), ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student_fee = relationship("StudentFee", backref="payments")
