"""M-Pesa transaction: one audit row per inbound notification, keyed by the provider's TransID."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class MpesaTransaction(Base):
    """
    Idempotency key and audit trail for C2B notifications. Never updated after insert.
    SUCCESS rows point at the fee line and payment; PENDING rows carry a review_reason instead.
    """

    __tablename__ = "mpesa_transactions"
    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_mpesa_transaction_id"),
        CheckConstraint("status IN ('SUCCESS','PENDING')", name="chk_mpesa_transaction_status"),
        CheckConstraint(
            "review_reason IS NULL OR review_reason IN ('NO_STUDENT','MULTIPLE_STUDENTS','NO_FEES','OTHER')",
            name="chk_mpesa_transaction_review_reason",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(String(50), nullable=False)
    amount = Column(Integer, nullable=False)  # minor units
    phone_number = Column(String(30), nullable=False)
    channel = Column(String(20), nullable=False)  # BusinessShortCode
    bill_reference = Column(String(100), nullable=True)
    payer_name = Column(String(255), nullable=True)  # audit only, never used for matching
    student_fee_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fees.id", ondelete="RESTRICT"),
        nullable=True,
    )
    payment_id = Column(UUID(as_uuid=True), ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True)
    status = Column(String(10), nullable=False)
    review_reason = Column(String(30), nullable=True)
    raw_payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    student_fee = relationship("StudentFee")
    payment = relationship("Payment")
