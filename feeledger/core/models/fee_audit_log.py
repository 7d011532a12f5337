"""Fee audit log: immutable financial change tracking for audit safety."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class FeeAuditLog(Base):
    """Immutable audit trail for fee schedule edits, propagation runs and manual payments."""

    __tablename__ = "fee_audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity = Column(String(50), nullable=False)  # class_fee_structures, fee_structure_apply, payments
    entity_id = Column(String(100), nullable=False)
    action_type = Column(String(30), nullable=False)  # CREATE, UPDATE, APPLY
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    changed_by = Column(UUID(as_uuid=True), ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    changed_by_user = relationship("StaffUser", foreign_keys=[changed_by])
