"""Fee category master (Tuition, Meals, Transport, Computer Studies)."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from feeledger.core.enums import FeeFrequency
from feeledger.db.session import Base


class FeeCategory(Base):
    """Named obligation type. code is what bill references and channel rules refer to."""

    __tablename__ = "fee_categories"
    __table_args__ = (
        CheckConstraint(
            "frequency IN ('termly','yearly','one_time')",
            name="chk_fee_category_frequency",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    code = Column(String(20), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    frequency = Column(String(20), nullable=False, default=FeeFrequency.TERMLY.value)
    is_recurring = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
