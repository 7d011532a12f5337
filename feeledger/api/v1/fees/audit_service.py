"""
Audit logging for fee schedule edits, propagation runs and manual payments.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.models import FeeAuditLog


async def log_fee_audit(
    db: AsyncSession,
    entity: str,
    entity_id: str,
    action_type: str,
    *,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    changed_by: Optional[UUID] = None,
    reason: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    db.add(
        FeeAuditLog(
            entity=entity,
            entity_id=str(entity_id),
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by,
            reason=reason,
        )
    )
