"""
Ledger applier: the only code path that increments StudentFee.amount_paid.

The Payment insert and the fee line update are flushed together and committed by the caller,
so they either both land or neither does.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import PaymentMethod, StudentFeeStatus
from feeledger.core.exceptions import ServiceError
from feeledger.core.models import Payment, StudentFee
from feeledger.db.repositories import FeeLineRepository, PaymentRepository

logger = logging.getLogger(__name__)


@dataclass
class LedgerApplication:
    payment: Payment
    student_fee: StudentFee
    previous_status: Optional[str] = None


def to_minor_units(value: Union[Decimal, str, int, float]) -> int:
    """Convert a major-unit amount (e.g. "100.50") to integer minor units, rounding half up."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_status(amount_due: int, amount_paid: int) -> str:
    if amount_paid <= 0:
        return StudentFeeStatus.paid.value if amount_due <= 0 else StudentFeeStatus.unpaid.value
    if amount_paid >= amount_due:
        return StudentFeeStatus.paid.value
    return StudentFeeStatus.partially_paid.value


async def apply_payment(
    db: AsyncSession,
    student_fee_id: UUID,
    amount_minor: int,
    method: PaymentMethod,
    reference: Optional[str] = None,
    recorded_by: Optional[UUID] = None,
    allow_overpay: bool = True,
) -> LedgerApplication:
    """
    Record a payment against one fee line and bump its amount_paid/status. Caller must commit.
    Over- and under-payments are kept as-is on the line; nothing is split across lines.
    With allow_overpay=False the balance check runs against the locked row.
    """
    if amount_minor <= 0:
        raise ServiceError("Payment amount must be positive", status.HTTP_400_BAD_REQUEST)

    line = await FeeLineRepository(db).get(student_fee_id, for_update=True)
    if not line:
        raise ServiceError("Student fee not found", status.HTTP_404_NOT_FOUND)
    if not allow_overpay and amount_minor > line.balance:
        raise ServiceError("Payment amount cannot exceed remaining balance", status.HTTP_400_BAD_REQUEST)
    previous_status = line.status

    payment = PaymentRepository(db).add(
        Payment(
            student_fee_id=line.id,
            amount=amount_minor,
            method=PaymentMethod(method).value,
            reference=reference,
            recorded_by=recorded_by,
        )
    )
    line.amount_paid = (line.amount_paid or 0) + amount_minor
    line.status = compute_status(line.amount_due, line.amount_paid)
    await db.flush()
    logger.debug(
        "Applied %s minor units to student_fee=%s (paid=%s due=%s status=%s)",
        amount_minor, line.id, line.amount_paid, line.amount_due, line.status,
    )
    return LedgerApplication(payment=payment, student_fee=line, previous_status=previous_status)
