"""
Schedule change rule for a single fee line. Pure: no database access.

    no line                      -> create at the schedule amount
    line locked                  -> money untouched
    amount_paid > new amount     -> lock, freeze at the new amount, paid
    otherwise                    -> take the new amount, recompute status
"""

from dataclasses import dataclass

from feeledger.api.v1.fees.ledger import compute_status
from feeledger.core.enums import StudentFeeStatus


@dataclass
class StructureChange:
    amount_due: int
    amount_paid: int
    locked: bool
    status: str
    changed: bool


def apply_structure_change(existing, new_amount_due: int) -> StructureChange:
    """`existing` is a StudentFee (or anything with amount_due/amount_paid/locked/status), or None."""
    if existing is None:
        return StructureChange(
            amount_due=new_amount_due,
            amount_paid=0,
            locked=False,
            status=compute_status(new_amount_due, 0),
            changed=True,
        )

    amount_paid = existing.amount_paid or 0

    # Checked before the overpayment rule so a locked amount can never move down again
    if existing.locked:
        return StructureChange(
            amount_due=existing.amount_due,
            amount_paid=amount_paid,
            locked=True,
            status=existing.status,
            changed=False,
        )

    if amount_paid > new_amount_due:
        return StructureChange(
            amount_due=new_amount_due,
            amount_paid=amount_paid,
            locked=True,
            status=StudentFeeStatus.paid.value,
            changed=True,
        )

    status = compute_status(new_amount_due, amount_paid)
    return StructureChange(
        amount_due=new_amount_due,
        amount_paid=amount_paid,
        locked=False,
        status=status,
        changed=existing.amount_due != new_amount_due or existing.status != status,
    )
