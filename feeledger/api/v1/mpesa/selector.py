"""
Fee target selection: which single outstanding fee line an M-Pesa payment settles.

The shortcode the money arrived on decides the policy (see ChannelRule in core.config).
One notification settles at most one line; over/under payment stays on that line.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.config import ChannelRule
from feeledger.core.enums import ChannelPolicy, MpesaReviewReason, Term
from feeledger.db.repositories import FeeLineRepository, FeeScheduleRepository

logger = logging.getLogger(__name__)


def find_channel_rule(channels: Iterable[ChannelRule], shortcode: str) -> Optional[ChannelRule]:
    shortcode = (shortcode or "").strip()
    for rule in channels:
        if rule.shortcode == shortcode:
            return rule
    return None


def parse_bill_reference(bill_reference: Optional[str]) -> Tuple[str, str]:
    """
    Split a bill reference into (student_ref, fee_code).

        "ADM001-TUI" -> ("ADM001", "TUI")
        "tui"        -> ("", "TUI")
        "ADM001"     -> ("ADM001", "")
    """
    raw = (bill_reference or "").strip()
    if "-" in raw:
        student_ref, _, fee_code = raw.partition("-")
        return student_ref.strip(), fee_code.strip().upper()
    if len(raw) == 3 and raw.isalpha():
        return "", raw.upper()
    return raw, ""


async def _category_id(db: AsyncSession, code: Optional[str]) -> Optional[UUID]:
    if not code:
        return None
    category = await FeeScheduleRepository(db).category_by_code(code)
    return category.id if category else None


async def select_fee_target(
    db: AsyncSession,
    student_id: UUID,
    channel: str,
    bill_reference: Optional[str],
    *,
    channels: Iterable[ChannelRule],
    fee_codes: Dict[str, str],
    academic_year: int,
    term: Term,
) -> Union[UUID, MpesaReviewReason]:
    """Return the fee line id to credit, or the review reason when none can be picked."""
    rule = find_channel_rule(channels, channel)
    if rule is None:
        logger.info("No allocation rule for shortcode %s", channel)
        return MpesaReviewReason.OTHER

    lines = FeeLineRepository(db)
    line = None

    if rule.policy == ChannelPolicy.DEDICATED_CATEGORY:
        if rule.bill_reference and (bill_reference or "").strip() != rule.bill_reference:
            return MpesaReviewReason.OTHER
        category_id = await _category_id(db, rule.category_code)
        if category_id is None:
            logger.warning("Dedicated channel %s names unknown category %s", rule.shortcode, rule.category_code)
            return MpesaReviewReason.NO_FEES
        line = await lines.oldest_outstanding(student_id, fee_category_id=category_id)

    elif rule.policy == ChannelPolicy.GENERAL_EXCLUDING:
        excluded_id = await _category_id(db, rule.category_code)
        line = await lines.oldest_outstanding(student_id, exclude_category_id=excluded_id)

    elif rule.policy == ChannelPolicy.FEE_CODE:
        _, fee_code = parse_bill_reference(bill_reference)
        category_code = fee_codes.get(fee_code) if fee_code else None
        category_id = await _category_id(db, category_code)
        if category_id is not None:
            current = await lines.find_line(student_id, category_id, Term(term).value, academic_year)
            if current is not None and current.balance > 0:
                return current.id
        line = await lines.oldest_outstanding(student_id)

    if line is None:
        return MpesaReviewReason.NO_FEES
    return line.id
