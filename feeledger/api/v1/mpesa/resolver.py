"""
Payer resolution: which learner(s) a paying phone number belongs to.

Candidates come from guardian links, the learner's own phone and learned aliases; they are
unioned and de-duplicated. Matching is exact on the normalized number only.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import MpesaReviewReason
from feeledger.db.repositories import AliasRepository, DirectoryRepository


@dataclass
class PayerResolution:
    student_ids: List[UUID] = field(default_factory=list)
    # True only when the single candidate was found through the alias table alone
    matched_via_alias: bool = False

    @property
    def student_id(self) -> Optional[UUID]:
        return self.student_ids[0] if len(self.student_ids) == 1 else None

    @property
    def outcome(self) -> Optional[MpesaReviewReason]:
        if not self.student_ids:
            return MpesaReviewReason.NO_STUDENT
        if len(self.student_ids) > 1:
            return MpesaReviewReason.MULTIPLE_STUDENTS
        return None


async def resolve_payer(db: AsyncSession, phone: Optional[str]) -> PayerResolution:
    """`phone` must already be normalized; None (unparseable MSISDN) resolves to nobody."""
    if not phone:
        return PayerResolution()

    directory = DirectoryRepository(db)
    via_guardians = await directory.student_ids_by_guardian_phone(phone)
    via_own_phone = await directory.student_ids_by_own_phone(phone)
    via_alias = await AliasRepository(db).student_ids_for_phone(phone)

    student_ids = list(dict.fromkeys(via_guardians + via_own_phone + via_alias))
    direct = set(via_guardians) | set(via_own_phone)
    matched_via_alias = len(student_ids) == 1 and student_ids[0] not in direct
    return PayerResolution(student_ids=student_ids, matched_via_alias=matched_via_alias)


async def resolve_by_admission_number(db: AsyncSession, student_ref: str) -> PayerResolution:
    """Bill reference fallback (`<admission_no>-<CODE>`) for payers whose phone is unknown."""
    if not student_ref:
        return PayerResolution()
    student = await DirectoryRepository(db).student_by_admission_number(student_ref)
    if not student:
        return PayerResolution()
    return PayerResolution(student_ids=[student.id])
