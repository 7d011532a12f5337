"""
C2B reconciliation: turn one M-Pesa confirmation into at most one ledger application.

RECEIVED -> DUPLICATE | RESOLVING -> PENDING[reason] | APPLYING -> SUCCESS | PENDING[reason]

The payment, the fee line update, alias learning and the transaction record commit in one
database transaction. A crash before commit leaves nothing behind, so the provider's
redelivery applies the payment exactly once. A concurrent duplicate loses on the unique
transaction_id and is acknowledged as a duplicate.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.fees.ledger import apply_payment, to_minor_units
from feeledger.core.config import ChannelRule, settings
from feeledger.core.enums import ChannelPolicy, MpesaReviewReason, MpesaTransactionStatus, PaymentMethod, Term
from feeledger.core.exceptions import RetryableLedgerError, ServiceError
from feeledger.core.models import MpesaTransaction
from feeledger.core.phone import normalize_phone
from feeledger.db.repositories import AliasRepository, TransactionRecordRepository

from .resolver import PayerResolution, resolve_by_admission_number, resolve_payer
from .schemas import C2BConfirmation, MpesaReviewItem
from .selector import find_channel_rule, parse_bill_reference, select_fee_target

logger = logging.getLogger(__name__)

REVIEW_TAKE_DEFAULT = 50
REVIEW_TAKE_MAX = 200


@dataclass
class ReconciliationOutcome:
    transaction_id: str
    status: Optional[MpesaTransactionStatus] = None
    review_reason: Optional[MpesaReviewReason] = None
    student_id: Optional[UUID] = None
    student_fee_id: Optional[UUID] = None
    payment_id: Optional[UUID] = None
    amount: int = 0
    duplicate: bool = False

    @property
    def is_pending(self) -> bool:
        return self.status == MpesaTransactionStatus.PENDING


async def has_been_processed(db: AsyncSession, transaction_id: str) -> bool:
    return await TransactionRecordRepository(db).exists(transaction_id)


def _amount_minor(raw) -> int:
    try:
        return to_minor_units(raw)
    except ValueError:
        return 0


async def process_c2b_confirmation(
    db: AsyncSession,
    notification: C2BConfirmation,
    raw_payload: Optional[Dict[str, Any]] = None,
    *,
    channels: Optional[Iterable[ChannelRule]] = None,
    fee_codes: Optional[Dict[str, str]] = None,
    academic_year: Optional[int] = None,
    term: Optional[Term] = None,
    country_code: Optional[str] = None,
) -> ReconciliationOutcome:
    """
    Reconcile one C2B confirmation and commit the result.

    Raises RetryableLedgerError when the store fails; nothing is committed in that case.
    """
    channels = list(channels if channels is not None else settings.mpesa_channels)
    fee_codes = fee_codes if fee_codes is not None else settings.mpesa_fee_codes
    academic_year = academic_year or settings.current_academic_year
    term = term or settings.current_term
    country_code = country_code or settings.phone_country_code

    trans_id = notification.TransID
    if await has_been_processed(db, trans_id):
        logger.info("M-Pesa %s already processed, skipping", trans_id)
        return ReconciliationOutcome(transaction_id=trans_id, duplicate=True)

    amount_minor = _amount_minor(notification.TransAmount)
    phone = normalize_phone(notification.MSISDN, country_code)
    shortcode = notification.BusinessShortCode
    bill_reference = notification.BillRefNumber or None
    outcome = ReconciliationOutcome(transaction_id=trans_id, amount=amount_minor)

    try:
        # RESOLVING
        resolution = await resolve_payer(db, phone)
        if not resolution.student_ids:
            rule = find_channel_rule(channels, shortcode)
            if rule is not None and rule.policy == ChannelPolicy.FEE_CODE:
                student_ref, fee_code = parse_bill_reference(bill_reference)
                if student_ref and fee_code:
                    resolution = await resolve_by_admission_number(db, student_ref)

        reason = resolution.outcome
        target = None
        if reason is None:
            outcome.student_id = resolution.student_id
            selected = await select_fee_target(
                db,
                resolution.student_id,
                shortcode,
                bill_reference,
                channels=channels,
                fee_codes=fee_codes,
                academic_year=academic_year,
                term=term,
            )
            if isinstance(selected, MpesaReviewReason):
                reason = selected
            elif amount_minor <= 0:
                reason = MpesaReviewReason.OTHER
            else:
                target = selected

        if target is not None:
            # APPLYING
            applied = await apply_payment(db, target, amount_minor, PaymentMethod.MPESA, reference=trans_id)
            if phone and not resolution.matched_via_alias:
                await _learn_alias(db, resolution, phone)
            outcome.status = MpesaTransactionStatus.SUCCESS
            outcome.student_fee_id = applied.student_fee.id
            outcome.payment_id = applied.payment.id
        else:
            outcome.status = MpesaTransactionStatus.PENDING
            outcome.review_reason = reason

        TransactionRecordRepository(db).add(
            MpesaTransaction(
                transaction_id=trans_id,
                amount=amount_minor,
                phone_number=phone or notification.MSISDN or "UNKNOWN",
                channel=shortcode,
                bill_reference=bill_reference,
                payer_name=notification.payer_name,
                student_fee_id=outcome.student_fee_id,
                payment_id=outcome.payment_id,
                status=outcome.status.value,
                review_reason=outcome.review_reason.value if outcome.review_reason else None,
                raw_payload=raw_payload,
            )
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if await has_been_processed(db, trans_id):
            logger.info("M-Pesa %s recorded by a concurrent delivery, treating as duplicate", trans_id)
            return ReconciliationOutcome(transaction_id=trans_id, duplicate=True)
        logger.exception("Integrity failure reconciling M-Pesa %s", trans_id)
        raise RetryableLedgerError()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Storage failure reconciling M-Pesa %s", trans_id)
        raise RetryableLedgerError()
    except ServiceError as e:
        await db.rollback()
        logger.error("Ledger rejected M-Pesa %s: %s", trans_id, e.message)
        raise RetryableLedgerError()

    if outcome.is_pending:
        logger.warning(
            "M-Pesa %s parked for review: %s (shortcode=%s, amount=%s)",
            trans_id, outcome.review_reason.value, shortcode, amount_minor,
        )
    else:
        logger.info(
            "M-Pesa %s applied %s to student_fee=%s",
            trans_id, amount_minor, outcome.student_fee_id,
        )
    return outcome


async def _learn_alias(db: AsyncSession, resolution: PayerResolution, phone: str) -> None:
    if await AliasRepository(db).ensure(resolution.student_id, phone):
        logger.info("Learned phone alias %s for student %s", phone, resolution.student_id)


async def notify_pending_review(outcome: ReconciliationOutcome) -> None:
    """Fire-and-forget staff alert for a parked payment. Never raises."""
    try:
        logger.warning(
            "Pending M-Pesa payment needs review: trans_id=%s reason=%s amount=%s",
            outcome.transaction_id,
            outcome.review_reason.value if outcome.review_reason else None,
            outcome.amount,
        )
    except Exception:
        logger.exception("Failed to notify staff about M-Pesa %s", outcome.transaction_id)


def clamp_review_take(take: Optional[int]) -> int:
    if take is None:
        return REVIEW_TAKE_DEFAULT
    return max(1, min(REVIEW_TAKE_MAX, take))


async def list_pending_reviews(
    db: AsyncSession,
    take: Optional[int] = None,
    reason: Optional[MpesaReviewReason] = None,
) -> List[MpesaReviewItem]:
    records = await TransactionRecordRepository(db).list_pending(
        clamp_review_take(take),
        reason=reason.value if reason else None,
    )
    return [MpesaReviewItem.model_validate(r) for r in records]
