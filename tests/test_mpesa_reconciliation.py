"""C2B reconciliation: end to end through resolution, selection, ledger and transaction record."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.mpesa import service as mpesa_service
from feeledger.api.v1.mpesa.schemas import C2BConfirmation
from feeledger.core.config import ChannelRule
from feeledger.core.enums import ChannelPolicy, MpesaReviewReason, Term
from feeledger.core.exceptions import RetryableLedgerError, ServiceError
from feeledger.core.models import MpesaTransaction, Payment, StudentFee, StudentPhoneAlias

TUITION_PAYBILL = "600100"
CHANNELS = [
    ChannelRule(shortcode=TUITION_PAYBILL, policy=ChannelPolicy.DEDICATED_CATEGORY, category_code="TUI"),
    ChannelRule(shortcode="5669463", policy=ChannelPolicy.GENERAL_EXCLUDING, category_code="CMP"),
    ChannelRule(shortcode="529914", policy=ChannelPolicy.FEE_CODE),
]


def _notification(trans_id: str = "QGH7XYZ001", amount="100.00", msisdn="0712345678", shortcode=TUITION_PAYBILL, bill_ref=None):
    return C2BConfirmation(
        TransID=trans_id,
        TransAmount=amount,
        BusinessShortCode=shortcode,
        BillRefNumber=bill_ref,
        MSISDN=msisdn,
        FirstName="Jane",
        LastName="Wanjiru",
    )


async def _process(db: AsyncSession, notification: C2BConfirmation):
    return await mpesa_service.process_c2b_confirmation(
        db,
        notification,
        raw_payload=notification.model_dump(),
        channels=CHANNELS,
        fee_codes={"TUI": "TUI", "MEA": "MEA"},
        academic_year=2025,
        term=Term.TERM1,
    )


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_scenario_a_guardian_payment_settles_tuition_and_learns_alias(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    line = await make_fee_line(student, await make_category("TUI"), 10000)

    outcome = await _process(db_session, _notification())

    assert outcome.status.value == "SUCCESS"
    assert outcome.student_fee_id == line.id
    await db_session.refresh(line)
    assert line.amount_paid == 10000
    assert line.status == "paid"

    record = (await db_session.execute(select(MpesaTransaction))).scalar_one()
    assert record.transaction_id == "QGH7XYZ001"
    assert record.status == "SUCCESS"
    assert record.review_reason is None
    assert record.phone_number == "254712345678"
    assert record.payment_id == outcome.payment_id
    assert record.payer_name == "Jane Wanjiru"
    assert record.raw_payload["TransID"] == "QGH7XYZ001"

    alias = (await db_session.execute(select(StudentPhoneAlias))).scalar_one()
    assert (alias.student_id, alias.phone) == (student.id, "254712345678")


@pytest.mark.asyncio
async def test_scenario_b_guardian_with_two_learners_is_parked(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    first = await make_student("ADM001")
    second = await make_student("ADM002")
    await make_guardian("0712345678", first, second)
    tuition = await make_category("TUI")
    await make_fee_line(first, tuition, 10000)
    await make_fee_line(second, tuition, 10000)

    outcome = await _process(db_session, _notification())

    assert outcome.status.value == "PENDING"
    assert outcome.review_reason.value == "MULTIPLE_STUDENTS"
    assert await _count(db_session, Payment) == 0
    assert await _count(db_session, StudentPhoneAlias) == 0
    record = (await db_session.execute(select(MpesaTransaction))).scalar_one()
    assert record.review_reason == "MULTIPLE_STUDENTS"
    assert record.student_fee_id is None
    assert record.payment_id is None


@pytest.mark.asyncio
async def test_scenario_c_no_outstanding_line_in_category(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    await make_category("TUI")
    await make_fee_line(student, await make_category("MEA"), 5000)

    outcome = await _process(db_session, _notification())

    assert outcome.review_reason.value == "NO_FEES"
    assert await _count(db_session, Payment) == 0
    assert await _count(db_session, StudentPhoneAlias) == 0


@pytest.mark.asyncio
async def test_scenario_d_general_channel_skips_dedicated_category(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    computer = await make_fee_line(student, await make_category("CMP", "Computer Studies"), 3000)

    outcome = await _process(db_session, _notification(shortcode="5669463"))

    assert outcome.review_reason.value == "NO_FEES"
    await db_session.refresh(computer)
    assert computer.amount_paid == 0


@pytest.mark.asyncio
async def test_scenario_e_redelivery_is_applied_once(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    line = await make_fee_line(student, await make_category("TUI"), 20000)

    first = await _process(db_session, _notification())
    second = await _process(db_session, _notification())

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.status is None
    await db_session.refresh(line)
    assert line.amount_paid == 10000
    assert await _count(db_session, Payment) == 1
    assert await _count(db_session, MpesaTransaction) == 1


@pytest.mark.asyncio
async def test_unknown_phone_is_no_student(db_session: AsyncSession, make_category) -> None:
    await make_category("TUI")

    outcome = await _process(db_session, _notification(msisdn="0799000000"))

    assert outcome.review_reason.value == "NO_STUDENT"
    record = (await db_session.execute(select(MpesaTransaction))).scalar_one()
    assert record.phone_number == "254799000000"


@pytest.mark.asyncio
async def test_unparseable_phone_is_kept_raw(db_session: AsyncSession) -> None:
    outcome = await _process(db_session, _notification(msisdn="hidden"))

    assert outcome.review_reason.value == "NO_STUDENT"
    record = (await db_session.execute(select(MpesaTransaction))).scalar_one()
    assert record.phone_number == "hidden"


@pytest.mark.asyncio
async def test_alias_shortcuts_later_payments_from_unknown_phone(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    tuition = await make_category("TUI")
    line = await make_fee_line(student, tuition, 5000)
    db_session.add(StudentPhoneAlias(student_id=student.id, phone="254722000111"))
    await db_session.commit()

    outcome = await _process(db_session, _notification(msisdn="0722000111", amount="20"))

    assert outcome.status.value == "SUCCESS"
    await db_session.refresh(line)
    assert line.amount_paid == 2000
    assert line.status == "partially_paid"
    assert await _count(db_session, StudentPhoneAlias) == 1


@pytest.mark.asyncio
async def test_bill_reference_identifies_learner_on_fee_code_paybill(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    line = await make_fee_line(student, await make_category("MEA"), 5000)

    outcome = await _process(
        db_session, _notification(msisdn="0733000222", shortcode="529914", bill_ref="ADM001-MEA")
    )

    assert outcome.status.value == "SUCCESS"
    assert outcome.student_fee_id == line.id
    alias = (await db_session.execute(select(StudentPhoneAlias))).scalar_one()
    assert (alias.student_id, alias.phone) == (student.id, "254733000222")


@pytest.mark.asyncio
async def test_zero_amount_is_parked_as_other(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    await make_fee_line(student, await make_category("TUI"), 5000)

    outcome = await _process(db_session, _notification(amount="not-a-number"))

    assert outcome.review_reason.value == "OTHER"
    assert outcome.amount == 0
    assert await _count(db_session, Payment) == 0


@pytest.mark.asyncio
async def test_storage_failure_leaves_nothing_behind(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line, monkeypatch
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    line = await make_fee_line(student, await make_category("TUI"), 10000)

    async def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(AsyncSession, "commit", broken_commit)
    with pytest.raises(RetryableLedgerError):
        await _process(db_session, _notification())
    monkeypatch.undo()

    await db_session.refresh(line)
    assert line.amount_paid == 0
    assert await _count(db_session, Payment) == 0
    assert await _count(db_session, MpesaTransaction) == 0

    # Redelivery after the failure applies normally
    outcome = await _process(db_session, _notification())
    assert outcome.status.value == "SUCCESS"
    await db_session.refresh(line)
    assert line.amount_paid == 10000


@pytest.mark.asyncio
async def test_ledger_rejection_rolls_back_and_is_retryable(
    db_session: AsyncSession, make_student, make_guardian, make_category, make_fee_line, monkeypatch
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    line = await make_fee_line(student, await make_category("TUI"), 10000)

    async def missing_line(*args, **kwargs):
        raise ServiceError("Student fee not found", 404)

    monkeypatch.setattr(mpesa_service, "apply_payment", missing_line)
    with pytest.raises(RetryableLedgerError):
        await _process(db_session, _notification())
    monkeypatch.undo()

    assert await _count(db_session, MpesaTransaction) == 0
    assert await _count(db_session, StudentPhoneAlias) == 0
    await db_session.refresh(line)
    assert line.amount_paid == 0


@pytest.mark.asyncio
async def test_concurrent_duplicate_insert_is_acknowledged(
    session_factory, make_student, make_guardian, make_category, make_fee_line, monkeypatch
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    line = await make_fee_line(student, await make_category("TUI"), 20000)

    # The other delivery commits between our idempotency check and our insert
    real_has_been_processed = mpesa_service.has_been_processed
    calls = {"n": 0}

    async def racing_check(db, transaction_id):
        calls["n"] += 1
        if calls["n"] == 1:
            async with session_factory() as other:
                await _process(other, _notification())
            return False
        return await real_has_been_processed(db, transaction_id)

    monkeypatch.setattr(mpesa_service, "has_been_processed", racing_check)
    async with session_factory() as db:
        outcome = await _process(db, _notification())

    assert outcome.duplicate is True
    async with session_factory() as db:
        assert await _count(db, Payment) == 1
        assert await _count(db, MpesaTransaction) == 1
        refreshed = await db.get(StudentFee, line.id)
        assert refreshed.amount_paid == 10000


@pytest.mark.asyncio
async def test_review_listing_newest_first_with_filter_and_clamp(
    db_session: AsyncSession, make_student, make_guardian, make_category
) -> None:
    student = await make_student("ADM001")
    await make_guardian("0712345678", student)
    await make_category("TUI")
    for i in range(3):
        await _process(db_session, _notification(trans_id=f"QNO{i}", msisdn="0799000000"))
    await _process(db_session, _notification(trans_id="QOTHER", shortcode="123456"))

    items = await mpesa_service.list_pending_reviews(db_session)
    assert len(items) == 4
    assert items[0].transaction_id == "QOTHER"
    assert items[0].review_reason == "OTHER"

    no_student = await mpesa_service.list_pending_reviews(db_session, reason=MpesaReviewReason.NO_STUDENT)
    assert {i.transaction_id for i in no_student} == {"QNO0", "QNO1", "QNO2"}

    assert len(await mpesa_service.list_pending_reviews(db_session, take=0)) == 1
    assert mpesa_service.clamp_review_take(1000) == 200
    assert mpesa_service.clamp_review_take(None) == 50
