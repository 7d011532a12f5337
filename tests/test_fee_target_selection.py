"""Fee target selection per channel policy."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.api.v1.mpesa.selector import find_channel_rule, parse_bill_reference, select_fee_target
from feeledger.core.config import ChannelRule
from feeledger.core.enums import ChannelPolicy, MpesaReviewReason, Term

CHANNELS = [
    ChannelRule(shortcode="400200", policy=ChannelPolicy.DEDICATED_CATEGORY, category_code="CMP", bill_reference="01109613617800"),
    ChannelRule(shortcode="600100", policy=ChannelPolicy.DEDICATED_CATEGORY, category_code="TUI"),
    ChannelRule(shortcode="5669463", policy=ChannelPolicy.GENERAL_EXCLUDING, category_code="CMP"),
    ChannelRule(shortcode="529914", policy=ChannelPolicy.FEE_CODE),
]
FEE_CODES = {"TUI": "TUI", "MEA": "MEA"}


async def _select(db, student, channel, bill_reference=None):
    return await select_fee_target(
        db,
        student.id,
        channel,
        bill_reference,
        channels=CHANNELS,
        fee_codes=FEE_CODES,
        academic_year=2025,
        term=Term.TERM2,
    )


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("ADM001-TUI", ("ADM001", "TUI")),
        (" adm001 - mea ", ("adm001", "MEA")),
        ("tui", ("", "TUI")),
        ("ADM001", ("ADM001", "")),
        (None, ("", "")),
    ],
)
def test_parse_bill_reference(raw, expected) -> None:
    assert parse_bill_reference(raw) == expected


def test_find_channel_rule() -> None:
    assert find_channel_rule(CHANNELS, " 600100 ").category_code == "TUI"
    assert find_channel_rule(CHANNELS, "999999") is None


@pytest.mark.asyncio
async def test_dedicated_channel_pays_oldest_year_first(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    tuition = await make_category("TUI")
    await make_fee_line(student, tuition, 10000, academic_year=2025, term="TERM1")
    older = await make_fee_line(student, tuition, 10000, academic_year=2024, term="TERM3")

    assert await _select(db_session, student, "600100") == older.id


@pytest.mark.asyncio
async def test_yearly_line_sorts_before_terms_and_paid_lines_are_skipped(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    tuition = await make_category("TUI")
    await make_fee_line(student, tuition, 5000, term="TERM1", amount_paid=5000, status="paid")
    await make_fee_line(student, tuition, 5000, term="TERM2")
    yearly = await make_fee_line(student, tuition, 5000, term=None)

    assert await _select(db_session, student, "600100") == yearly.id


@pytest.mark.asyncio
async def test_dedicated_channel_ignores_other_categories(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_category("TUI")
    await make_fee_line(student, await make_category("MEA"), 5000)

    assert await _select(db_session, student, "600100") == MpesaReviewReason.NO_FEES


@pytest.mark.asyncio
async def test_dedicated_channel_with_wrong_bill_reference_is_other(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    line = await make_fee_line(student, await make_category("CMP", "Computer Studies"), 3000)

    assert await _select(db_session, student, "400200", "SOMETHING-ELSE") == MpesaReviewReason.OTHER
    assert await _select(db_session, student, "400200", "01109613617800") == line.id


@pytest.mark.asyncio
async def test_general_channel_never_selects_excluded_category(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    await make_fee_line(student, await make_category("CMP", "Computer Studies"), 3000, academic_year=2023)

    assert await _select(db_session, student, "5669463") == MpesaReviewReason.NO_FEES

    meals = await make_fee_line(student, await make_category("MEA"), 2000)
    assert await _select(db_session, student, "5669463") == meals.id


@pytest.mark.asyncio
async def test_fee_code_channel_prefers_current_term_line(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    tuition = await make_category("TUI")
    meals = await make_category("MEA")
    await make_fee_line(student, tuition, 5000, academic_year=2024)
    await make_fee_line(student, meals, 5000, term="TERM1")
    current_meals = await make_fee_line(student, meals, 5000, term="TERM2")

    assert await _select(db_session, student, "529914", "ADM001-MEA") == current_meals.id
    assert await _select(db_session, student, "529914", "mea") == current_meals.id


@pytest.mark.asyncio
async def test_fee_code_channel_falls_back_to_oldest_outstanding(
    db_session: AsyncSession, make_student, make_category, make_fee_line
) -> None:
    student = await make_student("ADM001")
    tuition = await make_category("TUI")
    meals = await make_category("MEA")
    oldest = await make_fee_line(student, tuition, 5000, academic_year=2024)
    await make_fee_line(student, meals, 5000, term="TERM2", amount_paid=5000, status="paid")

    assert await _select(db_session, student, "529914", "ADM001-MEA") == oldest.id
    assert await _select(db_session, student, "529914", "ADM001-XYZ") == oldest.id
    assert await _select(db_session, student, "529914") == oldest.id


@pytest.mark.asyncio
async def test_unknown_shortcode_is_other(db_session: AsyncSession, make_student, make_category, make_fee_line) -> None:
    student = await make_student("ADM001")
    await make_fee_line(student, await make_category("TUI"), 5000)

    assert await _select(db_session, student, "123456") == MpesaReviewReason.OTHER
