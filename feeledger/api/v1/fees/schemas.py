"""Fees schemas. Amounts in responses are integer minor units."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.core.enums import PaymentMethod, StudentFeeStatus


class StudentFeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_category_id: UUID
    fee_category_code: Optional[str] = None
    fee_category_name: Optional[str] = None
    term: Optional[str] = None
    academic_year: int
    base_amount: Optional[int] = None
    amount_due: int
    amount_paid: int
    balance: int
    locked: bool
    status: StudentFeeStatus
    source_structure_id: Optional[UUID] = None
    discount_reason: Optional[str] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Payment ---
class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount in major units, e.g. 1500.00")
    method: PaymentMethod = Field(..., description="CASH, BANK, CHEQUE")
    reference: Optional[str] = Field(None, max_length=100)


class PaymentResponse(BaseModel):
    id: UUID
    student_fee_id: UUID
    amount: int
    method: str
    reference: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentResult(BaseModel):
    payment: PaymentResponse
    student_fee: StudentFeeResponse
