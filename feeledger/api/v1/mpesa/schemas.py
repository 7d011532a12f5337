"""M-Pesa C2B schemas. Field names follow the Daraja payload."""

from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class C2BConfirmation(BaseModel):
    TransID: str = Field(..., min_length=1)
    TransAmount: Union[str, int, float]
    BusinessShortCode: str
    BillRefNumber: Optional[str] = None
    MSISDN: Optional[str] = None
    TransTime: Optional[str] = None
    FirstName: Optional[str] = None
    MiddleName: Optional[str] = None
    LastName: Optional[str] = None

    @field_validator("TransID", "BusinessShortCode", "BillRefNumber", "MSISDN", mode="before")
    @classmethod
    def coerce_str(cls, v):
        if v is None:
            return None
        return str(v).strip()

    @property
    def payer_name(self) -> Optional[str]:
        parts = [p.strip() for p in (self.FirstName, self.MiddleName, self.LastName) if p and p.strip()]
        return " ".join(parts) or None


class C2BAck(BaseModel):
    ResultCode: str = "0"
    ResultDesc: str = "Received"


class C2BValidationResponse(BaseModel):
    ResultCode: str = "0"
    ResultDesc: str = "Accepted"


class MpesaReviewItem(BaseModel):
    id: UUID
    transaction_id: str
    amount: int
    phone_number: str
    channel: str
    bill_reference: Optional[str] = None
    payer_name: Optional[str] = None
    review_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
