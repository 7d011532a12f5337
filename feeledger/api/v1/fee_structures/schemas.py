"""Fee category and class fee structure schemas. Request amounts are major units, responses minor units."""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from feeledger.core.enums import FeeFrequency, Term


# --- Fee Category ---
class FeeCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=2, max_length=20, description="Short code used in bill references, e.g. TUI")
    description: Optional[str] = None
    frequency: FeeFrequency = FeeFrequency.TERMLY
    is_recurring: bool = True


class FeeCategoryResponse(BaseModel):
    id: UUID
    name: str
    code: str
    description: Optional[str] = None
    frequency: FeeFrequency
    is_recurring: bool
    created_at: datetime

    class Config:
        from_attributes = True


# --- Class Fee Structure ---
class FeeStructureCreate(BaseModel):
    class_id: UUID
    fee_category_id: UUID
    term: Optional[Term] = Field(None, description="Omit for yearly / one-time fees")
    academic_year: int = Field(..., ge=2000, le=3000)
    amount: Decimal = Field(..., ge=0)


class FeeStructureUpdate(BaseModel):
    amount: Decimal = Field(..., ge=0)
    reason: Optional[str] = Field(None, max_length=500)


class FeeStructureResponse(BaseModel):
    id: UUID
    class_id: UUID
    fee_category_id: UUID
    term: Optional[Term] = None
    academic_year: int
    amount: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Propagation ---
class PropagationFailureItem(BaseModel):
    student_id: UUID
    error: str


class PropagationSummary(BaseModel):
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    affected: int = 0
    failures: List[PropagationFailureItem] = []


class FeeStructureWriteResponse(BaseModel):
    structure: FeeStructureResponse
    propagation: PropagationSummary


class ApplyFeeStructuresRequest(BaseModel):
    class_id: UUID
    academic_year: int = Field(..., ge=2000, le=3000)
    scope: Literal["all", "term"] = "all"
    term: Optional[Term] = None
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def term_required_for_term_scope(self) -> "ApplyFeeStructuresRequest":
        if self.scope == "term" and self.term is None:
            raise ValueError("term is required when scope=term")
        return self

    @property
    def effective_term(self) -> Optional[Term]:
        return self.term if self.scope == "term" else None


class PreviewFeeStructuresRequest(ApplyFeeStructuresRequest):
    pass


class PreviewLine(BaseModel):
    student_id: UUID
    fee_category_id: UUID
    term: Term
    academic_year: int
    amount: int
    source_structure_id: UUID


class PreviewResponse(BaseModel):
    data: List[PreviewLine]
    count: int
