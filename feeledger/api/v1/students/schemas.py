from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from feeledger.api.v1.fee_structures.schemas import PropagationSummary


# ----- Student -----
class StudentCreate(BaseModel):
    admission_number: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    class_id: Optional[UUID] = None


class StudentTransfer(BaseModel):
    class_id: UUID


class StudentResponse(BaseModel):
    id: UUID
    admission_number: str
    full_name: str
    phone: Optional[str] = None
    class_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentWriteResponse(BaseModel):
    """Student plus the result of applying the class fee schedule to them."""

    student: StudentResponse
    propagation: Optional[PropagationSummary] = None


# ----- Guardian -----
class GuardianCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    student_ids: List[UUID] = []


class GuardianResponse(BaseModel):
    id: UUID
    full_name: str
    phone: Optional[str] = None
    student_ids: List[UUID] = []
    created_at: datetime
