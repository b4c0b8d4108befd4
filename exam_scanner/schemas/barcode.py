"""
==============================================================================
Barcode & Exam Schemas Module
==============================================================================

Request and response schemas for exams, barcodes, barcode generation and
barcode validation.

==============================================================================
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from exam_scanner.db.models import ScanStatus
from exam_scanner.utils.validators import StudentIdValidator, SubjectValidator


# =============================================================================
# EXAM SCHEMAS
# =============================================================================

class ExamDetail(BaseModel):
    """Exam information."""
    id: str
    title: str
    subject: str
    date: datetime
    expiry_date: datetime
    is_expired: bool = False
    created_at: datetime
    updated_at: datetime
    synced_at: Optional[datetime] = None

    @classmethod
    def from_exam(cls, exam) -> "ExamDetail":
        return cls(
            id=exam.id,
            title=exam.title,
            subject=exam.subject,
            date=exam.date,
            expiry_date=exam.expiry_date,
            is_expired=exam.is_expired(),
            created_at=exam.created_at,
            updated_at=exam.updated_at,
            synced_at=exam.synced_at,
        )


class ExamResponse(BaseModel):
    """Single exam response."""
    success: bool = Field(default=True)
    exam: ExamDetail


class ExamListResponse(BaseModel):
    """List of exams response."""
    success: bool = Field(default=True)
    exams: List[ExamDetail]
    total: int


# =============================================================================
# BARCODE SCHEMAS
# =============================================================================

class BarcodeGenerateRequest(BaseModel):
    """Generate an exam and a barcode for one student."""
    subject: str = Field(..., min_length=1, max_length=100)
    student_id: str = Field(..., min_length=1, max_length=50)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        is_valid, normalized, error = SubjectValidator().validate(v)
        if not is_valid:
            raise ValueError(error)
        return normalized

    @field_validator("student_id")
    @classmethod
    def validate_student_id(cls, v: str) -> str:
        is_valid, normalized, error = StudentIdValidator().validate(v)
        if not is_valid:
            raise ValueError(error)
        return normalized


class BarcodeValidityUpdate(BaseModel):
    """Set or clear the validity flag of a barcode."""
    is_valid: bool


class BarcodeDetail(BaseModel):
    """Barcode information."""
    id: str
    code: str
    exam_id: str
    student_id: str
    is_valid: bool
    created_at: datetime
    updated_at: datetime
    synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BarcodeResponse(BaseModel):
    """Single barcode response."""
    success: bool = Field(default=True)
    barcode: BarcodeDetail


class BarcodeGenerateResponse(BaseModel):
    """Generated barcode together with its exam."""
    success: bool = Field(default=True)
    message: str
    barcode: BarcodeDetail
    exam: ExamDetail


class BarcodeListResponse(BaseModel):
    """List of barcodes response."""
    success: bool = Field(default=True)
    barcodes: List[BarcodeDetail]
    total: int


class SubjectListResponse(BaseModel):
    """Predefined subjects for the generator."""
    success: bool = Field(default=True)
    subjects: List[str]


class ValidationResponse(BaseModel):
    """Outcome of validating a barcode without logging a scan."""
    success: bool = Field(default=True)
    code: str
    is_valid: bool
    status: ScanStatus
    message: str
    barcode: Optional[BarcodeDetail] = None
    exam: Optional[ExamDetail] = None
