"""
==============================================================================
Scan Schemas Module
==============================================================================

Request and response schemas for scanning and scan history.

==============================================================================
"""

import enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from exam_scanner.db.models import ScanStatus, SyncStatus
from exam_scanner.schemas.marks import ExamMarksDetail
from exam_scanner.utils.validators import BarcodeCodeValidator


class ScanFilter(str, enum.Enum):
    """History filter: valid means status valid, invalid means anything else."""
    ALL = "all"
    VALID = "valid"
    INVALID = "invalid"


class ScanRequest(BaseModel):
    """Manual barcode entry."""
    code: str = Field(..., max_length=128)
    location: Optional[str] = Field(default=None, max_length=255)
    device_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        is_valid, normalized, error = BarcodeCodeValidator().validate(v)
        if not is_valid:
            raise ValueError(error)
        return normalized


class ScanImageRequest(BaseModel):
    """Camera frame or photo, base64 encoded (a data: URL prefix is allowed)."""
    image: str = Field(..., min_length=1)
    location: Optional[str] = Field(default=None, max_length=255)
    device_id: Optional[str] = Field(default=None, max_length=255)


class ScanLogDetail(BaseModel):
    """Scan log entry."""
    id: str
    scanned_code: str
    barcode_id: Optional[str] = None
    exam_id: Optional[str] = None
    student_id: Optional[str] = None
    status: ScanStatus
    scanned_by: Optional[str] = None
    scanned_at: datetime
    location: Optional[str] = None
    device_id: Optional[str] = None
    sync_status: SyncStatus
    synced_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ScanResultResponse(BaseModel):
    """Result of processing one scan."""
    success: bool = Field(default=True)
    is_valid: bool
    message: str
    scan_log: ScanLogDetail
    exam_title: Optional[str] = None
    subject: Optional[str] = None
    student_id: Optional[str] = None
    existing_marks: Optional[ExamMarksDetail] = None

    @classmethod
    def from_outcome(cls, outcome) -> "ScanResultResponse":
        """Build from a ScanService outcome."""
        existing = outcome.existing_marks
        return cls(
            is_valid=outcome.is_valid,
            message=outcome.message,
            scan_log=ScanLogDetail.model_validate(outcome.scan_log),
            exam_title=outcome.exam_title,
            subject=outcome.subject,
            student_id=outcome.student_id,
            existing_marks=ExamMarksDetail.from_record(existing) if existing else None,
        )


class ScanLogResponse(BaseModel):
    """Single scan log response."""
    success: bool = Field(default=True)
    scan_log: ScanLogDetail


class ScanListResponse(BaseModel):
    """Scan history response."""
    success: bool = Field(default=True)
    scans: List[ScanLogDetail]
    total: int
