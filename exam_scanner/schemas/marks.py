"""
==============================================================================
Marks Schemas Module
==============================================================================

Mark sheet schemas.

Mark scheme:
    ten_marks    1 question  x 10 marks = 10
    four_marks   4 questions x  4 marks = 16
    eight_marks  3 questions x  8 marks = 24
                                  total = 50

Out-of-range entries are accepted here and clamped by the marks service.

==============================================================================
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class MarkSheet(BaseModel):
    """Per-question marks of one student."""
    ten_marks: int = Field(default=0)
    four_marks: List[int] = Field(default_factory=lambda: [0, 0, 0, 0], min_length=4, max_length=4)
    eight_marks: List[int] = Field(default_factory=lambda: [0, 0, 0], min_length=3, max_length=3)


class MarksSaveRequest(BaseModel):
    """Save marks for an exam/student pair."""
    marks: MarkSheet
    notes: Optional[str] = Field(default=None, max_length=500)


class ExamMarksDetail(BaseModel):
    """Stored mark sheet."""
    id: str
    exam_id: str
    student_id: str
    marks: MarkSheet
    total_marks: int
    max_marks: int = 50
    recorded_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    synced_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "ExamMarksDetail":
        return cls(
            id=record.id,
            exam_id=record.exam_id,
            student_id=record.student_id,
            marks=MarkSheet.model_validate_json(record.marks),
            total_marks=record.total_marks,
            recorded_by=record.recorded_by,
            notes=record.notes,
            created_at=record.created_at,
            updated_at=record.updated_at,
            synced_at=record.synced_at,
        )


class ExamMarksResponse(BaseModel):
    """Single mark sheet response."""
    success: bool = Field(default=True)
    marks: ExamMarksDetail


class ExamMarksListResponse(BaseModel):
    """List of mark sheets response."""
    success: bool = Field(default=True)
    marks: List[ExamMarksDetail]
    total: int
