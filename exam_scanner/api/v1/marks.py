"""
==============================================================================
Marks Endpoints
==============================================================================

Mark sheets per exam and student.

==============================================================================
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.core.dependencies import get_current_user
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.services.marks_service import MarksService
from exam_scanner.schemas.marks import (
    ExamMarksDetail,
    ExamMarksListResponse,
    ExamMarksResponse,
    MarksSaveRequest,
)


router = APIRouter(prefix="/marks", tags=["Marks"])


class MarksController:
    """Controller for mark sheet operations."""

    def __init__(self, db: Session):
        self._service = MarksService(db)

    def save(
        self,
        exam_id: str,
        student_id: str,
        request: MarksSaveRequest,
        user: User
    ) -> ExamMarksResponse:
        """Save marks; entries are clamped and the total computed here."""
        record = self._service.save_exam_marks(
            exam_id, student_id, request.marks, user, request.notes
        )
        return ExamMarksResponse(marks=ExamMarksDetail.from_record(record))

    def get(self, exam_id: str, student_id: str) -> ExamMarksResponse:
        record = self._service.get_exam_marks(exam_id, student_id)
        if record is None:
            raise ExceptionFactory.marks_not_found(exam_id, student_id)
        return ExamMarksResponse(marks=ExamMarksDetail.from_record(record))

    def list_all(self, exam_id: Optional[str]) -> ExamMarksListResponse:
        records = self._service.list_marks(exam_id)
        return ExamMarksListResponse(
            marks=[ExamMarksDetail.from_record(r) for r in records],
            total=len(records)
        )


@router.get("", response_model=ExamMarksListResponse)
async def list_marks(
    exam_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List mark sheets, most recently updated first."""
    controller = MarksController(db)
    return controller.list_all(exam_id)


@router.get("/{exam_id}/{student_id}", response_model=ExamMarksResponse)
async def get_marks(
    exam_id: str,
    student_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get the mark sheet of a student for an exam."""
    controller = MarksController(db)
    return controller.get(exam_id, student_id)


@router.put("/{exam_id}/{student_id}", response_model=ExamMarksResponse)
async def save_marks(
    exam_id: str,
    student_id: str,
    request: MarksSaveRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create or replace a mark sheet (Examiner or Admin)."""
    controller = MarksController(db)
    return controller.save(exam_id, student_id, request, user)
