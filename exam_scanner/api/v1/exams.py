"""
==============================================================================
Exam Endpoints
==============================================================================

Read access to exams.

==============================================================================
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.core.dependencies import get_current_user
from exam_scanner.services.barcode_service import BarcodeService
from exam_scanner.schemas.barcode import ExamDetail, ExamListResponse, ExamResponse


router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("", response_model=ExamListResponse)
async def list_exams(
    subject: Optional[str] = Query(None),
    include_expired: bool = Query(True),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List exams, soonest expiry first."""
    exams = BarcodeService(db).list_exams(subject, include_expired)
    return ExamListResponse(
        exams=[ExamDetail.from_exam(e) for e in exams],
        total=len(exams)
    )


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(
    exam_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get exam by ID."""
    exam = BarcodeService(db).get_exam(exam_id)
    return ExamResponse(exam=ExamDetail.from_exam(exam))
