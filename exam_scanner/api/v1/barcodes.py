"""
==============================================================================
Barcode Endpoints
==============================================================================

Barcode generation, lookup and validation.

==============================================================================
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.core.dependencies import get_current_user, require_examiner
from exam_scanner.services.barcode_service import BarcodeService
from exam_scanner.schemas.barcode import (
    BarcodeDetail,
    BarcodeGenerateRequest,
    BarcodeGenerateResponse,
    BarcodeListResponse,
    BarcodeResponse,
    BarcodeValidityUpdate,
    ExamDetail,
    SubjectListResponse,
    ValidationResponse,
)


router = APIRouter(prefix="/barcodes", tags=["Barcodes"])


class BarcodeController:
    """Controller for barcode operations."""

    def __init__(self, db: Session):
        self._service = BarcodeService(db)

    def generate(self, request: BarcodeGenerateRequest, user: User) -> BarcodeGenerateResponse:
        barcode, exam = self._service.generate_barcode(
            request.subject, request.student_id, user
        )
        return BarcodeGenerateResponse(
            message=f"Barcode {barcode.code} generated",
            barcode=BarcodeDetail.model_validate(barcode),
            exam=ExamDetail.from_exam(exam)
        )

    def validate(self, code: str) -> ValidationResponse:
        """Validate without logging a scan."""
        result = self._service.validate_barcode(code)
        return ValidationResponse(
            code=result.code,
            is_valid=result.is_valid,
            status=result.status,
            message=result.message,
            barcode=BarcodeDetail.model_validate(result.barcode) if result.barcode else None,
            exam=ExamDetail.from_exam(result.exam) if result.exam else None
        )

    def list_all(
        self,
        exam_id: Optional[str],
        student_id: Optional[str],
        offset: int,
        limit: int
    ) -> BarcodeListResponse:
        barcodes, total = self._service.list_barcodes(exam_id, student_id, offset, limit)
        return BarcodeListResponse(
            barcodes=[BarcodeDetail.model_validate(b) for b in barcodes],
            total=total
        )

    def get(self, barcode_id: str) -> BarcodeResponse:
        barcode = self._service.get_by_id(barcode_id)
        return BarcodeResponse(barcode=BarcodeDetail.model_validate(barcode))

    def set_validity(self, barcode_id: str, update: BarcodeValidityUpdate) -> BarcodeResponse:
        barcode = self._service.set_validity(barcode_id, update.is_valid)
        return BarcodeResponse(barcode=BarcodeDetail.model_validate(barcode))


@router.get("/subjects", response_model=SubjectListResponse)
async def list_subjects(user: User = Depends(get_current_user)):
    """Predefined exam subjects."""
    return SubjectListResponse(subjects=BarcodeService.list_subjects())


@router.get("/validate/{code}", response_model=ValidationResponse)
async def validate_barcode(
    code: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Check a code without writing a scan log."""
    controller = BarcodeController(db)
    return controller.validate(code)


@router.post("", response_model=BarcodeGenerateResponse)
async def generate_barcode(
    request: BarcodeGenerateRequest,
    user: User = Depends(require_examiner),
    db: Session = Depends(get_db)
):
    """Create an exam and a barcode for a student (Examiner or Admin)."""
    controller = BarcodeController(db)
    return controller.generate(request, user)


@router.get("", response_model=BarcodeListResponse)
async def list_barcodes(
    exam_id: Optional[str] = Query(None),
    student_id: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List barcodes, newest first."""
    controller = BarcodeController(db)
    return controller.list_all(exam_id, student_id, offset, limit)


@router.get("/{barcode_id}", response_model=BarcodeResponse)
async def get_barcode(
    barcode_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get barcode by ID."""
    controller = BarcodeController(db)
    return controller.get(barcode_id)


@router.patch("/{barcode_id}", response_model=BarcodeResponse)
async def set_barcode_validity(
    barcode_id: str,
    request: BarcodeValidityUpdate,
    user: User = Depends(require_examiner),
    db: Session = Depends(get_db)
):
    """Revoke or restore a barcode (Examiner or Admin)."""
    controller = BarcodeController(db)
    return controller.set_validity(barcode_id, request)
