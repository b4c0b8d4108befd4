"""
==============================================================================
Scan Endpoints
==============================================================================

Manual-entry and image scans, and the scan history.

A scan of an unknown, revoked or expired barcode is a successful request:
the result carries is_valid=false with the status and message.

==============================================================================
"""

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.core.dependencies import get_current_user
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.services.scan_service import ScanService
from exam_scanner.schemas.scan import (
    ScanFilter,
    ScanRequest,
    ScanImageRequest,
    ScanResultResponse,
    ScanLogDetail,
    ScanLogResponse,
    ScanListResponse,
)


router = APIRouter(prefix="/scans", tags=["Scans"])


class ScanController:
    """Controller for scan operations."""

    def __init__(self, db: Session):
        self._service = ScanService(db)

    def scan(self, request: ScanRequest, user: User) -> ScanResultResponse:
        """Process a typed code."""
        outcome = self._service.process_scan(
            request.code, user, request.location, request.device_id
        )
        return ScanResultResponse.from_outcome(outcome)

    def scan_image(self, request: ScanImageRequest, user: User) -> ScanResultResponse:
        """Decode a base64 image and process the first barcode found."""
        outcome = self._service.process_image(
            self.decode_base64(request.image), user, request.location, request.device_id
        )
        return ScanResultResponse.from_outcome(outcome)

    @staticmethod
    def decode_base64(image: str) -> bytes:
        """Accepts plain base64 or a data: URL."""
        if image.startswith("data:"):
            _, _, image = image.partition(",")
        try:
            return base64.b64decode(image, validate=True)
        except (binascii.Error, ValueError):
            raise ExceptionFactory.invalid_image("Image is not valid base64")

    def list_all(
        self,
        scan_filter: ScanFilter,
        limit: int,
        student_id: Optional[str],
        exam_id: Optional[str]
    ) -> ScanListResponse:
        """List recent scans."""
        scans = self._service.list_scans(scan_filter, limit, student_id, exam_id)
        return ScanListResponse(
            scans=[ScanLogDetail.model_validate(s) for s in scans],
            total=len(scans)
        )

    def get(self, scan_id: str) -> ScanLogResponse:
        scan_log = self._service.get_scan(scan_id)
        return ScanLogResponse(scan_log=ScanLogDetail.model_validate(scan_log))


@router.post("", response_model=ScanResultResponse)
async def scan_code(
    request: ScanRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Validate a manually entered code and log the scan."""
    controller = ScanController(db)
    return controller.scan(request, user)


@router.post("/image", response_model=ScanResultResponse)
async def scan_image(
    request: ScanImageRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Decode a barcode from a base64 image and log the scan."""
    controller = ScanController(db)
    return controller.scan_image(request, user)


@router.get("", response_model=ScanListResponse)
async def list_scans(
    filter: ScanFilter = Query(ScanFilter.ALL),
    limit: Optional[int] = Query(None, ge=1, le=500),
    student_id: Optional[str] = Query(None),
    exam_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Scan history, most recent first."""
    controller = ScanController(db)
    return controller.list_all(filter, limit, student_id, exam_id)


@router.get("/{scan_id}", response_model=ScanLogResponse)
async def get_scan(
    scan_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get one scan log."""
    controller = ScanController(db)
    return controller.get(scan_id)
