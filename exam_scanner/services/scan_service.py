"""
==============================================================================
Scan Service Module
==============================================================================

Processing of scanned or typed barcodes and the scan history.

Scan Pipeline:
-------------
    code → validate_barcode → ScanLog (status fixed, sync pending)
         → sync-queue row (create/scan_logs) → ScanOutcome

Every call writes exactly one scan log, whatever the validation outcome.
An invalid scan is a successful operation whose outcome carries the status.

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.db.models import (
    ExamMarks,
    ScanLog,
    ScanStatus,
    SyncAction,
    SyncStatus,
    SyncTable,
    User,
)
from exam_scanner.scanner import decode_frame, decode_image_bytes
from exam_scanner.schemas.scan import ScanFilter
from exam_scanner.services.barcode_service import BarcodeService
from exam_scanner.services.marks_service import MarksService
from exam_scanner.services.sync_service import SyncQueue


# Module logger
logger = logging.getLogger(__name__)


@dataclass
class ScanOutcome:
    """Result of processing one scan."""

    scan_log: ScanLog
    message: str
    exam_title: Optional[str] = None
    subject: Optional[str] = None
    student_id: Optional[str] = None
    existing_marks: Optional[ExamMarks] = None

    @property
    def is_valid(self) -> bool:
        return self.scan_log.status == ScanStatus.VALID


class ScanService:
    """
    Scan processing and history.

    Example:
        >>> outcome = ScanService(db_session).process_scan("MATH2023001", user)
        >>> outcome.message
        'Barcode is valid'
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._settings = get_settings()
        self._barcodes = BarcodeService(db)
        self._queue = SyncQueue(db)

    # =========================================================================
    # PROCESSING
    # =========================================================================

    def process_scan(
        self,
        code: str,
        user: Optional[User],
        location: Optional[str] = None,
        device_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ScanOutcome:
        """
        Validate a code, log the scan and queue the log for sync.

        Location and device fall back to the station settings.

        Raises:
            AppException: VALIDATION_ERROR if the code is empty or malformed
        """
        result = self._barcodes.validate_barcode(code, now)
        barcode = result.barcode
        exam = result.exam

        scan_log = ScanLog(
            scanned_code=result.code,
            barcode_id=barcode.id if barcode else None,
            exam_id=exam.id if exam else None,
            student_id=barcode.student_id if barcode else None,
            status=result.status,
            scanned_by=user.id if user else None,
            scanned_at=now or datetime.utcnow(),
            location=location or self._settings.station_location,
            device_id=device_id or self._settings.station_id,
            sync_status=SyncStatus.PENDING,
            notes=result.message,
        )
        self._db.add(scan_log)
        self._db.flush()

        self._queue.add(SyncAction.CREATE, SyncTable.SCAN_LOGS, scan_log)
        self._db.commit()
        self._db.refresh(scan_log)

        existing_marks = None
        if result.is_valid:
            existing_marks = MarksService(self._db).get_exam_marks(
                exam.id, barcode.student_id
            )
            logger.info(f"✅ Valid scan: {result.code} ({barcode.student_id}, {exam.title})")
        else:
            logger.info(f"❌ {result.status.value.capitalize()} scan: {result.code} - {result.message}")

        return ScanOutcome(
            scan_log=scan_log,
            message=result.message,
            exam_title=exam.title if exam else None,
            subject=exam.subject if exam else None,
            student_id=barcode.student_id if barcode else None,
            existing_marks=existing_marks,
        )

    def process_image(
        self,
        data: bytes,
        user: Optional[User],
        location: Optional[str] = None,
        device_id: Optional[str] = None
    ) -> ScanOutcome:
        """
        Decode the first barcode in an encoded image and process it.

        Raises:
            AppException: INVALID_IMAGE, NO_BARCODE_DETECTED or
                DECODER_UNAVAILABLE when OpenCV/zbar are not installed
        """
        try:
            frame = decode_image_bytes(data)
            if frame is None:
                raise ExceptionFactory.invalid_image()
            detected = decode_frame(frame)
        except RuntimeError as e:
            logger.error(f"Decoder unavailable: {e}")
            raise ExceptionFactory.decoder_unavailable(str(e))

        if not detected:
            logger.info("No barcode detected in uploaded image")
            raise ExceptionFactory.no_barcode_detected()

        return self.process_scan(detected[0].data, user, location, device_id)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def list_scans(
        self,
        scan_filter: ScanFilter = ScanFilter.ALL,
        limit: Optional[int] = None,
        student_id: Optional[str] = None,
        exam_id: Optional[str] = None
    ) -> List[ScanLog]:
        """Most recent scans first; invalid means any status other than valid."""
        query = self._db.query(ScanLog)

        if scan_filter == ScanFilter.VALID:
            query = query.filter(ScanLog.status == ScanStatus.VALID)
        elif scan_filter == ScanFilter.INVALID:
            query = query.filter(ScanLog.status != ScanStatus.VALID)

        if student_id:
            query = query.filter(ScanLog.student_id == student_id.strip().upper())
        if exam_id:
            query = query.filter(ScanLog.exam_id == exam_id)

        return (
            query.order_by(ScanLog.scanned_at.desc())
            .limit(limit or self._settings.scan_history_limit)
            .all()
        )

    def get_scan(self, scan_id: str) -> ScanLog:
        """
        Raises:
            AppException: SCAN_NOT_FOUND
        """
        scan_log = self._db.get(ScanLog, scan_id)
        if scan_log is None:
            raise ExceptionFactory.scan_not_found(scan_id)
        return scan_log
