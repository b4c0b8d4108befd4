"""
==============================================================================
Barcode Service Module
==============================================================================

Exams, barcodes, barcode validation and barcode generation.

This module implements:
- ValidationResult: Outcome of validating one code
- BarcodeService: Lookup, validation, generation and revocation

Validation Order:
----------------
    1. code not in store         → invalid  "Barcode not found in database"
    2. barcode flag cleared      → invalid  "Barcode marked as invalid"
    3. exam missing              → invalid  "Associated exam not found"
    4. exam expiry in the past   → expired  "Exam has expired"
    5. otherwise                 → valid    "Barcode is valid"

Generated Code Format:
---------------------
    <first 3 alphanumerics of subject, upper-cased><year><6 random digits>
    e.g. JAV2024483920

==============================================================================
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.db.models import Barcode, Exam, ScanStatus, SyncAction, SyncTable, User
from exam_scanner.services.sync_service import SyncQueue
from exam_scanner.utils.validators import BarcodeCodeValidator


# Module logger
logger = logging.getLogger(__name__)

PREDEFINED_SUBJECTS = [
    "Java",
    "PHP",
    "Python",
    "JavaScript",
    "Operating Systems & Lab",
]

# Attempts at drawing an unused code before giving up
MAX_CODE_ATTEMPTS = 20


@dataclass
class ValidationResult:
    """Outcome of validating a barcode code."""

    code: str
    is_valid: bool
    status: ScanStatus
    message: str
    barcode: Optional[Barcode] = None
    exam: Optional[Exam] = None


class BarcodeService:
    """
    Barcode and exam service.

    Example:
        >>> service = BarcodeService(db_session)
        >>> result = service.validate_barcode("MATH2023001")
        >>> result.status, result.message
        (<ScanStatus.VALID: 'valid'>, 'Barcode is valid')
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None) -> None:
        self._db = db
        self._rng = rng or random.Random()
        self._settings = get_settings()
        self._queue = SyncQueue(db)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def is_exam_expired(self, exam_id: Optional[str], now: Optional[datetime] = None) -> bool:
        """Check if an exam has expired. A missing exam counts as expired."""
        exam = self._db.get(Exam, exam_id) if exam_id else None
        if exam is None:
            return True
        return exam.is_expired(now)

    def validate_barcode(self, code: str, now: Optional[datetime] = None) -> ValidationResult:
        """
        Classify a code against the local store.

        Raises:
            AppException: VALIDATION_ERROR if the code is empty or malformed
        """
        is_valid, normalized, error = BarcodeCodeValidator().validate(code)
        if not is_valid:
            raise ExceptionFactory.validation_error(error, field="code")

        barcode = self.get_by_code(normalized)

        if barcode is None:
            return ValidationResult(
                normalized, False, ScanStatus.INVALID, "Barcode not found in database"
            )

        if not barcode.is_valid:
            return ValidationResult(
                normalized, False, ScanStatus.INVALID, "Barcode marked as invalid",
                barcode=barcode
            )

        exam = self._db.get(Exam, barcode.exam_id)

        if exam is None:
            return ValidationResult(
                normalized, False, ScanStatus.INVALID, "Associated exam not found",
                barcode=barcode
            )

        if exam.is_expired(now):
            return ValidationResult(
                normalized, False, ScanStatus.EXPIRED, "Exam has expired",
                barcode=barcode, exam=exam
            )

        return ValidationResult(
            normalized, True, ScanStatus.VALID, "Barcode is valid",
            barcode=barcode, exam=exam
        )

    # =========================================================================
    # BARCODE LOOKUP
    # =========================================================================

    def get_by_code(self, code: str) -> Optional[Barcode]:
        return self._db.query(Barcode).filter(Barcode.code == code).first()

    def get_by_id(self, barcode_id: str) -> Barcode:
        """
        Raises:
            AppException: BARCODE_NOT_FOUND
        """
        barcode = self._db.get(Barcode, barcode_id)
        if barcode is None:
            raise ExceptionFactory.barcode_not_found(barcode_id)
        return barcode

    def list_barcodes(
        self,
        exam_id: Optional[str] = None,
        student_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 100
    ) -> Tuple[List[Barcode], int]:
        """List barcodes, newest first. Returns (page, total)."""
        query = self._db.query(Barcode)

        if exam_id:
            query = query.filter(Barcode.exam_id == exam_id)
        if student_id:
            query = query.filter(Barcode.student_id == student_id.strip().upper())

        total = query.count()
        barcodes = (
            query.order_by(Barcode.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return barcodes, total

    def find_valid_barcode(self, exam_id: str, student_id: str) -> Optional[Barcode]:
        """Valid barcode held by a student for an exam, if any."""
        return self._db.query(Barcode).filter(
            Barcode.exam_id == exam_id,
            Barcode.student_id == student_id,
            Barcode.is_valid.is_(True),
        ).first()

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def set_validity(self, barcode_id: str, is_valid: bool) -> Barcode:
        """Set or clear the validity flag and queue the update."""
        barcode = self.get_by_id(barcode_id)

        if barcode.is_valid != is_valid:
            barcode.is_valid = is_valid
            barcode.updated_at = datetime.utcnow()
            self._queue.add(SyncAction.UPDATE, SyncTable.BARCODES, barcode)
            self._db.commit()
            self._db.refresh(barcode)

            action = "restored" if is_valid else "revoked"
            logger.info(f"🏷️ Barcode {barcode.code} {action}")

        return barcode

    def generate_barcode(
        self,
        subject: str,
        student_id: str,
        user: Optional[User] = None
    ) -> Tuple[Barcode, Exam]:
        """
        Create an exam "<subject> Exam" and a valid barcode for the student.

        Both records are queued for sync.

        Raises:
            AppException: INTERNAL_ERROR if no unused code could be drawn
        """
        now = datetime.utcnow()
        code = self._draw_unused_code(subject, now.year)

        exam = Exam(
            title=f"{subject} Exam",
            subject=subject,
            date=now,
            expiry_date=now + timedelta(days=self._settings.exam_validity_days),
        )
        self._db.add(exam)
        self._db.flush()

        barcode = Barcode(
            code=code,
            exam_id=exam.id,
            student_id=student_id,
            is_valid=True,
        )
        self._db.add(barcode)
        self._db.flush()

        self._queue.add(SyncAction.CREATE, SyncTable.EXAMS, exam)
        self._queue.add(SyncAction.CREATE, SyncTable.BARCODES, barcode)
        self._db.commit()
        self._db.refresh(barcode)
        self._db.refresh(exam)

        created_by = f" by {user.username}" if user else ""
        logger.info(f"✅ Barcode generated: {code} for {student_id} ({subject}){created_by}")

        return barcode, exam

    def make_code(self, subject: str, year: int) -> str:
        prefix = "".join(ch for ch in subject if ch.isalnum())[:3].upper()
        number = self._rng.randint(100000, 999999)
        return f"{prefix}{year}{number}"

    def _draw_unused_code(self, subject: str, year: int) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self.make_code(subject, year)
            if self.get_by_code(code) is None:
                return code
            logger.debug(f"Barcode collision, redrawing: {code}")

        logger.error(f"Could not draw an unused barcode for {subject}")
        raise ExceptionFactory.internal_error("Could not generate a unique barcode")

    # =========================================================================
    # EXAMS
    # =========================================================================

    def get_exam(self, exam_id: str) -> Exam:
        """
        Raises:
            AppException: EXAM_NOT_FOUND
        """
        exam = self._db.get(Exam, exam_id)
        if exam is None:
            raise ExceptionFactory.exam_not_found(exam_id)
        return exam

    def list_exams(
        self,
        subject: Optional[str] = None,
        include_expired: bool = True,
        now: Optional[datetime] = None
    ) -> List[Exam]:
        """List exams, soonest expiry first."""
        query = self._db.query(Exam)

        if subject:
            query = query.filter(Exam.subject == subject)
        if not include_expired:
            query = query.filter(Exam.expiry_date >= (now or datetime.utcnow()))

        return query.order_by(Exam.expiry_date.asc()).all()

    @staticmethod
    def list_subjects() -> List[str]:
        return list(PREDEFINED_SUBJECTS)
