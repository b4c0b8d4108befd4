"""
==============================================================================
Marks Service Module
==============================================================================

Mark entry for students whose barcode was validated.

This module implements:
- MarkScheme: Question layout, clamping and totals
- MarksService: Save/get/list mark sheets

Mark Scheme:
-----------
    ten_marks    1 question  x 10 marks = 10
    four_marks   4 questions x  4 marks = 16
    eight_marks  3 questions x  8 marks = 24
                                  total = 50

Each entry is clamped into [0, max] for its question type before the total
is computed, so a stored total never exceeds 50.

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.db.models import Exam, ExamMarks, SyncAction, SyncTable, User
from exam_scanner.schemas.marks import MarkSheet
from exam_scanner.services.barcode_service import BarcodeService
from exam_scanner.services.sync_service import SyncQueue
from exam_scanner.utils.validators import StudentIdValidator


# Module logger
logger = logging.getLogger(__name__)


class MarkScheme:
    """Fixed per-subject mark scheme."""

    TEN_MARK_MAX = 10
    FOUR_MARK_MAX = 4
    EIGHT_MARK_MAX = 8

    FOUR_MARK_QUESTIONS = 4
    EIGHT_MARK_QUESTIONS = 3

    MAX_TOTAL = (
        TEN_MARK_MAX
        + FOUR_MARK_QUESTIONS * FOUR_MARK_MAX
        + EIGHT_MARK_QUESTIONS * EIGHT_MARK_MAX
    )

    @staticmethod
    def clamp(value: int, maximum: int) -> int:
        return min(maximum, max(0, int(value)))

    @classmethod
    def normalize(cls, sheet: MarkSheet) -> MarkSheet:
        """Clamp every entry into its question's range."""
        return MarkSheet(
            ten_marks=cls.clamp(sheet.ten_marks, cls.TEN_MARK_MAX),
            four_marks=[cls.clamp(v, cls.FOUR_MARK_MAX) for v in sheet.four_marks],
            eight_marks=[cls.clamp(v, cls.EIGHT_MARK_MAX) for v in sheet.eight_marks],
        )

    @staticmethod
    def total(sheet: MarkSheet) -> int:
        return sheet.ten_marks + sum(sheet.four_marks) + sum(sheet.eight_marks)


class MarksService:
    """
    Mark sheet service.

    Example:
        >>> service = MarksService(db_session)
        >>> record = service.save_exam_marks(exam.id, "STU001", sheet, examiner)
        >>> record.total_marks
        42
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._queue = SyncQueue(db)

    def save_exam_marks(
        self,
        exam_id: str,
        student_id: str,
        marks: MarkSheet,
        user: User,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ExamMarks:
        """
        Create or replace the mark sheet of a student for an exam.

        Raises:
            AppException: EXAMINER_REQUIRED, EXAM_NOT_FOUND, EXAM_EXPIRED,
                STUDENT_NOT_REGISTERED or VALIDATION_ERROR
        """
        if not user.can_record_marks:
            logger.warning(f"Marks rejected: {user.username} cannot record marks")
            raise ExceptionFactory.examiner_required()

        is_valid, student_id, error = StudentIdValidator().validate(student_id)
        if not is_valid:
            raise ExceptionFactory.validation_error(error, field="student_id")

        exam = self._db.get(Exam, exam_id)
        if exam is None:
            raise ExceptionFactory.exam_not_found(exam_id)
        if exam.is_expired(now):
            logger.warning(f"Marks rejected: exam {exam_id} has expired")
            raise ExceptionFactory.exam_expired(exam_id)

        if BarcodeService(self._db).find_valid_barcode(exam_id, student_id) is None:
            logger.warning(f"Marks rejected: {student_id} not registered for {exam_id}")
            raise ExceptionFactory.student_not_registered(exam_id, student_id)

        sheet = MarkScheme.normalize(marks)
        total = MarkScheme.total(sheet)

        record = self.get_exam_marks(exam_id, student_id)
        if record is None:
            record = ExamMarks(exam_id=exam_id, student_id=student_id)
            self._db.add(record)
            action = SyncAction.CREATE
        else:
            action = SyncAction.UPDATE

        record.marks = sheet.model_dump_json()
        record.total_marks = total
        record.recorded_by = user.id
        record.notes = notes if notes is not None else f"Marks for {exam.subject} exam"
        record.updated_at = datetime.utcnow()
        self._db.flush()

        self._queue.add(action, SyncTable.EXAM_MARKS, record)
        self._db.commit()
        self._db.refresh(record)

        logger.info(
            f"📝 Marks {action.value}d for {student_id} on {exam.title}: "
            f"{total}/{MarkScheme.MAX_TOTAL}"
        )
        return record

    def get_exam_marks(self, exam_id: str, student_id: str) -> Optional[ExamMarks]:
        return self._db.query(ExamMarks).filter(
            ExamMarks.exam_id == exam_id,
            ExamMarks.student_id == student_id.strip().upper(),
        ).first()

    def list_marks(self, exam_id: Optional[str] = None) -> List[ExamMarks]:
        """List mark sheets, most recently updated first."""
        query = self._db.query(ExamMarks)
        if exam_id:
            query = query.filter(ExamMarks.exam_id == exam_id)
        return query.order_by(ExamMarks.updated_at.desc()).all()
