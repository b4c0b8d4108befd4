"""
==============================================================================
SQLAlchemy ORM Models Module
==============================================================================

ORM models for the local exam/barcode record store.

This module defines:
- Enums: UserRole, ScanStatus, SyncStatus, SyncAction, SyncTable
- User: Operator account
- Exam: Assessment with a validity window
- Barcode: Code linking one student to one exam
- ScanLog: One scan attempt and its outcome
- ExamMarks: Mark sheet of one student for one exam
- SyncQueueItem: Local mutation waiting to be pushed
- SyncCheckpoint: Last push/pull timestamps

Database Schema:
---------------

    ┌──────────────┐ 1:N  ┌──────────────┐ 1:N  ┌──────────────┐
    │    exams     │─────▶│   barcodes   │─────▶│  scan_logs   │
    └──────────────┘      └──────────────┘      └──────────────┘
           │                                           ▲
           │ 1:N          ┌──────────────┐             │ scanned_by
           └─────────────▶│  exam_marks  │      ┌──────┴───────┐
                          └──────────────┘      │    users     │
                                                └──────────────┘

    ┌──────────────┐      ┌──────────────────┐
    │  sync_queue  │      │ sync_checkpoints │   (no relations)
    └──────────────┘      └──────────────────┘

Every synchronizable model exposes to_sync_payload(), the JSON-ready dict
stored in the sync queue.

==============================================================================
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, relationship

from exam_scanner.db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """
    User role enumeration.

    - ADMIN: Full access, user management
    - EXAMINER: Scans barcodes and records marks
    - INVIGILATOR: Scans barcodes only
    """

    ADMIN = "admin"
    EXAMINER = "examiner"
    INVIGILATOR = "invigilator"

    def __str__(self) -> str:
        return self.value


class ScanStatus(str, enum.Enum):
    """
    Outcome of a single scan, fixed when the scan log is written.

    UNKNOWN is reserved for logs imported without a validation result.
    """

    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class SyncStatus(str, enum.Enum):
    """Sync state of a scan log."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class SyncAction(str, enum.Enum):
    """Kind of local mutation recorded in the sync queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


class SyncTable(str, enum.Enum):
    """Tables whose mutations are pushed to the remote service."""

    EXAMS = "exams"
    BARCODES = "barcodes"
    SCAN_LOGS = "scan_logs"
    USERS = "users"
    EXAM_MARKS = "exam_marks"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# USER MODEL
# =============================================================================

class User(Base):
    """
    Operator account.

    Passwords are stored as passlib hashes (bcrypt; legacy hex-md5 hashes
    are upgraded on login).
    """

    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=_new_id)

    username: str = Column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        doc="Unique login name (lowercase)"
    )

    password_hash: str = Column(String(255), nullable=False)

    role: UserRole = Column(
        Enum(UserRole),
        default=UserRole.INVIGILATOR,
        nullable=False,
        index=True
    )

    is_active: bool = Column(Boolean, default=True, nullable=False)

    last_login: Optional[datetime] = Column(DateTime, nullable=True)

    created_at: datetime = Column(DateTime, default=func.now(), nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    synced_at: Optional[datetime] = Column(DateTime, nullable=True)

    @property
    def can_record_marks(self) -> bool:
        """Examiners and admins enter marks and generate or revoke barcodes."""
        return self.role in (UserRole.ADMIN, UserRole.EXAMINER)

    @property
    def can_manage_users(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {
            "scan": True,
            "record_marks": self.can_record_marks,
            "manage_barcodes": self.can_record_marks,
            "manage_users": self.can_manage_users,
        }

    def to_sync_payload(self) -> Dict[str, Any]:
        # The password hash never leaves the device
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "is_active": self.is_active,
            "last_login": _iso(self.last_login),
        }

    def __repr__(self) -> str:
        return (
            f"User(id={self.id!r}, "
            f"username={self.username!r}, "
            f"role={self.role.value!r}, "
            f"is_active={self.is_active})"
        )

    def __str__(self) -> str:
        return f"{self.username} ({self.role.value})"


# =============================================================================
# EXAM MODEL
# =============================================================================

class Exam(Base):
    """
    Assessment with a subject and an expiry timestamp.

    An exam is expired once expiry_date lies in the past; barcodes of an
    expired exam no longer validate.
    """

    __tablename__ = "exams"

    id: str = Column(String(36), primary_key=True, default=_new_id)

    title: str = Column(String(255), nullable=False)

    subject: str = Column(String(100), nullable=False, index=True)

    date: datetime = Column(DateTime, default=func.now(), nullable=False, index=True)

    expiry_date: datetime = Column(DateTime, nullable=False, index=True)

    created_at: datetime = Column(DateTime, default=func.now(), nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    synced_at: Optional[datetime] = Column(DateTime, nullable=True)

    barcodes: Mapped[List["Barcode"]] = relationship(
        "Barcode",
        back_populates="exam",
        cascade="all, delete-orphan"
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the exam's expiry date has passed."""
        now = now or datetime.utcnow()
        return self.expiry_date < now

    def to_sync_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subject": self.subject,
            "date": _iso(self.date),
            "expiry_date": _iso(self.expiry_date),
        }

    def __repr__(self) -> str:
        return (
            f"Exam(id={self.id!r}, "
            f"title={self.title!r}, "
            f"expiry_date={self.expiry_date!r})"
        )


# =============================================================================
# BARCODE MODEL
# =============================================================================

class Barcode(Base):
    """
    Alphanumeric code associated with one exam and one student.

    is_valid can be cleared to revoke a barcode without deleting it.
    """

    __tablename__ = "barcodes"

    id: str = Column(String(36), primary_key=True, default=_new_id)

    code: str = Column(String(64), unique=True, nullable=False, index=True)

    exam_id: str = Column(
        String(36),
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    student_id: str = Column(String(50), nullable=False, index=True)

    is_valid: bool = Column(Boolean, default=True, nullable=False, index=True)

    created_at: datetime = Column(DateTime, default=func.now(), nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    synced_at: Optional[datetime] = Column(DateTime, nullable=True)

    exam: Mapped["Exam"] = relationship("Exam", back_populates="barcodes")

    def to_sync_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "is_valid": self.is_valid,
        }

    def __repr__(self) -> str:
        return (
            f"Barcode(code={self.code!r}, "
            f"exam_id={self.exam_id!r}, "
            f"student_id={self.student_id!r}, "
            f"is_valid={self.is_valid})"
        )


# =============================================================================
# SCAN LOG MODEL
# =============================================================================

class ScanLog(Base):
    """
    Record of one barcode-scan attempt.

    status is computed once at scan time and never re-evaluated, even if
    the exam later expires or the barcode is revoked. References are null
    when the scanned code did not resolve to a barcode or exam.
    """

    __tablename__ = "scan_logs"

    id: str = Column(String(36), primary_key=True, default=_new_id)

    scanned_code: str = Column(String(64), nullable=False, index=True)

    barcode_id: Optional[str] = Column(
        String(36),
        ForeignKey("barcodes.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    exam_id: Optional[str] = Column(
        String(36),
        ForeignKey("exams.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    student_id: Optional[str] = Column(String(50), nullable=True, index=True)

    status: ScanStatus = Column(Enum(ScanStatus), nullable=False, index=True)

    scanned_by: Optional[str] = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    scanned_at: datetime = Column(DateTime, default=func.now(), nullable=False, index=True)

    location: Optional[str] = Column(String(255), nullable=True)

    device_id: Optional[str] = Column(String(255), nullable=True)

    sync_status: SyncStatus = Column(
        Enum(SyncStatus),
        default=SyncStatus.PENDING,
        nullable=False,
        index=True
    )

    synced_at: Optional[datetime] = Column(DateTime, nullable=True)

    notes: Optional[str] = Column(String(500), nullable=True)

    @property
    def is_valid(self) -> bool:
        return self.status == ScanStatus.VALID

    def to_sync_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scanned_code": self.scanned_code,
            "barcode_id": self.barcode_id,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "status": self.status.value,
            "scanned_by": self.scanned_by,
            "scanned_at": _iso(self.scanned_at),
            "location": self.location,
            "device_id": self.device_id,
            "notes": self.notes,
        }

    def __repr__(self) -> str:
        return (
            f"ScanLog(code={self.scanned_code!r}, "
            f"status={self.status.value!r}, "
            f"sync_status={self.sync_status.value!r})"
        )


# =============================================================================
# EXAM MARKS MODEL
# =============================================================================

class ExamMarks(Base):
    """
    Mark sheet of one student for one exam.

    marks holds the serialized per-question breakdown; total_marks is the
    computed sum. One row per (exam_id, student_id).
    """

    __tablename__ = "exam_marks"
    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_exam_marks_exam_student"),
    )

    id: str = Column(String(36), primary_key=True, default=_new_id)

    exam_id: str = Column(
        String(36),
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    student_id: str = Column(String(50), nullable=False, index=True)

    marks: str = Column(Text, nullable=False, doc="JSON serialized mark sheet")

    total_marks: int = Column(Integer, nullable=False, default=0)

    recorded_by: Optional[str] = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    notes: Optional[str] = Column(String(500), nullable=True)

    created_at: datetime = Column(DateTime, default=func.now(), nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    synced_at: Optional[datetime] = Column(DateTime, nullable=True)

    def to_sync_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "marks": self.marks,
            "total_marks": self.total_marks,
            "recorded_by": self.recorded_by,
            "notes": self.notes,
        }

    def __repr__(self) -> str:
        return (
            f"ExamMarks(exam_id={self.exam_id!r}, "
            f"student_id={self.student_id!r}, "
            f"total={self.total_marks})"
        )


# =============================================================================
# SYNC MODELS
# =============================================================================

class SyncQueueItem(Base):
    """
    Local mutation pending transmission to the remote service.

    Rows are deleted once pushed. attempts counts failed pushes; rows at
    the configured maximum are no longer picked up.
    """

    __tablename__ = "sync_queue"

    id: str = Column(String(36), primary_key=True, default=_new_id)

    action: SyncAction = Column(Enum(SyncAction), nullable=False, index=True)

    table_name: SyncTable = Column(Enum(SyncTable), nullable=False, index=True)

    record_id: str = Column(String(36), nullable=False, index=True)

    data: str = Column(Text, nullable=False, doc="JSON serialized payload")

    attempts: int = Column(Integer, default=0, nullable=False, index=True)

    created_at: datetime = Column(DateTime, default=func.now(), nullable=False, index=True)

    last_attempt: Optional[datetime] = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"SyncQueueItem(action={self.action.value!r}, "
            f"table={self.table_name.value!r}, "
            f"record_id={self.record_id!r}, "
            f"attempts={self.attempts})"
        )


class SyncCheckpoint(Base):
    """Timestamp of the last successful push or pull."""

    __tablename__ = "sync_checkpoints"

    name: str = Column(String(20), primary_key=True)

    synced_at: datetime = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"SyncCheckpoint(name={self.name!r}, synced_at={self.synced_at!r})"
