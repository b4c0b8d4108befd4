"""
==============================================================================
Sync Tests
==============================================================================

Tests for the sync queue, push/pull and the sync endpoints.

==============================================================================
"""

from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.db.models import (
    Barcode,
    Exam,
    ScanLog,
    SyncQueueItem,
    SyncStatus,
    SyncTable,
    User,
    UserRole,
)
from exam_scanner.services.scan_service import ScanService
from exam_scanner.services.sync_service import SimulatedRemote, SyncService


class RecordingRemote(SimulatedRemote):
    """Remote with scripted pull records."""

    def __init__(self, records=None, success_rate: float = 1.0):
        super().__init__(success_rate=success_rate)
        self.records = records or {}
        self.pulled_since = []

    def pull(self, table, since):
        self.pulled_since.append(since)
        return self.records.get(table, [])


def _scan(db: Session, user: User, code: str) -> ScanLog:
    return ScanService(db).process_scan(code, user).scan_log


class TestSyncPush:
    """Tests for SyncService.push."""

    def test_empty_queue(self, db: Session):
        """Test an empty queue reports success with nothing synced."""
        result = SyncService(db, RecordingRemote()).push()

        assert result.success is True
        assert result.message == "No items to sync"
        assert result.synced_items == 0

    def test_success_removes_rows(self, db: Session, examiner_user: User, barcode: Barcode):
        """Test synced rows leave the queue and scan logs are marked synced."""
        scan_log = _scan(db, examiner_user, barcode.code)

        result = SyncService(db, RecordingRemote()).push()

        assert result.success is True
        assert result.synced_items == 1
        assert result.tables == ["scan_logs"]
        assert db.query(SyncQueueItem).count() == 0

        db.refresh(scan_log)
        assert scan_log.sync_status == SyncStatus.SYNCED
        assert scan_log.synced_at is not None

    def test_failure_counts_attempts(self, db: Session, examiner_user: User, barcode: Barcode):
        """Test a failed push keeps the row and counts the attempt."""
        _scan(db, examiner_user, barcode.code)

        result = SyncService(db, RecordingRemote(success_rate=0.0)).push()

        assert result.success is False
        assert result.failed_items == 1
        item = db.query(SyncQueueItem).one()
        assert item.attempts == 1
        assert item.last_attempt is not None

    def test_attempt_limit(self, db: Session, examiner_user: User, barcode: Barcode):
        """Test rows at the limit are skipped and their scan log marked failed."""
        scan_log = _scan(db, examiner_user, barcode.code)
        service = SyncService(db, RecordingRemote(success_rate=0.0))
        limit = service.max_attempts

        for _ in range(limit):
            service.push()

        item = db.query(SyncQueueItem).one()
        assert item.attempts == limit
        db.refresh(scan_log)
        assert scan_log.sync_status == SyncStatus.FAILED

        result = SyncService(db, RecordingRemote()).push()
        assert result.synced_items == 0
        assert result.skipped_items == 1
        assert db.query(SyncQueueItem).one().attempts == limit

    def test_offline(self, db: Session, examiner_user: User, barcode: Barcode, monkeypatch):
        """Test nothing is sent while offline."""
        _scan(db, examiner_user, barcode.code)
        monkeypatch.setattr(get_settings(), "offline_mode", True)

        service = SyncService(db, RecordingRemote())
        assert service.is_online() is False

        result = service.push()
        assert result.success is False
        assert result.message == "Device is offline"
        assert db.query(SyncQueueItem).one().attempts == 0

        assert service.pull().success is False

    def test_status(self, db: Session, examiner_user: User, barcode: Barcode):
        """Test status counts and checkpoints."""
        _scan(db, examiner_user, barcode.code)
        service = SyncService(db, RecordingRemote())

        before = service.status()
        assert before["pending_items"] == 1
        assert before["last_push"] is None

        service.push()
        after = service.status()
        assert after["pending_items"] == 0
        assert after["failed_items"] == 0
        assert after["last_push"] is not None


class TestSyncPull:
    """Tests for SyncService.pull."""

    def test_pull_records_checkpoint(self, db: Session):
        """Test the second pull asks for changes since the first."""
        remote = RecordingRemote()
        service = SyncService(db, remote)

        first = service.pull()
        assert first.success is True
        assert first.tables == ["exams", "barcodes", "users"]

        service.pull()
        assert remote.pulled_since[0] is None
        assert remote.pulled_since[-1] is not None

    def test_pull_upserts_exams_and_barcodes(self, db: Session, exam: Exam):
        """Test remote exams and barcodes are created or updated locally."""
        new_expiry = datetime.utcnow() + timedelta(days=90)
        remote = RecordingRemote({
            SyncTable.EXAMS: [
                {"id": exam.id, "title": "Mathematics Resit", "expiry_date": new_expiry.isoformat()},
            ],
            SyncTable.BARCODES: [
                {"id": "remote-barcode", "code": "MATH2024777", "exam_id": exam.id,
                 "student_id": "STU777", "is_valid": True},
            ],
        })

        result = SyncService(db, remote).pull()

        assert result.synced_items == 2
        db.refresh(exam)
        assert exam.title == "Mathematics Resit"
        assert exam.expiry_date == new_expiry
        assert exam.synced_at is not None
        assert db.get(Barcode, "remote-barcode").code == "MATH2024777"
        assert db.query(SyncQueueItem).count() == 0

    def test_pull_updates_known_users_only(self, db: Session, examiner_user: User):
        """Test users are updated but never created by a pull."""
        remote = RecordingRemote({
            SyncTable.USERS: [
                {"id": examiner_user.id, "role": "admin", "is_active": False},
                {"id": "stranger", "username": "stranger", "role": "admin"},
            ],
        })

        result = SyncService(db, remote).pull()

        assert result.synced_items == 1
        db.refresh(examiner_user)
        assert examiner_user.role == UserRole.ADMIN
        assert examiner_user.is_active is False
        assert db.get(User, "stranger") is None


class TestSyncEndpoints:
    """Tests for sync endpoints."""

    def test_full_sync(self, client: TestClient, examiner_headers: dict, barcode: Barcode):
        """Test push then pull through the API."""
        client.post("/api/v1/scans", headers=examiner_headers, json={"code": barcode.code})

        response = client.post("/api/v1/sync", headers=examiner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["push"]["synced_items"] == 1
        assert data["pull"]["success"] is True

        status = client.get("/api/v1/sync/status", headers=examiner_headers).json()
        assert status["pending_items"] == 0
        assert status["is_online"] is True

    def test_offline_sync_rejected(self, client: TestClient, examiner_headers: dict, monkeypatch):
        """Test manual sync while offline."""
        monkeypatch.setattr(get_settings(), "offline_mode", True)

        response = client.post("/api/v1/sync/push", headers=examiner_headers)
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DEVICE_OFFLINE"

    def test_queue_listing(
        self, client: TestClient, admin_headers: dict, examiner_headers: dict, barcode: Barcode
    ):
        """Test the queue is visible to admins only."""
        client.post("/api/v1/scans", headers=examiner_headers, json={"code": barcode.code})

        assert client.get("/api/v1/sync/queue", headers=examiner_headers).status_code == 403

        data = client.get("/api/v1/sync/queue", headers=admin_headers).json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["table_name"] == "scan_logs"
        assert item["action"] == "create"
        assert item["data"]["scanned_code"] == barcode.code
