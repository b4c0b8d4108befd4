"""
==============================================================================
Sync Service Module
==============================================================================

Synchronization of local mutations with the remote exam service.

This module implements:
- SyncQueue: Appends mutation rows to the sync queue
- SimulatedRemote: In-process stand-in for the remote service
- SyncService: Push, pull and status operations
- SyncTaskManager: Periodic background sync

Push Flow:
---------
    queue rows with attempts < MAX_SYNC_ATTEMPTS, oldest first
           │
           ▼
    ┌──────────────┐  ok   ┌──────────────────────────────────────┐
    │ remote.push  │──────▶│ delete row, stamp synced_at, scan    │
    └──────┬───────┘       │ log sync_status = synced             │
           │ fail          └──────────────────────────────────────┘
           ▼
    attempts += 1, last_attempt = now
    (scan log sync_status = failed once attempts reach the limit)

Rows at the attempt limit stay in the queue but are no longer sent.

==============================================================================
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime
from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.db.database import get_database_manager
from exam_scanner.db.models import (
    Barcode,
    Exam,
    ExamMarks,
    ScanLog,
    SyncAction,
    SyncCheckpoint,
    SyncQueueItem,
    SyncStatus,
    SyncTable,
    User,
    UserRole,
)


# Module logger
logger = logging.getLogger(__name__)

# Checkpoint names
CHECKPOINT_PUSH = "push"
CHECKPOINT_PULL = "pull"

# Tables refreshed from the remote on pull
PULL_TABLES = (SyncTable.EXAMS, SyncTable.BARCODES, SyncTable.USERS)

MODEL_BY_TABLE = {
    SyncTable.EXAMS: Exam,
    SyncTable.BARCODES: Barcode,
    SyncTable.SCAN_LOGS: ScanLog,
    SyncTable.USERS: User,
    SyncTable.EXAM_MARKS: ExamMarks,
}


@dataclass
class SyncResult:
    """Outcome of a push or pull."""

    success: bool
    message: str
    synced_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    tables: List[str] = field(default_factory=list)
    synced_at: Optional[datetime] = None


# =============================================================================
# SYNC QUEUE
# =============================================================================

class SyncQueue:
    """
    Writer for sync-queue rows.

    Rows are added to the caller's session and committed with the mutation
    they describe.

    Example:
        >>> SyncQueue(db).add(SyncAction.CREATE, SyncTable.SCAN_LOGS, scan_log)
        >>> db.commit()
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def add(self, action: SyncAction, table: SyncTable, record: Any) -> SyncQueueItem:
        """Queue a mutation of a model exposing to_sync_payload()."""
        item = SyncQueueItem(
            action=action,
            table_name=table,
            record_id=record.id,
            data=json.dumps(record.to_sync_payload()),
            attempts=0,
            created_at=datetime.utcnow(),
        )
        self._db.add(item)
        logger.debug(f"Queued {action.value} of {table.value}/{record.id}")
        return item


# =============================================================================
# SIMULATED REMOTE
# =============================================================================

class SimulatedRemote:
    """
    In-process stand-in for the remote exam service.

    Each push succeeds with probability success_rate. Pulls return no
    records. An HTTP client with the same two methods can replace it.
    """

    def __init__(
        self,
        success_rate: float = 0.9,
        latency_ms: int = 0,
        rng: Optional[random.Random] = None
    ) -> None:
        self.success_rate = success_rate
        self.latency_ms = latency_ms
        self._rng = rng or random.Random()

    def push(self, item: SyncQueueItem) -> bool:
        self._delay()
        return self._rng.random() < self.success_rate

    def pull(self, table: SyncTable, since: Optional[datetime]) -> List[Dict[str, Any]]:
        self._delay()
        logger.debug(f"Pulling {table.value} updates since {since}")
        return []

    def _delay(self) -> None:
        if self.latency_ms:
            time.sleep(self.latency_ms / 1000)

    @classmethod
    def from_settings(cls) -> SimulatedRemote:
        settings = get_settings()
        return cls(
            success_rate=settings.sync_success_rate,
            latency_ms=settings.sync_latency_ms,
        )


# =============================================================================
# SYNC SERVICE
# =============================================================================

class SyncService:
    """
    Push/pull synchronization of the local store.

    Example:
        >>> service = SyncService(db_session)
        >>> if service.is_online():
        ...     result = service.push()
        ...     print(result.message)
    """

    def __init__(self, db: Session, remote: Optional[SimulatedRemote] = None) -> None:
        self._db = db
        self._settings = get_settings()
        self._remote = remote or SimulatedRemote.from_settings()

    # =========================================================================
    # CONNECTIVITY
    # =========================================================================

    def is_online(self) -> bool:
        """Check if the remote service is reachable."""
        return not self._settings.offline_mode

    @property
    def max_attempts(self) -> int:
        return self._settings.max_sync_attempts

    # =========================================================================
    # PUSH
    # =========================================================================

    def push(self) -> SyncResult:
        """
        Send queued mutations to the remote service.

        Returns:
            SyncResult; success is False when offline or when any item failed
        """
        if not self.is_online():
            logger.warning("Sync skipped: device is offline")
            return SyncResult(success=False, message="Device is offline")

        items = (
            self._db.query(SyncQueueItem)
            .filter(SyncQueueItem.attempts < self.max_attempts)
            .order_by(SyncQueueItem.created_at.asc())
            .all()
        )
        skipped = self._db.query(SyncQueueItem).filter(
            SyncQueueItem.attempts >= self.max_attempts
        ).count()

        now = datetime.utcnow()

        if not items:
            self._set_checkpoint(CHECKPOINT_PUSH, now)
            self._db.commit()
            return SyncResult(
                success=True,
                message="No items to sync",
                skipped_items=skipped,
                synced_at=now,
            )

        synced = 0
        failed = 0
        tables = set()

        for item in items:
            if self._remote.push(item):
                self._mark_synced(item, now)
                self._db.delete(item)
                synced += 1
                tables.add(item.table_name.value)
            else:
                self._mark_failed(item, now)
                failed += 1

        self._set_checkpoint(CHECKPOINT_PUSH, now)
        self._db.commit()

        if failed:
            message = f"Synced {synced} of {len(items)} items, {failed} failed"
            logger.warning(f"⚠️ {message}")
        else:
            message = f"Synced {synced} items"
            logger.info(f"✅ {message}")

        return SyncResult(
            success=failed == 0,
            message=message,
            synced_items=synced,
            failed_items=failed,
            skipped_items=skipped,
            tables=sorted(tables),
            synced_at=now,
        )

    def _mark_synced(self, item: SyncQueueItem, now: datetime) -> None:
        if item.action == SyncAction.DELETE:
            return

        model = MODEL_BY_TABLE[item.table_name]
        record = self._db.query(model).filter(model.id == item.record_id).first()
        if record is None:
            return

        record.synced_at = now
        if isinstance(record, ScanLog):
            record.sync_status = SyncStatus.SYNCED

    def _mark_failed(self, item: SyncQueueItem, now: datetime) -> None:
        item.attempts += 1
        item.last_attempt = now

        logger.debug(
            f"Sync failed for {item.table_name.value}/{item.record_id} "
            f"(attempt {item.attempts}/{self.max_attempts})"
        )

        if item.attempts >= self.max_attempts and item.table_name == SyncTable.SCAN_LOGS:
            scan_log = self._db.query(ScanLog).filter(
                ScanLog.id == item.record_id
            ).first()
            if scan_log is not None:
                scan_log.sync_status = SyncStatus.FAILED
                logger.warning(f"⚠️ Scan log {scan_log.id} gave up after {item.attempts} attempts")

    # =========================================================================
    # PULL
    # =========================================================================

    def pull(self) -> SyncResult:
        """
        Fetch exam, barcode and user updates since the last pull.

        Remote records are upserted by id. Users are never created by a
        pull; only role and active flag of known users are updated.
        """
        if not self.is_online():
            logger.warning("Pull skipped: device is offline")
            return SyncResult(success=False, message="Device is offline")

        since = self._get_checkpoint(CHECKPOINT_PULL)
        now = datetime.utcnow()
        applied = 0

        for table in PULL_TABLES:
            for record in self._remote.pull(table, since):
                if self._apply_remote_record(table, record, now):
                    applied += 1

        self._set_checkpoint(CHECKPOINT_PULL, now)
        self._db.commit()

        logger.info(f"✅ Updates pulled successfully ({applied} records)")

        return SyncResult(
            success=True,
            message="Updates pulled successfully",
            synced_items=applied,
            tables=[table.value for table in PULL_TABLES],
            synced_at=now,
        )

    def _apply_remote_record(
        self,
        table: SyncTable,
        record: Dict[str, Any],
        now: datetime
    ) -> bool:
        record_id = record.get("id")
        if not record_id:
            return False

        model = MODEL_BY_TABLE[table]
        local = self._db.query(model).filter(model.id == record_id).first()

        if table == SyncTable.USERS:
            if local is None:
                return False
            if "role" in record:
                local.role = UserRole(record["role"])
            if "is_active" in record:
                local.is_active = bool(record["is_active"])
        else:
            if local is None:
                local = model(id=record_id)
                self._db.add(local)
            columns = model.__table__.columns
            for key, value in record.items():
                if key in ("id", "synced_at") or key not in columns:
                    continue
                if isinstance(columns[key].type, DateTime) and isinstance(value, str):
                    value = datetime.fromisoformat(value)
                setattr(local, key, value)

        local.synced_at = now
        return True

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """Current sync state: connectivity, queue counts and checkpoints."""
        pending = self._db.query(SyncQueueItem).filter(
            SyncQueueItem.attempts < self.max_attempts
        ).count()
        failed = self._db.query(SyncQueueItem).filter(
            SyncQueueItem.attempts >= self.max_attempts
        ).count()

        return {
            "is_online": self.is_online(),
            "pending_items": pending,
            "failed_items": failed,
            "last_push": self._get_checkpoint(CHECKPOINT_PUSH),
            "last_pull": self._get_checkpoint(CHECKPOINT_PULL),
            "auto_sync_enabled": self._settings.auto_sync_enabled,
            "sync_interval_minutes": self._settings.sync_interval_minutes,
        }

    def list_queue(self, limit: int = 100) -> List[SyncQueueItem]:
        return (
            self._db.query(SyncQueueItem)
            .order_by(SyncQueueItem.created_at.asc())
            .limit(limit)
            .all()
        )

    # =========================================================================
    # CHECKPOINTS
    # =========================================================================

    def _get_checkpoint(self, name: str) -> Optional[datetime]:
        checkpoint = self._db.get(SyncCheckpoint, name)
        return checkpoint.synced_at if checkpoint else None

    def _set_checkpoint(self, name: str, when: datetime) -> None:
        checkpoint = self._db.get(SyncCheckpoint, name)
        if checkpoint is None:
            self._db.add(SyncCheckpoint(name=name, synced_at=when))
        else:
            checkpoint.synced_at = when


# =============================================================================
# BACKGROUND TASK
# =============================================================================

class SyncTaskManager:
    """
    Manager for the periodic background sync.

    Runs push then pull every SYNC_INTERVAL_MINUTES while online.

    Example:
        >>> manager = SyncTaskManager()
        >>> manager.start()  # Start background task
        >>> # ... application runs ...
        >>> manager.stop()   # Stop on shutdown
    """

    _instance: Optional[SyncTaskManager] = None

    def __new__(cls) -> SyncTaskManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._settings = get_settings()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._initialized = True

    def run_once(self) -> Optional[SyncResult]:
        """Run one push and pull in a fresh session. Returns the push result."""
        with get_database_manager().session_scope() as session:
            service = SyncService(session)

            if not service.is_online():
                logger.debug("Scheduled sync skipped: offline")
                return None

            result = service.push()
            service.pull()
            return result

    async def _sync_loop(self) -> None:
        logger.info("🔄 Sync background task started")

        while self._running:
            try:
                await asyncio.sleep(self._settings.sync_interval_minutes * 60)

                logger.debug("Running scheduled sync...")
                await asyncio.to_thread(self.run_once)

            except asyncio.CancelledError:
                logger.info("🛑 Sync task cancelled")
                break
            except Exception as e:
                logger.error(f"Sync task error: {e}")

    def start(self) -> asyncio.Task:
        """Start the background sync task."""
        if self._task is None or self._task.done():
            self._running = True
            self._task = asyncio.create_task(self._sync_loop())
            logger.info("✅ Sync task started")
        return self._task

    def stop(self) -> None:
        """Stop the background sync task."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("🛑 Sync task stopped")

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()
