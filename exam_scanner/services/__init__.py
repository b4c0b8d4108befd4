"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes implementing the scanner's business logic.

This package provides:
- AuthService: Authentication and token management
- UserService: User management
- BarcodeService: Barcode validation and generation, exam lookup
- ScanService: Scan processing and history
- MarksService: Mark sheets
- SyncService: Sync queue push and remote pull
- SyncTaskManager: Periodic background sync

Architecture Pattern: Service Layer
----------------------------------
    ┌─────────────────┐
    │   API Router    │
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │    Service      │  ← Business Logic, sync-queue rows
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │   SQLAlchemy    │  ← Local SQLite store
    └─────────────────┘

Every service that mutates a synchronizable record appends its sync-queue
row in the same transaction as the mutation.

Usage:
------
    from exam_scanner.services import ScanService

    outcome = ScanService(db_session).process_scan("MATH2023001", user)
    outcome.is_valid, outcome.message

==============================================================================
"""

from .auth_service import AuthService
from .user_service import UserService
from .barcode_service import BarcodeService, ValidationResult
from .scan_service import ScanService, ScanOutcome
from .marks_service import MarksService, MarkScheme
from .sync_service import (
    SimulatedRemote,
    SyncQueue,
    SyncResult,
    SyncService,
    SyncTaskManager,
)

__all__ = [
    "AuthService",
    "UserService",
    "BarcodeService",
    "ValidationResult",
    "ScanService",
    "ScanOutcome",
    "MarksService",
    "MarkScheme",
    "SimulatedRemote",
    "SyncQueue",
    "SyncResult",
    "SyncService",
    "SyncTaskManager",
]
