"""
==============================================================================
Database Package
==============================================================================

SQLAlchemy database infrastructure and ORM models.

Architecture:
------------
├── database.py   - DatabaseManager class, session factory, get_db
├── models.py     - SQLAlchemy ORM model classes and enums
└── init_db.py    - DatabaseInitializer for setup and demo data

Usage:
------
    from exam_scanner.db import DatabaseManager, Barcode, init_db

    with DatabaseManager().session_scope() as session:
        barcodes = session.query(Barcode).all()

==============================================================================
"""

from .database import Base, DatabaseManager, get_database_manager, get_db
from .models import (
    Barcode,
    Exam,
    ExamMarks,
    ScanLog,
    ScanStatus,
    SyncAction,
    SyncCheckpoint,
    SyncQueueItem,
    SyncStatus,
    SyncTable,
    User,
    UserRole,
)
from .init_db import DatabaseInitializer, init_db

__all__ = [
    # Database management
    "Base",
    "DatabaseManager",
    "get_database_manager",
    "get_db",
    # Models
    "User",
    "Exam",
    "Barcode",
    "ScanLog",
    "ExamMarks",
    "SyncQueueItem",
    "SyncCheckpoint",
    # Enums
    "UserRole",
    "ScanStatus",
    "SyncStatus",
    "SyncAction",
    "SyncTable",
    # Initialization
    "DatabaseInitializer",
    "init_db",
]
