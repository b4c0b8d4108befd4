"""
==============================================================================
Database Initialization Module
==============================================================================

Database setup and demo data for the exam scanner.

This module implements:
- DatabaseInitializer: Class for database setup operations
- Table creation and verification
- Default admin user creation
- Demo seed data (users, exams, barcodes, sample scan logs)

Initialization Flow:
-------------------
1. Create all tables from ORM models
2. Create default admin if no admin exists
3. Seed demo data when SEED_DEMO_DATA is enabled and the store is empty
4. Log initialization status

Demo Data:
---------
    Users:     admin/admin (admin), examiner/test (examiner)
    Exams:     Mathematics (+30d), Physics (+15d), Computer Science (+7d),
               Biology (expired 5 days ago)
    Barcodes:  MATH2023001, MATH2023002, PHYS2023001, PHYS2023002 (revoked),
               CS2023001, CS2023002, BIO2023001 (expired exam)

The examiner account is seeded with a legacy unsalted MD5 hash; it is
re-hashed with bcrypt on first login.

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.core.security import get_security_manager
from exam_scanner.db.database import DatabaseManager, get_database_manager
from exam_scanner.db.models import (
    Barcode,
    Exam,
    ScanLog,
    ScanStatus,
    SyncStatus,
    User,
    UserRole,
)


# Module logger
logger = logging.getLogger(__name__)

# MD5 of "test", as stored by the legacy client
LEGACY_EXAMINER_HASH = "098f6bcd4621d373cade4e832627b4f6"


class DatabaseInitializer:
    """
    Database initialization manager.

    Works either with its own sessions (application startup) or with an
    existing session (tests).

    Example:
        >>> initializer = DatabaseInitializer()
        >>> initializer.initialize()
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session: Optional[Session] = None
    ) -> None:
        self._db_manager = db_manager or get_database_manager()
        self._security = get_security_manager()
        self._settings = get_settings()
        self._session = session

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    def _get_session(self) -> Session:
        if self._session is not None:
            return self._session
        return self._db_manager.get_session()

    def _release(self, session: Session) -> None:
        if self._session is None:
            session.close()

    # =========================================================================
    # TABLE OPERATIONS
    # =========================================================================

    def create_tables(self) -> None:
        """Create all database tables from ORM models."""
        logger.info("Creating database tables...")
        self._db_manager.create_tables()
        logger.info("✅ Database tables created successfully")

    # =========================================================================
    # ADMIN USER OPERATIONS
    # =========================================================================

    def create_default_admin(self) -> Optional[User]:
        """
        Create the default admin user if no admin exists.

        Credentials come from DEFAULT_ADMIN_USERNAME and
        DEFAULT_ADMIN_PASSWORD.

        Returns:
            Created User object, or None if an admin already exists
        """
        session = self._get_session()

        try:
            existing_admin = session.query(User).filter(
                User.role == UserRole.ADMIN
            ).first()

            if existing_admin:
                logger.info(f"Admin user already exists: {existing_admin.username}")
                return None

            admin_user = User(
                username=self._settings.default_admin_username.lower(),
                password_hash=self._security.hash_password(
                    self._settings.default_admin_password
                ),
                role=UserRole.ADMIN,
                is_active=True
            )

            session.add(admin_user)
            session.commit()
            session.refresh(admin_user)

            logger.info(f"✅ Default admin user created: {admin_user.username}")
            logger.warning("⚠️ Please change the default admin password immediately!")

            return admin_user

        except Exception as e:
            session.rollback()
            logger.error(f"Failed to create default admin: {e}")
            raise
        finally:
            self._release(session)

    # =========================================================================
    # DEMO DATA
    # =========================================================================

    def seed_demo_data(self) -> bool:
        """
        Seed demo users, exams, barcodes and two sample scan logs.

        Skipped when any exam already exists. Seeded records are not
        queued for sync.

        Returns:
            True if data was seeded, False if skipped
        """
        if self._settings.is_production:
            logger.error("Cannot seed demo data in production!")
            raise RuntimeError("Demo data seeding not allowed in production")

        session = self._get_session()

        try:
            if session.query(Exam).count() > 0:
                logger.info("Demo data already present, skipping seed")
                return False

            logger.info("Seeding demo data...")
            now = datetime.utcnow()

            users = self._seed_users(session, now)

            exams: Dict[str, Exam] = {}
            for key, title, subject, days in (
                ("math", "Mathematics Final Exam", "Mathematics", 30),
                ("phys", "Physics Midterm", "Physics", 15),
                ("cs", "Computer Science Exam", "Computer Science", 7),
                ("bio", "Biology Final", "Biology", -5),
            ):
                exam = Exam(
                    title=title,
                    subject=subject,
                    date=now,
                    expiry_date=now + timedelta(days=days),
                )
                session.add(exam)
                exams[key] = exam

            barcodes: Dict[str, Barcode] = {}
            for code, exam_key, student_id, is_valid in (
                ("MATH2023001", "math", "STU001", True),
                ("MATH2023002", "math", "STU002", True),
                ("PHYS2023001", "phys", "STU001", True),
                ("PHYS2023002", "phys", "STU003", False),
                ("CS2023001", "cs", "STU004", True),
                ("CS2023002", "cs", "STU005", True),
                ("BIO2023001", "bio", "STU006", True),
            ):
                barcode = Barcode(
                    code=code,
                    exam=exams[exam_key],
                    student_id=student_id,
                    is_valid=is_valid,
                )
                session.add(barcode)
                barcodes[code] = barcode

            session.flush()

            math_barcode = barcodes["MATH2023001"]
            revoked_barcode = barcodes["PHYS2023002"]
            session.add_all([
                ScanLog(
                    scanned_code=math_barcode.code,
                    barcode_id=math_barcode.id,
                    exam_id=math_barcode.exam_id,
                    student_id=math_barcode.student_id,
                    status=ScanStatus.VALID,
                    scanned_by=users["admin"].id if "admin" in users else None,
                    scanned_at=now - timedelta(hours=2),
                    sync_status=SyncStatus.SYNCED,
                    synced_at=now - timedelta(hours=1, minutes=30),
                    notes="Barcode is valid",
                ),
                ScanLog(
                    scanned_code=revoked_barcode.code,
                    barcode_id=revoked_barcode.id,
                    exam_id=revoked_barcode.exam_id,
                    student_id=revoked_barcode.student_id,
                    status=ScanStatus.INVALID,
                    scanned_by=users["examiner"].id if "examiner" in users else None,
                    scanned_at=now - timedelta(hours=1),
                    sync_status=SyncStatus.PENDING,
                    notes="Barcode marked as invalid",
                ),
            ])

            session.commit()

            logger.info(
                f"✅ Demo data seeded: {len(exams)} exams, "
                f"{len(barcodes)} barcodes, 2 scan logs"
            )
            return True

        except Exception as e:
            session.rollback()
            logger.error(f"Failed to seed demo data: {e}")
            raise
        finally:
            self._release(session)

    def _seed_users(self, session: Session, now: datetime) -> Dict[str, User]:
        """Create the demo accounts that don't exist yet."""
        users: Dict[str, User] = {}

        for username, password_hash, role in (
            ("admin", self._security.hash_password("admin"), UserRole.ADMIN),
            ("examiner", LEGACY_EXAMINER_HASH, UserRole.EXAMINER),
        ):
            existing = session.query(User).filter(User.username == username).first()
            if existing:
                users[username] = existing
                continue

            user = User(
                username=username,
                password_hash=password_hash,
                role=role,
                is_active=True,
            )
            session.add(user)
            users[username] = user
            logger.info(f"Created demo user: {username}")

        session.flush()
        return users

    # =========================================================================
    # INITIALIZATION METHODS
    # =========================================================================

    def initialize(self) -> None:
        """
        Perform full database initialization.

        Creates tables, the default admin and, if enabled, the demo data.
        """
        logger.info("=" * 60)
        logger.info("Initializing database...")
        logger.info("=" * 60)

        self.create_tables()

        if self._settings.seed_demo_data and not self._settings.is_production:
            self.seed_demo_data()

        self.create_default_admin()

        if self._db_manager.verify_connection():
            logger.info("✅ Database connection verified")
        else:
            logger.warning("⚠️ Database connection check failed")

        logger.info("Database initialization complete")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def init_db() -> None:
    """
    Initialize the database at application startup.

    Usage:
        from exam_scanner.db import init_db
        init_db()
    """
    DatabaseInitializer().initialize()
