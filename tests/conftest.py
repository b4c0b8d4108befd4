"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides test database, client, authentication and exam fixtures.

==============================================================================
"""

import os
import tempfile

# Settings are cached on first import: configure before importing the app
_TEST_DIR = tempfile.mkdtemp(prefix="exam_scanner_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/startup.db"
os.environ["APP_ENV"] = "development"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["AUTO_SYNC_ENABLED"] = "false"
os.environ["OFFLINE_MODE"] = "false"
os.environ["SYNC_SUCCESS_RATE"] = "1.0"
os.environ["SYNC_LATENCY_MS"] = "0"

import pytest
from datetime import datetime, timedelta
from typing import Generator, Dict
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from exam_scanner.main import app
from exam_scanner.db.database import Base, get_db
from exam_scanner.db.models import Barcode, Exam, User, UserRole
from exam_scanner.core.security import get_security_manager


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

# In-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# USER FIXTURES
# ============================================================================

def _create_user(db: Session, username: str, password: str, role: UserRole) -> User:
    user = User(
        username=username,
        password_hash=get_security_manager().hash_password(password),
        role=role,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    """Create an admin user in the test database."""
    return _create_user(db, "admin", "admin", UserRole.ADMIN)


@pytest.fixture
def examiner_user(db: Session) -> User:
    """Create an examiner user in the test database."""
    return _create_user(db, "examiner", "test", UserRole.EXAMINER)


@pytest.fixture
def invigilator_user(db: Session) -> User:
    """Create an invigilator user in the test database."""
    return _create_user(db, "invigilator", "watch123", UserRole.INVIGILATOR)


# ============================================================================
# TOKEN FIXTURES
# ============================================================================

def _token_for(user: User) -> str:
    return get_security_manager().create_access_token({
        "sub": user.id,
        "username": user.username,
        "role": user.role.value
    })


@pytest.fixture
def admin_token(admin_user: User) -> str:
    """Create access token for admin user."""
    return _token_for(admin_user)


@pytest.fixture
def examiner_token(examiner_user: User) -> str:
    """Create access token for examiner user."""
    return _token_for(examiner_user)


@pytest.fixture
def invigilator_token(invigilator_user: User) -> str:
    """Create access token for invigilator user."""
    return _token_for(invigilator_user)


# ============================================================================
# HEADER FIXTURES
# ============================================================================

@pytest.fixture
def admin_headers(admin_token: str) -> Dict[str, str]:
    """Authorization headers for admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def examiner_headers(examiner_token: str) -> Dict[str, str]:
    """Authorization headers for examiner user."""
    return {"Authorization": f"Bearer {examiner_token}"}


@pytest.fixture
def invigilator_headers(invigilator_token: str) -> Dict[str, str]:
    """Authorization headers for invigilator user."""
    return {"Authorization": f"Bearer {invigilator_token}"}


# ============================================================================
# EXAM FIXTURES
# ============================================================================

@pytest.fixture
def exam(db: Session) -> Exam:
    """An exam expiring in 30 days."""
    now = datetime.utcnow()
    exam = Exam(
        title="Mathematics Final Exam",
        subject="Mathematics",
        date=now,
        expiry_date=now + timedelta(days=30)
    )
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return exam


@pytest.fixture
def expired_exam(db: Session) -> Exam:
    """An exam that expired five days ago."""
    now = datetime.utcnow()
    exam = Exam(
        title="Biology Final Exam",
        subject="Biology",
        date=now - timedelta(days=10),
        expiry_date=now - timedelta(days=5)
    )
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return exam


def _create_barcode(db: Session, code: str, exam: Exam, student_id: str, is_valid: bool = True) -> Barcode:
    barcode = Barcode(code=code, exam_id=exam.id, student_id=student_id, is_valid=is_valid)
    db.add(barcode)
    db.commit()
    db.refresh(barcode)
    return barcode


@pytest.fixture
def barcode(db: Session, exam: Exam) -> Barcode:
    """A valid barcode for an unexpired exam."""
    return _create_barcode(db, "MATH2023001", exam, "STU001")


@pytest.fixture
def revoked_barcode(db: Session, exam: Exam) -> Barcode:
    """A barcode flagged invalid."""
    return _create_barcode(db, "MATH2023002", exam, "STU002", is_valid=False)


@pytest.fixture
def expired_barcode(db: Session, expired_exam: Exam) -> Barcode:
    """A valid barcode whose exam has expired."""
    return _create_barcode(db, "BIO2023001", expired_exam, "STU001")
