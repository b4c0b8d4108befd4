"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints.

==============================================================================
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from exam_scanner.db.init_db import LEGACY_EXAMINER_HASH
from exam_scanner.db.models import Barcode, Exam, SyncQueueItem, SyncTable, User, UserRole


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert data["components"]["database"] == "healthy"
        assert data["details"]["pending_sync_items"] == 0
        assert data["details"]["store"]["backend"] == "sqlite"

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestAuthEndpoints:
    """Tests for authentication endpoints."""

    @pytest.mark.parametrize("username,password", [("admin", "admin"), ("examiner", "test")])
    def test_demo_accounts_login(
        self, client: TestClient, admin_user: User, examiner_user: User, username, password
    ):
        """Test both demo accounts authenticate."""
        response = client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": password}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["username"] == username

    @pytest.mark.parametrize("username,password", [
        ("admin", "test"),
        ("examiner", "admin"),
        ("admin", "wrongpassword"),
        ("admin", "ADMIN"),
        ("nonexistent", "admin"),
    ])
    def test_other_credentials_fail(
        self, client: TestClient, admin_user: User, examiner_user: User, username, password
    ):
        """Test every other credential pair is rejected."""
        response = client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": password}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_username_is_case_insensitive(self, client: TestClient, admin_user: User):
        """Test the username is normalized before lookup."""
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "  ADMIN ", "password": "admin"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "admin"

    def test_profile_schema_reads_orm_user(self, examiner_user: User):
        """Test operator schemas load straight from ORM rows."""
        from exam_scanner.schemas.user import UserDetail

        assert UserDetail.model_config["from_attributes"] is True
        detail = UserDetail.model_validate(examiner_user)
        assert detail.username == "examiner"
        assert detail.role == UserRole.EXAMINER

    def test_legacy_hash_upgraded_on_login(self, client: TestClient, db: Session):
        """Test an MD5 hash is accepted once and replaced by bcrypt."""
        user = User(username="examiner", password_hash=LEGACY_EXAMINER_HASH, role=UserRole.EXAMINER)
        db.add(user)
        db.commit()

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "examiner", "password": "test"}
        )
        assert response.status_code == 200

        db.refresh(user)
        assert user.password_hash.startswith("$2")
        assert user.last_login is not None

    def test_disabled_account(self, client: TestClient, db: Session, examiner_user: User):
        """Test an inactive user cannot log in."""
        examiner_user.is_active = False
        db.commit()

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "examiner", "password": "test"}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCOUNT_DISABLED"

    def test_get_current_user(self, client: TestClient, admin_headers: dict, admin_user: User):
        """Test getting current user info."""
        response = client.get("/api/v1/auth/me", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"]["username"] == admin_user.username
        assert data["capabilities"]["manage_users"] is True

    def test_invigilator_capabilities(self, client: TestClient, invigilator_headers: dict):
        """Test an invigilator may scan but not record marks."""
        capabilities = client.get("/api/v1/auth/me", headers=invigilator_headers).json()["capabilities"]
        assert capabilities == {
            "scan": True,
            "record_marks": False,
            "manage_barcodes": False,
            "manage_users": False,
        }

    def test_get_current_user_no_token(self, client: TestClient):
        """Test getting current user without token."""
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_malformed_token(self, client: TestClient):
        """Test a garbage bearer token is rejected."""
        response = client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    def test_refresh_rotates_tokens(self, client: TestClient, admin_user: User):
        """Test a refresh token can be used exactly once."""
        login = client.post(
            "/api/v1/auth/login", json={"username": "admin", "password": "admin"}
        ).json()

        first = client.post(
            "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]}
        )
        assert first.status_code == 200

        replay = client.post(
            "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]}
        )
        assert replay.status_code == 401

    def test_logout_revokes_access_token(self, client: TestClient, admin_user: User):
        """Test a logged-out token no longer authenticates."""
        login = client.post(
            "/api/v1/auth/login", json={"username": "admin", "password": "admin"}
        ).json()
        headers = {"Authorization": f"Bearer {login['access_token']}"}

        response = client.post(
            "/api/v1/auth/logout",
            headers=headers,
            json={"refresh_token": login["refresh_token"]}
        )
        assert response.status_code == 200

        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401
        assert client.post(
            "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]}
        ).status_code == 401

    def test_change_password(self, client: TestClient, examiner_headers: dict):
        """Test changing password then logging in with the new one."""
        response = client.put(
            "/api/v1/auth/change-password",
            headers=examiner_headers,
            json={"current_password": "test", "new_password": "n3w-secret"}
        )
        assert response.status_code == 200

        login = client.post(
            "/api/v1/auth/login", json={"username": "examiner", "password": "n3w-secret"}
        )
        assert login.status_code == 200

    def test_change_password_rules(self, client: TestClient, db: Session, examiner_headers: dict):
        """Test a wrong or unchanged password is refused and a change is queued for sync."""
        wrong = client.put(
            "/api/v1/auth/change-password",
            headers=examiner_headers,
            json={"current_password": "nope", "new_password": "n3w-secret"}
        )
        assert wrong.status_code == 401

        same = client.put(
            "/api/v1/auth/change-password",
            headers=examiner_headers,
            json={"current_password": "test", "new_password": "test"}
        )
        assert same.status_code == 400
        assert same.json()["error"]["code"] == "VALIDATION_ERROR"

        client.put(
            "/api/v1/auth/change-password",
            headers=examiner_headers,
            json={"current_password": "test", "new_password": "n3w-secret"}
        )
        queued = db.query(SyncQueueItem).filter(SyncQueueItem.table_name == SyncTable.USERS).all()
        assert len(queued) == 1


class TestUserEndpoints:
    """Tests for user management endpoints."""

    def test_create_user_as_admin(self, client: TestClient, db: Session, admin_headers: dict):
        """Test admin can create user and the user is queued for sync."""
        unique_username = f"invig_{uuid.uuid4().hex[:8]}"
        response = client.post(
            "/api/v1/users",
            headers=admin_headers,
            json={"username": unique_username, "password": "password123"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["username"] == unique_username
        assert data["user"]["role"] == "invigilator"

        queued = db.query(SyncQueueItem).filter(SyncQueueItem.table_name == SyncTable.USERS).all()
        assert len(queued) == 1
        assert "password" not in queued[0].data

    def test_create_user_as_examiner_fails(self, client: TestClient, examiner_headers: dict):
        """Test examiner cannot create user."""
        response = client.post(
            "/api/v1/users",
            headers=examiner_headers,
            json={"username": "someone", "password": "password123"}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ADMIN_REQUIRED"

    def test_duplicate_username(self, client: TestClient, admin_headers: dict, examiner_user: User):
        """Test creating an existing username conflicts."""
        response = client.post(
            "/api/v1/users",
            headers=admin_headers,
            json={"username": "examiner", "password": "password123"}
        )
        assert response.status_code == 409

    def test_list_users(self, client: TestClient, admin_headers: dict, admin_user: User):
        """Test listing users."""
        response = client.get("/api/v1/users", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total"] >= 1

    def test_deactivate_and_activate(
        self, client: TestClient, admin_headers: dict, examiner_user: User
    ):
        """Test soft delete and reactivation."""
        response = client.delete(f"/api/v1/users/{examiner_user.id}", headers=admin_headers)
        assert response.status_code == 200

        response = client.post(f"/api/v1/users/{examiner_user.id}/activate", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["user"]["is_active"] is True

    def test_admin_cannot_lock_themselves_out(
        self, client: TestClient, admin_headers: dict, admin_user: User
    ):
        """Test self deactivation and demotion are refused."""
        response = client.delete(f"/api/v1/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SELF_MODIFICATION"

        response = client.put(
            f"/api/v1/users/{admin_user.id}",
            headers=admin_headers,
            json={"role": "examiner"}
        )
        assert response.status_code == 400

        response = client.put(
            f"/api/v1/users/{admin_user.id}",
            headers=admin_headers,
            json={"password": "newadmin"}
        )
        assert response.status_code == 200

    def test_activity(
        self,
        client: TestClient,
        admin_headers: dict,
        examiner_headers: dict,
        examiner_user: User,
        barcode: Barcode,
        revoked_barcode: Barcode,
    ):
        """Test per-status scan counts for an operator."""
        client.post("/api/v1/scans", headers=examiner_headers, json={"code": barcode.code})
        client.post("/api/v1/scans", headers=examiner_headers, json={"code": revoked_barcode.code})
        client.post("/api/v1/scans", headers=examiner_headers, json={"code": "NOPE999"})

        response = client.get(f"/api/v1/users/{examiner_user.id}/activity", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["counts"]["valid"] == 1
        assert data["counts"]["invalid"] == 2
        assert data["last_scan_at"] is not None


class TestBarcodeEndpoints:
    """Tests for barcode and exam endpoints."""

    def test_subjects(self, client: TestClient, examiner_headers: dict):
        """Test the predefined subject list."""
        response = client.get("/api/v1/barcodes/subjects", headers=examiner_headers)
        assert response.status_code == 200
        assert "Python" in response.json()["subjects"]

    def test_generate_barcode(self, client: TestClient, db: Session, examiner_headers: dict):
        """Test generation creates exam and barcode and queues both."""
        response = client.post(
            "/api/v1/barcodes",
            headers=examiner_headers,
            json={"subject": "Python", "student_id": "stu042"}
        )
        assert response.status_code == 200
        data = response.json()

        code = data["barcode"]["code"]
        assert code.startswith("PYT")
        assert len(code) == 3 + 4 + 6
        assert data["barcode"]["student_id"] == "STU042"
        assert data["exam"]["title"] == "Python Exam"
        assert data["exam"]["is_expired"] is False

        tables = {item.table_name for item in db.query(SyncQueueItem).all()}
        assert tables == {SyncTable.EXAMS, SyncTable.BARCODES}

    def test_generate_barcode_as_invigilator_fails(
        self, client: TestClient, invigilator_headers: dict
    ):
        """Test invigilators cannot generate barcodes."""
        response = client.post(
            "/api/v1/barcodes",
            headers=invigilator_headers,
            json={"subject": "Python", "student_id": "STU042"}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EXAMINER_REQUIRED"

    def test_validate_does_not_log(
        self, client: TestClient, db: Session, examiner_headers: dict, barcode: Barcode
    ):
        """Test validation reports status without writing a scan."""
        response = client.get(
            f"/api/v1/barcodes/validate/{barcode.code}", headers=examiner_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["status"] == "valid"
        assert db.query(SyncQueueItem).count() == 0

    def test_revoke_barcode(
        self, client: TestClient, examiner_headers: dict, barcode: Barcode
    ):
        """Test revoking a barcode makes it invalid."""
        response = client.patch(
            f"/api/v1/barcodes/{barcode.id}",
            headers=examiner_headers,
            json={"is_valid": False}
        )
        assert response.status_code == 200
        assert response.json()["barcode"]["is_valid"] is False

        data = client.get(
            f"/api/v1/barcodes/validate/{barcode.code}", headers=examiner_headers
        ).json()
        assert data["message"] == "Barcode marked as invalid"

    def test_unknown_barcode_id(self, client: TestClient, examiner_headers: dict):
        """Test looking up a missing barcode."""
        response = client.get(f"/api/v1/barcodes/{uuid.uuid4()}", headers=examiner_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "BARCODE_NOT_FOUND"

    def test_list_exams(
        self, client: TestClient, examiner_headers: dict, exam: Exam, expired_exam: Exam
    ):
        """Test exam listing with and without expired exams."""
        everything = client.get("/api/v1/exams", headers=examiner_headers).json()
        assert everything["total"] == 2

        current = client.get(
            "/api/v1/exams", params={"include_expired": False}, headers=examiner_headers
        ).json()
        assert [e["id"] for e in current["exams"]] == [exam.id]

    def test_get_missing_exam(self, client: TestClient, examiner_headers: dict):
        """Test the error envelope for a missing exam."""
        response = client.get("/api/v1/exams/does-not-exist", headers=examiner_headers)
        assert response.status_code == 404
        error = response.json()["error"]
        assert response.json()["success"] is False
        assert error["code"] == "EXAM_NOT_FOUND"
        assert "timestamp" in error
