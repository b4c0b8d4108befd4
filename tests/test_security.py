"""
==============================================================================
Security Tests
==============================================================================

Tests for password hashing and JWT handling.

==============================================================================
"""

from datetime import timedelta

import pytest
from jose import ExpiredSignatureError, JWTError

from exam_scanner.core.security import SecurityManager, get_security_manager
from exam_scanner.db.init_db import LEGACY_EXAMINER_HASH


@pytest.fixture
def security() -> SecurityManager:
    return get_security_manager()


class TestPasswordHashing:
    """Tests for password hashing."""

    def test_hash_is_salted_bcrypt(self, security: SecurityManager):
        """Test two hashes of one password differ and both verify."""
        first = security.hash_password("admin")
        second = security.hash_password("admin")

        assert first != second
        assert first.startswith("$2")
        assert security.verify_password("admin", first)
        assert not security.verify_password("wrong", first)

    def test_empty_password_rejected(self, security: SecurityManager):
        """Test empty passwords cannot be hashed."""
        with pytest.raises(ValueError):
            security.hash_password("")

    def test_legacy_md5_upgrade(self, security: SecurityManager):
        """Test the unsalted MD5 form verifies and yields a bcrypt replacement."""
        assert security.needs_update(LEGACY_EXAMINER_HASH)

        valid, new_hash = security.verify_and_update("test", LEGACY_EXAMINER_HASH)
        assert valid is True
        assert new_hash.startswith("$2")
        assert not security.needs_update(new_hash)

        valid, new_hash = security.verify_and_update("nope", LEGACY_EXAMINER_HASH)
        assert valid is False
        assert new_hash is None

    def test_garbage_hash(self, security: SecurityManager):
        """Test an unrecognized stored hash fails verification."""
        assert security.verify_and_update("test", "not-a-hash") == (False, None)


class TestTokens:
    """Tests for JWT creation, verification and revocation."""

    def test_access_token_round_trip(self, security: SecurityManager):
        """Test claims survive and type/jti are added."""
        token = security.create_access_token({"sub": "user-1", "role": "admin"})
        payload = security.decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_type_mismatch(self, security: SecurityManager):
        """Test a refresh token is not accepted as an access token."""
        token = security.create_refresh_token({"sub": "user-1"})

        with pytest.raises(JWTError):
            security.decode_token(token, SecurityManager.TOKEN_TYPE_ACCESS)
        assert security.verify_token(token, SecurityManager.TOKEN_TYPE_REFRESH) is not None

    def test_expired(self, security: SecurityManager):
        """Test an expired token is rejected."""
        token = security.create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-5))

        with pytest.raises(ExpiredSignatureError):
            security.decode_token(token)
        assert security.verify_token(token) is None

    def test_tampered(self, security: SecurityManager):
        """Test a modified signature is rejected."""
        token = security.create_access_token({"sub": "user-1"})
        tampered = token[:-2] + ("AA" if not token.endswith("AA") else "BB")

        assert security.verify_token(tampered) is None

    def test_revocation(self, security: SecurityManager):
        """Test a revoked token stops verifying while others still do."""
        revoked = security.create_access_token({"sub": "user-1"})
        other = security.create_access_token({"sub": "user-1"})

        before = security.revoked_count()
        security.revoke_token(security.decode_token(revoked))
        assert security.revoked_count() == before + 1

        assert security.verify_token(revoked) is None
        assert security.verify_token(other) is not None

    def test_default_lifetimes(self, security: SecurityManager):
        """Test access tokens last an hour and refresh tokens a week."""
        assert security.token_lifetime(SecurityManager.TOKEN_TYPE_ACCESS) == timedelta(hours=1)
        assert security.token_lifetime(SecurityManager.TOKEN_TYPE_REFRESH) == timedelta(days=7)
