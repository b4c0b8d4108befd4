"""
==============================================================================
Security Module - Authentication & Cryptography
==============================================================================

JWT token management and password hashing for scanner operators.

This module implements:
- SecurityManager: Singleton class for all security operations
- Password hashing with bcrypt, accepting legacy unsalted MD5 hashes
- JWT access/refresh token generation and verification
- Token revocation for logout

Password Schemes:
----------------
    bcrypt   - default, used for every new hash
    hex_md5  - legacy hashes imported from the old client; verified once
               and then replaced by a bcrypt hash (verify_and_update)

Token Structure:
---------------
{
    "sub": "user-uuid",           # Subject (user ID)
    "username": "examiner",       # Username for convenience
    "role": "examiner",           # User role
    "type": "access|refresh",     # Token type
    "jti": "uuid4-hex",           # Token ID, used for revocation
    "exp": 1234567890,            # Expiration timestamp
    "iat": 1234567890             # Issued at timestamp
}

==============================================================================
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from exam_scanner.config import get_settings


# Module logger
logger = logging.getLogger(__name__)


class SecurityManager:
    """
    Centralized security manager for authentication operations.

    Example:
        >>> security = SecurityManager()
        >>> hashed = security.hash_password("secret123")
        >>> security.verify_password("secret123", hashed)
        True
        >>> token = security.create_access_token({"sub": "user-id"})
        >>> security.verify_token(token)["sub"]
        'user-id'
    """

    # =========================================================================
    # CLASS CONSTANTS
    # =========================================================================

    TOKEN_TYPE_ACCESS = "access"
    TOKEN_TYPE_REFRESH = "refresh"

    # First scheme is the default; the others are deprecated and upgraded
    PASSWORD_SCHEMES = ["bcrypt", "hex_md5"]
    PASSWORD_DEPRECATED = "auto"

    def __init__(self) -> None:
        self._pwd_context = CryptContext(
            schemes=self.PASSWORD_SCHEMES,
            deprecated=self.PASSWORD_DEPRECATED
        )
        self._settings = get_settings()

        # jti -> expiry of revoked tokens
        self._revoked: Dict[str, datetime] = {}
        self._revoked_lock = threading.Lock()

        logger.debug("SecurityManager initialized")

    # =========================================================================
    # PASSWORD HASHING METHODS
    # =========================================================================

    def hash_password(self, plain_password: str) -> str:
        """
        Hash a plain text password using bcrypt.

        Raises:
            ValueError: If the password is empty
        """
        if not plain_password:
            raise ValueError("Password cannot be empty")

        return self._pwd_context.hash(plain_password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a plain text password against a stored hash.

        Unknown or malformed hashes never match.
        """
        valid, _ = self.verify_and_update(plain_password, hashed_password)
        return valid

    def verify_and_update(
        self,
        plain_password: str,
        hashed_password: str
    ) -> Tuple[bool, Optional[str]]:
        """
        Verify a password and return a replacement hash when the stored one
        uses a deprecated scheme.

        Returns:
            (is_valid, new_hash) where new_hash is None if no upgrade is due
        """
        try:
            valid, new_hash = self._pwd_context.verify_and_update(
                plain_password, hashed_password
            )
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification error: {type(e).__name__}")
            return False, None

        if valid and new_hash:
            logger.info("🔐 Legacy password hash scheduled for upgrade")

        return valid, new_hash

    def needs_update(self, hashed_password: str) -> bool:
        """Check if a stored hash uses a deprecated scheme."""
        try:
            return self._pwd_context.needs_update(hashed_password)
        except ValueError:
            return True

    # =========================================================================
    # JWT TOKEN CREATION METHODS
    # =========================================================================

    def token_lifetime(self, token_type: str) -> timedelta:
        if token_type == self.TOKEN_TYPE_REFRESH:
            return timedelta(days=self._settings.refresh_token_expire_days)
        return timedelta(minutes=self._settings.access_token_expire_minutes)

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self.create_token(data, self.TOKEN_TYPE_ACCESS, expires_delta)

    def create_refresh_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self.create_token(data, self.TOKEN_TYPE_REFRESH, expires_delta)

    def create_token(
        self,
        data: Dict[str, Any],
        token_type: str,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Sign the claims with a fresh jti, type, iat and exp."""
        now = datetime.now(timezone.utc)
        payload = {
            **data,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + (expires_delta or self.token_lifetime(token_type)),
        }
        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm
        )

    # =========================================================================
    # JWT TOKEN VERIFICATION METHODS
    # =========================================================================

    def decode_token(
        self,
        token: str,
        token_type: str = TOKEN_TYPE_ACCESS
    ) -> Dict[str, Any]:
        """
        Verify and decode a JWT token.

        Validates signature, expiration, token type and revocation.

        Raises:
            ExpiredSignatureError: If the token has expired
            JWTError: If the token is invalid, of the wrong type or revoked
        """
        payload = jwt.decode(
            token,
            self._settings.jwt_secret_key,
            algorithms=[self._settings.jwt_algorithm]
        )

        if payload.get("type") != token_type:
            raise JWTError(
                f"Token type mismatch: expected {token_type}, "
                f"got {payload.get('type')}"
            )

        if self.is_revoked(payload.get("jti")):
            raise JWTError("Token has been revoked")

        return payload

    def verify_token(
        self,
        token: str,
        token_type: str = TOKEN_TYPE_ACCESS
    ) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a JWT token.

        Returns:
            Decoded payload dictionary if valid, None otherwise
        """
        try:
            return self.decode_token(token, token_type)
        except ExpiredSignatureError:
            logger.debug("Token verification failed: token expired")
            return None
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    # =========================================================================
    # TOKEN REVOCATION
    # =========================================================================

    def revoke_token(self, payload: Dict[str, Any]) -> None:
        """
        Revoke a decoded token until its natural expiry.

        Tokens without a jti cannot be revoked and are ignored.
        """
        jti = payload.get("jti")
        if not jti:
            return

        exp = payload.get("exp")
        expires_at = (
            datetime.fromtimestamp(exp, tz=timezone.utc)
            if isinstance(exp, (int, float))
            else datetime.now(timezone.utc) + timedelta(
                days=self._settings.refresh_token_expire_days
            )
        )

        with self._revoked_lock:
            self._purge_revoked()
            self._revoked[jti] = expires_at

        logger.debug(f"Token revoked: {jti}")

    def is_revoked(self, jti: Optional[str]) -> bool:
        if not jti:
            return False
        with self._revoked_lock:
            return jti in self._revoked

    def _purge_revoked(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [jti for jti, exp in self._revoked.items() if exp <= now]
        for jti in expired:
            del self._revoked[jti]

    def revoked_count(self) -> int:
        with self._revoked_lock:
            self._purge_revoked()
            return len(self._revoked)


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_security_manager() -> SecurityManager:
    """Get the global SecurityManager instance."""
    return SecurityManager()
