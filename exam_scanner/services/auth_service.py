"""
==============================================================================
Authentication Service Module
==============================================================================

Authentication service for operator login and token management.

This module implements:
- AuthService: Class handling all authentication operations
- Login with credential verification and legacy hash upgrade
- Token generation, refresh and revocation (logout)
- Password change functionality

Login checks, in order:
-----------------------
    unknown username        -> INVALID_CREDENTIALS
    wrong password          -> INVALID_CREDENTIALS
    deactivated account     -> ACCOUNT_DISABLED
    legacy MD5 hash         -> replaced with bcrypt, then tokens issued

Password changes are queued for sync like any other user update; the
sync payload never carries the hash.

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.core.dependencies import AuthenticationManager
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.core.security import SecurityManager, get_security_manager
from exam_scanner.db.models import SyncAction, SyncTable, User
from exam_scanner.services.sync_service import SyncQueue


logger = logging.getLogger(__name__)


class AuthService:
    """
    Login, token rotation, logout and password changes.

    Example:
        >>> auth_service = AuthService(db_session)
        >>> user, access, refresh = auth_service.authenticate("admin", "admin")
        >>> user, access, refresh = auth_service.refresh_tokens(refresh)
    """

    def __init__(self, db: Session, security: Optional[SecurityManager] = None) -> None:
        self._db = db
        self._security = security or get_security_manager()
        self._tokens = AuthenticationManager(self._security, db)
        self._settings = get_settings()

    def authenticate(self, username: str, password: str) -> Tuple[User, str, str]:
        """
        Check credentials and issue a token pair.

        Returns:
            Tuple of (User, access_token, refresh_token)

        Raises:
            AppException: INVALID_CREDENTIALS or ACCOUNT_DISABLED
        """
        username = username.lower().strip()
        user = self._db.query(User).filter(User.username == username).first()

        if not user:
            logger.warning(f"Login failed: unknown user {username}")
            raise ExceptionFactory.invalid_credentials()

        is_valid, new_hash = self._security.verify_and_update(password, user.password_hash)

        if not is_valid:
            logger.warning(f"Login failed: wrong password for {username}")
            raise ExceptionFactory.invalid_credentials()

        if not user.is_active:
            logger.warning(f"Login failed: {username} is deactivated")
            raise ExceptionFactory.account_disabled()

        if new_hash:
            user.password_hash = new_hash
            logger.info(f"🔐 Legacy password hash upgraded for {user.username}")

        user.last_login = datetime.utcnow()
        self._db.commit()

        logger.info(f"✅ {user.username} signed in ({user.role.value})")
        return (user, *self._issue(user))

    def refresh_tokens(self, refresh_token: str) -> Tuple[User, str, str]:
        """
        Rotate a refresh token. The presented token is revoked.

        Raises:
            AppException: TOKEN_EXPIRED, TOKEN_INVALID or ACCOUNT_DISABLED
        """
        payload = self._tokens.decode(refresh_token, SecurityManager.TOKEN_TYPE_REFRESH)
        user = self._tokens.user_for_payload(payload)

        self._security.revoke_token(payload)
        logger.info(f"🔄 Tokens rotated for {user.username}")
        return (user, *self._issue(user))

    def logout(self, access_payload: Dict[str, Any], refresh_token: Optional[str] = None) -> None:
        """
        Revoke the access token and, when it belongs to the same operator,
        the refresh token. An unusable refresh token is ignored.
        """
        self._security.revoke_token(access_payload)

        if refresh_token:
            payload = self._security.verify_token(refresh_token, SecurityManager.TOKEN_TYPE_REFRESH)
            if payload and payload.get("sub") == access_payload.get("sub"):
                self._security.revoke_token(payload)

        logger.info(f"👋 {access_payload.get('username')} signed out")

    def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """
        Replace the operator's password and queue the account for sync.

        Raises:
            AppException: INVALID_CREDENTIALS if the current password is wrong,
                VALIDATION_ERROR if the new one equals it
        """
        if not self._security.verify_password(current_password, user.password_hash):
            logger.warning(f"Password change refused for {user.username}: wrong current password")
            raise ExceptionFactory.invalid_credentials()

        if new_password == current_password:
            raise ExceptionFactory.validation_error(
                "New password must differ from the current one", "new_password"
            )

        user.password_hash = self._security.hash_password(new_password)
        SyncQueue(self._db).add(SyncAction.UPDATE, SyncTable.USERS, user)
        self._db.commit()

        logger.info(f"✅ Password changed for {user.username}")
        return user

    def _issue(self, user: User) -> Tuple[str, str]:
        claims = {"sub": user.id, "username": user.username, "role": user.role.value}
        return (
            self._security.create_access_token(claims),
            self._security.create_refresh_token(claims),
        )

    def get_token_expiry_seconds(self) -> int:
        return self._settings.access_token_expire_seconds
