"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Bearer-token authentication and role gates for the station's routes.

Who may do what:
---------------
    any active operator : scan, browse exams and history, read marks, sync
    examiner, admin     : record marks, generate or revoke barcodes
    admin               : manage operator accounts, inspect the sync queue

REST routes read the token from the Authorization header. The scanner
WebSocket passes it as a `token` query parameter instead.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.core.security import SecurityManager, get_security_manager
from exam_scanner.db.database import get_db
from exam_scanner.db.models import User


logger = logging.getLogger(__name__)

# auto_error off so a missing header yields our TOKEN_INVALID envelope
security_scheme = HTTPBearer(auto_error=False)


class AuthenticationManager:
    """
    Resolves tokens to operators and applies role gates.

    Example:
        >>> auth = AuthenticationManager(get_security_manager(), db_session)
        >>> user = auth.authenticate_from_token(token)
        >>> auth.require_examiner(user)
    """

    def __init__(self, security: SecurityManager, db: Optional[Session] = None) -> None:
        self._security = security
        self._db = db

    @staticmethod
    def extract_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
        if not credentials:
            raise ExceptionFactory.token_invalid("Authentication required")
        return credentials.credentials

    def decode(
        self,
        token: str,
        token_type: str = SecurityManager.TOKEN_TYPE_ACCESS
    ) -> Dict[str, Any]:
        """
        Verify signature, expiry, type and revocation.

        Raises:
            AppException: TOKEN_EXPIRED or TOKEN_INVALID
        """
        try:
            return self._security.decode_token(token, token_type)
        except ExpiredSignatureError:
            raise ExceptionFactory.token_expired()
        except JWTError as e:
            logger.warning(f"Token rejected: {e}")
            raise ExceptionFactory.token_invalid()

    def authenticate_from_token(
        self,
        token: str,
        token_type: str = SecurityManager.TOKEN_TYPE_ACCESS
    ) -> User:
        return self.user_for_payload(self.decode(token, token_type))

    def user_for_payload(self, payload: Dict[str, Any]) -> User:
        """
        Load the active operator named by a decoded token.

        A deleted subject is reported as TOKEN_INVALID, a deactivated one
        as ACCOUNT_DISABLED.
        """
        user_id = payload.get("sub")
        user = self._db.get(User, user_id) if user_id else None

        if user is None:
            logger.warning(f"Token subject not found: {user_id}")
            raise ExceptionFactory.token_invalid()

        if not user.is_active:
            logger.warning(f"Disabled operator attempted access: {user.username}")
            raise ExceptionFactory.account_disabled()

        return user

    def require_admin(self, user: User) -> User:
        if not user.can_manage_users:
            logger.warning(f"⛔ {user.username} ({user.role.value}) needs admin")
            raise ExceptionFactory.admin_required()
        return user

    def require_examiner(self, user: User) -> User:
        if not user.can_record_marks:
            logger.warning(f"⛔ {user.username} ({user.role.value}) needs examiner")
            raise ExceptionFactory.examiner_required()
        return user


def _manager(db: Optional[Session] = None) -> AuthenticationManager:
    return AuthenticationManager(get_security_manager(), db)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db)
) -> User:
    """The operator making the request."""
    manager = _manager(db)
    return manager.authenticate_from_token(manager.extract_token(credentials))


def get_current_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Dict[str, Any]:
    """Decoded access token, so logout can revoke its jti."""
    manager = _manager()
    return manager.decode(manager.extract_token(credentials))


def get_current_user_ws(token: Optional[str], db: Session) -> User:
    """Operator for a WebSocket connection, from its `token` query parameter."""
    if not token:
        raise ExceptionFactory.token_invalid("Authentication required")
    return _manager(db).authenticate_from_token(token)


def require_admin(user: User = Depends(get_current_user)) -> User:
    return _manager().require_admin(user)


def require_examiner(user: User = Depends(get_current_user)) -> User:
    """Examiner or admin."""
    return _manager().require_examiner(user)
