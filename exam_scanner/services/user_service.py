"""
==============================================================================
User Service Module
==============================================================================

Operator accounts for the station and the scan activity behind them.

Only admins reach this service (require_admin on the users router). The
password hash is stored locally and never included in the sync payload.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.core.security import SecurityManager, get_security_manager
from exam_scanner.db.models import ScanLog, ScanStatus, SyncAction, SyncTable, User, UserRole
from exam_scanner.schemas.user import UserCreate, UserUpdate
from exam_scanner.services.sync_service import SyncQueue


# Module logger
logger = logging.getLogger(__name__)


class UserService:
    """
    Operator accounts: create, look up, change and (de)activate.

    Every change is queued for sync in the same transaction as the change.

    Example:
        >>> service = UserService(db_session)
        >>> user = service.create_user(UserCreate(username="invig1", password="secret"))
        >>> service.scan_activity(user.id)["total"]
        0
    """

    def __init__(self, db: Session, security: Optional[SecurityManager] = None) -> None:
        self._db = db
        self._security = security or get_security_manager()
        self._queue = SyncQueue(db)

    def _save(self, user: User, action: SyncAction) -> User:
        self._queue.add(action, SyncTable.USERS, user)
        self._db.commit()
        self._db.refresh(user)
        return user

    def create_user(self, data: UserCreate) -> User:
        """
        Raises:
            AppException: USERNAME_EXISTS
        """
        if self.get_by_username(data.username):
            logger.warning(f"Username taken: {data.username}")
            raise ExceptionFactory.username_exists(data.username)

        user = User(
            username=data.username,
            password_hash=self._security.hash_password(data.password),
            role=data.role,
            is_active=True
        )
        self._db.add(user)

        try:
            self._db.flush()
            self._save(user, SyncAction.CREATE)
        except IntegrityError:
            # Lost a race with a concurrent create
            self._db.rollback()
            raise ExceptionFactory.username_exists(data.username)

        logger.info(f"✅ Operator created: {user.username} ({user.role.value})")
        return user

    def get_by_id(self, user_id: str) -> User:
        user = self._db.get(User, user_id)
        if user is None:
            raise ExceptionFactory.user_not_found(user_id)
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        return self._db.query(User).filter(User.username == username.lower().strip()).first()

    def _filtered(self, role: Optional[UserRole], is_active: Optional[bool]):
        query = self._db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)
        return query

    def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        offset: int = 0,
        limit: int = 100
    ) -> List[User]:
        """Newest accounts first."""
        return (
            self._filtered(role, is_active)
            .order_by(User.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_users(self, role: Optional[UserRole] = None, is_active: Optional[bool] = None) -> int:
        return self._filtered(role, is_active).count()

    def update_user(self, user_id: str, data: UserUpdate) -> User:
        """Apply the fields that are set; unset fields are left alone."""
        user = self.get_by_id(user_id)
        changes = []

        if data.password is not None:
            user.password_hash = self._security.hash_password(data.password)
            changes.append("password")

        if data.role is not None and data.role != user.role:
            changes.append(f"role {user.role.value}→{data.role.value}")
            user.role = data.role

        if data.is_active is not None and data.is_active != user.is_active:
            user.is_active = data.is_active
            changes.append("activated" if data.is_active else "deactivated")

        if not changes:
            return user

        logger.info(f"👤 {user.username}: {', '.join(changes)}")
        return self._save(user, SyncAction.UPDATE)

    def deactivate_user(self, user_id: str) -> User:
        """Soft delete; scan logs and marks keep referring to the account."""
        return self.update_user(user_id, UserUpdate(is_active=False))

    def activate_user(self, user_id: str) -> User:
        return self.update_user(user_id, UserUpdate(is_active=True))

    # =========================================================================
    # ACTIVITY
    # =========================================================================

    def scan_activity(self, user_id: str) -> Dict[str, object]:
        """
        Summarize the scans recorded by one operator.

        Returns:
            Dict with the user, per-status counts, total and last scan time
        """
        user = self.get_by_id(user_id)

        rows = (
            self._db.query(ScanLog.status, func.count(ScanLog.id))
            .filter(ScanLog.scanned_by == user.id)
            .group_by(ScanLog.status)
            .all()
        )
        counts = {status.value: 0 for status in ScanStatus}
        for status, count in rows:
            counts[status.value] = count

        last_scan_at = (
            self._db.query(func.max(ScanLog.scanned_at))
            .filter(ScanLog.scanned_by == user.id)
            .scalar()
        )

        return {
            "user": user,
            "counts": counts,
            "total": sum(counts.values()),
            "last_scan_at": last_scan_at,
        }
