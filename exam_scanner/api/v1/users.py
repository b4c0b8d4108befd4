"""
==============================================================================
Operator Account Endpoints
==============================================================================

Admin-only management of the accounts that run scanning stations.

Endpoints:
---------
- POST   /users                  : Create an operator
- GET    /users                  : List operators (role/active filters)
- GET    /users/{id}             : Operator details
- GET    /users/{id}/activity    : Scan counts recorded by the operator
- PUT    /users/{id}             : Change password, role or active flag
- DELETE /users/{id}             : Deactivate
- POST   /users/{id}/activate    : Reactivate

An admin cannot deactivate or demote the account they are signed in with.

==============================================================================
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.core.dependencies import require_admin
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.db.database import get_db
from exam_scanner.db.models import User, UserRole
from exam_scanner.schemas.common import MessageResponse
from exam_scanner.schemas.user import (
    UserActivityResponse,
    UserCreate,
    UserDetail,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from exam_scanner.services.user_service import UserService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


class UserController:
    """Controller for operator account management."""

    def __init__(self, db: Session, admin: User):
        self._service = UserService(db)
        self._admin = admin

    def _guard_self(self, user_id: str, action: str) -> None:
        if user_id == self._admin.id:
            logger.warning(f"⚠️ {self._admin.username} tried to {action} their own account")
            raise ExceptionFactory.self_modification(action)

    def create(self, data: UserCreate) -> UserResponse:
        user = self._service.create_user(data)
        logger.info(f"👤 {self._admin.username} created operator {user.username}")
        return UserResponse(user=UserDetail.model_validate(user))

    def list_all(
        self,
        role: Optional[UserRole],
        is_active: Optional[bool],
        offset: int,
        limit: int
    ) -> UserListResponse:
        users = self._service.list_users(role=role, is_active=is_active, offset=offset, limit=limit)
        return UserListResponse(
            users=[UserDetail.model_validate(u) for u in users],
            total=self._service.count_users(role=role, is_active=is_active)
        )

    def get(self, user_id: str) -> UserResponse:
        return UserResponse(user=UserDetail.model_validate(self._service.get_by_id(user_id)))

    def activity(self, user_id: str) -> UserActivityResponse:
        summary = self._service.scan_activity(user_id)
        return UserActivityResponse(
            user=UserDetail.model_validate(summary["user"]),
            counts=summary["counts"],
            total=summary["total"],
            last_scan_at=summary["last_scan_at"],
        )

    def update(self, user_id: str, data: UserUpdate) -> UserResponse:
        """Apply an update; admins may still change their own password."""
        if data.is_active is False:
            self._guard_self(user_id, "deactivate")
        if data.role is not None and data.role != UserRole.ADMIN:
            self._guard_self(user_id, "demote")

        user = self._service.update_user(user_id, data)
        return UserResponse(user=UserDetail.model_validate(user))

    def deactivate(self, user_id: str) -> MessageResponse:
        self._guard_self(user_id, "deactivate")
        user = self._service.deactivate_user(user_id)
        return MessageResponse(message=f"User '{user.username}' deactivated")

    def activate(self, user_id: str) -> UserResponse:
        user = self._service.activate_user(user_id)
        return UserResponse(user=UserDetail.model_validate(user))


@router.post("", response_model=UserResponse)
async def create_user(
    request: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create an operator account. Role defaults to invigilator."""
    return UserController(db, admin).create(request)


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserController(db, admin).list_all(role, is_active, offset, limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserController(db, admin).get(user_id)


@router.get("/{user_id}/activity", response_model=UserActivityResponse)
async def get_user_activity(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Scan counts per status recorded by this operator."""
    return UserController(db, admin).activity(user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: UserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserController(db, admin).update(user_id, request)


@router.delete("/{user_id}", response_model=MessageResponse)
async def deactivate_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Deactivate an operator. Their scan history is kept."""
    return UserController(db, admin).deactivate(user_id)


@router.post("/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserController(db, admin).activate(user_id)
