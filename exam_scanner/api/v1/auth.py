"""
==============================================================================
Authentication Endpoints
==============================================================================

- POST /auth/login           : username/password to a token pair
- POST /auth/refresh         : single-use refresh token to a new pair
- POST /auth/logout          : revoke the access token (and refresh token)
- GET  /auth/me              : signed-in operator and their capabilities
- PUT  /auth/change-password : requires the current password

==============================================================================
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exam_scanner.core.dependencies import get_current_token_payload, get_current_user
from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.schemas.auth import (
    ChangePasswordRequest,
    CurrentUserResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    TokenResponse,
    UserInfo,
)
from exam_scanner.schemas.common import MessageResponse
from exam_scanner.schemas.user import UserDetail
from exam_scanner.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["Authentication"])


class AuthController:
    """Maps AuthService results onto response schemas."""

    def __init__(self, db: Session):
        self._service = AuthService(db)

    def _tokens(self, user: User, access_token: str, refresh_token: str) -> TokenResponse:
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._service.get_token_expiry_seconds(),
            user=UserInfo.model_validate(user)
        )

    def login(self, request: LoginRequest) -> TokenResponse:
        return self._tokens(*self._service.authenticate(request.username, request.password))

    def refresh(self, request: RefreshRequest) -> TokenResponse:
        return self._tokens(*self._service.refresh_tokens(request.refresh_token))

    def logout(self, payload: Dict[str, Any], request: LogoutRequest) -> MessageResponse:
        self._service.logout(payload, request.refresh_token)
        return MessageResponse(message="Logged out successfully")

    def change_password(self, user: User, request: ChangePasswordRequest) -> MessageResponse:
        self._service.change_password(user, request.current_password, request.new_password)
        return MessageResponse(message="Password changed successfully")

    @staticmethod
    def me(user: User) -> CurrentUserResponse:
        return CurrentUserResponse(
            user=UserDetail.model_validate(user),
            capabilities=user.capabilities
        )


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    return AuthController(db).login(request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token; replaying a used one is rejected."""
    return AuthController(db).refresh(request)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Optional[LogoutRequest] = None,
    user: User = Depends(get_current_user),
    payload: Dict[str, Any] = Depends(get_current_token_payload),
    db: Session = Depends(get_db)
):
    return AuthController(db).logout(payload, request or LogoutRequest())


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(user: User = Depends(get_current_user)):
    return AuthController.me(user)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AuthController(db).change_password(user, request)
