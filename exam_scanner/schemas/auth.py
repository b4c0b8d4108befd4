"""
==============================================================================
Authentication Schemas Module
==============================================================================

Login, token and password-change payloads.

==============================================================================
"""

from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from exam_scanner.db.models import UserRole
from exam_scanner.schemas.user import UserDetail


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.lower().strip()


class UserInfo(BaseModel):
    """Operator summary embedded in token replies."""
    id: str
    username: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    success: bool = Field(default=True)
    access_token: str
    refresh_token: str
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    user: UserInfo


class RefreshRequest(BaseModel):
    """Refresh tokens are single use; the reply carries a new pair."""
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=4, max_length=128)


class CurrentUserResponse(BaseModel):
    """The signed-in operator and what their role allows."""
    success: bool = Field(default=True)
    user: UserDetail
    capabilities: Dict[str, bool]
