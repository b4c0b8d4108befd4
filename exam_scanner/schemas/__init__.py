"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- Common: Shared response schemas
- Auth: Authentication schemas
- User: User management schemas
- Barcode: Exam, barcode and validation schemas
- Scan: Scan and scan history schemas
- Marks: Mark sheet schemas
- Sync: Synchronization schemas

==============================================================================
"""

from .common import MessageResponse, ErrorBody, ErrorResponse, ERROR_RESPONSES
from .auth import (
    ChangePasswordRequest,
    CurrentUserResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    TokenResponse,
    UserInfo,
)
from .user import UserCreate, UserUpdate, UserResponse, UserListResponse, UserDetail, UserActivityResponse
from .barcode import (
    BarcodeDetail,
    BarcodeGenerateRequest,
    BarcodeGenerateResponse,
    BarcodeListResponse,
    BarcodeResponse,
    BarcodeValidityUpdate,
    ExamDetail,
    ExamListResponse,
    ExamResponse,
    SubjectListResponse,
    ValidationResponse,
)
from .marks import (
    ExamMarksDetail,
    ExamMarksListResponse,
    ExamMarksResponse,
    MarkSheet,
    MarksSaveRequest,
)
from .scan import (
    ScanFilter,
    ScanImageRequest,
    ScanListResponse,
    ScanLogDetail,
    ScanLogResponse,
    ScanRequest,
    ScanResultResponse,
)
from .sync import (
    FullSyncResponse,
    SyncQueueItemDetail,
    SyncQueueResponse,
    SyncResultResponse,
    SyncStatusResponse,
)

__all__ = [
    # Common
    "MessageResponse",
    "ErrorBody",
    "ErrorResponse",
    "ERROR_RESPONSES",
    # Auth
    "LoginRequest",
    "LogoutRequest",
    "TokenResponse",
    "UserInfo",
    "RefreshRequest",
    "ChangePasswordRequest",
    "CurrentUserResponse",
    # User
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "UserListResponse",
    "UserDetail",
    "UserActivityResponse",
    # Barcodes & exams
    "BarcodeDetail",
    "BarcodeGenerateRequest",
    "BarcodeGenerateResponse",
    "BarcodeListResponse",
    "BarcodeResponse",
    "BarcodeValidityUpdate",
    "ExamDetail",
    "ExamListResponse",
    "ExamResponse",
    "SubjectListResponse",
    "ValidationResponse",
    # Marks
    "MarkSheet",
    "MarksSaveRequest",
    "ExamMarksDetail",
    "ExamMarksResponse",
    "ExamMarksListResponse",
    # Scans
    "ScanFilter",
    "ScanRequest",
    "ScanImageRequest",
    "ScanLogDetail",
    "ScanLogResponse",
    "ScanResultResponse",
    "ScanListResponse",
    # Sync
    "SyncResultResponse",
    "FullSyncResponse",
    "SyncStatusResponse",
    "SyncQueueItemDetail",
    "SyncQueueResponse",
]
