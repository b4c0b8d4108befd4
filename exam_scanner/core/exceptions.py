"""
Application Exception Handling

Single AppException class for all application errors with FastAPI integration.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# Module logger
logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Provides consistent error response format across the entire API.

    Usage:
        raise AppException("Invalid credentials", "INVALID_CREDENTIALS", 401)
        raise ExceptionFactory.exam_expired(exam_id)

    Error Codes:
        Authentication:
            - INVALID_CREDENTIALS (401)
            - TOKEN_EXPIRED (401)
            - TOKEN_INVALID (401)
            - ACCOUNT_DISABLED (403)

        Authorization:
            - ADMIN_REQUIRED (403)
            - EXAMINER_REQUIRED (403)

        User:
            - USER_NOT_FOUND (404)
            - USERNAME_EXISTS (409)
            - SELF_MODIFICATION (400)

        Exams & Barcodes:
            - EXAM_NOT_FOUND (404)
            - EXAM_EXPIRED (400)
            - BARCODE_NOT_FOUND (404)
            - STUDENT_NOT_REGISTERED (400)
            - SCAN_NOT_FOUND (404)
            - MARKS_NOT_FOUND (404)

        Scanning:
            - INVALID_IMAGE (400)
            - NO_BARCODE_DETECTED (422)
            - DECODER_UNAVAILABLE (503)

        Sync:
            - DEVICE_OFFLINE (503)

        General:
            - VALIDATION_ERROR (400)
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException to the JSON error response."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render unexpected errors as INTERNAL_ERROR without leaking details."""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    error = ExceptionFactory.internal_error()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Call this in main.py after creating the FastAPI instance.
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================
# EXCEPTION FACTORY
# ============================================

class ExceptionFactory:
    """Named constructors for the application's error codes."""

    # Authentication

    @staticmethod
    def invalid_credentials() -> AppException:
        return AppException("Invalid username or password", "INVALID_CREDENTIALS", 401)

    @staticmethod
    def token_expired() -> AppException:
        return AppException("Token has expired", "TOKEN_EXPIRED", 401)

    @staticmethod
    def token_invalid(message: str = "Invalid or malformed token") -> AppException:
        return AppException(message, "TOKEN_INVALID", 401)

    @staticmethod
    def account_disabled() -> AppException:
        return AppException("Account has been disabled", "ACCOUNT_DISABLED", 403)

    # Authorization

    @staticmethod
    def admin_required() -> AppException:
        return AppException("Admin role required", "ADMIN_REQUIRED", 403)

    @staticmethod
    def examiner_required() -> AppException:
        return AppException(
            "Examiner or admin role required", "EXAMINER_REQUIRED", 403
        )

    # Users

    @staticmethod
    def user_not_found(user_id: Optional[str] = None) -> AppException:
        details = {"user_id": user_id} if user_id else {}
        return AppException("User not found", "USER_NOT_FOUND", 404, details)

    @staticmethod
    def username_exists(username: str) -> AppException:
        return AppException(
            f"Username '{username}' already exists",
            "USERNAME_EXISTS",
            409,
            {"username": username}
        )

    @staticmethod
    def self_modification(action: str) -> AppException:
        return AppException(
            f"Admins cannot {action} their own account",
            "SELF_MODIFICATION",
            400,
            {"action": action}
        )

    # Exams & barcodes

    @staticmethod
    def exam_not_found(exam_id: Optional[str] = None) -> AppException:
        details = {"exam_id": exam_id} if exam_id else {}
        return AppException("Exam not found", "EXAM_NOT_FOUND", 404, details)

    @staticmethod
    def exam_expired(exam_id: str) -> AppException:
        return AppException(
            "Exam has expired", "EXAM_EXPIRED", 400, {"exam_id": exam_id}
        )

    @staticmethod
    def barcode_not_found(identifier: Optional[str] = None) -> AppException:
        details = {"barcode": identifier} if identifier else {}
        return AppException("Barcode not found", "BARCODE_NOT_FOUND", 404, details)

    @staticmethod
    def student_not_registered(exam_id: str, student_id: str) -> AppException:
        return AppException(
            "Student has no valid barcode for this exam",
            "STUDENT_NOT_REGISTERED",
            400,
            {"exam_id": exam_id, "student_id": student_id}
        )

    @staticmethod
    def scan_not_found(scan_id: str) -> AppException:
        return AppException(
            "Scan log not found", "SCAN_NOT_FOUND", 404, {"scan_id": scan_id}
        )

    @staticmethod
    def marks_not_found(exam_id: str, student_id: str) -> AppException:
        return AppException(
            "No marks recorded for this student",
            "MARKS_NOT_FOUND",
            404,
            {"exam_id": exam_id, "student_id": student_id}
        )

    # Scanning

    @staticmethod
    def invalid_image(reason: str = "Image could not be decoded") -> AppException:
        return AppException(reason, "INVALID_IMAGE", 400)

    @staticmethod
    def no_barcode_detected() -> AppException:
        return AppException(
            "No barcode detected in image", "NO_BARCODE_DETECTED", 422
        )

    @staticmethod
    def decoder_unavailable(reason: str = "Barcode decoder is not available") -> AppException:
        return AppException(reason, "DECODER_UNAVAILABLE", 503)

    # Sync

    @staticmethod
    def device_offline() -> AppException:
        return AppException("Device is offline", "DEVICE_OFFLINE", 503)

    # General

    @staticmethod
    def validation_error(message: str, field: Optional[str] = None) -> AppException:
        details = {"field": field} if field else {}
        return AppException(message, "VALIDATION_ERROR", 400, details)

    @staticmethod
    def internal_error(message: str = "Internal server error") -> AppException:
        return AppException(message, "INTERNAL_ERROR", 500)
