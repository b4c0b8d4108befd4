"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

Modules:
--------
- exceptions: AppException class and ExceptionFactory
- security: SecurityManager for password hashing and JWT tokens
- dependencies: FastAPI dependency injection functions

Usage:
------
    from exam_scanner.core import (
        AppException,
        ExceptionFactory,
        get_current_user,
        require_admin,
    )

    raise ExceptionFactory.barcode_not_found(code)

==============================================================================
"""

from .exceptions import (
    AppException,
    ExceptionFactory,
    register_exception_handlers,
)
from .security import SecurityManager, get_security_manager
from .dependencies import (
    AuthenticationManager,
    get_current_token_payload,
    get_current_user,
    get_current_user_ws,
    require_admin,
    require_examiner,
)

__all__ = [
    # Exceptions
    "AppException",
    "ExceptionFactory",
    "register_exception_handlers",
    # Security
    "SecurityManager",
    "get_security_manager",
    # Dependencies
    "AuthenticationManager",
    "get_current_token_payload",
    "get_current_user",
    "get_current_user_ws",
    "require_admin",
    "require_examiner",
]
