"""
==============================================================================
Common Schemas Module
==============================================================================

Response shapes shared by every router: the plain message reply and the
error envelope written by the AppException handler.

==============================================================================
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Acknowledgement with a human-readable message."""
    success: bool = Field(default=True)
    message: str


class ErrorBody(BaseModel):
    code: str = Field(..., examples=["BARCODE_NOT_FOUND"])
    message: str
    timestamp: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx reply raised through AppException."""
    success: bool = Field(default=False)
    error: ErrorBody


# Documented on every /api/v1 route
ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Rejected input"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or revoked token"},
    403: {"model": ErrorResponse, "description": "Role not allowed or account disabled"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    503: {"model": ErrorResponse, "description": "Remote service or barcode decoder unavailable"},
}
