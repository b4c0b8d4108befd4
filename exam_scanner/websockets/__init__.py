"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for barcode scanning.

Handlers:
---------
- scanner: Camera scanning session ending on first detection or timeout

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
