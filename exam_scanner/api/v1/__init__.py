"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- auth: Authentication endpoints
- users: User management (admin)
- scans: Manual and image scans, scan history
- barcodes: Barcode generation and validation
- exams: Exam lookup
- marks: Mark sheets
- sync: Remote synchronization

==============================================================================
"""

from . import health, auth, users, scans, barcodes, exams, marks, sync

__all__ = ["health", "auth", "users", "scans", "barcodes", "exams", "marks", "sync"]
