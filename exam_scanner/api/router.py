"""
==============================================================================
Main API Router
==============================================================================

Mounts the v1 routers under /api/v1 and documents the shared error
envelope on all of them.

==============================================================================
"""

from fastapi import APIRouter

from exam_scanner.api.v1 import auth, barcodes, exams, health, marks, scans, sync, users
from exam_scanner.schemas.common import ERROR_RESPONSES


class MainAPIRouter:
    """Versioned API router for the station."""

    # Order sets the tag order in /docs
    MODULES = (health, auth, scans, barcodes, exams, marks, sync, users)

    def __init__(self, prefix: str = "/api/v1"):
        self._router = APIRouter(prefix=prefix, responses=ERROR_RESPONSES)
        for module in self.MODULES:
            self._router.include_router(module.router)

    @property
    def router(self) -> APIRouter:
        return self._router


api_router = MainAPIRouter().router
