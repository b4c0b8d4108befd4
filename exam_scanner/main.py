"""
==============================================================================
Exam Barcode Scanner - Application Entry Point
==============================================================================

Builds the station's FastAPI app: REST API under /api/v1, the camera
scanning WebSocket at /ws/scan and the periodic sync task.

Startup creates the local store (and demo data when enabled) before the
first request; shutdown stops the sync task and closes store connections.

Usage:
------
    uvicorn exam_scanner.main:app --reload
    python -m exam_scanner.main

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exam_scanner import __version__
from exam_scanner.api.router import api_router
from exam_scanner.config import get_settings
from exam_scanner.core.exceptions import register_exception_handlers
from exam_scanner.db import init_db
from exam_scanner.db.database import get_database_manager
from exam_scanner.scanner import decoder_available
from exam_scanner.services.sync_service import SyncTaskManager
from exam_scanner.websockets import scanner_router


settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


class Application:
    """Owns the FastAPI app and the station's background sync task."""

    def __init__(self):
        self._settings = get_settings()
        self._sync_manager = SyncTaskManager()
        self._app = self._create_app()

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.app_name,
            version=__version__,
            description="Offline exam barcode scanning, validation and mark entry",
            lifespan=self._lifespan,
        )

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        register_exception_handlers(app)

        app.include_router(api_router)
        app.include_router(scanner_router)
        self._register_root(app)

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self._startup()
        yield
        self._shutdown()

    def _startup(self) -> None:
        station = self._settings.station_id or "unnamed station"
        logger.info(f"🚀 Starting {self._settings.app_name} ({station}, {self._settings.app_env})")

        init_db()

        if not decoder_available():
            logger.warning("📷 OpenCV/zbar not available: only typed codes can be scanned")

        if self._settings.offline_mode:
            logger.warning("📴 Offline mode: changes stay queued until back online")

        # Needs the running loop
        if self._settings.auto_sync_enabled:
            self._sync_manager.start()

        logger.info(f"✅ Ready on http://{self._settings.host}:{self._settings.port} (docs at /docs)")

    def _shutdown(self) -> None:
        logger.info("🛑 Shutting down...")
        self._sync_manager.stop()
        get_database_manager().dispose()
        logger.info("✅ Shutdown complete")

    def _register_root(self, app: FastAPI) -> None:

        @app.get("/")
        async def root():
            return {
                "name": self._settings.app_name,
                "version": __version__,
                "station_id": self._settings.station_id,
                "docs": "/docs",
                "health": "/api/v1/health",
                "scanner": "/ws/scan",
            }

    @property
    def app(self) -> FastAPI:
        return self._app


application = Application()
app = application.app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exam_scanner.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
