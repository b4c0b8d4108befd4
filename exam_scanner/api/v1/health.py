"""
==============================================================================
Health Check Endpoints
==============================================================================

Station status for the UI and for process supervisors.

- GET /health       : component status, connectivity and sync backlog
- GET /health/ready : 200 once the local store answers, 503 before
- GET /health/live  : process is up

A station without OpenCV or zbar is "degraded": typed codes still work,
camera and image scans do not.

==============================================================================
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_database_manager, get_db
from exam_scanner.scanner import decoder_available
from exam_scanner.services.sync_service import SyncService


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Collects component status for the health endpoints."""

    def __init__(self, db: Session):
        self._db = db

    def check_database(self) -> str:
        try:
            self._db.execute(text("SELECT 1"))
            return "healthy"
        except Exception:
            return "unhealthy"

    @staticmethod
    def check_scanner() -> str:
        return "healthy" if decoder_available() else "unavailable"

    def get_health(self) -> dict:
        db_status = self.check_database()
        scanner_status = self.check_scanner()

        if db_status != "healthy":
            overall = "unhealthy"
        elif scanner_status != "healthy":
            overall = "degraded"
        else:
            overall = "healthy"

        sync = SyncService(self._db).status() if db_status == "healthy" else {}

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "database": db_status,
                "scanner": scanner_status
            },
            "details": {
                "online": sync.get("is_online", False),
                "pending_sync_items": sync.get("pending_items", 0),
                "failed_sync_items": sync.get("failed_items", 0),
                "last_push": sync.get("last_push"),
                "store": get_database_manager().store_info(),
            }
        }


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    return HealthController(db).get_health()


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Ready once the local store accepts queries."""
    if HealthController(db).check_database() != "healthy":
        return JSONResponse(status_code=503, content={"ready": False})
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    return {"alive": True}
