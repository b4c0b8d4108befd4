"""
==============================================================================
Sync Endpoints
==============================================================================

Manual synchronization with the remote service, and queue inspection.

==============================================================================
"""

import json

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.db.database import get_db
from exam_scanner.db.models import SyncQueueItem, User
from exam_scanner.core.dependencies import get_current_user, require_admin
from exam_scanner.core.exceptions import ExceptionFactory
from exam_scanner.services.sync_service import SyncResult, SyncService
from exam_scanner.schemas.sync import (
    FullSyncResponse,
    SyncQueueItemDetail,
    SyncQueueResponse,
    SyncResultResponse,
    SyncStatusResponse,
)


router = APIRouter(prefix="/sync", tags=["Sync"])


class SyncController:
    """Controller for sync operations."""

    def __init__(self, db: Session):
        self._service = SyncService(db)

    def _require_online(self) -> None:
        if not self._service.is_online():
            raise ExceptionFactory.device_offline()

    @staticmethod
    def _result(result: SyncResult) -> SyncResultResponse:
        return SyncResultResponse(
            success=result.success,
            message=result.message,
            synced_items=result.synced_items,
            failed_items=result.failed_items,
            skipped_items=result.skipped_items,
            tables=result.tables,
            synced_at=result.synced_at
        )

    @staticmethod
    def _queue_item(item: SyncQueueItem) -> SyncQueueItemDetail:
        return SyncQueueItemDetail(
            id=item.id,
            action=item.action,
            table_name=item.table_name,
            record_id=item.record_id,
            data=json.loads(item.data),
            attempts=item.attempts,
            created_at=item.created_at,
            last_attempt=item.last_attempt
        )

    def sync(self) -> FullSyncResponse:
        """Push then pull."""
        self._require_online()
        push = self._service.push()
        pull = self._service.pull()
        return FullSyncResponse(
            success=push.success and pull.success,
            push=self._result(push),
            pull=self._result(pull)
        )

    def push(self) -> SyncResultResponse:
        self._require_online()
        return self._result(self._service.push())

    def pull(self) -> SyncResultResponse:
        self._require_online()
        return self._result(self._service.pull())

    def status(self) -> SyncStatusResponse:
        return SyncStatusResponse(**self._service.status())

    def queue(self, limit: int) -> SyncQueueResponse:
        items = self._service.list_queue(limit)
        return SyncQueueResponse(
            items=[self._queue_item(i) for i in items],
            total=len(items)
        )


@router.post("", response_model=FullSyncResponse)
async def sync_all(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Push pending changes, then pull remote updates."""
    controller = SyncController(db)
    return controller.sync()


@router.post("/push", response_model=SyncResultResponse)
async def push(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Push pending changes."""
    controller = SyncController(db)
    return controller.push()


@router.post("/pull", response_model=SyncResultResponse)
async def pull(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pull exam, barcode and user updates."""
    controller = SyncController(db)
    return controller.pull()


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Connectivity, queue counts and last sync times."""
    controller = SyncController(db)
    return controller.status()


@router.get("/queue", response_model=SyncQueueResponse)
async def sync_queue(
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Pending sync rows, oldest first (Admin only)."""
    controller = SyncController(db)
    return controller.queue(limit)
