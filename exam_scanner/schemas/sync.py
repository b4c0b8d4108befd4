"""
==============================================================================
Sync Schemas Module
==============================================================================

Response schemas for synchronization endpoints.

==============================================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from exam_scanner.db.models import SyncAction, SyncTable


class SyncResultResponse(BaseModel):
    """Outcome of a push or pull."""
    success: bool
    message: str
    synced_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    tables: List[str] = Field(default_factory=list)
    synced_at: Optional[datetime] = None


class FullSyncResponse(BaseModel):
    """Outcome of a push followed by a pull."""
    success: bool
    push: SyncResultResponse
    pull: SyncResultResponse


class SyncStatusResponse(BaseModel):
    """Current sync state of the device."""
    success: bool = Field(default=True)
    is_online: bool
    pending_items: int
    failed_items: int
    last_push: Optional[datetime] = None
    last_pull: Optional[datetime] = None
    auto_sync_enabled: bool
    sync_interval_minutes: int


class SyncQueueItemDetail(BaseModel):
    """Queued mutation."""
    id: str
    action: SyncAction
    table_name: SyncTable
    record_id: str
    data: Dict[str, Any]
    attempts: int
    created_at: datetime
    last_attempt: Optional[datetime] = None


class SyncQueueResponse(BaseModel):
    """Sync queue listing."""
    success: bool = Field(default=True)
    items: List[SyncQueueItemDetail]
    total: int
