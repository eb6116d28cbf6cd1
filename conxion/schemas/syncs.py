"""Sync Schemas — action and completion bodies."""

from datetime import datetime
from uuid import UUID

from conxion.schemas.base import CamelModel


class SyncActionRequest(CamelModel):
    action: str | None = None
    connection_id: UUID | None = None
    sync_id: UUID | None = None
    sync_type: str | None = None
    scheduled_at: datetime | None = None
    note: str | None = None


class SyncCompleteRequest(CamelModel):
    connection_id: UUID | None = None
    sync_id: UUID | None = None
    note: str | None = None
