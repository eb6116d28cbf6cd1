"""Sync Routes — proposal lifecycle and completion.

Invariants:
    - An unknown action is rejected before authentication
    - Rule failures keep the status the sync rules assign (404/403/400);
      completion failures are always 400
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import require_user_id, security
from conxion.api.rule_errors import rule_errors
from conxion.core.enforce_syncs import SYNC_ACTIONS
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.schemas.syncs import SyncActionRequest, SyncCompleteRequest
from conxion.services.sync_service import SyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/syncs", tags=["syncs"])


@router.post("/action")
async def sync_action(
    body: SyncActionRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if body.action not in SYNC_ACTIONS:
        raise InvalidRequestError("Invalid action.")
    me = require_user_id(credentials)
    service = SyncService(db)

    if body.action == "propose":
        if not body.connection_id:
            raise InvalidRequestError("Missing connectionId.")
        sync = await service.propose(
            me, body.connection_id, body.sync_type, body.scheduled_at, body.note,
        )
        return {"ok": True, "sync_id": str(sync.id), "status": sync.status}

    if not body.sync_id:
        raise InvalidRequestError("Missing syncId.")
    return await service.transition(me, body.sync_id, body.action, body.note)


@router.post("/complete")
async def complete_sync(
    body: SyncCompleteRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not body.sync_id and not body.connection_id:
        raise InvalidRequestError("Missing syncId or connectionId.")
    me = require_user_id(credentials)

    with rule_errors({}, default=400):
        return await SyncService(db).complete(
            me, body.connection_id, body.sync_id, body.note,
        )
