"""Connection Routes — connect, lifecycle actions, visibility read model.

Invariants:
    - The requester of /connect is always the authenticated user
    - /action validates the action and its target before authenticating
    - Every rule failure on these endpoints is a 400
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id, require_user_id, security
from conxion.api.rule_errors import rule_errors
from conxion.core.enforce_connections import CONNECTION_ACTIONS
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.schemas.connections import ConnectRequest, ConnectionActionRequest
from conxion.services.connection_service import ConnectionService
from conxion.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/connections", tags=["connections"])


@router.post("/connect")
async def connect(
    body: ConnectRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not body.target_id:
        raise InvalidRequestError("Missing targetId.")
    me = require_user_id(credentials)

    payload = body.payload
    with rule_errors({}, default=400):
        connection_id = await ConnectionService(db).request(
            me,
            body.target_id,
            connect_context=payload.connect_context,
            connect_reason=payload.connect_reason,
            connect_reason_role=payload.connect_reason_role,
            connect_note=payload.connect_note,
            trip_id=payload.trip_id,
        )
    return {"ok": True, "connection_id": str(connection_id)}


@router.post("/action")
async def connection_action(
    body: ConnectionActionRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    action = body.action
    if action not in CONNECTION_ACTIONS:
        raise InvalidRequestError("Invalid action.")
    if not body.conn_id and not (action == "block" and body.target_user_id):
        raise InvalidRequestError("Missing connId (or targetUserId for block).")
    me = require_user_id(credentials)

    service = ConnectionService(db)
    with rule_errors({}, default=400):
        if action == "accept":
            await service.accept(me, body.conn_id)
        elif action == "decline":
            await service.decline(me, body.conn_id)
        elif action == "undo_decline":
            await service.undo_decline(me, body.conn_id)
        elif action == "cancel":
            await service.cancel(me, body.conn_id)
        elif action == "unblock":
            await service.unblock(me, body.conn_id)
        elif action == "block":
            connection_id = await service.block(me, body.conn_id, body.target_user_id)
            return {"ok": True, "connection_id": str(connection_id)}
        else:
            if not (body.reason or "").strip():
                raise InvalidRequestError("Report reason is required.")
            report = await ModerationService(db).create_report(
                me,
                body.reason,
                connection_id=body.conn_id,
                target_user_id=body.target_user_id,
                context=body.context,
                context_id=body.context_id,
                note=body.note,
            )
            await db.commit()
            return {"ok": True, "report_id": str(report.id)}
    return {"ok": True}


@router.get("")
async def list_connections(
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """My connections, hiding blocks placed by the other side."""
    return {"ok": True, "connections": await ConnectionService(db).list_visible(me)}


@router.get("/state/{other_user_id}")
async def connection_state(
    other_user_id: UUID,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    state = await ConnectionService(db).state_with(me, other_user_id)
    return {"ok": True, "state": state.value}
