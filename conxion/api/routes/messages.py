"""Message Routes — send, read, inbox, delete.

Rule codes carry their own statuses (403 gate, 404 missing thread, 429 limits);
body hygiene codes stay 400.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id, require_user_id, security
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.models.thread import Thread
from conxion.models.thread_message import ThreadMessage
from conxion.schemas.messages import MessageSend
from conxion.services.message_service import MessageService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


def _message_view(m: ThreadMessage) -> dict:
    return {
        "id": str(m.id),
        "thread_id": str(m.thread_id),
        "sender_id": str(m.sender_id),
        "body": m.body,
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def _thread_view(t: Thread, unread: int) -> dict:
    return {
        "id": str(t.id),
        "thread_type": t.thread_type,
        "connection_id": str(t.connection_id) if t.connection_id else None,
        "trip_id": str(t.trip_id) if t.trip_id else None,
        "last_message_at": t.last_message_at.isoformat() if t.last_message_at else None,
        "unread_count": unread,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    body: MessageSend,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not body.thread_id and not body.connection_id:
        raise InvalidRequestError("threadId or connectionId is required.")
    if body.thread_id and body.connection_id:
        raise InvalidRequestError("Send to a threadId or a connectionId, not both.")
    me = require_user_id(credentials)

    message = await MessageService(db).send(
        me, body.body, thread_id=body.thread_id, connection_id=body.connection_id,
    )
    return {"ok": True, "message_id": str(message.id), "thread_id": str(message.thread_id)}


@router.get("")
async def list_messages(
    thread_id: UUID = Query(..., alias="threadId"),
    limit: int = Query(50, ge=1, le=200),
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await MessageService(db).list_messages(me, thread_id, limit=limit)
    return {"ok": True, "messages": [_message_view(m) for m in rows]}


@router.get("/threads")
async def list_threads(
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await MessageService(db).inbox(me)
    return {"ok": True, "threads": [_thread_view(t, unread) for t, unread in rows]}


@router.delete("/{message_id}")
async def delete_message(
    message_id: UUID,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await MessageService(db).delete(me, message_id)
    return {"ok": True}
