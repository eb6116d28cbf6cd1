"""Notification Routes — client-created notifications and the inbox."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id, require_user_id, security
from conxion.core.domain_types import CLIENT_NOTIFICATION_KINDS
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.models.notification import Notification
from conxion.schemas.notifications import NotificationCreate
from conxion.services.notification_service import NotificationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _view(n: Notification) -> dict:
    return {
        "id": str(n.id),
        "actor_id": str(n.actor_id) if n.actor_id else None,
        "kind": n.kind,
        "title": n.title,
        "body": n.body,
        "link_url": n.link_url,
        "metadata": n.metadata_ or {},
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "read_at": n.read_at.isoformat() if n.read_at else None,
    }


@router.post("/create")
async def create_notification(
    body: NotificationCreate,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    kind = (body.kind or "").strip()
    title = (body.title or "").strip()
    if not body.user_id or not kind or not title:
        raise InvalidRequestError("userId, kind, and title are required.")
    if kind not in CLIENT_NOTIFICATION_KINDS:
        raise InvalidRequestError("Unsupported notification kind.")
    me = require_user_id(credentials)

    return await NotificationService(db).create_from_client(
        me,
        body.user_id,
        kind,
        title,
        body=(body.body or "").strip() or None,
        link_url=(body.link_url or "").strip() or None,
        metadata=body.metadata,
    )


@router.get("")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await NotificationService(db).list_for_user(me, limit=limit)
    return {"ok": True, "notifications": [_view(n) for n in rows]}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: UUID,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService(db).mark_read(me, notification_id)
    return {"ok": True, "notification": _view(notification)}
