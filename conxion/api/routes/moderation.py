"""Moderation Routes — admin actions on reports and events, report listing."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.schemas.moderation import EventModerationRequest, ReportModerationRequest
from conxion.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/moderation", tags=["moderation"])


@router.post("/reports")
async def moderate_report(
    body: ReportModerationRequest,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if not body.report_id or not body.action:
        raise InvalidRequestError("reportId and action are required.")
    log_id = await ModerationService(db).moderate_report(
        me, body.report_id, body.action.strip().lower(), body.note,
    )
    return {"ok": True, "moderation_log_id": str(log_id)}


@router.post("/events")
async def moderate_event(
    body: EventModerationRequest,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if not body.event_id or not body.action:
        raise InvalidRequestError("eventId and action are required.")
    log_id = await ModerationService(db).moderate_event(
        me, body.event_id, body.action.strip().lower(), body.note, body.hidden_reason,
    )
    return {"ok": True, "moderation_log_id": str(log_id)}


@router.get("/reports")
async def list_reports(
    status_filter: str | None = Query(None, alias="status"),
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    reports = await ModerationService(db).list_reports(me, status_filter)
    return {
        "ok": True,
        "reports": [
            {
                "id": str(r.id),
                "reporter_id": str(r.reporter_id),
                "target_user_id": str(r.target_user_id) if r.target_user_id else None,
                "context": r.context,
                "context_id": r.context_id,
                "reason": r.reason,
                "note": r.note,
                "status": r.status,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in reports
        ],
    }
