"""Event Routes — create/edit, public listing, membership, feedback, reports.

Invariants:
    - Required-field and action checks run before authentication
    - Each endpoint maps rule codes to its own HTTP statuses; the same code
      (event_hidden, invalid_action) is a 409 on one endpoint and 400 on another
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id, require_user_id, security
from conxion.api.rule_errors import rule_errors
from conxion.core.enforce_events import RESPOND_ACTIONS
from conxion.core.errors import InvalidRequestError
from conxion.infrastructure.database import get_db
from conxion.schemas.events import (
    EventFeedbackRequest, EventJoinRequest, EventReportRequest,
    EventRespondRequest, EventWrite,
)
from conxion.services.event_participation import EventParticipation
from conxion.services.event_service import EventService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/events", tags=["events"])

REQUIRED_FIELDS = "title, city, country, startsAt, and endsAt are required."

CREATE_STATUS = {"active_event_limit_reached": 409, "not_authorized": 403}
UPDATE_STATUS = {
    "not_authorized": 403,
    "event_not_found": 404,
    "edit_rate_limit_daily": 429,
}
JOIN_STATUS = {
    "not_authorized": 403,
    "event_not_found": 404,
    "membership_not_found": 404,
    "email_verification_required_for_join": 429,
    "new_account_join_limit_reached": 429,
    "private_event_requires_request": 409,
    "event_is_public": 409,
    "event_not_open": 409,
    "event_hidden": 409,
    "already_joined_or_waitlisted": 409,
    "request_not_found_or_not_pending": 409,
    "host_cannot_leave_own_event": 409,
}
RESPOND_STATUS = {
    "not_authorized": 403,
    "event_not_found": 404,
    "request_not_found": 404,
    "request_not_pending": 409,
    "invalid_action": 409,
}
REQUESTS_STATUS = {**RESPOND_STATUS, "event_hidden": 409}
FEEDBACK_STATUS = {
    "event_not_found": 404,
    "event_feedback_not_allowed": 403,
    "feedback_locked_after_15_days": 409,
}
REPORT_STATUS = {
    "event_not_found": 404,
    "cannot_report_own_event": 409,
    "duplicate_event_report": 409,
}


# ─── Create / edit / read ────────────────────────────────────────

@router.post("")
async def create_event(
    body: EventWrite,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if body.missing_required():
        raise InvalidRequestError(REQUIRED_FIELDS)
    me = require_user_id(credentials)
    with rule_errors(CREATE_STATUS, default=400):
        event_id = await EventService(db).create(me, body)
    return {"ok": True, "event_id": str(event_id)}


@router.patch("/{event_id}")
async def update_event(
    event_id: UUID,
    body: EventWrite,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if body.missing_required():
        raise InvalidRequestError(REQUIRED_FIELDS)
    me = require_user_id(credentials)
    with rule_errors(UPDATE_STATUS, default=400):
        await EventService(db).update(me, event_id, body)
    return {"ok": True, "event_id": str(event_id)}


@router.get("")
async def list_events(
    limit: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Published, public, non-hidden events, soonest first."""
    return {"ok": True, "events": await EventService(db).list_public(limit)}


@router.get("/{event_id}")
async def get_event(event_id: UUID, db: AsyncSession = Depends(get_db)):
    return {"ok": True, "event": await EventService(db).detail(event_id)}


# ─── Membership ──────────────────────────────────────────────────

@router.post("/requests")
async def respond_by_request_id(
    body: EventRespondRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    action = (body.action or "").strip().lower()
    if not body.request_id or action not in RESPOND_ACTIONS:
        raise InvalidRequestError("requestId and valid action are required.")
    me = require_user_id(credentials)
    with rule_errors(REQUESTS_STATUS, default=400):
        event_id = await EventParticipation(db).respond(me, body.request_id, action)
    return {"ok": True, "event_id": str(event_id)}


@router.post("/{event_id}/join")
async def event_membership(
    event_id: UUID,
    body: EventJoinRequest | None = None,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """join / leave / request / cancel_request on one endpoint."""
    body = body or EventJoinRequest()
    action = (body.action or "").strip().lower()
    with rule_errors(JOIN_STATUS, default=400):
        return await EventParticipation(db).act(me, event_id, action, body.note)


@router.post("/{event_id}/respond")
async def respond_to_request(
    event_id: UUID,
    body: EventRespondRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    action = (body.action or "").strip().lower()
    if action not in RESPOND_ACTIONS:
        raise InvalidRequestError("Invalid action.")
    if not body.request_id and not body.requester_id:
        raise InvalidRequestError("requestId or requesterId is required.")
    me = require_user_id(credentials)

    participation = EventParticipation(db)
    with rule_errors(RESPOND_STATUS, default=400):
        if body.request_id:
            resolved = await participation.respond(me, body.request_id, action)
        else:
            resolved = await participation.respond_for_requester(
                me, event_id, body.requester_id, action,
            )
    return {"ok": True, "event_id": str(resolved)}


# ─── Feedback / reports ──────────────────────────────────────────

@router.get("/{event_id}/feedback")
async def get_feedback(
    event_id: UUID,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with rule_errors(FEEDBACK_STATUS, default=400):
        return await EventService(db).feedback_state(me, event_id)


@router.post("/{event_id}/feedback")
async def submit_feedback(
    event_id: UUID,
    body: EventFeedbackRequest,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with rule_errors(FEEDBACK_STATUS, default=400):
        feedback_id = await EventService(db).submit_feedback(
            me, event_id,
            body.happened_as_described, body.quality, body.note, body.visibility,
        )
    return {"ok": True, "feedback_id": str(feedback_id)}


@router.post("/{event_id}/report")
async def report_event(
    event_id: UUID,
    body: EventReportRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not (body.reason or "").strip():
        raise InvalidRequestError("Reason is required.")
    me = require_user_id(credentials)
    with rule_errors(REPORT_STATUS, default=400):
        report_id = await EventService(db).report(me, event_id, body.reason, body.note)
    return {"ok": True, "report_id": str(report_id)}
