"""Trip Routes — trips, join requests, owner responses, trip threads."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id
from conxion.api.rule_errors import rule_errors
from conxion.infrastructure.database import get_db
from conxion.schemas.trips import (
    TripCreate, TripRequestCreate, TripRequestResponse, TripThreadRequest,
)
from conxion.services.trip_service import TripService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/trips", tags=["trips"])

REQUEST_STATUS = {"trip_not_found": 404}
RESPONSE_STATUS = {
    "not_authorized": 403,
    "trip_request_not_found": 404,
    "trip_request_not_pending": 409,
}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_trip(
    body: TripCreate,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    trip_id = await TripService(db).create(me, body)
    return {"ok": True, "trip_id": str(trip_id)}


@router.post("/{trip_id}/requests")
async def request_trip(
    trip_id: UUID,
    body: TripRequestCreate | None = None,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with rule_errors(REQUEST_STATUS):
        request_id = await TripService(db).request(me, trip_id, body.note if body else None)
    return {"ok": True, "request_id": str(request_id)}


@router.post("/requests/{request_id}/respond")
async def respond_trip_request(
    request_id: UUID,
    body: TripRequestResponse,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with rule_errors(RESPONSE_STATUS):
        trip_id = await TripService(db).respond(me, request_id, body.action)
    return {"ok": True, "trip_id": str(trip_id)}


@router.post("/requests/{request_id}/cancel")
async def cancel_trip_request(
    request_id: UUID,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with rule_errors(RESPONSE_STATUS):
        trip_id = await TripService(db).cancel(me, request_id)
    return {"ok": True, "trip_id": str(trip_id)}


@router.post("/{trip_id}/thread")
async def trip_thread(
    trip_id: UUID,
    body: TripThreadRequest | None = None,
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    thread_id = await TripService(db).open_thread(
        me, trip_id, body.requester_id if body else None,
    )
    return {"ok": True, "thread_id": str(thread_id)}
