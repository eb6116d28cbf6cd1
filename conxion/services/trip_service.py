"""Trip Service — trips, join requests, and the per-trip message thread.

Invariants:
    - A user has at most MAX_ACTIVE_TRIPS trips whose end_date is today or later
    - One request row per (trip, requester); re-requesting resets it to pending
    - One thread per trip; accepting a request creates it on first use
    - Thread participants are only ever added, never removed or re-roled

Design Decisions:
    - Thread creation races are settled by the unique trip_id: a savepoint
      absorbs the IntegrityError and the winner's row is re-read
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import NotificationKind, RequestStatus
from conxion.core.enforce_trips import (
    TRIP_ACTIVE_STATUS, can_access_trip_thread, check_active_trip_limit,
    check_trip_cancel, check_trip_request, check_trip_response,
    thread_participants,
)
from conxion.core.errors import (
    NotAuthorizedError, ResourceNotFoundError, RuleViolationError,
)
from conxion.core.notification_payloads import NotificationArgs
from conxion.core.time_windows import utc_now
from conxion.models.thread import Thread, ThreadParticipant
from conxion.models.trip import Trip
from conxion.models.trip_request import TripRequest
from conxion.schemas.trips import TripCreate
from conxion.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class TripService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def create(self, me: UUID, data: TripCreate, today: date | None = None) -> UUID:
        today = today or utc_now().date()
        active = await self.db.scalar(
            select(func.count()).select_from(Trip).where(
                Trip.user_id == me, Trip.end_date >= today,
            )
        ) or 0
        error = check_active_trip_limit(active)
        if error:
            raise RuleViolationError.from_rule({**error, "http_status": 409})

        if data.end_date < data.start_date:
            raise RuleViolationError("invalid_trip_dates")

        trip = Trip(
            user_id=me,
            destination_city=data.destination_city,
            destination_country=data.destination_country,
            start_date=data.start_date,
            end_date=data.end_date,
            purpose=(data.purpose or "").strip() or None,
            styles=[s.strip().lower() for s in data.styles if s.strip()],
            looking_for=[s.strip() for s in data.looking_for if s.strip()],
            note=(data.note or "").strip() or None,
            status=TRIP_ACTIVE_STATUS,
        )
        self.db.add(trip)
        await self.db.commit()
        logger.info(f"Trip {trip.id} created", extra={"user_id": str(me)})
        return trip.id

    # ─── Requests ────────────────────────────────────────────────

    async def request(self, me: UUID, trip_id: UUID, note: str | None = None) -> UUID:
        trip = await self.db.get(Trip, trip_id)
        error = check_trip_request(trip, me)
        if error:
            raise RuleViolationError.from_rule(error)

        request = await self.db.scalar(
            select(TripRequest).where(
                TripRequest.trip_id == trip_id, TripRequest.requester_id == me,
            )
        )
        if request is None:
            request = TripRequest(trip_id=trip_id, requester_id=me)
            self.db.add(request)
        request.note = (note or "").strip() or None
        request.status = RequestStatus.PENDING.value
        request.decided_by = None
        request.decided_at = None
        request.updated_at = utc_now()
        await self.db.flush()

        await self.notifications.notify(NotificationArgs(
            user_id=trip.user_id,
            actor_id=me,
            kind=NotificationKind.TRIP_REQUEST_RECEIVED.value,
            title="New trip request",
            body="You received a new request for your trip.",
            link_url=f"/trips/{trip_id}",
            metadata={"trip_id": str(trip_id), "requester_id": str(me)},
        ))
        await self.db.commit()
        logger.info(f"Trip request {request.id} sent", extra={"user_id": str(me)})
        return request.id

    async def respond(self, me: UUID, request_id: UUID, action: str | None) -> UUID:
        """Owner accepts or declines; returns the trip id."""
        action = (action or "").strip().lower()
        request = await self.db.get(TripRequest, request_id)
        trip = await self.db.get(Trip, request.trip_id) if request else None
        error = check_trip_response(action, request, trip, me)
        if error:
            raise RuleViolationError.from_rule(error)

        accepted = action == "accept"
        now = utc_now()
        request.status = (
            RequestStatus.ACCEPTED.value if accepted else RequestStatus.DECLINED.value
        )
        request.decided_by = me
        request.decided_at = now
        request.updated_at = now

        if accepted:
            thread = await self._ensure_thread(trip.id, me)
            await self._ensure_participants(thread.id, {
                trip.user_id: "owner", request.requester_id: "member",
            })

        await self.notifications.notify(NotificationArgs(
            user_id=request.requester_id,
            actor_id=me,
            kind=(
                NotificationKind.TRIP_REQUEST_ACCEPTED.value if accepted
                else NotificationKind.TRIP_REQUEST_DECLINED.value
            ),
            title="Trip request accepted" if accepted else "Trip request declined",
            link_url=f"/trips/{trip.id}",
            metadata={"trip_id": str(trip.id), "request_id": str(request.id)},
        ))
        await self.db.commit()
        logger.info(f"Trip request {request.id} {request.status}", extra={"user_id": str(me)})
        return trip.id

    async def cancel(self, me: UUID, request_id: UUID) -> UUID:
        request = await self.db.get(TripRequest, request_id)
        error = check_trip_cancel(request, me)
        if error:
            raise RuleViolationError.from_rule(error)
        request.status = RequestStatus.CANCELLED.value
        request.updated_at = utc_now()
        await self.db.commit()
        return request.trip_id

    # ─── Thread ──────────────────────────────────────────────────

    async def _thread_for(self, trip_id: UUID) -> Thread | None:
        return await self.db.scalar(select(Thread).where(Thread.trip_id == trip_id))

    async def _ensure_thread(self, trip_id: UUID, me: UUID) -> Thread:
        thread = await self._thread_for(trip_id)
        if thread is not None:
            return thread
        try:
            async with self.db.begin_nested():
                thread = Thread(
                    thread_type="trip", trip_id=trip_id, created_by=me,
                    last_message_at=utc_now(),
                )
                self.db.add(thread)
        except IntegrityError:
            logger.info(f"Trip {trip_id} thread created concurrently")
            thread = await self._thread_for(trip_id)
        return thread

    async def _ensure_participants(
        self, thread_id: UUID, members: dict[UUID, str], reader: UUID | None = None,
    ) -> None:
        result = await self.db.execute(
            select(ThreadParticipant.user_id).where(ThreadParticipant.thread_id == thread_id)
        )
        present = set(result.scalars().all())
        for user_id, role in members.items():
            if user_id in present:
                continue
            self.db.add(ThreadParticipant(
                thread_id=thread_id,
                user_id=user_id,
                role=role,
                last_read_at=utc_now() if user_id == reader else None,
            ))
        await self.db.flush()

    async def open_thread(
        self, me: UUID, trip_id: UUID, requester_id: UUID | None = None,
    ) -> UUID:
        trip = await self.db.get(Trip, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip not found.", code="trip_not_found")

        result = await self.db.execute(
            select(TripRequest.requester_id).where(
                TripRequest.trip_id == trip_id,
                TripRequest.status == RequestStatus.ACCEPTED.value,
            )
        )
        accepted = list(result.scalars().all())
        if not can_access_trip_thread(trip, me, set(accepted)):
            raise NotAuthorizedError("Not authorized for trip thread.")

        thread = await self._ensure_thread(trip_id, me)
        await self._ensure_participants(
            thread.id,
            thread_participants(trip.user_id, me, requester_id, accepted),
            reader=me,
        )
        await self.db.commit()
        return thread.id
