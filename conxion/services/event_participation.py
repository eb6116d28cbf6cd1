"""Event Participation — joining, leaving, private-event requests, host responses.

Invariants:
    - Joining is guarded: confirmed email, and at most 3 joins a day for
      accounts younger than 24h
    - Membership is one row per (event, user); status changes rewrite it
    - Seats are decided at write time: going while host + going < capacity,
      otherwise waitlist
    - Responding is host-only and only for pending requests of an open,
      visible event
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import (
    ACTIVE_MEMBER_STATUSES, MemberStatus, RequestStatus,
)
from conxion.core.enforce_events import (
    JOIN_ACTIONS, check_access_request, check_join_guard, check_leave,
    check_public_join, check_request_response, clean_optional,
    decide_join_status, has_capacity,
)
from conxion.core.errors import RuleViolationError
from conxion.core.time_windows import utc_now
from conxion.models.event import Event
from conxion.models.event_member import EventMember
from conxion.models.event_request import EventRequest
from conxion.models.profile import Profile
from conxion.services.event_service import member_status, occupied_seats

logger = logging.getLogger(__name__)


class EventParticipation:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _member(self, event_id: UUID, user_id: UUID) -> EventMember | None:
        return await self.db.scalar(
            select(EventMember).where(
                EventMember.event_id == event_id, EventMember.user_id == user_id,
            )
        )

    async def _set_member(
        self, event_id: UUID, user_id: UUID, status: str, role: str = "guest",
    ) -> None:
        member = await self._member(event_id, user_id)
        if member is None:
            self.db.add(EventMember(
                event_id=event_id, user_id=user_id, member_role=role, status=status,
            ))
            return
        member.member_role = role
        member.status = status
        member.updated_at = utc_now()

    async def act(
        self, me: UUID, event_id: UUID, action: str | None, note: str | None = None,
    ) -> dict:
        """Dispatch a membership action; unknown actions mean join."""
        action = action if action in JOIN_ACTIONS else "join"
        if action == "join":
            return {"ok": True, "status": await self.join(me, event_id)}
        if action == "request":
            request_id = await self.request_access(me, event_id, note)
            return {"ok": True, "request_id": str(request_id)}
        if action == "cancel_request":
            await self.cancel_request(me, event_id)
        else:
            await self.leave(me, event_id)
        return {"ok": True}

    # ─── Joining ─────────────────────────────────────────────────

    async def _check_guardrails(self, me: UUID, now: datetime) -> None:
        profile = await self.db.get(Profile, me)
        joins = await self.db.scalar(
            select(func.count()).select_from(EventMember).where(
                EventMember.user_id == me,
                EventMember.status.in_(ACTIVE_MEMBER_STATUSES),
                EventMember.created_at >= now - timedelta(hours=24),
            )
        ) or 0
        error = check_join_guard(
            profile.email_confirmed_at if profile else None,
            profile.created_at if profile else None,
            joins,
            now,
        )
        if error:
            raise RuleViolationError.from_rule(error)

    async def join(self, me: UUID, event_id: UUID, now: datetime | None = None) -> str:
        now = now or utc_now()
        await self._check_guardrails(me, now)

        event = await self.db.get(Event, event_id)
        error = check_public_join(event)
        if error:
            raise RuleViolationError.from_rule(error)

        existing = await member_status(self.db, event_id, me)
        status = decide_join_status(
            event, me, existing, await occupied_seats(self.db, event_id),
        )
        if event.host_user_id != me and existing not in ACTIVE_MEMBER_STATUSES:
            await self._set_member(event_id, me, status)
            await self.db.commit()
            logger.info(f"Joined event {event_id} as {status}", extra={"user_id": str(me)})
        return status

    async def leave(self, me: UUID, event_id: UUID) -> None:
        event = await self.db.get(Event, event_id)
        member = await self._member(event_id, me)
        error = check_leave(event, me, member.status if member else None)
        if error:
            raise RuleViolationError.from_rule(error)
        member.status = MemberStatus.LEFT.value
        member.updated_at = utc_now()
        await self.db.commit()

    # ─── Private-event requests ──────────────────────────────────

    async def _request_row(self, event_id: UUID, requester_id: UUID) -> EventRequest | None:
        return await self.db.scalar(
            select(EventRequest).where(
                EventRequest.event_id == event_id,
                EventRequest.requester_id == requester_id,
            )
        )

    async def request_access(self, me: UUID, event_id: UUID, note: str | None) -> UUID:
        event = await self.db.get(Event, event_id)
        error = check_access_request(event, me, await member_status(self.db, event_id, me))
        if error:
            raise RuleViolationError.from_rule(error)

        request = await self._request_row(event_id, me)
        if request is None:
            request = EventRequest(event_id=event_id, requester_id=me)
            self.db.add(request)
        request.note = clean_optional(note)
        request.status = RequestStatus.PENDING.value
        request.decided_by = None
        request.decided_at = None
        request.updated_at = utc_now()
        await self.db.commit()
        logger.info(f"Access requested for event {event_id}", extra={"user_id": str(me)})
        return request.id

    async def cancel_request(self, me: UUID, event_id: UUID) -> None:
        request = await self._request_row(event_id, me)
        if request is None or request.status != RequestStatus.PENDING:
            raise RuleViolationError("request_not_found_or_not_pending")
        request.status = RequestStatus.CANCELLED.value
        request.decided_by = None
        request.decided_at = None
        request.updated_at = utc_now()
        await self.db.commit()

    # ─── Host responses ──────────────────────────────────────────

    async def respond(self, me: UUID, request_id: UUID, action: str | None) -> UUID:
        """Accept or decline by request id; returns the event id."""
        action = (action or "").strip().lower()
        request = await self.db.get(EventRequest, request_id) if request_id else None
        event = await self.db.get(Event, request.event_id) if request else None
        error = check_request_response(action, request, event, me)
        if error:
            raise RuleViolationError.from_rule(error)

        now = utc_now()
        if action == "accept":
            seats = await occupied_seats(self.db, event.id)
            status = (
                MemberStatus.GOING.value if has_capacity(event.capacity, seats)
                else MemberStatus.WAITLIST.value
            )
            await self._set_member(event.id, request.requester_id, status)
            request.status = RequestStatus.ACCEPTED.value
        else:
            request.status = RequestStatus.DECLINED.value
        request.decided_by = me
        request.decided_at = now
        request.updated_at = now
        await self.db.commit()
        logger.info(f"Event request {request.id} {request.status}", extra={"user_id": str(me)})
        return event.id

    async def respond_for_requester(
        self, me: UUID, event_id: UUID, requester_id: UUID, action: str | None,
    ) -> UUID:
        request = await self._request_row(event_id, requester_id)
        if request is None:
            raise RuleViolationError("request_not_found")
        return await self.respond(me, request.id, action)
