"""Event Service — hosting, editing, public reads, feedback, and reports.

Invariants:
    - Field rules run before any write; the first failing rule is raised
    - The host is always an event member (role host, status host)
    - Every successful edit appends one event_edit_logs row
    - Public reads never expose venue_address or links, and show cover_url
      only once the cover is approved
    - An event report is mirrored into `reports` in the same transaction

Design Decisions:
    - Active-event limits come from settings and the admins/profiles tables,
      then the pure active_event_limit() picks one
    - Counts (active events, edits, seats) are plain COUNT queries handed to the
      pure rules, so the rules stay testable without a database
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.config import get_settings
from conxion.core.domain_types import (
    CoverStatus, EventStatus, EventVisibility, MemberStatus, ReportStatus,
)
from conxion.core.enforce_events import (
    CREATE_STATUSES, active_event_limit, can_submit_feedback,
    check_active_limit, check_edit_rate, check_event_host, check_event_report,
    clean_optional, cover_status_for, is_feedback_visible, sanitize_links,
    sanitize_styles, summarize_feedback, validate_event_fields,
    validate_event_update, validate_feedback,
)
from conxion.core.errors import RuleViolationError
from conxion.core.time_windows import utc_now
from conxion.models.admin import Admin
from conxion.models.event import Event
from conxion.models.event_edit_log import EventEditLog
from conxion.models.event_feedback import EventFeedback
from conxion.models.event_member import EventMember
from conxion.models.event_report import EventReport
from conxion.models.profile import Profile
from conxion.schemas.events import EventWrite
from conxion.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 300
MAX_LIST_LIMIT = 500


def _lower(value: str | None, default: str) -> str:
    return (value if value is not None else default).strip().lower()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def public_event_view(event: Event) -> dict:
    """Anonymous-safe projection of an event row."""
    cover_status = event.cover_status or CoverStatus.PENDING.value
    return {
        "id": str(event.id),
        "host_user_id": str(event.host_user_id),
        "title": event.title,
        "description": event.description,
        "event_type": event.event_type,
        "styles": list(event.styles or []),
        "visibility": event.visibility,
        "city": event.city,
        "country": event.country,
        "venue_name": event.venue_name,
        "venue_address": None,
        "starts_at": _iso(event.starts_at),
        "ends_at": _iso(event.ends_at),
        "capacity": event.capacity,
        "cover_url": event.cover_url if cover_status == CoverStatus.APPROVED else None,
        "cover_status": cover_status,
        "hidden_by_admin": bool(event.hidden_by_admin),
        "links": [],
        "status": event.status,
        "created_at": _iso(event.created_at),
        "updated_at": _iso(event.updated_at),
    }


def feedback_view(row: EventFeedback | None) -> dict | None:
    if row is None:
        return None
    return {
        "id": str(row.id),
        "happened_as_described": row.happened_as_described,
        "quality": row.quality,
        "note": row.note,
        "visibility": row.visibility,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


async def occupied_seats(db: AsyncSession, event_id: UUID) -> int:
    """Host plus going members: what capacity is measured against."""
    return await db.scalar(
        select(func.count()).select_from(EventMember).where(
            EventMember.event_id == event_id,
            EventMember.status.in_((MemberStatus.HOST.value, MemberStatus.GOING.value)),
        )
    ) or 0


async def member_status(db: AsyncSession, event_id: UUID, user_id: UUID) -> str | None:
    return await db.scalar(
        select(EventMember.status).where(
            EventMember.event_id == event_id, EventMember.user_id == user_id,
        )
    )


class EventService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def _is_admin(self, user_id: UUID) -> bool:
        found = await self.db.scalar(select(Admin.user_id).where(Admin.user_id == user_id))
        return found is not None

    async def _active_limit(self, me: UUID) -> int:
        profile = await self.db.get(Profile, me)
        return active_event_limit(
            await self._is_admin(me),
            bool(profile and profile.is_verified_organizer),
            self.settings.admin_active_event_limit,
            self.settings.organizer_active_event_limit,
            self.settings.default_active_event_limit,
        )

    async def _active_count(self, me: UUID, now: datetime) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(Event).where(
                Event.host_user_id == me,
                Event.status.in_(CREATE_STATUSES),
                Event.ends_at >= now,
                Event.hidden_by_admin.is_(False),
            )
        ) or 0

    # ─── Create / update ─────────────────────────────────────────

    async def create(self, me: UUID, data: EventWrite, now: datetime | None = None) -> UUID:
        now = now or utc_now()
        visibility = _lower(data.visibility, EventVisibility.PUBLIC.value)
        status = _lower(data.status, EventStatus.PUBLISHED.value)
        cover_url = clean_optional(data.cover_url)
        styles = sanitize_styles(data.styles)

        error = validate_event_fields(
            data.title, data.city, data.country, data.starts_at, data.ends_at,
            visibility, status, data.capacity, cover_url, styles,
        )
        if error:
            raise RuleViolationError.from_rule(error)

        error = check_active_limit(
            await self._active_count(me, now), await self._active_limit(me),
        )
        if error:
            raise RuleViolationError.from_rule({**error, "http_status": 409})

        event = Event(
            host_user_id=me,
            title=data.title.strip(),
            description=clean_optional(data.description),
            event_type=clean_optional(data.event_type) or "Social",
            styles=styles,
            visibility=visibility,
            city=data.city.strip(),
            country=data.country.strip(),
            venue_name=clean_optional(data.venue_name),
            venue_address=clean_optional(data.venue_address),
            starts_at=data.starts_at,
            ends_at=data.ends_at,
            capacity=data.capacity,
            cover_url=cover_url,
            cover_status=cover_status_for(cover_url),
            links=sanitize_links(data.links),
            status=status,
        )
        self.db.add(event)
        await self.db.flush()
        self.db.add(EventMember(
            event_id=event.id,
            user_id=me,
            member_role=MemberStatus.HOST.value,
            status=MemberStatus.HOST.value,
        ))
        await self.db.commit()
        logger.info(f"Event {event.id} created ({status})", extra={"user_id": str(me)})
        return event.id

    async def update(
        self, me: UUID, event_id: UUID, data: EventWrite, now: datetime | None = None,
    ) -> UUID:
        now = now or utc_now()
        event = await self.db.get(Event, event_id)
        error = check_event_host(event, me)
        if error:
            raise RuleViolationError.from_rule(error)

        edits = await self.db.scalar(
            select(func.count()).select_from(EventEditLog).where(
                EventEditLog.editor_id == me,
                EventEditLog.created_at >= now - timedelta(days=1),
            )
        ) or 0
        error = check_edit_rate(edits)
        if error:
            raise RuleViolationError.from_rule(error)

        visibility = _lower(data.visibility, event.visibility)
        status = _lower(data.status, event.status)
        cover_url = clean_optional(
            data.cover_url if data.cover_url is not None else event.cover_url,
        )
        styles = sanitize_styles(data.styles if data.styles is not None else event.styles)
        error = validate_event_update(
            visibility, status, cover_url, data.starts_at, data.ends_at,
            data.capacity, styles,
        )
        if error:
            raise RuleViolationError.from_rule(error)

        cover_changed = cover_url != event.cover_url
        if cover_url is None:
            event.cover_status = CoverStatus.APPROVED.value
        elif cover_changed:
            event.cover_status = CoverStatus.PENDING.value
        if cover_changed:
            event.cover_reviewed_by = None
            event.cover_reviewed_at = None
            event.cover_review_note = None

        event.title = (data.title or event.title).strip()
        event.description = clean_optional(
            data.description if data.description is not None else event.description,
        )
        event.event_type = clean_optional(data.event_type or event.event_type) or "Social"
        event.styles = styles
        event.visibility = visibility
        event.city = (data.city or event.city).strip()
        event.country = (data.country or event.country).strip()
        event.venue_name = clean_optional(
            data.venue_name if data.venue_name is not None else event.venue_name,
        )
        event.venue_address = clean_optional(
            data.venue_address if data.venue_address is not None else event.venue_address,
        )
        event.starts_at = data.starts_at or event.starts_at
        event.ends_at = data.ends_at or event.ends_at
        event.capacity = data.capacity
        event.cover_url = cover_url
        event.links = sanitize_links(data.links)
        event.status = status
        event.updated_at = now

        self.db.add(EventEditLog(event_id=event.id, editor_id=me))
        await self.db.commit()
        logger.info(f"Event {event.id} updated", extra={"user_id": str(me)})
        return event.id

    # ─── Public reads ────────────────────────────────────────────

    @staticmethod
    def _public_filter():
        return (
            Event.status == EventStatus.PUBLISHED.value,
            Event.visibility == EventVisibility.PUBLIC.value,
            Event.hidden_by_admin.is_(False),
        )

    async def list_public(self, limit: int | None = None) -> list[dict]:
        limit = max(1, min(limit or DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT))
        result = await self.db.execute(
            select(Event)
            .where(*self._public_filter())
            .order_by(Event.starts_at.asc())
            .limit(limit)
        )
        return [public_event_view(event) for event in result.scalars().all()]

    async def detail(self, event_id: UUID) -> dict:
        event = await self.db.scalar(
            select(Event).where(Event.id == event_id, *self._public_filter())
        )
        if event is None:
            raise RuleViolationError("event_not_found", http_status=404)

        rows = await self.db.execute(
            select(EventMember.status, func.count())
            .where(EventMember.event_id == event.id)
            .group_by(EventMember.status)
        )
        counts = dict(rows.all())
        view = public_event_view(event)
        view["member_counts"] = {
            "going": counts.get(MemberStatus.GOING.value, 0)
            + counts.get(MemberStatus.HOST.value, 0),
            "waitlist": counts.get(MemberStatus.WAITLIST.value, 0),
        }
        return view

    # ─── Feedback ────────────────────────────────────────────────

    async def _own_feedback(self, event_id: UUID, me: UUID) -> EventFeedback | None:
        return await self.db.scalar(
            select(EventFeedback).where(
                EventFeedback.event_id == event_id, EventFeedback.author_id == me,
            )
        )

    async def feedback_state(self, me: UUID, event_id: UUID, now: datetime | None = None) -> dict:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise RuleViolationError("event_not_found", http_status=404)

        is_admin = await self._is_admin(me)
        result = await self.db.execute(
            select(EventFeedback).where(EventFeedback.event_id == event_id)
        )
        visible = [
            row for row in result.scalars().all()
            if is_feedback_visible(row, me, event.host_user_id, is_admin)
        ]
        return {
            "ok": True,
            "mine": feedback_view(await self._own_feedback(event_id, me)),
            "can_submit": can_submit_feedback(
                event, await member_status(self.db, event_id, me), now,
            ),
            "summary": summarize_feedback(visible),
        }

    async def submit_feedback(
        self,
        me: UUID,
        event_id: UUID,
        happened_as_described: bool,
        quality: int,
        note: str | None,
        visibility: str,
        now: datetime | None = None,
    ) -> UUID:
        now = now or utc_now()
        event = await self.db.get(Event, event_id)
        if event is None:
            raise RuleViolationError("event_not_found")

        note = clean_optional(note)
        visibility = _lower(visibility, "private")
        existing = await self._own_feedback(event_id, me)
        error = validate_feedback(
            quality,
            visibility,
            can_submit_feedback(event, await member_status(self.db, event_id, me), now),
            note,
            existing.created_at if existing else None,
            now,
        )
        if error:
            raise RuleViolationError.from_rule(error)

        if existing is None:
            existing = EventFeedback(event_id=event_id, author_id=me)
            self.db.add(existing)
        existing.happened_as_described = happened_as_described
        existing.quality = quality
        existing.note = note
        existing.visibility = visibility
        existing.updated_at = now
        await self.db.commit()
        return existing.id

    # ─── Reports ─────────────────────────────────────────────────

    async def report(
        self, me: UUID, event_id: UUID, reason: str | None, note: str | None,
    ) -> UUID:
        event = await self.db.get(Event, event_id)
        error = check_event_report(event, me, reason)
        if error:
            raise RuleViolationError.from_rule(error)

        duplicate = await self.db.scalar(
            select(EventReport.id).where(
                EventReport.event_id == event_id,
                EventReport.reporter_id == me,
                EventReport.status == ReportStatus.OPEN.value,
            )
        )
        if duplicate is not None:
            raise RuleViolationError("duplicate_event_report", http_status=409)

        event_report = EventReport(
            event_id=event.id,
            reporter_id=me,
            reason=reason.strip(),
            note=clean_optional(note),
            status=ReportStatus.OPEN.value,
        )
        self.db.add(event_report)
        await ModerationService(self.db).create_report(
            me, reason,
            target_user_id=event.host_user_id,
            context="event",
            context_id=str(event.id),
            note=note,
        )
        await self.db.commit()
        logger.info(f"Event {event.id} reported", extra={"user_id": str(me)})
        return event_report.id
