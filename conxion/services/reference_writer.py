"""Reference Writer — primary (v2) and legacy writers plus the single edit/reply mutations.

Invariants:
    - Every writer runs inside a SAVEPOINT: a rule failure or driver error rolls
      back only the writer's own statements
    - A driver error whose message classifies as a compat write error becomes
      SchemaDriftError; the flow answers it by trying the next writer
    - Rule failures raise RuleViolationError and are never retried
    - A unique-constraint hit is duplicate_reference_not_allowed, whichever writer hit it

Design Decisions:
    - v2 goes through the ORM model; legacy goes through a lightweight table()
      limited to the columns every historical schema shares, so it survives a
      references table that predates entity_type/entity_id
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Text, Uuid, column, func, insert, select, table
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import (
    ACTIVE_MEMBER_STATUSES, EntityType, REFERENCE_WINDOW, RequestStatus, SyncStatus,
)
from conxion.core.enforce_references import (
    check_body, check_reference_edit, check_reference_reply, check_reply_text,
    check_sentiment, validate_reference_creation,
)
from conxion.core.errors import RuleViolationError
from conxion.core.schema_compat import is_compat_write_error, is_duplicate_error
from conxion.core.time_windows import date_within_days, utc_now, within_window
from conxion.infrastructure.database import driver_message
from conxion.models.connection import Connection
from conxion.models.connection_sync import ConnectionSync
from conxion.models.event import Event
from conxion.models.event_member import EventMember
from conxion.models.legacy_sync import LegacySync
from conxion.models.reference import Reference
from conxion.models.trip import Trip
from conxion.models.trip_request import TripRequest

logger = logging.getLogger(__name__)

# Columns every historical references table shares
legacy_references = table(
    "references",
    column("id", Uuid()),
    column("connection_id", Uuid()),
    column("author_id", Uuid()),
    column("recipient_id", Uuid()),
    column("context", Text()),
    column("sentiment", Text()),
    column("body", Text()),
)


class SchemaDriftError(Exception):
    """The live references schema does not match what a writer expects."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _raise_rule(error: dict | None) -> None:
    if error:
        raise RuleViolationError.from_rule(error)


class ReferenceWriter:
    """Primary and legacy reference writers over the ORM session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _savepoint(self):
        try:
            async with self.db.begin_nested():
                yield
        except DBAPIError as e:
            message = driver_message(e)
            if is_duplicate_error(message):
                raise RuleViolationError("duplicate_reference_not_allowed") from e
            if is_compat_write_error(message):
                raise SchemaDriftError(message) from e
            raise

    async def _eligible_connection(self, connection_id: UUID) -> Connection | None:
        return await self.db.get(Connection, connection_id)

    async def _has_legacy_sync(self, connection_id: UUID) -> bool:
        found = await self.db.scalar(
            select(LegacySync.id).where(LegacySync.connection_id == connection_id).limit(1)
        )
        return found is not None

    # ─── Create ──────────────────────────────────────────────────

    async def create_v2(
        self,
        me: UUID,
        connection_id: UUID,
        recipient_id: UUID,
        sentiment: str,
        body: str,
        entity_type: str,
        entity_id: UUID | None,
        now: datetime | None = None,
    ) -> UUID:
        """Entity-aware create; one reference per author per entity."""
        async with self._savepoint():
            connection = await self._eligible_connection(connection_id)
            _raise_rule(validate_reference_creation(
                connection, me, recipient_id, sentiment, body, entity_type,
            ))
            entity_id = entity_id or connection_id
            _raise_rule(await self._check_entity(
                me, recipient_id, connection_id, entity_type, entity_id, now,
            ))

            duplicate = await self.db.scalar(
                select(Reference.id).where(
                    Reference.entity_type == entity_type,
                    Reference.entity_id == entity_id,
                    Reference.author_id == me,
                ).limit(1)
            )
            if duplicate is not None:
                raise RuleViolationError("duplicate_reference_not_allowed")

            reference = Reference(
                connection_id=connection_id,
                author_id=me,
                recipient_id=recipient_id,
                context=entity_type,
                entity_type=entity_type,
                entity_id=entity_id,
                sentiment=sentiment,
                body=body.strip(),
            )
            self.db.add(reference)
            await self.db.flush()
        return reference.id

    async def _check_entity(
        self,
        me: UUID,
        recipient_id: UUID,
        connection_id: UUID,
        entity_type: str,
        entity_id: UUID,
        now: datetime | None,
    ) -> dict | None:
        now = now or utc_now()
        pair = {me, recipient_id}

        if entity_type == EntityType.SYNC:
            sync = await self.db.get(ConnectionSync, entity_id)
            ok = (
                sync is not None
                and sync.connection_id == connection_id
                and sync.status == SyncStatus.COMPLETED
                and within_window(sync.completed_at, REFERENCE_WINDOW, now)
                and {sync.requester_id, sync.recipient_id} == pair
            )
            return None if ok else {"error_code": "sync_reference_not_allowed"}

        if entity_type == EntityType.TRIP:
            request = await self.db.get(TripRequest, entity_id)
            trip = await self.db.get(Trip, request.trip_id) if request else None
            ok = (
                trip is not None
                and request.status == RequestStatus.ACCEPTED
                and date_within_days(trip.end_date, REFERENCE_WINDOW.days, now.date())
                and {trip.user_id, request.requester_id} == pair
            )
            return None if ok else {"error_code": "trip_reference_not_allowed"}

        if entity_type == EntityType.EVENT:
            event = await self.db.get(Event, entity_id)
            members = await self.db.scalar(
                select(func.count()).select_from(EventMember).where(
                    EventMember.event_id == entity_id,
                    EventMember.user_id.in_(list(pair)),
                    EventMember.status.in_(ACTIVE_MEMBER_STATUSES),
                )
            )
            ok = (
                event is not None
                and members == 2
                and within_window(event.ends_at, REFERENCE_WINDOW, now)
            )
            return None if ok else {"error_code": "event_reference_not_allowed"}

        if not await self._has_legacy_sync(connection_id):
            return {"error_code": "references_require_completed_sync"}
        return None

    async def create_legacy(
        self,
        me: UUID,
        connection_id: UUID,
        recipient_id: UUID,
        sentiment: str,
        body: str,
        context: str,
    ) -> UUID:
        """Pre-entity create: the pair's connection must have any completed sync."""
        reference_id = uuid4()
        async with self._savepoint():
            connection = await self._eligible_connection(connection_id)
            _raise_rule(validate_reference_creation(
                connection, me, recipient_id, sentiment, body,
            ))
            if not await self._has_legacy_sync(connection_id):
                raise RuleViolationError("references_require_completed_sync")
            await self.db.execute(insert(legacy_references).values(
                id=reference_id,
                connection_id=connection_id,
                author_id=me,
                recipient_id=recipient_id,
                context=context,
                sentiment=sentiment,
                body=body.strip(),
            ))
        return reference_id

    # ─── Mutations ───────────────────────────────────────────────

    async def _load(self, reference_id: UUID) -> Reference:
        reference = await self.db.get(Reference, reference_id)
        if reference is None:
            raise RuleViolationError("reference_not_found")
        return reference

    async def edit(
        self, me: UUID, reference_id: UUID, sentiment: str, body: str,
        now: datetime | None = None,
    ) -> UUID:
        """Author edit: once, inside the window."""
        now = now or utc_now()
        async with self._savepoint():
            _raise_rule(check_sentiment(sentiment) or check_body(body))
            reference = await self._load(reference_id)
            _raise_rule(check_reference_edit(
                reference.author_id, me, reference.created_at,
                reference.edit_count or 0, reference.last_edited_at, now,
            ))
            reference.sentiment = sentiment
            reference.body = body.strip()
            reference.edit_count = (reference.edit_count or 0) + 1
            reference.last_edited_at = now
            reference.updated_at = now
            await self.db.flush()
        return reference.id

    async def reply(
        self, me: UUID, reference_id: UUID, reply_text: str,
        now: datetime | None = None,
    ) -> UUID:
        """Recipient reply: once, inside the window."""
        now = now or utc_now()
        async with self._savepoint():
            _raise_rule(check_reply_text(reply_text))
            reference = await self._load(reference_id)
            _raise_rule(check_reference_reply(
                reference.recipient_id, me, reference.created_at,
                reference.reply_text, now,
            ))
            reference.reply_text = reply_text.strip()
            reference.replied_by = me
            reference.replied_at = now
            reference.updated_at = now
            await self.db.flush()
        return reference.id

    async def received_by(self, user_id: UUID, limit: int = 100) -> list[Reference]:
        result = await self.db.execute(
            select(Reference)
            .where(Reference.recipient_id == user_id)
            .order_by(Reference.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
