"""Reference Flow — orchestrates connection resolution and the writer fallback chain.

Invariants:
    - Writers are tried v2 → legacy → compat; only SchemaDriftError moves to
      the next writer, a rule failure is final
    - Sync references check eligibility once, up front, against whichever sync
      table exists, then go v2 → compat
    - Every successful create leaves exactly one reference_received notification
      for the reference id, and commits once at the end
    - Edit/reply try the ORM writer first and the compat writer on drift

Design Decisions:
    - Mode strings (v2, v2_sync, legacy, compat_insert, compat_sync_insert,
      rpc_edit, compat_edit, rpc_reply, compat_reply) are returned to clients
      and logged, so schema drift in production is visible per request
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import ConnectionStatus, EntityType, ReferenceWriteMode
from conxion.core.enforce_references import normalize_entity_type
from conxion.core.errors import InvalidRequestError, RuleViolationError
from conxion.core.reference_payloads import ReferenceParams
from conxion.core.schema_compat import coerce_uuid, text_value
from conxion.infrastructure.compat_table import SqlCompatTableGateway
from conxion.models.connection import Connection
from conxion.services.notification_service import NotificationService
from conxion.services.reference_compat_writer import ReferenceCompatWriter
from conxion.services.reference_eligibility import ReferenceEligibility
from conxion.services.reference_writer import ReferenceWriter, SchemaDriftError

logger = logging.getLogger(__name__)


def _or_null(value: object) -> str:
    return text_value(value) or "null"


class ReferenceFlow:
    """Create, edit, and reply to references across schema generations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.gateway = SqlCompatTableGateway(db)
        self.writer = ReferenceWriter(db)
        self.compat = ReferenceCompatWriter(self.gateway)
        self.eligibility = ReferenceEligibility(self.gateway)
        self.notifications = NotificationService(db, self.gateway)

    # ─── Connection resolution ───────────────────────────────────

    async def resolve_connection_id(
        self,
        me: UUID,
        recipient_id: UUID,
        connection_id: UUID | None,
        entity_type: str,
        entity_id: UUID | None,
    ) -> UUID | None:
        if connection_id:
            return connection_id
        if entity_type == EntityType.SYNC and entity_id:
            from_sync = await self.eligibility.sync_connection_id(entity_id)
            if from_sync:
                return from_sync
        return await self.db.scalar(
            select(Connection.id)
            .where(
                Connection.status == ConnectionStatus.ACCEPTED.value,
                Connection.blocked_by.is_(None),
                or_(
                    and_(Connection.requester_id == me, Connection.target_id == recipient_id),
                    and_(Connection.requester_id == recipient_id, Connection.target_id == me),
                ),
            )
            .order_by(Connection.created_at.desc())
            .limit(1)
        )

    # ─── Create ──────────────────────────────────────────────────

    async def create(
        self,
        me: UUID,
        recipient_id: UUID,
        sentiment: str,
        body: str,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        connection_id: UUID | None = None,
        context: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        entity_type = normalize_entity_type(entity_type)
        connection_id = await self.resolve_connection_id(
            me, recipient_id, connection_id, entity_type, entity_id,
        )
        if connection_id is None:
            raise InvalidRequestError(
                "No eligible accepted connection found for this reference.",
            )

        if entity_type == EntityType.SYNC:
            reference_id, mode = await self._create_sync(
                me, connection_id, recipient_id, sentiment, body, entity_id, now,
            )
        else:
            entity_id = entity_id or connection_id
            reference_id, mode = await self._create_with_fallback(
                me, connection_id, recipient_id, sentiment, body,
                entity_type, entity_id, context or entity_type, now,
            )

        await self.notifications.ensure_reference_received(
            me, recipient_id, reference_id, entity_type, entity_id,
        )
        await self.db.commit()
        logger.info(
            "Reference created",
            extra={
                "mode": mode, "user_id": str(me),
                "reference_id": text_value(reference_id),
            },
        )
        return {"ok": True, "reference_id": text_value(reference_id), "mode": mode}

    async def _create_sync(
        self,
        me: UUID,
        connection_id: UUID,
        recipient_id: UUID,
        sentiment: str,
        body: str,
        entity_id: UUID | None,
        now: datetime | None,
    ) -> tuple[UUID | str, str]:
        legacy_candidate = await self.eligibility.resolve_legacy_sync_id(
            connection_id, EntityType.SYNC.value, entity_id,
        )
        primary = entity_id or coerce_uuid(legacy_candidate)

        rule = await self.eligibility.ensure_sync_reference_eligibility(
            connection_id, me, recipient_id, primary, now,
        )
        if rule:
            raise RuleViolationError.from_rule(rule)

        try:
            reference_id = await self.writer.create_v2(
                me, connection_id, recipient_id, sentiment, body,
                EntityType.SYNC.value, primary, now,
            )
            return reference_id, ReferenceWriteMode.V2_SYNC.value
        except SchemaDriftError as e:
            logger.info(
                f"v2 sync reference hit schema drift: {e.message}",
                extra={"mode": ReferenceWriteMode.V2_SYNC.value},
            )

        legacy_sync_id = await self.eligibility.ensure_legacy_sync_row(
            legacy_candidate or text_value(entity_id), connection_id, me,
        )
        params = ReferenceParams(
            me_id=me,
            connection_id=connection_id,
            recipient_id=recipient_id,
            sentiment=sentiment,
            body=body,
            entity_type=EntityType.SYNC.value,
            entity_id=primary,
            sync_id=primary,
        )
        reference_id, error = await self.compat.insert_reference(params, legacy_sync_id)
        if error:
            raise RuleViolationError(
                "compat_sync_insert_failed",
                f"compat_sync_insert_failed: {error} "
                f"(sync_candidate={_or_null(primary)} "
                f"legacy_sync_candidate={_or_null(legacy_sync_id)} "
                f"entity_id={_or_null(primary)})",
            )
        return reference_id, ReferenceWriteMode.COMPAT_SYNC_INSERT.value

    async def _create_with_fallback(
        self,
        me: UUID,
        connection_id: UUID,
        recipient_id: UUID,
        sentiment: str,
        body: str,
        entity_type: str,
        entity_id: UUID,
        context: str,
        now: datetime | None,
    ) -> tuple[UUID | str, str]:
        try:
            reference_id = await self.writer.create_v2(
                me, connection_id, recipient_id, sentiment, body,
                entity_type, entity_id, now,
            )
            return reference_id, ReferenceWriteMode.V2.value
        except SchemaDriftError as e:
            logger.info(
                f"v2 reference hit schema drift: {e.message}",
                extra={"mode": ReferenceWriteMode.V2.value},
            )

        try:
            reference_id = await self.writer.create_legacy(
                me, connection_id, recipient_id, sentiment, body, context,
            )
            return reference_id, ReferenceWriteMode.LEGACY.value
        except SchemaDriftError as e:
            logger.warning(
                f"Legacy reference hit schema drift: {e.message}",
                extra={"mode": ReferenceWriteMode.LEGACY.value},
            )

        params = ReferenceParams(
            me_id=me,
            connection_id=connection_id,
            recipient_id=recipient_id,
            sentiment=sentiment,
            body=body,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        reference_id, error = await self.compat.insert_reference(params)
        if error:
            raise RuleViolationError(
                "compat_insert_failed", f"compat_insert_failed: {error}",
            )
        return reference_id, ReferenceWriteMode.COMPAT_INSERT.value

    # ─── Edit / reply ────────────────────────────────────────────

    async def edit(
        self, me: UUID, reference_id: UUID, sentiment: str, body: str,
        now: datetime | None = None,
    ) -> dict:
        try:
            updated = await self.writer.edit(me, reference_id, sentiment, body, now)
            mode = ReferenceWriteMode.RPC_EDIT.value
        except SchemaDriftError as e:
            logger.info(
                f"Reference edit hit schema drift: {e.message}",
                extra={"mode": ReferenceWriteMode.RPC_EDIT.value},
            )
            updated, error = await self.compat.edit_reference(
                me, reference_id, sentiment, body, now,
            )
            if error:
                raise RuleViolationError.from_rule(error)
            mode = ReferenceWriteMode.COMPAT_EDIT.value

        await self.db.commit()
        return {
            "ok": True,
            "reference_id": text_value(updated) or text_value(reference_id),
            "mode": mode,
        }

    async def reply(
        self, me: UUID, reference_id: UUID, reply_text: str,
        now: datetime | None = None,
    ) -> dict:
        try:
            updated = await self.writer.reply(me, reference_id, reply_text, now)
            mode = ReferenceWriteMode.RPC_REPLY.value
        except SchemaDriftError as e:
            logger.info(
                f"Reference reply hit schema drift: {e.message}",
                extra={"mode": ReferenceWriteMode.RPC_REPLY.value},
            )
            updated, error = await self.compat.reply_reference(
                me, reference_id, reply_text, now,
            )
            if error:
                raise RuleViolationError.from_rule(error)
            mode = ReferenceWriteMode.COMPAT_REPLY.value

        await self.db.commit()
        return {
            "ok": True,
            "reference_id": text_value(updated) or text_value(reference_id),
            "mode": mode,
        }
