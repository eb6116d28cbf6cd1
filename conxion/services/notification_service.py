"""Notification Service — shared writer, dedupe, and inbox reads.

Invariants:
    - Writes go through the compat gateway: payload candidates richest → poorest,
      up to MAX_ATTEMPTS column swaps/fallbacks per candidate
    - A duplicate-key failure counts as delivered
    - Exhausting every candidate on a missing-schema error is silent; any other
      failure raises CompatWriteError
    - notify() never raises: a notification must not undo the action it reports

Design Decisions:
    - Dedupe reads the recent rows of the same kind and compares metadata ids
      in Python: the metadata column may be JSON, JSONB, or named `data`
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import NotificationKind
from conxion.core.errors import ResourceNotFoundError, RuleViolationError
from conxion.core.notification_payloads import (
    NotificationArgs, apply_missing_column_swap, fallback_value_for_column,
    payload_candidates,
)
from conxion.core.reference_payloads import is_missing
from conxion.core.repository_protocols import CompatTableGateway, CompatWriteError
from conxion.core.schema_compat import (
    extract_column_name, extract_null_column, is_duplicate_error,
    is_missing_schema_error, text_value,
)
from conxion.core.time_windows import utc_now
from conxion.infrastructure.compat_table import SqlCompatTableGateway
from conxion.models.notification import Notification

logger = logging.getLogger(__name__)

TABLE = "notifications"
MAX_ATTEMPTS = 8
DEDUPE_WINDOW = 30
REFERENCE_DEDUPE_WINDOW = 40


class NotificationService:
    """Creates and reads in-app notifications."""

    def __init__(self, db: AsyncSession, gateway: CompatTableGateway | None = None):
        self.db = db
        self.gateway = gateway or SqlCompatTableGateway(db)

    # ─── Writes ──────────────────────────────────────────────────

    async def create(self, args: NotificationArgs) -> UUID | str | None:
        """Insert one notification; returns its id, or None when the table is absent."""
        last_error = ""
        for candidate in payload_candidates(args):
            payload = dict(candidate)
            for attempt in range(MAX_ATTEMPTS):
                try:
                    return await self.gateway.insert(TABLE, payload)
                except CompatWriteError as e:
                    last_error = e.message
                if is_duplicate_error(last_error):
                    return None
                if self._adjust(payload, last_error, args):
                    logger.info(
                        f"Retrying notification insert: {last_error}",
                        extra={"attempt": attempt + 1},
                    )
                    continue
                if not is_missing_schema_error(last_error):
                    raise CompatWriteError(last_error)
                break

        logger.warning(f"Notification not written, schema unavailable: {last_error}")
        return None

    @staticmethod
    def _adjust(payload: dict, message: str, args: NotificationArgs) -> bool:
        missing = extract_column_name(message)
        if missing:
            if apply_missing_column_swap(payload, missing, args):
                return True
            value = fallback_value_for_column(missing, args)
            if not is_missing(value) and missing not in payload:
                payload[missing] = value
                return True
        null_column = extract_null_column(message)
        if null_column:
            value = fallback_value_for_column(null_column, args)
            if not is_missing(value):
                payload[null_column] = value
                return True
        return False

    async def notify(self, args: NotificationArgs) -> UUID | str | None:
        """Best-effort create: failures are logged, never raised."""
        try:
            return await self.create(args)
        except CompatWriteError as e:
            logger.warning(
                f"Notification {args.kind} dropped: {e.message}",
                extra={"user_id": str(args.user_id)},
            )
            return None

    async def create_from_client(
        self,
        actor_id: UUID,
        user_id: UUID,
        kind: str,
        title: str,
        body: str | None = None,
        link_url: str | None = None,
        metadata: dict | None = None,
    ) -> dict:
        """POST /notifications/create: dedupe on request_id or reference_id, then insert."""
        metadata = metadata if isinstance(metadata, dict) else {}
        for key in ("request_id", "reference_id"):
            value = metadata.get(key)
            if isinstance(value, str) and await self.find_duplicate(
                user_id, kind, key, value, DEDUPE_WINDOW,
            ):
                return {"ok": True, "duplicated": True}

        try:
            notification_id = await self.create(NotificationArgs(
                user_id=user_id,
                actor_id=actor_id,
                kind=kind,
                title=title,
                body=body or None,
                link_url=link_url or None,
                metadata=metadata,
            ))
        except CompatWriteError as e:
            raise RuleViolationError("notification_insert_failed", e.message)
        await self.db.commit()
        logger.info(f"Notification {kind} created", extra={"user_id": str(actor_id)})
        return {"ok": True, "notification_id": text_value(notification_id) or None}

    # ─── Dedupe ──────────────────────────────────────────────────

    async def find_duplicate(
        self, user_id: UUID, kind: str, key: str, value: object, window: int,
    ) -> bool:
        """True when one of the user's last `window` notifications of `kind`
        carries metadata[key] == value."""
        if value is None or value == "":
            return False
        try:
            rows = await self.gateway.select(
                TABLE, {"user_id": user_id, "kind": kind},
                order_by="created_at", limit=window,
            )
        except CompatWriteError as e:
            if is_missing_schema_error(e.message):
                return False
            raise
        wanted = text_value(value)
        for row in rows:
            metadata = row.get("metadata") or row.get("data") or {}
            if isinstance(metadata, dict) and text_value(metadata.get(key)) == wanted:
                return True
        return False

    async def ensure_reference_received(
        self,
        actor_id: UUID,
        recipient_id: UUID,
        reference_id: UUID | str | None,
        entity_type: str,
        entity_id: UUID | str | None,
    ) -> None:
        """Exactly one reference_received per reference id."""
        reference_key = text_value(reference_id) or None
        kind = NotificationKind.REFERENCE_RECEIVED.value
        if reference_key and await self.find_duplicate(
            recipient_id, kind, "reference_id", reference_key, REFERENCE_DEDUPE_WINDOW,
        ):
            return
        await self.create(NotificationArgs(
            user_id=recipient_id,
            actor_id=actor_id,
            kind=kind,
            title="New reference received",
            body="You received a new reference.",
            link_url=f"/members/{recipient_id}",
            metadata={
                "reference_id": reference_key,
                "entity_type": entity_type,
                "entity_id": text_value(entity_id) or None,
            },
        ))

    # ─── Reads ───────────────────────────────────────────────────

    async def list_for_user(self, me: UUID, limit: int = 50) -> list[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == me)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, me: UUID, notification_id: UUID) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == me,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise ResourceNotFoundError(
                "Notification not found.", code="notification_not_found",
            )
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utc_now()
            await self.db.commit()
        return notification
