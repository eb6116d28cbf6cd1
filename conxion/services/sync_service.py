"""Sync Service — proposal lifecycle and completion of in-person meetings.

Invariants:
    - Every completion also upserts the legacy `syncs` row for (connection, me):
      references for connection entities are gated on that row
    - Notifications go out after the state change, best-effort, in the same
      transaction
    - The completion endpoint prefers a modern sync; with none it falls back to
      the legacy completion log
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import NotificationKind, SyncStatus
from conxion.core.enforce_syncs import (
    action_label, check_completion, check_legacy_completion, check_propose,
    check_transition, normalize_sync_type, other_member, target_status,
)
from conxion.core.errors import RuleViolationError
from conxion.core.notification_payloads import NotificationArgs
from conxion.core.time_windows import utc_now
from conxion.models.connection import Connection
from conxion.models.connection_sync import ConnectionSync
from conxion.models.legacy_sync import LegacySync
from conxion.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def _clean(note: str | None) -> str | None:
    return (note or "").strip() or None


class SyncService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def _notify(
        self, user_id: UUID, actor_id: UUID, kind: NotificationKind,
        title: str, body: str | None, sync: ConnectionSync,
    ) -> None:
        await self.notifications.notify(NotificationArgs(
            user_id=user_id,
            actor_id=actor_id,
            kind=kind.value,
            title=title,
            body=body,
            link_url=f"/connections/{sync.connection_id}",
            metadata={
                "connection_id": str(sync.connection_id),
                "sync_id": str(sync.id),
                "sync_type": sync.sync_type,
            },
        ))

    # ─── Proposal lifecycle ──────────────────────────────────────

    async def propose(
        self,
        me: UUID,
        connection_id: UUID,
        sync_type: str | None,
        scheduled_at=None,
        note: str | None = None,
    ) -> ConnectionSync:
        connection = await self.db.get(Connection, connection_id)
        error = check_propose(connection, me)
        if error:
            raise RuleViolationError.from_rule(error)

        recipient = (
            connection.target_id if connection.requester_id == me
            else connection.requester_id
        )
        sync = ConnectionSync(
            connection_id=connection.id,
            requester_id=me,
            recipient_id=recipient,
            sync_type=normalize_sync_type(sync_type),
            scheduled_at=scheduled_at,
            note=_clean(note),
            status=SyncStatus.PENDING.value,
        )
        self.db.add(sync)
        await self.db.flush()
        await self._notify(
            recipient, me, NotificationKind.SYNC_PROPOSED,
            "New sync proposal", "You received a new sync proposal.", sync,
        )
        await self.db.commit()
        logger.info(f"Sync {sync.id} proposed", extra={"user_id": str(me)})
        return sync

    async def transition(
        self, me: UUID, sync_id: UUID, action: str, note: str | None = None,
    ) -> dict:
        """accept / decline / cancel / complete."""
        sync = await self.db.get(ConnectionSync, sync_id)
        error = check_transition(sync, me, action)
        if error:
            raise RuleViolationError.from_rule(error)

        now = utc_now()
        sync.status = target_status(action).value
        sync.updated_at = now
        if action == "complete":
            self._mark_completed(sync, note, now)
            await self._upsert_legacy(sync.connection_id, me, note)
            await self._notify_completed(sync, me)
        elif action in ("accept", "decline"):
            accepted = action == "accept"
            await self._notify(
                sync.requester_id, me,
                NotificationKind.SYNC_ACCEPTED if accepted else NotificationKind.SYNC_DECLINED,
                "Sync accepted" if accepted else "Sync declined", None, sync,
            )
        await self.db.commit()
        logger.info(f"Sync {sync.id} {action_label(action)}", extra={"user_id": str(me)})
        return {
            "ok": True,
            "sync_id": str(sync.id),
            "status": sync.status,
            "action": action_label(action),
        }

    # ─── Completion ──────────────────────────────────────────────

    @staticmethod
    def _mark_completed(sync: ConnectionSync, note: str | None, now) -> None:
        sync.status = SyncStatus.COMPLETED.value
        sync.completed_at = now
        sync.note = _clean(note) or sync.note
        sync.updated_at = now

    async def _notify_completed(self, sync: ConnectionSync, me: UUID) -> None:
        await self._notify(
            other_member(sync, me), me, NotificationKind.SYNC_COMPLETED,
            "Sync marked completed",
            "A sync was marked completed. You can now leave a reference.",
            sync,
        )

    async def _upsert_legacy(
        self, connection_id: UUID, me: UUID, note: str | None,
    ) -> LegacySync:
        legacy = await self.db.scalar(
            select(LegacySync).where(
                LegacySync.connection_id == connection_id,
                LegacySync.completed_by == me,
            )
        )
        if legacy is None:
            legacy = LegacySync(connection_id=connection_id, completed_by=me)
            self.db.add(legacy)
        legacy.completed_at = utc_now()
        legacy.note = _clean(note)
        await self.db.flush()
        return legacy

    async def complete(
        self,
        me: UUID,
        connection_id: UUID | None,
        sync_id: UUID | None,
        note: str | None = None,
    ) -> dict:
        target_id = sync_id
        if target_id is None and connection_id is not None:
            target_id = await self.db.scalar(
                select(ConnectionSync.id)
                .where(
                    ConnectionSync.connection_id == connection_id,
                    ConnectionSync.status == SyncStatus.ACCEPTED.value,
                )
                .order_by(ConnectionSync.created_at.desc())
                .limit(1)
            )

        if target_id is not None:
            sync = await self.db.get(ConnectionSync, target_id)
            error = check_completion(sync, me)
            if error:
                raise RuleViolationError.from_rule(error)
            self._mark_completed(sync, note, utc_now())
            await self._upsert_legacy(sync.connection_id, me, note)
            await self._notify_completed(sync, me)
            await self.db.commit()
            logger.info(f"Sync {sync.id} completed", extra={"mode": "connection_syncs"})
            return {"ok": True, "sync_id": str(sync.id), "mode": "connection_syncs"}

        return await self.mark_legacy_completed(me, connection_id, note)

    async def mark_legacy_completed(
        self, me: UUID, connection_id: UUID | None, note: str | None = None,
    ) -> dict:
        if connection_id is None:
            raise RuleViolationError(
                "legacy_completion_requires_connection",
                "Legacy completion requires connectionId.",
            )
        connection = await self.db.get(Connection, connection_id)
        error = check_legacy_completion(connection, me)
        if error:
            raise RuleViolationError.from_rule(error)
        legacy = await self._upsert_legacy(connection.id, me, note)
        await self.db.commit()
        logger.info(f"Legacy sync {legacy.id} completed", extra={"mode": "legacy"})
        return {"ok": True, "sync_id": str(legacy.id), "mode": "legacy"}
