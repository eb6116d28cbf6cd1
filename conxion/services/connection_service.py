"""Connection Service — requests, lifecycle actions, blocks, and the visibility read model.

Invariants:
    - The requester of a new connection is always the authenticated user
    - Every action is one guarded state change; a failed guard raises
      not_found_or_not_allowed without touching the row
    - Blocking by user creates the pair row when none exists, then marks it
      blocked with blocked_by = me

Design Decisions:
    - Rate-limit counts and pair rows are read here and handed to the pure
      validate_connection_request, which decides
"""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.connection_visibility import (
    derive_connection_state, is_blocked, visible_connection_view,
)
from conxion.core.domain_types import ConnectionState, ConnectionStatus, RE_REQUEST_WINDOW
from conxion.core.enforce_connections import (
    can_block, can_cancel, can_respond, can_undo_decline, can_unblock,
    validate_connection_request,
)
from conxion.core.errors import RuleViolationError
from conxion.core.time_windows import as_utc, utc_now
from conxion.models.connection import Connection

logger = logging.getLogger(__name__)


def _pair_filter(a: UUID, b: UUID):
    return or_(
        and_(Connection.requester_id == a, Connection.target_id == b),
        and_(Connection.requester_id == b, Connection.target_id == a),
    )


def _not_allowed() -> RuleViolationError:
    return RuleViolationError("not_found_or_not_allowed")


class ConnectionService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _pair_rows(self, me: UUID, other: UUID) -> list[Connection]:
        result = await self.db.execute(
            select(Connection)
            .where(_pair_filter(me, other))
            .order_by(Connection.created_at.desc())
        )
        return list(result.scalars().all())

    async def _sent_since(self, me: UUID, window: timedelta) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(Connection).where(
                Connection.requester_id == me,
                Connection.created_at >= utc_now() - window,
            )
        ) or 0

    # ─── Requests ────────────────────────────────────────────────

    async def request(
        self,
        me: UUID,
        target_id: UUID | None,
        connect_context: str | None = None,
        connect_reason: str | None = None,
        connect_reason_role: str | None = None,
        connect_note: str | None = None,
        trip_id: UUID | None = None,
    ) -> UUID:
        pair_rows = await self._pair_rows(me, target_id) if target_id else []
        cutoff = utc_now() - RE_REQUEST_WINDOW
        declined_recently = any(
            row.requester_id == me
            and row.status == ConnectionStatus.DECLINED
            and (row.updated_at or row.created_at) is not None
            and as_utc(row.updated_at or row.created_at) >= cutoff
            for row in pair_rows
        )
        error = validate_connection_request(
            me, target_id, connect_reason, pair_rows,
            await self._sent_since(me, timedelta(days=1)),
            await self._sent_since(me, timedelta(hours=1)),
            declined_recently,
        )
        if error:
            raise RuleViolationError.from_rule(error)

        connection = Connection(
            requester_id=me,
            target_id=target_id,
            status=ConnectionStatus.PENDING.value,
            connect_context=connect_context,
            connect_reason=connect_reason.strip(),
            connect_reason_role=connect_reason_role,
            connect_note=(connect_note or "").strip() or None,
            trip_id=trip_id,
        )
        self.db.add(connection)
        await self.db.commit()
        logger.info(f"Connection {connection.id} requested", extra={"user_id": str(me)})
        return connection.id

    # ─── Actions ─────────────────────────────────────────────────

    async def _load(self, connection_id: UUID | None) -> Connection | None:
        if connection_id is None:
            return None
        return await self.db.get(Connection, connection_id)

    async def accept(self, me: UUID, connection_id: UUID) -> None:
        await self._transition(me, connection_id, can_respond, ConnectionStatus.ACCEPTED)

    async def decline(self, me: UUID, connection_id: UUID) -> None:
        await self._transition(me, connection_id, can_respond, ConnectionStatus.DECLINED)

    async def undo_decline(self, me: UUID, connection_id: UUID) -> None:
        await self._transition(me, connection_id, can_undo_decline, ConnectionStatus.PENDING)

    async def _transition(self, me, connection_id, guard, status: ConnectionStatus) -> None:
        connection = await self._load(connection_id)
        if not guard(connection, me):
            raise _not_allowed()
        connection.status = status.value
        connection.updated_at = utc_now()
        await self.db.commit()
        logger.info(f"Connection {connection.id} → {status.value}", extra={"user_id": str(me)})

    async def cancel(self, me: UUID, connection_id: UUID) -> None:
        connection = await self._load(connection_id)
        if not can_cancel(connection, me):
            raise _not_allowed()
        await self.db.delete(connection)
        await self.db.commit()

    async def block(
        self, me: UUID, connection_id: UUID | None, target_user_id: UUID | None,
    ) -> UUID:
        if connection_id is not None:
            connection = await self._load(connection_id)
            if not can_block(connection, me):
                raise RuleViolationError("connection_not_found_or_not_allowed")
        else:
            if target_user_id is None:
                raise RuleViolationError("missing_target_user_id")
            if target_user_id == me:
                raise RuleViolationError("cannot_block_self")
            rows = await self._pair_rows(me, target_user_id)
            connection = rows[0] if rows else None
            if connection is None:
                connection = Connection(requester_id=me, target_id=target_user_id)
                self.db.add(connection)

        connection.status = ConnectionStatus.BLOCKED.value
        connection.blocked_by = me
        connection.updated_at = utc_now()
        await self.db.commit()
        logger.info(f"Connection {connection.id} blocked", extra={"user_id": str(me)})
        return connection.id

    async def unblock(self, me: UUID, connection_id: UUID) -> None:
        connection = await self._load(connection_id)
        if not can_unblock(connection, me):
            raise _not_allowed()
        connection.blocked_by = None
        if connection.status == ConnectionStatus.BLOCKED:
            connection.status = ConnectionStatus.ACCEPTED.value
        connection.updated_at = utc_now()
        await self.db.commit()

    # ─── Read model ──────────────────────────────────────────────

    async def list_visible(self, me: UUID) -> list[dict]:
        """My rows, minus blocks I did not place."""
        result = await self.db.execute(
            select(Connection)
            .where(or_(Connection.requester_id == me, Connection.target_id == me))
            .order_by(Connection.created_at.desc())
        )
        rows = [
            row for row in result.scalars().all()
            if not is_blocked(row) or row.blocked_by == me
        ]
        return [visible_connection_view(row, me) for row in rows]

    async def state_with(self, me: UUID, other: UUID) -> ConnectionState:
        return derive_connection_state(await self._pair_rows(me, other), me, other)
