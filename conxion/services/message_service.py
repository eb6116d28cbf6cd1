"""Message Service — post into connection and trip threads, read them, list my inbox.

Invariants:
    - The send gate is re-checked on every message: a connection thread closes
      as soon as its connection is blocked or no longer accepted
    - A sent message bumps the sender's message_limits row for the UTC day and
      touches the thread's last_message_at in the same transaction
    - Reading a thread moves only the reader's last_read_at
    - One thread per connection, created by the first message sent to it

Design Decisions:
    - Connection thread creation races are settled by the unique connection_id,
      as trip threads are settled by trip_id
    - The sender's own last_read_at moves on send: my own message is never unread
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.enforce_messages import (
    THREAD_TYPE_CONNECTION, check_connection_messageable, check_message_body,
    check_message_delete, check_send_limits, check_thread_access,
    clean_message_body, limit_date_key,
)
from conxion.core.errors import RuleViolationError
from conxion.core.time_windows import utc_now
from conxion.models.connection import Connection
from conxion.models.message_limit import MessageLimit
from conxion.models.thread import Thread, ThreadParticipant
from conxion.models.thread_message import ThreadMessage

logger = logging.getLogger(__name__)

RATE_WINDOW = timedelta(minutes=1)


def _raise_rule(error: dict | None) -> None:
    if error:
        raise RuleViolationError.from_rule(error)


class MessageService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _participant(self, thread_id: UUID, me: UUID) -> ThreadParticipant | None:
        return await self.db.get(ThreadParticipant, (thread_id, me))

    async def _open(self, me: UUID, thread_id: UUID) -> tuple[Thread, ThreadParticipant]:
        thread = await self.db.get(Thread, thread_id)
        participant = await self._participant(thread_id, me) if thread else None
        _raise_rule(check_thread_access(thread, participant is not None))
        return thread, participant

    # ─── Connection threads ──────────────────────────────────────

    async def _thread_for_connection(self, connection_id: UUID) -> Thread | None:
        return await self.db.scalar(
            select(Thread).where(Thread.connection_id == connection_id)
        )

    async def _connection_thread(self, me: UUID, connection: Connection) -> Thread:
        thread = await self._thread_for_connection(connection.id)
        if thread is None:
            try:
                async with self.db.begin_nested():
                    thread = Thread(
                        thread_type=THREAD_TYPE_CONNECTION,
                        connection_id=connection.id,
                        created_by=me,
                    )
                    self.db.add(thread)
            except IntegrityError:
                logger.info(f"Connection {connection.id} thread created concurrently")
                thread = await self._thread_for_connection(connection.id)

        result = await self.db.execute(
            select(ThreadParticipant.user_id).where(ThreadParticipant.thread_id == thread.id)
        )
        present = set(result.scalars().all())
        for user_id in (connection.requester_id, connection.target_id):
            if user_id not in present:
                self.db.add(ThreadParticipant(thread_id=thread.id, user_id=user_id))
        await self.db.flush()
        return thread

    async def _gate_connection(self, me: UUID, connection_id: UUID | None) -> Connection:
        connection = await self.db.get(Connection, connection_id) if connection_id else None
        _raise_rule(check_connection_messageable(connection, me))
        return connection

    # ─── Send ────────────────────────────────────────────────────

    async def send(
        self,
        me: UUID,
        body: str | None,
        thread_id: UUID | None = None,
        connection_id: UUID | None = None,
        now: datetime | None = None,
    ) -> ThreadMessage:
        """Post into a thread, or into the connection's thread (created on demand)."""
        now = now or utc_now()
        _raise_rule(check_message_body(body))

        if connection_id is not None:
            connection = await self._gate_connection(me, connection_id)
            thread = await self._connection_thread(me, connection)
            participant = await self._participant(thread.id, me)
        else:
            thread, participant = await self._open(me, thread_id)
            if thread.thread_type == THREAD_TYPE_CONNECTION:
                await self._gate_connection(me, thread.connection_id)

        recent = await self.db.scalar(
            select(func.count()).select_from(ThreadMessage).where(
                ThreadMessage.thread_id == thread.id,
                ThreadMessage.created_at >= now - RATE_WINDOW,
            )
        ) or 0
        date_key = limit_date_key(now)
        limit = await self.db.get(MessageLimit, (me, date_key))
        _raise_rule(check_send_limits(recent, limit.sent_count if limit else 0))

        message = ThreadMessage(
            thread_id=thread.id, sender_id=me, body=clean_message_body(body), created_at=now,
        )
        self.db.add(message)
        if limit is None:
            limit = MessageLimit(user_id=me, date_key=date_key, sent_count=0)
            self.db.add(limit)
        limit.sent_count += 1
        thread.last_message_at = now
        thread.updated_at = now
        participant.last_read_at = now
        await self.db.commit()
        logger.info(
            f"Message {message.id} sent to thread {thread.id}",
            extra={"user_id": str(me), "mode": thread.thread_type},
        )
        return message

    # ─── Read ────────────────────────────────────────────────────

    async def list_messages(
        self, me: UUID, thread_id: UUID, limit: int = 50,
    ) -> list[ThreadMessage]:
        """The newest `limit` messages, oldest first; marks the thread read for me."""
        thread, participant = await self._open(me, thread_id)
        result = await self.db.execute(
            select(ThreadMessage)
            .where(ThreadMessage.thread_id == thread.id)
            .order_by(ThreadMessage.created_at.desc())
            .limit(limit)
        )
        messages = list(reversed(result.scalars().all()))
        participant.last_read_at = utc_now()
        await self.db.commit()
        return messages

    async def _unread_counts(self, me: UUID) -> dict[UUID, int]:
        result = await self.db.execute(
            select(ThreadMessage.thread_id, func.count())
            .join(ThreadParticipant, and_(
                ThreadParticipant.thread_id == ThreadMessage.thread_id,
                ThreadParticipant.user_id == me,
            ))
            .where(
                ThreadMessage.sender_id != me,
                or_(
                    ThreadParticipant.last_read_at.is_(None),
                    ThreadMessage.created_at > ThreadParticipant.last_read_at,
                ),
            )
            .group_by(ThreadMessage.thread_id)
        )
        return {thread_id: count for thread_id, count in result.all()}

    async def inbox(self, me: UUID) -> list[tuple[Thread, int]]:
        """My threads, most recent activity first, with unread counts."""
        result = await self.db.execute(
            select(Thread)
            .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
            .where(ThreadParticipant.user_id == me)
            .order_by(Thread.last_message_at.desc())
        )
        unread = await self._unread_counts(me)
        return [(thread, unread.get(thread.id, 0)) for thread in result.scalars().all()]

    # ─── Delete ──────────────────────────────────────────────────

    async def delete(self, me: UUID, message_id: UUID) -> UUID:
        message = await self.db.get(ThreadMessage, message_id)
        participant = await self._participant(message.thread_id, me) if message else None
        _raise_rule(check_message_delete(message, me, participant is not None))
        thread_id = message.thread_id
        await self.db.delete(message)
        await self.db.commit()
        logger.info(f"Message {message_id} deleted", extra={"user_id": str(me)})
        return thread_id
