"""Connection ORM — a directed request that becomes a mutual relationship.

Invariants:
    - requester_id != target_id
    - status transitions: pending -> accepted | declined; declined -> pending (undo);
      any -> blocked; blocked -> accepted (unblock)
    - blocked_by set means the row is blocked regardless of status

Design Decisions:
    - No unique (requester, target): history rows (declined, cancelled requests)
      are kept for the 30-day re-request rule
    - connect_* columns capture why the request was sent, shown to the target
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class Connection(Base):
    """Connection between two members."""
    __tablename__ = "connections"
    __table_args__ = (
        Index("ix_connections_requester_target", "requester_id", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False,
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    blocked_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )
    connect_context: Mapped[str | None] = mapped_column(String(40), nullable=True)
    connect_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    connect_reason_role: Mapped[str | None] = mapped_column(String(40), nullable=True)
    connect_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    trip_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
