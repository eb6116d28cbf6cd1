"""LegacySync ORM — the older completion log ("syncs"), one row per member per connection.

Invariants:
    - Unique (connection_id, completed_by): completing again updates the row
    - A row's existence is what makes a connection-level reference eligible

Design Decisions:
    - Kept alongside connection_syncs: references.sync_id points here, and
      deployments that predate connection_syncs only have this table
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint, func, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class LegacySync(Base):
    __tablename__ = "syncs"
    __table_args__ = (
        UniqueConstraint("connection_id", "completed_by", name="uq_syncs_connection_member"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    connection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("connections.id", ondelete="CASCADE"),
        nullable=False,
    )
    completed_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False,
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
