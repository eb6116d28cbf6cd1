"""Reference ORM — a one-directional trust attestation left after a shared activity.

Invariants:
    - author_id != recipient_id
    - Unique (entity_type, entity_id, author_id): one reference per author per entity
    - body is 8-1000 chars after trimming
    - edit_count <= 1; reply_text written at most once
    - Immutable 15 days after created_at (enforced in core/enforce_references.py)

Design Decisions:
    - context mirrors entity_type: older clients and reports read context
    - rating kept nullable next to sentiment: some deployments constrain a
      numeric rating instead of the sentiment word
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func, text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class Reference(Base):
    """Reference entity — sentiment plus free text about another member."""
    __tablename__ = "references"
    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "author_id",
            name="uq_references_entity_author",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    connection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("connections.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False,
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    context: Mapped[str] = mapped_column(
        String(20), nullable=False,
        default="connection", server_default="connection",
    )
    entity_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="connection", server_default="connection",
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False,
    )
    sync_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("syncs.id", ondelete="SET NULL"),
        nullable=True,
    )
    sentiment: Mapped[str] = mapped_column(String(20), nullable=False)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    edit_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )
    last_edited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    reply_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    replied_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )
    replied_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
