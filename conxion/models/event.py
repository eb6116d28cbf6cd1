"""Event ORM — a hosted dance event, optionally private, with moderated cover art.

Invariants:
    - ends_at > starts_at
    - capacity NULL means unlimited; otherwise 1-2000 and counts host + going
    - cover_status: approved when there is no cover, pending until an admin reviews
    - hidden_by_admin hides the event from every public read and blocks joining
    - status transitions: draft <-> published -> cancelled (admin may republish)

Design Decisions:
    - styles/links as JSON lists: sanitized on write, never queried by element
    - Moderation fields (cover_*, hidden_*) live on the row: one read serves
      both the public list filter and the admin panel
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class Event(Base):
    """Event entity — owned by its host."""
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    host_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_type: Mapped[str] = mapped_column(
        String(40), nullable=False, default="Social",
    )
    styles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default="public",
    )
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    country: Mapped[str] = mapped_column(String(120), nullable=False)
    venue_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    venue_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    ends_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Cover moderation
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="approved",
    )
    cover_reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )
    cover_reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    cover_review_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    links: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="published",
    )

    # Admin hide
    hidden_by_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    hidden_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    hidden_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )
    hidden_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
