"""Trip ORM — a member's upcoming travel, open to join requests while active.

Invariants:
    - A trip counts as active while end_date >= today
    - status NULL is read as active
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class Trip(Base):
    __tablename__ = "trips"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    destination_city: Mapped[str] = mapped_column(String(120), nullable=False)
    destination_country: Mapped[str] = mapped_column(String(120), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    purpose: Mapped[str | None] = mapped_column(String(60), nullable=True)
    styles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    looking_for: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(
        String(20), nullable=True, default="active",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
