"""Profile ORM — the public face of a user account.

Invariants:
    - id equals the auth subject (JWT sub)
    - email_confirmed_at NULL means the account cannot join events

Design Decisions:
    - Account-level fields (email confirmation, created_at) live here rather than
      in a separate auth table: the service owns no credentials
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    email_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    is_verified_organizer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
