"""MessageLimit ORM — messages sent per user per UTC day."""

import uuid
from datetime import date

from sqlalchemy import Date, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from conxion.db.base import Base


class MessageLimit(Base):
    __tablename__ = "message_limits"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True,
    )
    date_key: Mapped[date] = mapped_column(Date, primary_key=True)
    sent_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )
