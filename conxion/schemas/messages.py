"""Message Schemas — posting into a thread."""

from uuid import UUID

from conxion.schemas.base import CamelModel


class MessageSend(CamelModel):
    thread_id: UUID | None = None
    connection_id: UUID | None = None
    body: str | None = None
