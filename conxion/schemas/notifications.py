"""Notification Schemas — client-created notifications."""

from uuid import UUID

from pydantic import Field

from conxion.schemas.base import CamelModel


class NotificationCreate(CamelModel):
    user_id: UUID | None = None
    kind: str | None = None
    title: str | None = None
    body: str | None = None
    link_url: str | None = None
    metadata: dict = Field(default_factory=dict)
