"""Event Schemas — create/update bodies, membership actions, feedback, reports.

Invariants:
    - EventWrite serves both create and update; on update a None field means
      "keep the current value" (except capacity and links, which are replaced)
    - styles/links stay loosely typed: the service sanitizes them
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from conxion.schemas.base import CamelModel


class EventWrite(CamelModel):
    title: str | None = None
    description: str | None = None
    event_type: str | None = None
    visibility: str | None = None
    city: str | None = None
    country: str | None = None
    venue_name: str | None = None
    venue_address: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    capacity: int | None = None
    cover_url: str | None = None
    status: str | None = None
    links: list = Field(default_factory=list)
    styles: list | None = None

    def missing_required(self) -> bool:
        return (
            not (self.title or "").strip()
            or not (self.city or "").strip()
            or not (self.country or "").strip()
            or self.starts_at is None
            or self.ends_at is None
        )


class EventJoinRequest(CamelModel):
    action: str | None = None
    note: str | None = None


class EventRespondRequest(CamelModel):
    action: str | None = None
    request_id: UUID | None = None
    requester_id: UUID | None = None


class EventFeedbackRequest(CamelModel):
    happened_as_described: bool = False
    quality: int = 0
    note: str | None = None
    visibility: str = "private"


class EventReportRequest(CamelModel):
    reason: str | None = None
    note: str | None = None
