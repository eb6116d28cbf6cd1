"""Moderation Schemas — admin actions on reports and events."""

from uuid import UUID

from conxion.schemas.base import CamelModel


class ReportModerationRequest(CamelModel):
    report_id: UUID | None = None
    action: str | None = None
    note: str | None = None


class EventModerationRequest(CamelModel):
    event_id: UUID | None = None
    action: str | None = None
    note: str | None = None
    hidden_reason: str | None = None
