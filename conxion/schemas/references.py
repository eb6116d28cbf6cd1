"""Reference Schemas — create and edit/reply payloads."""

from uuid import UUID

from pydantic import field_validator

from conxion.schemas.base import CamelModel


class ReferenceCreate(CamelModel):
    connection_id: UUID | None = None
    recipient_id: UUID | None = None
    sentiment: str | None = None
    body: str | None = None
    entity_type: str | None = None
    entity_id: UUID | None = None
    context: str | None = None

    @field_validator("sentiment", "body", "entity_type", "context")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v


class ReferenceUpdate(CamelModel):
    """PATCH body; `mode` selects edit or reply."""
    mode: str | None = None
    reference_id: UUID | None = None
    sentiment: str | None = None
    body: str | None = None
    reply_text: str | None = None

    @field_validator("mode", "sentiment", "body", "reply_text")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v
