"""Connection Schemas — connect request and the multiplexed action body."""

from uuid import UUID

from pydantic import BaseModel

from conxion.schemas.base import CamelModel


class ConnectPayload(BaseModel):
    """Nested payload keeps the snake_case keys clients already send."""
    connect_context: str | None = None
    connect_reason: str | None = None
    connect_reason_role: str | None = None
    connect_note: str | None = None
    trip_id: UUID | None = None


class ConnectRequest(CamelModel):
    target_id: UUID | None = None
    payload: ConnectPayload = ConnectPayload()


class ConnectionActionRequest(CamelModel):
    conn_id: UUID | None = None
    action: str | None = None
    target_user_id: UUID | None = None
    reason: str | None = None
    note: str | None = None
    context: str | None = None
    context_id: str | None = None
