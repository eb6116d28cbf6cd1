"""Connection Visibility — the read model that decides what each member sees.

Invariants:
    - A blocked row (status blocked OR blocked_by set) is never message-visible
    - derive_connection_state precedence: blocked > accepted > incoming > outgoing > none
    - Pure: operates on rows already fetched for the viewer
"""

from uuid import UUID

from conxion.core.domain_types import ConnectionState, ConnectionStatus


def other_user_id(row, me: UUID) -> UUID:
    return row.target_id if row.requester_id == me else row.requester_id


def is_blocked(row) -> bool:
    return row.status == ConnectionStatus.BLOCKED or row.blocked_by is not None


def is_accepted_visible(row) -> bool:
    return row.status == ConnectionStatus.ACCEPTED and row.blocked_by is None


def is_incoming_pending(row, me: UUID) -> bool:
    return row.status == ConnectionStatus.PENDING and row.target_id == me


def is_outgoing_pending(row, me: UUID) -> bool:
    return row.status == ConnectionStatus.PENDING and row.requester_id == me


def visible_connection_view(row, me: UUID) -> dict:
    """Serialize one row with the viewer-relative flags."""
    return {
        "id": str(row.id),
        "requester_id": str(row.requester_id),
        "target_id": str(row.target_id),
        "status": row.status,
        "blocked_by": str(row.blocked_by) if row.blocked_by else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "connect_context": row.connect_context,
        "connect_reason": row.connect_reason,
        "connect_reason_role": row.connect_reason_role,
        "connect_note": row.connect_note,
        "trip_id": str(row.trip_id) if row.trip_id else None,
        "other_user_id": str(other_user_id(row, me)),
        "is_blocked": is_blocked(row),
        "is_visible_in_messages": is_accepted_visible(row),
        "is_incoming_pending": is_incoming_pending(row, me),
        "is_outgoing_pending": is_outgoing_pending(row, me),
        "is_accepted_visible": is_accepted_visible(row),
    }


def derive_connection_state(rows: list, me: UUID, other: UUID) -> ConnectionState:
    """Collapse every row between two users into one relationship state."""
    pair = [
        r for r in rows
        if {r.requester_id, r.target_id} == {me, other}
    ]
    if any(is_blocked(r) for r in pair):
        return ConnectionState.BLOCKED
    if any(is_accepted_visible(r) for r in pair):
        return ConnectionState.ACCEPTED
    if any(is_incoming_pending(r, me) for r in pair):
        return ConnectionState.INCOMING_PENDING
    if any(is_outgoing_pending(r, me) for r in pair):
        return ConnectionState.OUTGOING_PENDING
    return ConnectionState.NONE
