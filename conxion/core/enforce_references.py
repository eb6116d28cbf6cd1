"""Reference Rule Enforcement — eligibility and mutation limits for trust attestations.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return error dict on violation, None on success
    - validate_reference_creation chains checks — first error wins, in this order:
      self → sentiment → body length → entity type → connection → recipient
    - A reference may be edited once and replied to once, both only within
      REFERENCE_WINDOW of creation; after that it is immutable

Design Decisions:
    - Connection rows passed duck-typed (requester_id, target_id, status, blocked_by):
      works for ORM rows and for plain namespaces in tests
    - Author/recipient mismatch carries http_status 403; every other rule is 400
"""

from datetime import datetime
from uuid import UUID

from conxion.core.domain_types import (
    ConnectionStatus, EntityType, Sentiment,
    REFERENCE_BODY_MIN, REFERENCE_BODY_MAX, REFERENCE_WINDOW,
    REPLY_MIN, REPLY_MAX, MAX_REFERENCE_EDITS,
)
from conxion.core.time_windows import within_window

_ENTITY_TYPES = {e.value for e in EntityType}
_SENTIMENTS = {s.value for s in Sentiment}


def normalize_entity_type(value: str | None) -> str:
    key = (value or "").strip().lower()
    return key if key in _ENTITY_TYPES else EntityType.CONNECTION.value


def _error(code: str, http_status: int = 400) -> dict:
    return {"status": "error", "error_code": code, "http_status": http_status}


def check_not_self(me: UUID, recipient_id: UUID) -> dict | None:
    if me == recipient_id:
        return _error("cannot_reference_self")
    return None


def check_sentiment(sentiment: str) -> dict | None:
    if sentiment not in _SENTIMENTS:
        return _error("invalid_sentiment")
    return None


def check_body(body: str) -> dict | None:
    clean = (body or "").strip()
    if len(clean) < REFERENCE_BODY_MIN:
        return _error("reference_body_too_short")
    if len(clean) > REFERENCE_BODY_MAX:
        return _error("reference_body_too_long")
    return None


def check_entity_type(entity_type: str) -> dict | None:
    if entity_type not in _ENTITY_TYPES:
        return _error("invalid_entity_type")
    return None


def is_connection_eligible(connection, me: UUID) -> bool:
    """Accepted, unblocked, and the caller is one of its two members."""
    if connection is None:
        return False
    return (
        connection.status == ConnectionStatus.ACCEPTED
        and connection.blocked_by is None
        and me in (connection.requester_id, connection.target_id)
    )


def check_connection_eligible(connection, me: UUID) -> dict | None:
    if not is_connection_eligible(connection, me):
        return _error("connection_not_eligible_for_reference")
    return None


def check_recipient_in_connection(
    connection, me: UUID, recipient_id: UUID,
) -> dict | None:
    members = {connection.requester_id, connection.target_id}
    if recipient_id not in members or recipient_id == me:
        return _error("recipient_not_in_connection")
    return None


def validate_reference_creation(
    connection,
    me: UUID,
    recipient_id: UUID,
    sentiment: str,
    body: str,
    entity_type: str = EntityType.CONNECTION.value,
) -> dict | None:
    """Chain every creation rule — first error wins."""
    return (
        check_not_self(me, recipient_id)
        or check_sentiment(sentiment)
        or check_body(body)
        or check_entity_type(entity_type)
        or check_connection_eligible(connection, me)
        or check_recipient_in_connection(connection, me, recipient_id)
    )


# ─── Mutation limits ─────────────────────────────────────────────

def check_reference_edit(
    author_id: UUID | str,
    me: UUID | str,
    created_at: datetime | str | None,
    edit_count: float,
    last_edited_at: datetime | str | None,
    now: datetime | None = None,
) -> dict | None:
    """Author only, once, within the window."""
    if str(author_id) != str(me):
        return _error("reference_update_not_allowed", 403)
    if not within_window(created_at, REFERENCE_WINDOW, now):
        return _error("reference_update_not_allowed")
    if edit_count >= MAX_REFERENCE_EDITS or _present(last_edited_at):
        return _error("reference_update_not_allowed")
    return None


def check_reply_text(reply_text: str) -> dict | None:
    clean = (reply_text or "").strip()
    if not REPLY_MIN <= len(clean) <= REPLY_MAX:
        return _error("invalid_reply_length")
    return None


def check_reference_reply(
    recipient_id: UUID | str,
    me: UUID | str,
    created_at: datetime | str | None,
    existing_reply: str | None,
    now: datetime | None = None,
) -> dict | None:
    """Recipient only, once, within the window."""
    if str(recipient_id) != str(me):
        return _error("reference_reply_not_allowed", 403)
    if not within_window(created_at, REFERENCE_WINDOW, now):
        return _error("reference_reply_not_allowed")
    if _present(existing_reply):
        return _error("reference_reply_not_allowed")
    return None


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
