"""Message Rule Enforcement — body hygiene, who may post where, send limits.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Rules judge the trimmed body, which is also what gets stored
    - Contact details never pass: links, emails, @/# handles, phone numbers
    - A connection thread is writable only while its connection is accepted
      and unblocked; a trip thread only by its participants

Design Decisions:
    - Email is checked before handles: every email also matches the handle
      pattern, and the email code tells the sender more
"""

import re
from datetime import date, datetime, timezone
from uuid import UUID

from conxion.core.domain_types import ConnectionStatus

MESSAGE_MIN = 1
MESSAGE_MAX = 1000
THREAD_MINUTE_LIMIT = 20
DAILY_MESSAGE_LIMIT = 100

THREAD_TYPE_CONNECTION = "connection"
THREAD_TYPE_TRIP = "trip"

_CONTACT_PATTERNS = (
    (re.compile(r"(https?://|www\.)", re.IGNORECASE),
     "message_links_not_allowed", "Links not allowed."),
    (re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE),
     "message_emails_not_allowed", "Emails not allowed."),
    (re.compile(r"[@#][A-Za-z0-9_]+"),
     "message_handles_not_allowed", "Handles not allowed."),
    (re.compile(r"\+?\d[\d\s().-]{7,}\d"),
     "message_phones_not_allowed", "Phone numbers not allowed."),
)


def _error(code: str, message: str | None = None, http_status: int | None = None) -> dict:
    error = {"status": "error", "error_code": code}
    if message:
        error["message"] = message
    if http_status:
        error["http_status"] = http_status
    return error


def clean_message_body(body: str | None) -> str:
    return (body or "").strip()


def check_message_body(body: str | None) -> dict | None:
    clean = clean_message_body(body)
    if not MESSAGE_MIN <= len(clean) <= MESSAGE_MAX:
        return _error("invalid_message_length", "Message length invalid.")
    for pattern, code, message in _CONTACT_PATTERNS:
        if pattern.search(clean):
            return _error(code, message)
    return None


def check_connection_messageable(connection, me: UUID) -> dict | None:
    """Accepted, unblocked, and mine."""
    if (
        connection is None
        or me not in (connection.requester_id, connection.target_id)
        or connection.status != ConnectionStatus.ACCEPTED
        or connection.blocked_by is not None
    ):
        return _error(
            "connection_not_messageable", "No permission for this connection.", 403,
        )
    return None


def check_thread_access(thread, is_participant: bool) -> dict | None:
    if thread is None:
        return _error("thread_not_found", "Thread not found.", 404)
    if not is_participant:
        return _error("not_thread_participant", "Not a participant of this thread.", 403)
    return None


def check_send_limits(sent_in_thread_last_minute: int, sent_today: int) -> dict | None:
    if sent_in_thread_last_minute >= THREAD_MINUTE_LIMIT:
        return _error(
            "message_rate_limited", f"Rate limit: {THREAD_MINUTE_LIMIT} per minute.", 429,
        )
    if sent_today >= DAILY_MESSAGE_LIMIT:
        return _error("daily_message_limit_reached", "Daily limit reached.", 429)
    return None


def check_message_delete(message, me: UUID, is_participant: bool) -> dict | None:
    """Senders delete their own messages while they are still in the thread."""
    if message is None:
        return _error("message_not_found", "Message not found.", 404)
    if message.sender_id != me:
        return _error("not_message_sender", "Only the sender can delete a message.", 403)
    if not is_participant:
        return _error("not_thread_participant", "Not a participant of this thread.", 403)
    return None


def limit_date_key(now: datetime) -> date:
    """Daily limits roll over at midnight UTC."""
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(timezone.utc).date()
