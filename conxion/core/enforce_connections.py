"""Connection Rule Enforcement — request creation limits and action permissions.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return error dict on violation, None on success
    - validate_connection_request chains checks in a fixed order:
      target → self → reason → blocked → existing → daily → hourly → re-request
    - Only the target may accept/decline/undo a decline; only the requester may cancel;
      only the blocker may unblock

Design Decisions:
    - Counts and pair rows are gathered by the shell and handed in:
      the rules stay testable without a database
"""

from uuid import UUID

from conxion.core.domain_types import ConnectionStatus

DAILY_REQUEST_LIMIT = 20
HOURLY_REQUEST_LIMIT = 5

CONNECTION_ACTIONS = frozenset({
    "accept", "decline", "cancel", "undo_decline", "block", "unblock", "report",
})


def _error(code: str) -> dict:
    return {"status": "error", "error_code": code}


def check_request_target(me: UUID, target_id: UUID | None) -> dict | None:
    if target_id is None:
        return _error("missing_target_id")
    if target_id == me:
        return _error("cannot_request_self")
    return None


def check_reason(connect_reason: str | None) -> dict | None:
    if not (connect_reason or "").strip():
        return _error("reason_required")
    return None


def check_pair_rows(pair_rows: list) -> dict | None:
    """Rows between the two users, either direction."""
    if any(
        row.status == ConnectionStatus.BLOCKED or row.blocked_by is not None
        for row in pair_rows
    ):
        return _error("blocked")
    if any(
        row.status in (ConnectionStatus.PENDING, ConnectionStatus.ACCEPTED)
        for row in pair_rows
    ):
        return _error("already_pending_or_connected")
    return None


def check_request_rate(sent_last_day: int, sent_last_hour: int) -> dict | None:
    if sent_last_day >= DAILY_REQUEST_LIMIT:
        return _error("rate_limit_daily")
    if sent_last_hour >= HOURLY_REQUEST_LIMIT:
        return _error("rate_limit_hourly")
    return None


def check_re_request(declined_recently: bool) -> dict | None:
    if declined_recently:
        return _error("re_request_not_allowed_30_days")
    return None


def validate_connection_request(
    me: UUID,
    target_id: UUID | None,
    connect_reason: str | None,
    pair_rows: list,
    sent_last_day: int,
    sent_last_hour: int,
    declined_recently: bool,
) -> dict | None:
    """Chain every request rule — first error wins."""
    return (
        check_request_target(me, target_id)
        or check_reason(connect_reason)
        or check_pair_rows(pair_rows)
        or check_request_rate(sent_last_day, sent_last_hour)
        or check_re_request(declined_recently)
    )


# ─── Actions on an existing row ──────────────────────────────────

def can_respond(connection, me: UUID) -> bool:
    """accept / decline."""
    return (
        connection is not None
        and connection.target_id == me
        and connection.status == ConnectionStatus.PENDING
    )


def can_undo_decline(connection, me: UUID) -> bool:
    return (
        connection is not None
        and connection.target_id == me
        and connection.status == ConnectionStatus.DECLINED
    )


def can_cancel(connection, me: UUID) -> bool:
    return (
        connection is not None
        and connection.requester_id == me
        and connection.status == ConnectionStatus.PENDING
    )


def can_block(connection, me: UUID) -> bool:
    return connection is not None and me in (
        connection.requester_id, connection.target_id,
    )


def can_unblock(connection, me: UUID) -> bool:
    return connection is not None and connection.blocked_by == me
