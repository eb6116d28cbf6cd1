"""Connection Enforcement — request limits and per-action permissions."""

from types import SimpleNamespace
from uuid import uuid4

from conxion.core.enforce_connections import (
    DAILY_REQUEST_LIMIT,
    HOURLY_REQUEST_LIMIT,
    can_block,
    can_cancel,
    can_respond,
    can_unblock,
    can_undo_decline,
    validate_connection_request,
)

ME = uuid4()
OTHER = uuid4()


def _row(status="pending", requester=ME, target=OTHER, blocked_by=None):
    return SimpleNamespace(
        requester_id=requester, target_id=target, status=status, blocked_by=blocked_by,
    )


def _validate(target=OTHER, reason="Practice", rows=(), day=0, hour=0, declined=False):
    return validate_connection_request(ME, target, reason, list(rows), day, hour, declined)


def test_missing_target():
    assert _validate(target=None)["error_code"] == "missing_target_id"


def test_cannot_request_self():
    assert _validate(target=ME)["error_code"] == "cannot_request_self"


def test_reason_required():
    assert _validate(reason="  ")["error_code"] == "reason_required"


def test_blocked_pair_wins_over_existing():
    rows = [_row("accepted"), _row("accepted", blocked_by=OTHER)]
    assert _validate(rows=rows)["error_code"] == "blocked"


def test_existing_pending_in_either_direction():
    rows = [_row("pending", requester=OTHER, target=ME)]
    assert _validate(rows=rows)["error_code"] == "already_pending_or_connected"


def test_declined_row_does_not_block_new_request():
    assert _validate(rows=[_row("declined")]) is None


def test_daily_limit_checked_before_hourly():
    result = _validate(day=DAILY_REQUEST_LIMIT, hour=HOURLY_REQUEST_LIMIT)
    assert result["error_code"] == "rate_limit_daily"


def test_hourly_limit():
    assert _validate(hour=HOURLY_REQUEST_LIMIT)["error_code"] == "rate_limit_hourly"


def test_re_request_after_recent_decline():
    assert _validate(declined=True)["error_code"] == "re_request_not_allowed_30_days"


def test_valid_request():
    assert _validate(day=DAILY_REQUEST_LIMIT - 1, hour=HOURLY_REQUEST_LIMIT - 1) is None


# ─── Actions ─────────────────────────────────────────────────────

def test_only_target_responds_to_pending():
    row = _row("pending")
    assert can_respond(row, OTHER)
    assert not can_respond(row, ME)
    assert not can_respond(_row("accepted"), OTHER)


def test_undo_decline_requires_declined_and_target():
    assert can_undo_decline(_row("declined"), OTHER)
    assert not can_undo_decline(_row("pending"), OTHER)


def test_only_requester_cancels_pending():
    assert can_cancel(_row("pending"), ME)
    assert not can_cancel(_row("pending"), OTHER)
    assert not can_cancel(None, ME)


def test_block_by_either_member():
    assert can_block(_row(), ME)
    assert can_block(_row(), OTHER)
    assert not can_block(_row(), uuid4())


def test_only_blocker_unblocks():
    row = _row("blocked", blocked_by=OTHER)
    assert can_unblock(row, OTHER)
    assert not can_unblock(row, ME)
