"""Connection Visibility — derived state precedence and viewer-relative flags."""

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

from conxion.core.connection_visibility import (
    derive_connection_state,
    visible_connection_view,
)
from conxion.core.domain_types import ConnectionState

ME = uuid4()
OTHER = uuid4()


def _row(status, requester=ME, target=OTHER, blocked_by=None):
    return SimpleNamespace(
        id=uuid4(), requester_id=requester, target_id=target, status=status,
        blocked_by=blocked_by, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        connect_context="member", connect_reason="Practice", connect_reason_role=None,
        connect_note=None, trip_id=None,
    )


def test_blocked_beats_accepted():
    rows = [_row("accepted"), _row("blocked", blocked_by=OTHER)]
    assert derive_connection_state(rows, ME, OTHER) == ConnectionState.BLOCKED


def test_accepted_with_blocked_by_counts_as_blocked():
    rows = [_row("accepted", blocked_by=ME)]
    assert derive_connection_state(rows, ME, OTHER) == ConnectionState.BLOCKED


def test_incoming_beats_outgoing():
    rows = [_row("pending"), _row("pending", requester=OTHER, target=ME)]
    assert derive_connection_state(rows, ME, OTHER) == ConnectionState.INCOMING_PENDING


def test_outgoing_pending():
    assert derive_connection_state([_row("pending")], ME, OTHER) == ConnectionState.OUTGOING_PENDING


def test_rows_of_other_pairs_ignored():
    rows = [_row("accepted", target=uuid4())]
    assert derive_connection_state(rows, ME, OTHER) == ConnectionState.NONE


def test_view_flags_for_target():
    view = visible_connection_view(_row("pending"), OTHER)
    assert view["other_user_id"] == str(ME)
    assert view["is_incoming_pending"] is True
    assert view["is_outgoing_pending"] is False
    assert view["is_visible_in_messages"] is False


def test_blocked_row_never_visible_in_messages():
    view = visible_connection_view(_row("accepted", blocked_by=ME), ME)
    assert view["is_blocked"] is True
    assert view["is_accepted_visible"] is False
