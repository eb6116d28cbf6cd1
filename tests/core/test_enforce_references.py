"""Reference Enforcement — tests for pure creation and mutation rules.

Tests cover:
    - validate_reference_creation rule order (first error wins)
    - body length bounds after trimming
    - connection eligibility (accepted, unblocked, member)
    - edit: author only, once, within 15 days
    - reply: recipient only, once, within 15 days, 2..400 chars
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

from conxion.core.enforce_references import (
    check_body,
    check_reference_edit,
    check_reference_reply,
    check_reply_text,
    is_connection_eligible,
    normalize_entity_type,
    validate_reference_creation,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
ME = uuid4()
OTHER = uuid4()


def _conn(status="accepted", blocked_by=None, requester=ME, target=OTHER):
    return SimpleNamespace(
        id=uuid4(), requester_id=requester, target_id=target,
        status=status, blocked_by=blocked_by,
    )


# ─── normalize_entity_type ───────────────────────────────────────

def test_normalize_entity_type_defaults_to_connection():
    assert normalize_entity_type(None) == "connection"
    assert normalize_entity_type("bogus") == "connection"


def test_normalize_entity_type_lowercases_known_values():
    assert normalize_entity_type(" SYNC ") == "sync"
    assert normalize_entity_type("Event") == "event"


# ─── validate_reference_creation ─────────────────────────────────

def test_self_reference_is_checked_first():
    result = validate_reference_creation(None, ME, ME, "bogus", "")
    assert result["error_code"] == "cannot_reference_self"


def test_sentiment_checked_before_body():
    result = validate_reference_creation(_conn(), ME, OTHER, "great", "x")
    assert result["error_code"] == "invalid_sentiment"


def test_body_too_short_after_trim():
    result = validate_reference_creation(_conn(), ME, OTHER, "positive", "   short  ")
    assert result["error_code"] == "reference_body_too_short"


def test_body_bounds():
    assert check_body("a" * 8) is None
    assert check_body("a" * 1000) is None
    assert check_body("a" * 1001)["error_code"] == "reference_body_too_long"


def test_declined_connection_is_not_eligible():
    result = validate_reference_creation(
        _conn(status="declined"), ME, OTHER, "positive", "Lovely dancer, very kind.",
    )
    assert result["error_code"] == "connection_not_eligible_for_reference"


def test_blocked_connection_is_not_eligible():
    assert not is_connection_eligible(_conn(blocked_by=OTHER), ME)


def test_outsider_is_not_eligible():
    assert not is_connection_eligible(_conn(), uuid4())


def test_recipient_must_be_the_other_member():
    result = validate_reference_creation(
        _conn(), ME, uuid4(), "positive", "Lovely dancer, very kind.",
    )
    assert result["error_code"] == "recipient_not_in_connection"


def test_valid_creation_passes():
    assert validate_reference_creation(
        _conn(), ME, OTHER, "neutral", "Solid lead, good timing.",
    ) is None


def test_creation_errors_are_400():
    result = validate_reference_creation(_conn(), ME, OTHER, "nope", "x" * 20)
    assert result["http_status"] == 400


# ─── Edit ────────────────────────────────────────────────────────

def test_edit_by_non_author_is_403():
    result = check_reference_edit(OTHER, ME, NOW - timedelta(days=1), 0, None, NOW)
    assert result["error_code"] == "reference_update_not_allowed"
    assert result["http_status"] == 403


def test_edit_after_window_is_400():
    result = check_reference_edit(ME, ME, NOW - timedelta(days=16), 0, None, NOW)
    assert result["error_code"] == "reference_update_not_allowed"
    assert result["http_status"] == 400


def test_edit_allowed_at_exactly_15_days():
    assert check_reference_edit(ME, ME, NOW - timedelta(days=15), 0, None, NOW) is None


def test_second_edit_rejected():
    assert check_reference_edit(ME, ME, NOW, 1, None, NOW) is not None
    assert check_reference_edit(ME, ME, NOW, 0, NOW, NOW) is not None


def test_edit_compares_ids_as_text():
    assert check_reference_edit(str(ME), ME, NOW.isoformat(), 0, "", NOW) is None


# ─── Reply ───────────────────────────────────────────────────────

def test_reply_length_bounds():
    assert check_reply_text(" a ")["error_code"] == "invalid_reply_length"
    assert check_reply_text("ok") is None
    assert check_reply_text("a" * 401)["error_code"] == "invalid_reply_length"


def test_reply_by_non_recipient_is_403():
    result = check_reference_reply(OTHER, ME, NOW, None, NOW)
    assert result["error_code"] == "reference_reply_not_allowed"
    assert result["http_status"] == 403


def test_reply_only_once():
    assert check_reference_reply(ME, ME, NOW, "Thanks!", NOW) is not None
    assert check_reference_reply(ME, ME, NOW, "   ", NOW) is None


def test_reply_outside_window():
    result = check_reference_reply(ME, ME, NOW - timedelta(days=20), None, NOW)
    assert result["http_status"] == 400
