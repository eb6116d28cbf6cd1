"""Event Rule Enforcement — creation/edit validation, joining, requests, feedback.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return error dict on violation, None on success
    - validate_event_fields order: title → location → window → visibility →
      status → capacity → cover url → cover format → style count
    - Capacity counts host + going members; None capacity means unlimited
    - Feedback is writable by host/going/waitlist members once the event ended,
      and locks 15 days after it was first written

Design Decisions:
    - Sanitizers are lenient (drop bad entries) while validators are strict
      (reject the request): clients send free-form arrays, but invalid scalar
      fields are user errors worth surfacing
"""

import re
from datetime import datetime
from uuid import UUID

from conxion.core.domain_types import (
    ACTIVE_MEMBER_STATUSES, EventStatus, EventVisibility, MemberStatus,
    RequestStatus, FEEDBACK_LOCK_WINDOW, NEW_ACCOUNT_WINDOW,
)
from conxion.core.time_windows import as_utc, utc_now, within_window

MAX_STYLES = 12
MIN_CAPACITY = 1
MAX_CAPACITY = 2000
MAX_EDITS_PER_DAY = 5
NEW_ACCOUNT_JOIN_LIMIT = 3
FEEDBACK_NOTE_MAX = 1000

CREATE_STATUSES = (EventStatus.DRAFT.value, EventStatus.PUBLISHED.value)
UPDATE_STATUSES = CREATE_STATUSES + (EventStatus.CANCELLED.value,)
JOIN_ACTIONS = frozenset({"join", "request", "leave", "cancel_request"})
RESPOND_ACTIONS = frozenset({"accept", "decline"})

COVER_PATH_MARKER = "/storage/v1/object/public/avatars/"
_COVER_FORMAT = re.compile(r"\.(jpg|jpeg|png|webp)(\?.*)?$", re.IGNORECASE)


def _error(code: str) -> dict:
    return {"status": "error", "error_code": code}


# ─── Sanitizers ──────────────────────────────────────────────────

def normalize_styles(value) -> list[str]:
    """Trim, lowercase, drop empties and non-strings. No truncation."""
    if not isinstance(value, list):
        return []
    styles = []
    for item in value:
        if isinstance(item, str) and item.strip():
            styles.append(item.strip().lower())
    return styles


def sanitize_styles(value) -> list[str]:
    return normalize_styles(value)[:MAX_STYLES]


def sanitize_links(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    links = []
    for raw in value:
        row = raw if isinstance(raw, dict) else {}
        url = row.get("url").strip() if isinstance(row.get("url"), str) else ""
        if not url:
            continue
        label = row.get("label")
        kind = row.get("type")
        links.append({
            "label": label.strip() if isinstance(label, str) and label.strip() else "Link",
            "url": url,
            "type": kind.strip() if isinstance(kind, str) and kind.strip() else "link",
        })
    return links


def clean_optional(value: str | None) -> str | None:
    """Trim; empty → None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


# ─── Field validation ────────────────────────────────────────────

def check_cover(cover_url: str | None) -> dict | None:
    if not cover_url:
        return None
    if COVER_PATH_MARKER not in cover_url.lower():
        return _error("invalid_cover_url")
    if not _COVER_FORMAT.search(cover_url):
        return _error("invalid_cover_format")
    return None


def check_event_window(starts_at: datetime | None, ends_at: datetime | None) -> dict | None:
    if starts_at is None or ends_at is None or as_utc(ends_at) <= as_utc(starts_at):
        return _error("invalid_event_window")
    return None


def check_capacity(capacity: int | None) -> dict | None:
    if capacity is not None and not MIN_CAPACITY <= capacity <= MAX_CAPACITY:
        return _error("invalid_capacity")
    return None


def check_visibility(visibility: str) -> dict | None:
    if visibility not in (EventVisibility.PUBLIC.value, EventVisibility.PRIVATE.value):
        return _error("invalid_visibility")
    return None


def check_status(status: str, allowed: tuple[str, ...]) -> dict | None:
    if status not in allowed:
        return _error("invalid_status")
    return None


def check_style_count(styles: list[str]) -> dict | None:
    if len(styles) > MAX_STYLES:
        return _error("too_many_styles")
    return None


def validate_event_fields(
    title: str | None,
    city: str | None,
    country: str | None,
    starts_at: datetime | None,
    ends_at: datetime | None,
    visibility: str,
    status: str,
    capacity: int | None,
    cover_url: str | None,
    styles: list[str],
    allowed_statuses: tuple[str, ...] = CREATE_STATUSES,
) -> dict | None:
    """Chain every field rule — first error wins."""
    if not (title or "").strip():
        return _error("title_required")
    if not (city or "").strip() or not (country or "").strip():
        return _error("location_required")
    return (
        check_event_window(starts_at, ends_at)
        or check_visibility(visibility)
        or check_status(status, allowed_statuses)
        or check_capacity(capacity)
        or check_cover(cover_url)
        or check_style_count(styles)
    )


def validate_event_update(
    visibility: str,
    status: str,
    cover_url: str | None,
    starts_at: datetime | None,
    ends_at: datetime | None,
    capacity: int | None,
    styles: list[str],
) -> dict | None:
    """Edit order differs from create: the window is checked only when sent."""
    window_error = None
    if starts_at is not None or ends_at is not None:
        window_error = check_event_window(starts_at, ends_at)
    return (
        check_visibility(visibility)
        or check_status(status, UPDATE_STATUSES)
        or check_cover(cover_url)
        or window_error
        or check_capacity(capacity)
        or check_style_count(styles)
    )


def active_event_limit(
    is_admin: bool, is_verified_organizer: bool,
    admin_limit: int, organizer_limit: int, default_limit: int,
) -> int:
    if is_admin:
        return admin_limit
    if is_verified_organizer:
        return organizer_limit
    return default_limit


def check_active_limit(active_count: int, limit: int) -> dict | None:
    if active_count >= limit:
        return _error("active_event_limit_reached")
    return None


def check_edit_rate(edits_last_day: int) -> dict | None:
    if edits_last_day >= MAX_EDITS_PER_DAY:
        return _error("edit_rate_limit_daily")
    return None


def check_event_host(event, me: UUID) -> dict | None:
    if event is None:
        return _error("event_not_found")
    if event.host_user_id != me:
        return _error("not_authorized")
    return None


def cover_status_for(cover_url: str | None) -> str:
    return "approved" if not cover_url else "pending"


# ─── Joining ─────────────────────────────────────────────────────

def check_join_guard(
    email_confirmed_at: datetime | None,
    account_created_at: datetime | None,
    joins_last_day: int,
    now: datetime | None = None,
) -> dict | None:
    """Unverified accounts cannot join; brand-new accounts join sparingly."""
    if email_confirmed_at is None:
        return _error("email_verification_required_for_join")
    is_new = within_window(account_created_at, NEW_ACCOUNT_WINDOW, now)
    if is_new and joins_last_day >= NEW_ACCOUNT_JOIN_LIMIT:
        return _error("new_account_join_limit_reached")
    return None


def _check_open(event) -> dict | None:
    if event is None:
        return _error("event_not_found")
    if event.hidden_by_admin:
        return _error("event_hidden")
    return None


def check_public_join(event) -> dict | None:
    return (
        _check_open(event)
        or (_error("private_event_requires_request")
            if event.visibility == EventVisibility.PRIVATE else None)
        or (_error("event_not_open")
            if event.status != EventStatus.PUBLISHED else None)
    )


def has_capacity(capacity: int | None, occupied: int) -> bool:
    return capacity is None or occupied < capacity


def decide_join_status(
    event, me: UUID, existing_status: str | None, occupied: int,
) -> str:
    """host for the host; keep an active status; else going or waitlist."""
    if event.host_user_id == me:
        return MemberStatus.HOST.value
    if existing_status in ACTIVE_MEMBER_STATUSES:
        return existing_status
    if has_capacity(event.capacity, occupied):
        return MemberStatus.GOING.value
    return MemberStatus.WAITLIST.value


def check_access_request(event, me: UUID, member_status: str | None) -> dict | None:
    return (
        _check_open(event)
        or (_error("event_not_open")
            if event.status != EventStatus.PUBLISHED else None)
        or (_error("event_is_public")
            if event.visibility == EventVisibility.PUBLIC else None)
        or (_error("host_cannot_request_own_event")
            if event.host_user_id == me else None)
        or (_error("already_joined_or_waitlisted")
            if member_status in ACTIVE_MEMBER_STATUSES else None)
    )


def check_leave(event, me: UUID, member_status: str | None) -> dict | None:
    if event is None:
        return _error("event_not_found")
    if event.host_user_id == me:
        return _error("host_cannot_leave_own_event")
    if member_status not in (MemberStatus.GOING.value, MemberStatus.WAITLIST.value):
        return _error("membership_not_found")
    return None


def check_request_response(action: str, request, event, me: UUID) -> dict | None:
    """Host answering a private-event access request."""
    if action not in RESPOND_ACTIONS:
        return _error("invalid_action")
    if request is None:
        return _error("request_not_found")
    if event is None:
        return _error("event_not_found")
    if event.host_user_id != me:
        return _error("not_authorized")
    if request.status != RequestStatus.PENDING:
        return _error("request_not_pending")
    if event.hidden_by_admin:
        return _error("event_hidden")
    if event.status != EventStatus.PUBLISHED:
        return _error("event_not_open")
    return None


# ─── Feedback ────────────────────────────────────────────────────

def can_submit_feedback(
    event, member_status: str | None, now: datetime | None = None,
) -> bool:
    if event is None or event.hidden_by_admin:
        return False
    ended = as_utc(event.ends_at)
    if ended is None or ended > (now or utc_now()):
        return False
    return member_status in ACTIVE_MEMBER_STATUSES


def validate_feedback(
    quality: int,
    visibility: str,
    allowed: bool,
    note: str | None,
    existing_created_at: datetime | None,
    now: datetime | None = None,
) -> dict | None:
    if not 1 <= quality <= 5:
        return _error("invalid_quality")
    if visibility not in ("private", "public"):
        return _error("invalid_visibility")
    if not allowed:
        return _error("event_feedback_not_allowed")
    if note and len(note) > FEEDBACK_NOTE_MAX:
        return _error("feedback_note_too_long")
    if existing_created_at is not None and not within_window(
        existing_created_at, FEEDBACK_LOCK_WINDOW, now,
    ):
        return _error("feedback_locked_after_15_days")
    return None


def summarize_feedback(rows: list) -> dict:
    """Aggregate visible feedback rows (quality, happened_as_described)."""
    total = len(rows)
    avg = round(sum(r.quality for r in rows) / total, 2) if total else None
    return {
        "total_count": total,
        "avg_quality": avg,
        "happened_yes": sum(1 for r in rows if r.happened_as_described),
        "happened_no": sum(1 for r in rows if not r.happened_as_described),
    }


def is_feedback_visible(row, viewer: UUID, host_id: UUID, viewer_is_admin: bool) -> bool:
    return (
        viewer_is_admin
        or row.visibility == "public"
        or row.author_id == viewer
        or viewer == host_id
    )


# ─── Reports ─────────────────────────────────────────────────────

def check_event_report(event, me: UUID, reason: str | None) -> dict | None:
    if not (reason or "").strip():
        return _error("report_reason_required")
    if event is None:
        return _error("event_not_found")
    if event.host_user_id == me:
        return _error("cannot_report_own_event")
    return None
