"""Moderation Rule Enforcement — user reports and admin actions on reports and events.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Every admin action produces exactly one moderation log entry
    - Event log actions are prefixed: hide → event_hide
    - A cover action on an event without a cover is rejected

Design Decisions:
    - plan_event_moderation returns the column changes as a dict instead of
      mutating the ORM row: the shell applies them and snapshots before/after
"""

from datetime import datetime
from uuid import UUID

from conxion.core.domain_types import CoverStatus, EventStatus, ReportStatus

REPORT_ACTIONS = {
    "resolve": ReportStatus.RESOLVED.value,
    "dismiss": ReportStatus.DISMISSED.value,
    "reopen": ReportStatus.OPEN.value,
}

EVENT_ACTIONS = frozenset({
    "approve_cover", "reject_cover", "hide", "unhide", "cancel", "publish",
})

DEFAULT_REJECT_NOTE = "Cover rejected by moderation."
DEFAULT_HIDDEN_REASON = "Hidden by moderation"


def _error(code: str, http_status: int | None = None) -> dict:
    error = {"status": "error", "error_code": code}
    if http_status:
        error["http_status"] = http_status
    return error


# ─── User reports ────────────────────────────────────────────────

def check_report(
    me: UUID,
    reason: str | None,
    connection,
    connection_id: UUID | None,
    target_user_id: UUID | None,
) -> dict | None:
    """connection is the row for connection_id (None when absent or not found)."""
    if not (reason or "").strip():
        return _error("report_reason_required")
    if connection_id is None and target_user_id is None:
        return _error("missing_target")
    if connection_id is not None and (
        connection is None or me not in (connection.requester_id, connection.target_id)
    ):
        return _error("target_not_found_or_not_allowed")
    if resolve_report_target(me, connection, target_user_id) == me:
        return _error("cannot_report_self")
    return None


def resolve_report_target(me: UUID, connection, target_user_id: UUID | None) -> UUID | None:
    if target_user_id is not None:
        return target_user_id
    if connection is None:
        return None
    return connection.target_id if connection.requester_id == me else connection.requester_id


# ─── Admin actions ───────────────────────────────────────────────

def check_report_moderation(is_admin: bool, action: str, report) -> dict | None:
    if not is_admin:
        return _error("not_authorized", 403)
    if action not in REPORT_ACTIONS:
        return _error("invalid_action")
    if report is None:
        return _error("report_not_found", 404)
    return None


def check_event_moderation(is_admin: bool, action: str, event) -> dict | None:
    if not is_admin:
        return _error("not_authorized", 403)
    if action not in EVENT_ACTIONS:
        return _error("invalid_action")
    if event is None:
        return _error("event_not_found", 404)
    if action in ("approve_cover", "reject_cover") and not event.cover_url:
        return _error("event_cover_missing")
    return None


def plan_event_moderation(
    action: str,
    me: UUID,
    note: str | None,
    hidden_reason: str | None,
    now: datetime,
) -> dict:
    """Column → new value for one admin action."""
    note = (note or "").strip() or None
    if action == "approve_cover":
        return {
            "cover_status": CoverStatus.APPROVED.value,
            "cover_reviewed_by": me,
            "cover_reviewed_at": now,
            "cover_review_note": note,
        }
    if action == "reject_cover":
        return {
            "cover_status": CoverStatus.REJECTED.value,
            "cover_reviewed_by": me,
            "cover_reviewed_at": now,
            "cover_review_note": note or DEFAULT_REJECT_NOTE,
        }
    if action == "hide":
        return {
            "hidden_by_admin": True,
            "hidden_reason": (hidden_reason or "").strip() or note or DEFAULT_HIDDEN_REASON,
            "hidden_by": me,
            "hidden_at": now,
        }
    if action == "unhide":
        return {
            "hidden_by_admin": False,
            "hidden_reason": None,
            "hidden_by": None,
            "hidden_at": None,
        }
    if action == "cancel":
        return {"status": EventStatus.CANCELLED.value}
    return {"status": EventStatus.PUBLISHED.value}


def event_snapshot(event) -> dict:
    return {
        "status": event.status,
        "cover_status": event.cover_status,
        "hidden_by_admin": bool(event.hidden_by_admin),
        "title": event.title,
        "visibility": event.visibility,
    }


def event_log_metadata(event_id: UUID, before: dict, after: dict) -> dict:
    return {"event_id": str(event_id), "before": before, "after": after}
