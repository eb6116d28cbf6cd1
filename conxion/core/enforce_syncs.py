"""Sync Rule Enforcement — proposal and lifecycle transitions for in-person meetings.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return error dict on violation, None on success
    - Lifecycle: pending → accepted | declined | cancelled; accepted → completed
    - Only the recipient answers a proposal; either member may cancel or complete
"""

from uuid import UUID

from conxion.core.domain_types import ConnectionStatus, SyncStatus, SyncType

SYNC_ACTIONS = frozenset({"propose", "accept", "decline", "cancel", "complete"})

_ACTION_STATUS = {
    "accept": SyncStatus.ACCEPTED,
    "decline": SyncStatus.DECLINED,
    "cancel": SyncStatus.CANCELLED,
    "complete": SyncStatus.COMPLETED,
}


def _error(code: str, message: str, http_status: int = 400) -> dict:
    return {
        "status": "error", "error_code": code,
        "message": message, "http_status": http_status,
    }


def normalize_sync_type(value: object) -> str:
    if value in (SyncType.SOCIAL_DANCING.value, SyncType.WORKSHOP.value):
        return value
    return SyncType.TRAINING.value


def target_status(action: str) -> SyncStatus:
    return _ACTION_STATUS[action]


def action_label(action: str) -> str:
    """accept → accepted, cancel → cancelled, ..."""
    return _ACTION_STATUS[action].value


def check_propose(connection, me: UUID) -> dict | None:
    if connection is None:
        return _error("connection_not_found", "Connection not found.", 404)
    if connection.status != ConnectionStatus.ACCEPTED:
        return _error("connection_not_accepted", "Connection not accepted.")
    if me not in (connection.requester_id, connection.target_id):
        return _error("not_authorized", "Not authorized.", 403)
    return None


def check_transition(sync, me: UUID, action: str) -> dict | None:
    """accept / decline / cancel / complete on an existing proposal."""
    if sync is None:
        return _error("sync_not_found", "Sync not found.", 404)
    is_recipient = sync.recipient_id == me
    if sync.requester_id != me and not is_recipient:
        return _error("not_authorized", "Not authorized.", 403)
    if action in ("accept", "decline") and not is_recipient:
        return _error("only_recipient_can_respond", "Only recipient can respond.", 403)
    if action in ("accept", "decline", "cancel") and sync.status != SyncStatus.PENDING:
        return _error("sync_not_pending", "Sync is not pending.")
    if action == "complete" and sync.status != SyncStatus.ACCEPTED:
        return _error("sync_not_accepted", "Sync is not accepted.")
    return None


def check_completion(sync, me: UUID) -> dict | None:
    """Rule order of the dedicated completion endpoint (codes, not messages)."""
    if sync is None:
        return {"status": "error", "error_code": "sync_not_found"}
    if sync.status != SyncStatus.ACCEPTED:
        return {"status": "error", "error_code": "sync_not_accepted"}
    if me not in (sync.requester_id, sync.recipient_id):
        return {"status": "error", "error_code": "not_authorized"}
    return None


def check_legacy_completion(connection, me: UUID) -> dict | None:
    eligible = (
        connection is not None
        and connection.status == ConnectionStatus.ACCEPTED
        and connection.blocked_by is None
        and me in (connection.requester_id, connection.target_id)
    )
    if not eligible:
        return {"status": "error", "error_code": "connection_not_eligible_for_sync"}
    return None


def other_member(sync, me: UUID) -> UUID:
    return sync.recipient_id if sync.requester_id == me else sync.requester_id
