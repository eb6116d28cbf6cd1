"""Trip Rule Enforcement — active-trip limit, join requests, trip thread access."""

from uuid import UUID

from conxion.core.domain_types import RequestStatus

MAX_ACTIVE_TRIPS = 5
TRIP_ACTIVE_STATUS = "active"
TRIP_RESPONSE_ACTIONS = frozenset({"accept", "decline"})


def _error(code: str, message: str | None = None) -> dict:
    error = {"status": "error", "error_code": code}
    if message:
        error["message"] = message
    return error


def check_active_trip_limit(active_count: int) -> dict | None:
    if active_count >= MAX_ACTIVE_TRIPS:
        return _error(
            "active_trip_limit_reached",
            f"You can only have up to {MAX_ACTIVE_TRIPS} active trips.",
        )
    return None


def check_trip_request(trip, me: UUID) -> dict | None:
    if trip is None:
        return _error("trip_not_found")
    if trip.user_id == me:
        return _error("cannot_request_own_trip")
    # Rows written before status existed count as active
    if (trip.status or TRIP_ACTIVE_STATUS) != TRIP_ACTIVE_STATUS:
        return _error("trip_not_active")
    return None


def check_trip_response(action: str, request, trip, me: UUID) -> dict | None:
    if action not in TRIP_RESPONSE_ACTIONS:
        return _error("invalid_action")
    if request is None or trip is None:
        return _error("trip_request_not_found")
    if trip.user_id != me:
        return _error("not_authorized")
    if request.status != RequestStatus.PENDING:
        return _error("trip_request_not_pending")
    return None


def check_trip_cancel(request, me: UUID) -> dict | None:
    if request is None:
        return _error("trip_request_not_found")
    if request.requester_id != me:
        return _error("not_authorized")
    if request.status != RequestStatus.PENDING:
        return _error("trip_request_not_pending")
    return None


def can_access_trip_thread(trip, me: UUID, accepted_requester_ids: set) -> bool:
    return trip.user_id == me or me in accepted_requester_ids


def thread_participants(
    owner_id: UUID,
    me: UUID,
    requester_id: UUID | None,
    accepted_requester_ids: list,
) -> dict[UUID, str]:
    """user_id → role, owner first; duplicates collapse."""
    members = {owner_id: "owner"}
    for user_id in [me, requester_id, *accepted_requester_ids]:
        if user_id is not None and user_id not in members:
            members[user_id] = "member"
    return members
