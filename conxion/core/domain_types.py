"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, ConnectionId, SyncId, ReferenceId, EventId wrap UUIDs
    - All valid states encoded as Enums — no raw string matching in rules
    - REFERENCE_WINDOW is the single source of the 15-day mutation/eligibility window

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: compare equal to the plain strings stored in the DB and
      serialize to JSON without custom encoders
"""

from datetime import timedelta
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
ConnectionId = NewType("ConnectionId", UUID)
SyncId = NewType("SyncId", UUID)
ReferenceId = NewType("ReferenceId", UUID)
EventId = NewType("EventId", UUID)
TripId = NewType("TripId", UUID)


# ─── Windows & Limits ────────────────────────────────────────────

REFERENCE_WINDOW = timedelta(days=15)
FEEDBACK_LOCK_WINDOW = timedelta(days=15)
RE_REQUEST_WINDOW = timedelta(days=30)
NEW_ACCOUNT_WINDOW = timedelta(hours=24)

REFERENCE_BODY_MIN = 8
REFERENCE_BODY_MAX = 1000
REPLY_MIN = 2
REPLY_MAX = 400
MAX_REFERENCE_EDITS = 1


# ─── Enums ───────────────────────────────────────────────────────

class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    BLOCKED = "blocked"


class ConnectionState(str, Enum):
    """Derived relationship between the viewer and another user."""
    BLOCKED = "blocked"
    ACCEPTED = "accepted"
    INCOMING_PENDING = "incoming_pending"
    OUTGOING_PENDING = "outgoing_pending"
    NONE = "none"


class SyncStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SyncType(str, Enum):
    TRAINING = "training"
    SOCIAL_DANCING = "social_dancing"
    WORKSHOP = "workshop"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class EntityType(str, Enum):
    """What a reference attests to. Unknown values normalize to CONNECTION."""
    CONNECTION = "connection"
    SYNC = "sync"
    TRIP = "trip"
    EVENT = "event"


class ReferenceWriteMode(str, Enum):
    """Which writer produced/mutated the row — returned to clients as `mode`."""
    V2 = "v2"
    LEGACY = "legacy"
    COMPAT_INSERT = "compat_insert"
    V2_SYNC = "v2_sync"
    COMPAT_SYNC_INSERT = "compat_sync_insert"
    RPC_EDIT = "rpc_edit"
    COMPAT_EDIT = "compat_edit"
    RPC_REPLY = "rpc_reply"
    COMPAT_REPLY = "compat_reply"


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class EventVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class MemberStatus(str, Enum):
    HOST = "host"
    GOING = "going"
    WAITLIST = "waitlist"
    LEFT = "left"


class CoverStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestStatus(str, Enum):
    """Shared lifecycle for event requests and trip requests."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class ReportStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class NotificationKind(str, Enum):
    REFERENCE_RECEIVED = "reference_received"
    SYNC_PROPOSED = "sync_proposed"
    SYNC_ACCEPTED = "sync_accepted"
    SYNC_DECLINED = "sync_declined"
    SYNC_COMPLETED = "sync_completed"
    TRIP_REQUEST_RECEIVED = "trip_request_received"
    TRIP_REQUEST_ACCEPTED = "trip_request_accepted"
    TRIP_REQUEST_DECLINED = "trip_request_declined"


# Kinds a client may create directly via POST /notifications/create
CLIENT_NOTIFICATION_KINDS = frozenset({
    NotificationKind.TRIP_REQUEST_RECEIVED.value,
    NotificationKind.TRIP_REQUEST_ACCEPTED.value,
    NotificationKind.TRIP_REQUEST_DECLINED.value,
    NotificationKind.REFERENCE_RECEIVED.value,
})

ACTIVE_MEMBER_STATUSES = (
    MemberStatus.HOST.value, MemberStatus.GOING.value, MemberStatus.WAITLIST.value,
)
