"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every id is a UUID; every timestamp is timezone-aware

Design Decisions:
    - One file per entity for locality; Thread and ThreadParticipant share a file
      because a participant never exists without its thread
    - All models imported here so Base.metadata is complete before create_all
      or Alembic autogenerate runs
"""

from conxion.models.profile import Profile  # noqa: F401
from conxion.models.admin import Admin  # noqa: F401
from conxion.models.connection import Connection  # noqa: F401
from conxion.models.connection_sync import ConnectionSync  # noqa: F401
from conxion.models.legacy_sync import LegacySync  # noqa: F401
from conxion.models.reference import Reference  # noqa: F401
from conxion.models.notification import Notification  # noqa: F401
from conxion.models.event import Event  # noqa: F401
from conxion.models.event_member import EventMember  # noqa: F401
from conxion.models.event_request import EventRequest  # noqa: F401
from conxion.models.event_feedback import EventFeedback  # noqa: F401
from conxion.models.event_report import EventReport  # noqa: F401
from conxion.models.event_edit_log import EventEditLog  # noqa: F401
from conxion.models.report import Report  # noqa: F401
from conxion.models.moderation_log import ModerationLog  # noqa: F401
from conxion.models.trip import Trip  # noqa: F401
from conxion.models.trip_request import TripRequest  # noqa: F401
from conxion.models.thread import Thread, ThreadParticipant  # noqa: F401
from conxion.models.thread_message import ThreadMessage  # noqa: F401
from conxion.models.message_limit import MessageLimit  # noqa: F401
