"""Notification Payloads — candidate column sets and swaps for the notifications table.

Invariants:
    - payload_candidates() is ordered richest → poorest; the writer tries each in turn
    - Swaps only ever rename or drop optional columns, never drop user_id/kind
    - Pure: no IO

Design Decisions:
    - Same retry shape as reference_payloads: one engine, different tables of rules
"""

from dataclasses import dataclass, field
from uuid import UUID

from conxion.core.reference_payloads import _MISSING


@dataclass(frozen=True)
class NotificationArgs:
    user_id: UUID
    kind: str
    title: str
    body: str | None = None
    link_url: str | None = None
    actor_id: UUID | None = None
    metadata: dict = field(default_factory=dict)


def payload_candidates(args: NotificationArgs) -> list[dict]:
    rich = {
        "user_id": args.user_id,
        "actor_id": args.actor_id,
        "kind": args.kind,
        "title": args.title,
        "body": args.body,
        "link_url": args.link_url,
        "metadata": args.metadata,
    }
    return [
        {k: v for k, v in rich.items() if v is not None},
        {
            k: v for k, v in rich.items()
            if k not in ("actor_id", "link_url") and v is not None
        },
        {
            k: v for k, v in rich.items()
            if k in ("user_id", "kind", "title", "metadata")
        },
        {
            "user_id": args.user_id,
            "kind": args.kind,
            "message": args.title,
            "data": args.metadata,
        },
    ]


# missing column → replacement column (None drops it)
_SWAPS: dict[str, str | None] = {
    "actor_id": None,
    "link_url": None,
    "body": "message",
    "title": "message",
    "kind": "type",
    "metadata": "data",
    "user_id": "recipient_id",
    "recipient_id": "user_id",
}


def apply_missing_column_swap(
    payload: dict, missing_column: str, args: NotificationArgs,
) -> bool:
    key = missing_column.strip().lower()
    if key not in _SWAPS or key not in payload:
        return False
    value = payload.pop(key)
    replacement = _SWAPS[key]
    if replacement is not None:
        payload[replacement] = value
    return True


def fallback_value_for_column(column: str, args: NotificationArgs):
    key = column.strip().lower()
    if key in ("user_id", "recipient_id", "to_user_id", "target_id"):
        return args.user_id
    if key in ("actor_id", "sender_id", "from_user_id", "source_id"):
        return args.actor_id
    if key in ("kind", "type", "event_type"):
        return args.kind
    if key in ("title", "message"):
        return args.title
    if key in ("body", "content", "text"):
        return args.body
    if key in ("link_url", "url"):
        return args.link_url
    if key in ("metadata", "data", "payload"):
        return args.metadata
    if key in ("is_read", "read"):
        return False
    return _MISSING
