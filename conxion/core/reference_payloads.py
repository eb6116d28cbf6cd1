"""Reference Payloads — pure builders for writing references into drifted tables.

Invariants:
    - build_compat_payload fills EVERY synonym column that exists when the
      column set is known; otherwise it uses the modern column set
    - A payload always carries exactly one body value under some synonym, or
      building fails with reference_text_column_missing
    - A sync reference without a sync value fails with sync_reference_not_allowed
    - apply_missing_column_swap mutates the payload in place and reports whether
      it changed anything; each swap moves a value to a sibling synonym or drops
      an optional column

Design Decisions:
    - Synonym tables are data, not branches: the swap rules read top-down in the
      order they are tried, so the retry loop stays a flat loop
    - Rating candidates cover every encoding seen in the wild (word, upper-case
      word, 5-point, 3-point, signed) because the CHECK constraint varies per table
"""

from dataclasses import dataclass
from uuid import UUID

from conxion.core.domain_types import EntityType, Sentiment

CONNECTION_COLUMNS = ("connection_id", "connection_request_id")
AUTHOR_COLUMNS = ("author_id", "from_user_id", "source_id")
RECIPIENT_COLUMNS = ("recipient_id", "to_user_id", "target_id")
BODY_COLUMNS = ("body", "content", "feedback", "comment", "reference_text")
REPLY_COLUMNS = ("reply_text", "reply", "response_text", "reply_body")
REPLIER_COLUMNS = ("replied_by", "responder_id")
REPLIED_AT_COLUMNS = ("replied_at", "reply_at")


@dataclass(frozen=True)
class ReferenceParams:
    """Everything a compat writer needs to express one reference."""
    me_id: UUID
    connection_id: UUID
    recipient_id: UUID
    sentiment: str
    body: str
    entity_type: str
    entity_id: UUID | None
    sync_id: UUID | None = None

    @property
    def clean_body(self) -> str:
        return self.body.strip()

    @property
    def sync_value(self) -> UUID | None:
        if self.entity_type == EntityType.SYNC:
            return self.sync_id or self.entity_id
        return self.sync_id


def sentiment_to_rating(sentiment: str) -> int:
    if sentiment == Sentiment.POSITIVE:
        return 5
    if sentiment == Sentiment.NEUTRAL:
        return 3
    return 1


def rating_candidates(sentiment: str) -> list[str | int]:
    key = sentiment.strip().lower()
    if key == Sentiment.POSITIVE:
        return ["positive", "POSITIVE", 5, "5", 3, "3", 1, "1"]
    if key == Sentiment.NEUTRAL:
        return ["neutral", "NEUTRAL", 3, "3", 2, "2", 0, "0", 1, "1"]
    return ["negative", "NEGATIVE", 1, "1", 0, "0", -1, "-1", 2, "2", 3, "3"]


def apply_rating_candidate(payload: dict, sentiment: str, candidate: str | int) -> None:
    payload["rating"] = candidate
    word = candidate.lower() if isinstance(candidate, str) else ""
    if word in {s.value for s in Sentiment}:
        payload["sentiment"] = word
    else:
        payload["sentiment"] = sentiment


def next_rating_candidate(
    payload: dict, sentiment: str, candidates: list[str | int], index: int,
) -> int | None:
    """Apply the next candidate that differs from the current rating.

    Returns the advanced index, or None when candidates are exhausted.
    """
    while index < len(candidates):
        candidate = candidates[index]
        index += 1
        if payload.get("rating") == candidate and type(payload.get("rating")) is type(candidate):
            continue
        apply_rating_candidate(payload, sentiment, candidate)
        return index
    return None


def has_body(payload: dict) -> bool:
    return any(column in payload for column in BODY_COLUMNS)


def build_compat_payload(
    columns: frozenset[str] | set[str] | None, params: ReferenceParams,
) -> tuple[dict | None, dict | None]:
    """Return (payload, None) or (None, error)."""
    sync_value = params.sync_value
    if params.entity_type == EntityType.SYNC and not sync_value:
        return None, {"error_code": "sync_reference_not_allowed"}

    context = params.entity_type or EntityType.CONNECTION.value
    payload: dict = {}
    if columns:
        for column in CONNECTION_COLUMNS:
            if column in columns:
                payload[column] = params.connection_id
        for column in AUTHOR_COLUMNS:
            if column in columns:
                payload[column] = params.me_id
        for column in RECIPIENT_COLUMNS:
            if column in columns:
                payload[column] = params.recipient_id
        for column in BODY_COLUMNS:
            if column in columns:
                payload[column] = params.clean_body
        if "context" in columns:
            payload["context"] = context
        if "entity_type" in columns:
            payload["entity_type"] = params.entity_type
        if "entity_id" in columns:
            payload["entity_id"] = params.entity_id
        if "sentiment" in columns:
            payload["sentiment"] = params.sentiment
        if "rating" in columns:
            payload["rating"] = sentiment_to_rating(params.sentiment)
        if "sync_id" in columns and sync_value:
            payload["sync_id"] = sync_value
    else:
        payload = {
            "connection_id": params.connection_id,
            "author_id": params.me_id,
            "recipient_id": params.recipient_id,
            "context": context,
            "sentiment": params.sentiment,
            "body": params.clean_body,
        }
        if sync_value:
            payload["sync_id"] = sync_value

    if not has_body(payload):
        return None, {"error_code": "reference_text_column_missing"}
    return payload, None


# (missing column, column that must be present, replacement column | None)
# A None replacement drops the present column outright.
_SWAP_RULES: tuple[tuple[str, str, str | None], ...] = (
    ("body", "body", "content"),
    ("feedback", "body", "feedback"),
    ("feedback", "content", "feedback"),
    ("feedback", "comment", "feedback"),
    ("feedback", "reference_text", "feedback"),
    ("content", "content", "body"),
    ("body", "feedback", "body"),
    ("content", "feedback", "content"),
    ("author_id", "author_id", "from_user_id"),
    ("from_user_id", "from_user_id", "author_id"),
    ("source_id", "source_id", "author_id"),
    ("author_id", "source_id", "from_user_id"),
    ("from_user_id", "source_id", "author_id"),
    ("recipient_id", "recipient_id", "to_user_id"),
    ("to_user_id", "to_user_id", "recipient_id"),
    ("target_id", "target_id", "recipient_id"),
    ("recipient_id", "target_id", "to_user_id"),
    ("to_user_id", "target_id", "recipient_id"),
    ("connection_id", "connection_id", "connection_request_id"),
    ("connection_request_id", "connection_request_id", "connection_id"),
    ("sentiment", "sentiment", "rating"),
    ("rating", "rating", "sentiment"),
    ("context", "context", None),
    ("entity_type", "entity_type", None),
    ("entity_id", "entity_id", None),
    ("sync_id", "sync_id", None),
)


def _value_for_synonym(column: str, params: ReferenceParams):
    if column in BODY_COLUMNS:
        return params.clean_body
    if column in AUTHOR_COLUMNS:
        return params.me_id
    if column in RECIPIENT_COLUMNS:
        return params.recipient_id
    if column in CONNECTION_COLUMNS:
        return params.connection_id
    if column == "rating":
        return sentiment_to_rating(params.sentiment)
    if column == "sentiment":
        return params.sentiment
    return None


def apply_missing_column_swap(
    payload: dict, missing_column: str, params: ReferenceParams,
) -> bool:
    key = missing_column.strip().lower()
    for missing, present, replacement in _SWAP_RULES:
        if key != missing or present not in payload:
            continue
        del payload[present]
        if replacement is not None:
            payload[replacement] = _value_for_synonym(replacement, params)
        return True
    return False


_MISSING = object()


def fallback_value_for_column(column: str, params: ReferenceParams):
    """Value for a column a NOT NULL error demanded; _MISSING when unknown."""
    key = column.strip().lower()
    if key in CONNECTION_COLUMNS or key in AUTHOR_COLUMNS \
            or key in RECIPIENT_COLUMNS or key in BODY_COLUMNS:
        return _value_for_synonym(key, params)
    if key in ("context", "entity_type"):
        return params.entity_type or EntityType.CONNECTION.value
    if key == "entity_id":
        return params.entity_id
    if key == "sentiment":
        return params.sentiment
    if key == "rating":
        return sentiment_to_rating(params.sentiment)
    if key == "sync_id":
        return params.sync_value
    return _MISSING


def is_missing(value) -> bool:
    return value is _MISSING
