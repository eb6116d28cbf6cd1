"""Reference Compat Writer — last-resort insert/edit/reply against a drifted references table.

Invariants:
    - insert makes at most MAX_ATTEMPTS attempts, adjusting exactly one thing per retry
    - Retry order per failure: duplicate → foreign key (sync) → non-compat stop →
      rating constraint → missing-column swap → NOT NULL fallback → stop
    - Rating-constraint failures are retried before the compat gate: a CHECK
      violation names no missing column, so it never passes that gate
    - Edit/reply re-check the author/recipient, window, and single-use rules from
      whatever synonym columns the row actually has

Design Decisions:
    - Results are (value, error) tuples rather than exceptions: every failure is
      an expected outcome the flow turns into one formatted message
"""

import logging
from datetime import datetime
from uuid import UUID

from conxion.core.domain_types import EntityType
from conxion.core.enforce_references import (
    check_body, check_reference_edit, check_reference_reply, check_reply_text,
    check_sentiment,
)
from conxion.core.reference_payloads import (
    AUTHOR_COLUMNS, BODY_COLUMNS, RECIPIENT_COLUMNS, REPLIED_AT_COLUMNS,
    REPLIER_COLUMNS, REPLY_COLUMNS, ReferenceParams, apply_missing_column_swap,
    build_compat_payload, fallback_value_for_column, is_missing,
    next_rating_candidate, rating_candidates, sentiment_to_rating,
)
from conxion.core.repository_protocols import CompatTableGateway, CompatWriteError
from conxion.core.schema_compat import (
    coerce_uuid, extract_column_name, is_compat_write_error, is_duplicate_error,
    is_foreign_key_error, is_missing_schema_error, is_rating_constraint_error,
    pick_first_number, pick_first_nullable_text, pick_first_value,
    pick_first_string,
)
from conxion.core.time_windows import utc_now

logger = logging.getLogger(__name__)

TABLE = "references"
MAX_ATTEMPTS = 8


class ReferenceCompatWriter:
    """Schema-agnostic reference writes through the compat gateway."""

    def __init__(self, gateway: CompatTableGateway):
        self.gateway = gateway

    # ─── Insert ──────────────────────────────────────────────────

    async def insert_reference(
        self, params: ReferenceParams, legacy_sync_id: str = "",
    ) -> tuple[UUID | str | None, str | None]:
        """Returns (reference_id, None) or (None, error message)."""
        columns = await self.gateway.columns(TABLE)
        payload, error = build_compat_payload(columns, params)
        if error:
            return None, error["error_code"]

        candidates = rating_candidates(params.sentiment)
        rating_index = 0
        last_message = "insert_failed"
        legacy_sync = coerce_uuid(legacy_sync_id) if legacy_sync_id else None

        for attempt in range(MAX_ATTEMPTS):
            try:
                return await self.gateway.insert(TABLE, payload), None
            except CompatWriteError as e:
                message = e.message or "insert_failed"
            last_message = message
            logger.info(
                f"Compat reference insert failed: {message}",
                extra={"attempt": attempt + 1, "mode": "compat_insert"},
            )

            if is_duplicate_error(message):
                return None, "duplicate_reference_not_allowed"

            if is_foreign_key_error(message) and params.entity_type == EntityType.SYNC:
                if "sync_id" in payload and legacy_sync and legacy_sync != payload["sync_id"]:
                    payload["sync_id"] = legacy_sync
                    continue
                if "sync_id" in payload:
                    del payload["sync_id"]
                    continue
                return None, "sync_reference_not_allowed"

            if is_rating_constraint_error(message) and "rating" in payload:
                advanced = next_rating_candidate(
                    payload, params.sentiment, candidates, rating_index,
                )
                if advanced is not None:
                    rating_index = advanced
                    continue

            if not is_compat_write_error(message):
                return None, message

            missing = extract_column_name(message)
            if not missing:
                break
            if apply_missing_column_swap(payload, missing, params):
                continue
            value = fallback_value_for_column(missing, params)
            if not is_missing(value) and missing not in payload:
                payload[missing] = value
                continue
            break

        logger.warning(f"Compat reference insert gave up: {last_message}")
        return None, last_message

    # ─── Edit / reply ────────────────────────────────────────────

    async def _load_row(self, reference_id: UUID) -> tuple[dict | None, str | None]:
        try:
            rows = await self.gateway.select(TABLE, {"id": reference_id}, limit=1)
        except CompatWriteError as e:
            return None, e.message
        if not rows:
            return None, "reference_not_found"
        return rows[0], None

    async def _has_column(self, row: dict, name: str) -> bool:
        if name in row:
            return True
        columns = await self.gateway.columns(TABLE)
        return bool(columns and name in columns)

    async def _guarded_update(
        self, reference_id: UUID, payload: dict, guard_columns: tuple[str, ...],
        me: UUID, not_allowed: str,
    ) -> tuple[UUID | str | None, dict | None]:
        last_error = not_allowed
        for guard in guard_columns:
            try:
                updated = await self.gateway.update(
                    TABLE, payload, {"id": reference_id, guard: me},
                )
            except CompatWriteError as e:
                last_error = e.message
                if is_missing_schema_error(last_error) or is_compat_write_error(last_error):
                    continue
                break
            if updated is None:
                break
            return updated, None
        return None, {"error_code": last_error, "http_status": 400}

    async def edit_reference(
        self, me: UUID, reference_id: UUID, sentiment: str, body: str,
        now: datetime | None = None,
    ) -> tuple[UUID | str | None, dict | None]:
        now = now or utc_now()
        field_error = check_sentiment(sentiment) or check_body(body)
        if field_error:
            return None, field_error
        row, message = await self._load_row(reference_id)
        if row is None:
            return None, {"error_code": message, "http_status": 400}

        edit_count = pick_first_number(row, ("edit_count", "editCount"))
        rule = check_reference_edit(
            pick_first_string(row, AUTHOR_COLUMNS), me,
            pick_first_value(row, ("created_at", "createdAt")),
            edit_count,
            pick_first_value(row, ("last_edited_at", "lastEditedAt")),
            now,
        )
        if rule:
            return None, rule

        clean = body.strip()
        payload: dict = {}
        for name in BODY_COLUMNS:
            if await self._has_column(row, name):
                payload[name] = clean
        if not any(name in payload for name in BODY_COLUMNS):
            payload["body"] = clean
        if await self._has_column(row, "sentiment"):
            payload["sentiment"] = sentiment
        if await self._has_column(row, "rating"):
            payload["rating"] = sentiment_to_rating(sentiment)
        if await self._has_column(row, "edit_count"):
            payload["edit_count"] = int(edit_count) + 1
        for name in ("last_edited_at", "updated_at"):
            if await self._has_column(row, name):
                payload[name] = now

        return await self._guarded_update(
            reference_id, payload, AUTHOR_COLUMNS, me, "reference_update_not_allowed",
        )

    async def reply_reference(
        self, me: UUID, reference_id: UUID, reply_text: str,
        now: datetime | None = None,
    ) -> tuple[UUID | str | None, dict | None]:
        now = now or utc_now()
        length_error = check_reply_text(reply_text)
        if length_error:
            return None, length_error
        row, message = await self._load_row(reference_id)
        if row is None:
            return None, {"error_code": message, "http_status": 400}

        rule = check_reference_reply(
            pick_first_string(row, RECIPIENT_COLUMNS), me,
            pick_first_value(row, ("created_at", "createdAt")),
            pick_first_nullable_text(row, REPLY_COLUMNS),
            now,
        )
        if rule:
            return None, rule

        clean = reply_text.strip()
        payload: dict = {}
        for name in REPLY_COLUMNS:
            if await self._has_column(row, name):
                payload[name] = clean
        if not any(name in payload for name in REPLY_COLUMNS):
            payload["reply_text"] = clean
        for name in REPLIER_COLUMNS:
            if await self._has_column(row, name):
                payload[name] = me
        for name in (*REPLIED_AT_COLUMNS, "updated_at"):
            if await self._has_column(row, name):
                payload[name] = now

        return await self._guarded_update(
            reference_id, payload, RECIPIENT_COLUMNS, me, "reference_reply_not_allowed",
        )
