"""Reference Eligibility — sync-reference windows, duplicate scans, legacy sync ids.

Invariants:
    - Reads go through the compat gateway: the references and syncs tables may
      carry historical column names, and a missing table reads as "no rows"
    - A sync reference needs a completed sync inside the 15-day window whose
      members match the pair, in either direction
    - ensure_legacy_sync_row never raises on write failure: it falls back to an
      existing row for the connection, then to the candidate id itself

Design Decisions:
    - Id comparison through text_value(): SQLite reads ids back as 32-char hex,
      PostgreSQL as UUID objects, legacy tables as text
"""

import logging
from datetime import datetime
from uuid import UUID

from conxion.core.domain_types import EntityType, REFERENCE_WINDOW, SyncStatus
from conxion.core.reference_payloads import (
    AUTHOR_COLUMNS, CONNECTION_COLUMNS, RECIPIENT_COLUMNS,
)
from conxion.core.repository_protocols import CompatTableGateway, CompatWriteError
from conxion.core.schema_compat import (
    coerce_uuid, is_compat_write_error, is_duplicate_error, is_foreign_key_error,
    is_missing_schema_error, pick_first_string, text_value,
)
from conxion.core.time_windows import as_utc, utc_now, within_window

logger = logging.getLogger(__name__)

SCAN_LIMIT = 1000
LEGACY_SCAN_LIMIT = 50
COMPAT_SYNC_NOTE = "Compat sync for reference"


def _error(code: str) -> dict:
    return {"status": "error", "error_code": code}


class ReferenceEligibility:
    """Sync eligibility and legacy-sync bookkeeping for the reference flow."""

    def __init__(self, gateway: CompatTableGateway):
        self.gateway = gateway

    async def _rows(
        self, table: str, where: dict,
        order_by: str | None = None, limit: int | None = None,
    ) -> list[dict] | None:
        """Rows, or None when the query hit a missing table/column."""
        try:
            return await self.gateway.select(table, where, order_by=order_by, limit=limit)
        except CompatWriteError as e:
            if is_missing_schema_error(e.message):
                return None
            raise

    async def _first(self, table: str, where: dict, order_by: str | None = None) -> dict | None:
        rows = await self._rows(table, where, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def sync_connection_id(self, sync_id: UUID) -> UUID | None:
        """Connection of a modern sync, when the sync exists."""
        row = await self._first("connection_syncs", {"id": sync_id})
        return coerce_uuid(row.get("connection_id")) if row else None

    # ─── Eligibility ─────────────────────────────────────────────

    async def ensure_sync_reference_eligibility(
        self,
        connection_id: UUID,
        me: UUID,
        recipient_id: UUID,
        sync_id: UUID | None,
        now: datetime | None = None,
    ) -> dict | None:
        if not sync_id:
            return _error("sync_reference_not_allowed")

        sync = await self._first("connection_syncs", {"id": sync_id})
        if sync is not None:
            if not await self._modern_sync_ok(sync, connection_id, me, recipient_id, now):
                return _error("sync_reference_not_allowed")
        else:
            legacy = await self._first(
                "syncs", {"id": sync_id, "connection_id": connection_id},
            )
            if legacy is None or not within_window(
                legacy.get("completed_at"), REFERENCE_WINDOW, now,
            ):
                return _error("sync_reference_not_allowed")

        if await self.has_duplicate_sync_reference(me, recipient_id, connection_id, sync_id):
            return _error("duplicate_reference_not_allowed")
        return None

    async def _modern_sync_ok(
        self, sync: dict, connection_id: UUID, me: UUID, recipient_id: UUID,
        now: datetime | None,
    ) -> bool:
        requester = text_value(sync.get("requester_id"))
        recipient = text_value(sync.get("recipient_id"))
        pair = {text_value(me), text_value(recipient_id)}
        members_ok = not (requester and recipient) or (
            {requester, recipient} == pair and requester != recipient
        )
        status = sync.get("status") or SyncStatus.COMPLETED.value

        completed_ok = within_window(sync.get("completed_at"), REFERENCE_WINDOW, now)
        if not completed_ok:
            legacy = await self._first(
                "syncs", {"id": sync.get("id"), "connection_id": connection_id},
            )
            completed_ok = legacy is not None and within_window(
                legacy.get("completed_at"), REFERENCE_WINDOW, now,
            )

        return (
            text_value(sync.get("connection_id")) == text_value(connection_id)
            and status == SyncStatus.COMPLETED
            and completed_ok
            and members_ok
        )

    async def has_duplicate_sync_reference(
        self, author_id: UUID, recipient_id: UUID, connection_id: UUID, sync_id: UUID,
    ) -> bool:
        """Scan by connection; when that finds nothing, by author, then by recipient.

        A failing column ends its own phase; the next phase still runs.
        """
        rows: dict[str, dict] = {}

        def collect(found: list[dict]) -> None:
            for row in found:
                key = text_value(row.get("id")) or f"{len(rows)}:{sorted(row.items(), key=str)}"
                rows[key] = row

        for scans in (
            [(column, connection_id) for column in CONNECTION_COLUMNS],
            [(column, author_id) for column in AUTHOR_COLUMNS],
            [(column, recipient_id) for column in RECIPIENT_COLUMNS],
        ):
            if rows:
                break
            for column, value in scans:
                try:
                    found = await self._rows("references", {column: value}, limit=SCAN_LIMIT)
                except CompatWriteError as e:
                    logger.warning(f"Reference scan by {column} stopped: {e.message}")
                    break
                if found is not None:
                    collect(found)
                    break

        author = text_value(author_id)
        recipient = text_value(recipient_id)
        connection = text_value(connection_id)
        wanted_sync = text_value(sync_id)
        for row in rows.values():
            row_author = pick_first_string(row, AUTHOR_COLUMNS)
            row_recipient = pick_first_string(row, RECIPIENT_COLUMNS)
            row_connection = pick_first_string(row, CONNECTION_COLUMNS)
            if row_author and row_author != author:
                continue
            if row_recipient and row_recipient != recipient:
                continue
            if row_connection and row_connection != connection:
                continue

            entity_type = pick_first_string(row, ("entity_type", "context")).lower()
            entity_id = pick_first_string(row, ("entity_id", "sync_id"))
            row_sync = pick_first_string(row, ("sync_id", "entity_id"))
            same_sync = wanted_sync in (entity_id, row_sync)
            if entity_type in (EntityType.SYNC.value, "") and same_sync:
                return True
            # Legacy rows that never stored sync/entity markers
            if row_connection == connection and row_recipient == recipient:
                return True
        return False

    # ─── Legacy sync ids ─────────────────────────────────────────

    async def resolve_legacy_sync_id(
        self, connection_id: UUID, entity_type: str, entity_id: UUID | None,
    ) -> str:
        """Best legacy `syncs` id for this reference; "" when there is none."""
        if entity_type == EntityType.SYNC and entity_id:
            by_id = await self._first("syncs", {"id": entity_id})
            if by_id and text_value(by_id.get("id")):
                return text_value(by_id["id"])

            modern = await self._first("connection_syncs", {"id": entity_id})
            if modern and modern.get("connection_id"):
                legacy_rows = await self._rows(
                    "syncs", {"connection_id": modern["connection_id"]},
                    order_by="completed_at", limit=LEGACY_SCAN_LIMIT,
                )
                if legacy_rows is None:
                    legacy_rows = await self._rows(
                        "syncs", {"connection_id": modern["connection_id"]},
                        limit=LEGACY_SCAN_LIMIT,
                    ) or []
                legacy_rows = [r for r in legacy_rows if text_value(r.get("id"))]
                if legacy_rows:
                    return text_value(_nearest(legacy_rows, modern.get("completed_at"))["id"])
            return text_value(entity_id)

        modern_rows = await self._rows(
            "connection_syncs",
            {"connection_id": connection_id, "status": SyncStatus.COMPLETED.value},
            order_by="completed_at", limit=LEGACY_SCAN_LIMIT,
        ) or []
        for row in modern_rows:
            if row.get("completed_at") is not None and text_value(row.get("id")):
                return text_value(row["id"])

        legacy = await self._first("syncs", {"connection_id": connection_id}, order_by="completed_at")
        if legacy and text_value(legacy.get("id")):
            return text_value(legacy["id"])
        return ""

    async def ensure_legacy_sync_row(
        self, sync_id: str, connection_id: UUID, me: UUID,
    ) -> str:
        """Make sure a legacy `syncs` row exists for a compat sync reference."""
        if not sync_id:
            return ""
        sync_key = coerce_uuid(sync_id) or sync_id

        try:
            existing = await self.gateway.select("syncs", {"id": sync_key}, limit=1)
        except CompatWriteError as e:
            if not is_missing_schema_error(e.message):
                return sync_id
            existing = []
        if existing and text_value(existing[0].get("id")):
            return text_value(existing[0]["id"])

        now = utc_now()
        base = {"connection_id": connection_id, "completed_by": me}
        payloads = [
            {"id": sync_key, **base, "completed_at": now, "note": COMPAT_SYNC_NOTE},
            {"id": sync_key, **base, "note": COMPAT_SYNC_NOTE},
            {"id": sync_key, **base},
            {**base, "completed_at": now, "note": COMPAT_SYNC_NOTE},
            {**base, "note": COMPAT_SYNC_NOTE},
            dict(base),
        ]
        for payload in payloads:
            try:
                inserted = await self.gateway.insert("syncs", payload)
                logger.info(
                    "Inserted compat legacy sync row",
                    extra={"mode": "compat_sync_insert"},
                )
                return text_value(inserted) or sync_id
            except CompatWriteError as e:
                message = e.message
            if is_duplicate_error(message):
                return await self._existing_for_member(connection_id, me) or sync_id
            if not is_compat_write_error(message) and not is_foreign_key_error(message):
                break

        return await self._existing_for_member(connection_id, me) or sync_id

    async def _existing_for_member(self, connection_id: UUID, me: UUID) -> str:
        row = await self._first("syncs", {"connection_id": connection_id, "completed_by": me})
        if row is None:
            row = await self._first("syncs", {"connection_id": connection_id})
        return text_value(row.get("id")) if row else ""


def _nearest(rows: list[dict], target) -> dict:
    """Row whose completed_at is closest to target; the first row otherwise."""
    target_ts = as_utc(target)
    if target_ts is None:
        return rows[0]
    best, best_delta = rows[0], None
    for row in rows:
        ts = as_utc(row.get("completed_at"))
        if ts is None:
            continue
        delta = abs((ts - target_ts).total_seconds())
        if best_delta is None or delta < best_delta:
            best, best_delta = row, delta
    return best
