"""Compat Table Gateway — reflected, savepoint-guarded access to drifted tables.

Invariants:
    - Column sets come from live reflection, cached per table for
      settings.reference_columns_cache_ttl_seconds
    - Every write runs inside a SAVEPOINT; a failed statement rolls back only
      itself and never poisons the request transaction
    - Unknown columns are rejected before hitting the driver, with the same
      message shape PostgreSQL uses, so callers classify one format
    - A UUID id is generated when the id column is not an integer

Design Decisions:
    - Reflection runs through AsyncSession.run_sync on the request connection:
      it sees the same schema the write will hit, inside the same transaction
    - UUID values bind through the reflected column type: native uuid columns
      take the UUID as-is, text columns get 32-char hex off PostgreSQL (how
      Uuid stores them there) and the canonical string on it
    - Any SQLAlchemyError from a statement surfaces as CompatWriteError, so
      best-effort callers only ever catch one exception type
"""

import logging
import time
from uuid import UUID, uuid4

from sqlalchemy import Integer, MetaData, Table, Uuid, insert, select, update
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.config import get_settings
from conxion.core.repository_protocols import CompatWriteError
from conxion.infrastructure.database import driver_message

logger = logging.getLogger(__name__)

_TABLE_CACHE: dict[str, tuple[float, Table | None]] = {}


def clear_column_cache() -> None:
    _TABLE_CACHE.clear()


def _missing_column(column: str, table: str) -> CompatWriteError:
    return CompatWriteError(
        f'column "{column}" of relation "{table}" does not exist',
    )


class SqlCompatTableGateway:
    """CompatTableGateway over an AsyncSession."""

    def __init__(self, db: AsyncSession, cache_ttl: float | None = None):
        self.db = db
        self.cache_ttl = (
            cache_ttl if cache_ttl is not None
            else get_settings().reference_columns_cache_ttl_seconds
        )

    # ─── Reflection ──────────────────────────────────────────────

    async def _table(self, name: str) -> Table | None:
        cached = _TABLE_CACHE.get(name)
        now = time.monotonic()
        if cached and cached[0] > now:
            return cached[1]

        def reflect(sync_session):
            try:
                return Table(name, MetaData(), autoload_with=sync_session.connection())
            except NoSuchTableError:
                return None

        try:
            table = await self.db.run_sync(reflect)
        except SQLAlchemyError as e:
            raise CompatWriteError(driver_message(e)) from e
        if table is None:
            logger.warning(f"Compat reflection found no table {name!r}")
        _TABLE_CACHE[name] = (now + self.cache_ttl, table)
        return table

    async def columns(self, table: str) -> frozenset[str] | None:
        reflected = await self._table(table)
        if reflected is None:
            return None
        return frozenset(reflected.c.keys())

    async def _require(self, name: str) -> Table:
        table = await self._table(name)
        if table is None:
            raise CompatWriteError(f'relation "{name}" does not exist')
        return table

    # ─── Value shaping ───────────────────────────────────────────

    def _bind_value(self, column, value):
        if not isinstance(value, UUID) or isinstance(column.type, Uuid):
            return value
        if self.db.get_bind().dialect.name == "postgresql":
            return str(value)
        return value.hex

    def _bind_all(self, table: Table, values: dict) -> dict:
        for column in values:
            if column not in table.c:
                raise _missing_column(column, table.name)
        return {k: self._bind_value(table.c[k], v) for k, v in values.items()}

    def _conditions(self, table: Table, where: dict) -> list:
        bound = self._bind_all(table, where)
        return [table.c[k] == v for k, v in bound.items()]

    # ─── Operations ──────────────────────────────────────────────

    async def insert(self, table: str, payload: dict) -> UUID | str:
        reflected = await self._require(table)
        values = self._bind_all(reflected, payload)
        has_id = "id" in reflected.c
        if has_id and "id" not in values and not isinstance(
            reflected.c.id.type, Integer,
        ):
            values["id"] = self._bind_value(reflected.c.id, uuid4())

        stmt = insert(reflected).values(**values)
        if has_id:
            stmt = stmt.returning(reflected.c.id)
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise CompatWriteError(driver_message(e)) from e
        return result.scalar_one() if has_id else ""

    async def update(self, table: str, values: dict, where: dict) -> UUID | str | None:
        reflected = await self._require(table)
        bound = self._bind_all(reflected, values)
        stmt = update(reflected).where(*self._conditions(reflected, where)).values(**bound)
        has_id = "id" in reflected.c
        if has_id:
            stmt = stmt.returning(reflected.c.id)
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(stmt)
                rows = result.all() if has_id else None
        except SQLAlchemyError as e:
            raise CompatWriteError(driver_message(e)) from e
        if has_id:
            return rows[0][0] if rows else None
        return where.get("id", "") if result.rowcount else None

    async def select(
        self,
        table: str,
        where: dict,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        reflected = await self._require(table)
        stmt = select(reflected).where(*self._conditions(reflected, where))
        if order_by:
            if order_by not in reflected.c:
                raise _missing_column(order_by, table)
            stmt = stmt.order_by(reflected.c[order_by].desc())
        if limit:
            stmt = stmt.limit(limit)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise CompatWriteError(driver_message(e)) from e
        return [dict(row._mapping) for row in result]
