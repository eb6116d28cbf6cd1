"""Database Sessions — one AsyncSession, and one transaction, per API request.

Invariants:
    - Routes commit explicitly; anything that escapes the request rolls back
      the whole transaction, savepoints included
    - Compat gateway writes nest inside the request transaction as SAVEPOINTs,
      so a drifted-table failure never reaches this layer
    - Unhandled SQLAlchemy errors leave the request as a 503 DatabaseError with
      the failed phase (commit, execute, query, unknown)

Design Decisions:
    - Pool sizing applies to PostgreSQL only; SQLite URLs (local runs, tests)
      keep the dialect's own pool
    - expire_on_commit=False: services hand ORM rows to the response after
      the commit that wrote them
    - driver_message() exposes the raw driver text: the schema-compat layer
      classifies failures by message, the same way on asyncpg and aiosqlite
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from conxion.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIErrors
_FAILURE_PHASES = (
    (IntegrityError, "commit", "Integrity constraint violated"),
    (OperationalError, "execute", "Connection or operational error"),
    (DBAPIError, "query", "Database driver error"),
    (SQLAlchemyError, "unknown", "Database operation failed"),
)


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


class DatabaseSessionManager:
    """Request-scoped sessions over a shared async engine."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url, **_engine_options(database_url, pool_size, max_overflow),
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; roll back and raise DatabaseError on SQLAlchemy failures."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            for exc_type, phase, message in _FAILURE_PHASES:
                if isinstance(e, exc_type):
                    break
            logger.error(
                f"Request transaction rolled back: {driver_message(e)}",
                extra={"error_code": "DATABASE_ERROR", "mode": phase},
            )
            raise DatabaseError(message, phase) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """True when a SELECT 1 round-trips; used by /api/v1/health/ready."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def driver_message(exc: BaseException) -> str:
    """Driver-level error text without SQLAlchemy's statement/params suffix."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


# Assigned by init_db() from the app lifespan
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def close_db() -> None:
    global db_manager
    if db_manager is not None:
        await db_manager.dispose()
        db_manager = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: the request's session."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
