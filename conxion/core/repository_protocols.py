"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Compat writes address tables by name with plain dict payloads, so a
      payload can be rebuilt from the live column set between attempts
    - Gateway failures surface as CompatWriteError carrying the driver message

Design Decisions:
    - Protocol over ABC: structural subtyping, the compat writers are tested
      against an in-memory fake with no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the payload builders they feed are pure and synchronous
"""

from typing import Protocol
from uuid import UUID


class CompatWriteError(Exception):
    """A compat insert/update failed; message is the raw driver text."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CompatTableGateway(Protocol):
    """Schema-agnostic access to tables whose columns may have drifted."""

    async def columns(self, table: str) -> frozenset[str] | None:
        """Live column names, or None when they cannot be read."""
        ...

    async def insert(self, table: str, payload: dict) -> UUID | str:
        """Insert one row; returns its id. Raises CompatWriteError."""
        ...

    async def update(
        self, table: str, values: dict, where: dict,
    ) -> UUID | str | None:
        """Update rows matching where; returns an id, None when nothing matched."""
        ...

    async def select(
        self,
        table: str,
        where: dict,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Rows as dicts; order_by is a column name, newest first."""
        ...

