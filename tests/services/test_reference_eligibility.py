"""Reference Eligibility — duplicate sync-reference scan over a failing table.

Invariants:
    - A driver error on one scan column ends that phase only
    - Later phases still run and can find the duplicate
    - A scan that fails everywhere reads as "no duplicate", never as an error
"""

from uuid import uuid4

from conxion.core.repository_protocols import CompatWriteError
from conxion.services.reference_eligibility import ReferenceEligibility

ME = uuid4()
OTHER = uuid4()
CONN = uuid4()
SYNC = uuid4()

TIMEOUT = "canceling statement due to statement timeout"


class ScanGateway:
    """Raises TIMEOUT for selects on `failing` columns; serves `rows` otherwise."""

    def __init__(self, failing=(), rows=()):
        self.failing = set(failing)
        self.rows = list(rows)
        self.scanned = []

    async def columns(self, table):
        return None

    async def insert(self, table, payload):
        raise CompatWriteError(TIMEOUT)

    async def update(self, table, values, where):
        return None

    async def select(self, table, where, order_by=None, limit=None):
        column = next(iter(where))
        self.scanned.append(column)
        if column in self.failing:
            raise CompatWriteError(TIMEOUT)
        return [row for row in self.rows if row.get(column) == where[column]]


def _sync_reference_row():
    return {
        "id": str(uuid4()),
        "author_id": ME,
        "recipient_id": OTHER,
        "connection_id": CONN,
        "entity_type": "sync",
        "entity_id": str(SYNC),
    }


async def test_failed_connection_scan_falls_through_to_author_scan():
    gateway = ScanGateway(failing={"connection_id"}, rows=[_sync_reference_row()])

    found = await ReferenceEligibility(gateway).has_duplicate_sync_reference(
        ME, OTHER, CONN, SYNC,
    )

    assert found is True
    assert gateway.scanned == ["connection_id", "author_id"]


async def test_failure_stops_the_phase_without_trying_synonyms():
    gateway = ScanGateway(failing={"connection_id", "author_id", "recipient_id"})

    found = await ReferenceEligibility(gateway).has_duplicate_sync_reference(
        ME, OTHER, CONN, SYNC,
    )

    assert found is False
    assert gateway.scanned == ["connection_id", "author_id", "recipient_id"]


async def test_scan_without_failures_reads_by_connection_only():
    gateway = ScanGateway(rows=[_sync_reference_row()])

    found = await ReferenceEligibility(gateway).has_duplicate_sync_reference(
        ME, OTHER, CONN, SYNC,
    )

    assert found is True
    assert gateway.scanned == ["connection_id"]
