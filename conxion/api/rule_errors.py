"""Per-endpoint status mapping for domain rule codes.

The same rule code can mean different HTTP statuses on different endpoints
(e.g. event_hidden is 409 when joining but 400 elsewhere), so each route
declares its own table and wraps the service call.
"""

from contextlib import contextmanager

from conxion.core.errors import RuleViolationError


@contextmanager
def rule_errors(status_map: dict[str, int], default: int | None = None):
    """Re-map RuleViolationError.http_status by code for one endpoint."""
    try:
        yield
    except RuleViolationError as exc:
        if exc.code in status_map:
            exc.http_status = status_map[exc.code]
        elif default is not None:
            exc.http_status = default
        raise
