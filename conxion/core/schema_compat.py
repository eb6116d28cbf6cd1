"""Schema Compatibility — pure classifiers for driver errors raised by drifted tables.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Classifiers accept PostgreSQL (asyncpg) and SQLite message shapes
    - extract_column_name() returns "" when no column can be identified

Design Decisions:
    - Classification by message text, not SQLSTATE: the same rules must hold for
      every driver, and SQLite exposes no SQLSTATE at all
    - Row pickers read the first non-empty synonym, so one code path serves
      every historical column naming of a table
"""

import re
from uuid import UUID


def is_missing_schema_error(message: str) -> bool:
    """Relation/column/table missing, or a stale schema cache."""
    text = message.lower()
    return (
        "relation" in text
        or "schema cache" in text
        or "does not exist" in text
        or "could not find the table" in text
        or "no such table" in text
        or "column" in text
    )


def is_compat_write_error(message: str) -> bool:
    """Failure that a fallback writer with another column set might avoid."""
    text = message.lower()
    return (
        "function" in text
        or "create_reference_v2" in text
        or "create_reference(" in text
        or "schema cache" in text
        or "column" in text
        or "null value in column" in text
        or '"sync_id"' in text
        or "does not exist" in text
        or "no such table" in text
        or "not null constraint failed" in text
    )


def is_duplicate_error(message: str) -> bool:
    text = message.lower()
    return (
        "duplicate" in text
        or "unique constraint" in text
        or "already exists" in text
    )


def is_foreign_key_error(message: str) -> bool:
    return "foreign key" in message.lower()


def is_rating_constraint_error(message: str) -> bool:
    text = message.lower()
    return "references_rating_check" in text or (
        "rating" in text and "check constraint" in text
    )


_COLUMN_PATTERNS = (
    re.compile(r"could not find the '([^']+)' column", re.IGNORECASE),
    re.compile(r'column "([^"]+)" of relation "[^"]+" does not exist', re.IGNORECASE),
    re.compile(r'column "([^"]+)" does not exist', re.IGNORECASE),
    re.compile(r'null value in column "([^"]+)"', re.IGNORECASE),
    re.compile(r"has no column named (\w+)", re.IGNORECASE),
    re.compile(r"no such column: (?:\w+\.)?(\w+)", re.IGNORECASE),
    re.compile(r"not null constraint failed: \w+\.(\w+)", re.IGNORECASE),
)


def extract_column_name(message: str) -> str:
    """Column named by a missing-column or NOT NULL error, else ""."""
    for pattern in _COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return ""


def extract_null_column(message: str) -> str:
    """Column named by a NOT NULL violation only."""
    for pattern in (_COLUMN_PATTERNS[3], _COLUMN_PATTERNS[6]):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return ""


# ─── Row pickers ─────────────────────────────────────────────────

def text_value(value: object) -> str:
    """Canonical text for ids read back from any driver (UUID, hex, str)."""
    if value is None:
        return ""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        if len(stripped) in (32, 36):
            try:
                return str(UUID(stripped))
            except ValueError:
                return stripped
        return stripped
    return str(value)


def coerce_uuid(value: object) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def pick_first_string(row: dict, keys: list[str] | tuple[str, ...]) -> str:
    for key in keys:
        value = text_value(row.get(key))
        if value:
            return value
    return ""


def pick_first_number(row: dict, keys: list[str] | tuple[str, ...]) -> float:
    for key in keys:
        value = row.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return float(value)
            except ValueError:
                continue
    return 0


def pick_first_nullable_text(
    row: dict, keys: list[str] | tuple[str, ...],
) -> str | None:
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def pick_first_value(row: dict, keys: list[str] | tuple[str, ...]):
    """First non-None value (datetimes included)."""
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None
