"""Schema Compatibility — driver message classifiers and row pickers.

Tests cover:
    - PostgreSQL and SQLite message shapes for every classifier
    - extract_column_name / extract_null_column
    - text_value canonicalizes UUIDs stored as hex
"""

from uuid import UUID

import pytest

from conxion.core.schema_compat import (
    coerce_uuid,
    extract_column_name,
    extract_null_column,
    is_compat_write_error,
    is_duplicate_error,
    is_foreign_key_error,
    is_missing_schema_error,
    is_rating_constraint_error,
    pick_first_nullable_text,
    pick_first_number,
    pick_first_string,
    pick_first_value,
    text_value,
)

ID = UUID("6f1c1f3e-9a52-4b7e-8c55-0d1f0c7b2a10")


# ─── Classifiers ─────────────────────────────────────────────────

@pytest.mark.parametrize("message", [
    'relation "public.references" does not exist',
    "no such table: references",
    'column "body" of relation "references" does not exist',
    "Could not find the table 'public.syncs' in the schema cache",
])
def test_missing_schema(message):
    assert is_missing_schema_error(message)


def test_unique_violation_is_not_missing_schema():
    message = 'duplicate key value violates unique constraint "references_pkey"'
    assert not is_missing_schema_error(message)
    assert is_duplicate_error(message)


def test_sqlite_unique_is_duplicate():
    assert is_duplicate_error("UNIQUE constraint failed: references.author_id")


def test_foreign_key():
    assert is_foreign_key_error("FOREIGN KEY constraint failed")
    assert not is_foreign_key_error("CHECK constraint failed")


def test_rating_constraint():
    assert is_rating_constraint_error(
        'new row violates check constraint "references_rating_check"'
    )
    assert is_rating_constraint_error("CHECK constraint failed: rating IN (1, 5)")
    assert not is_rating_constraint_error("CHECK constraint failed: body_length")


def test_compat_write_error():
    assert is_compat_write_error("function create_reference_v2(uuid) does not exist")
    assert is_compat_write_error("NOT NULL constraint failed: references.sync_id")
    assert not is_compat_write_error("permission denied for table references")


# ─── Column extraction ───────────────────────────────────────────

@pytest.mark.parametrize("message,column", [
    ("Could not find the 'reply_text' column of 'references'", "reply_text"),
    ('column "feedback" of relation "references" does not exist', "feedback"),
    ('column "rating" does not exist', "rating"),
    ('null value in column "sync_id" violates not-null constraint', "sync_id"),
    ("table references has no column named body", "body"),
    ("no such column: r.entity_id", "entity_id"),
    ("NOT NULL constraint failed: notifications.title", "title"),
    ("syntax error", ""),
])
def test_extract_column_name(message, column):
    assert extract_column_name(message) == column


def test_null_column_ignores_missing_column_errors():
    assert extract_null_column('column "rating" does not exist') == ""
    assert extract_null_column("NOT NULL constraint failed: references.context") == "context"


# ─── Values ──────────────────────────────────────────────────────

def test_text_value_canonicalizes_hex():
    assert text_value(ID.hex) == str(ID)
    assert text_value(ID) == str(ID)
    assert text_value(f"  {ID}  ") == str(ID)


def test_text_value_plain():
    assert text_value(None) == ""
    assert text_value(" abc ") == "abc"
    assert text_value(42) == "42"


def test_coerce_uuid():
    assert coerce_uuid(ID.hex) == ID
    assert coerce_uuid("nope") is None
    assert coerce_uuid(None) is None


def test_pickers_read_first_non_empty_synonym():
    row = {"body": "", "content": "Great lead", "rating": "4", "reply": "  "}
    assert pick_first_string(row, ("body", "content")) == "Great lead"
    assert pick_first_number(row, ("score", "rating")) == 4.0
    assert pick_first_nullable_text(row, ("reply_text", "reply")) is None
    assert pick_first_value(row, ("body", "content")) == "Great lead"


def test_pick_number_skips_booleans():
    assert pick_first_number({"a": True, "b": 2}, ("a", "b")) == 2
    assert pick_first_number({}, ("a",)) == 0
