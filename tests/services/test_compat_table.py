"""Compat Table Gateway — reflected writes and reads on the SQLite test database.

Invariants:
    - UUIDs written through the gateway land in the same form the ORM stores,
      so rows round-trip between the two paths
    - Text id columns get a generated UUID and match UUID filters
    - Unknown columns fail with the PostgreSQL message shape
    - Statement failures surface as CompatWriteError and leave the session usable
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import text

from conxion.core.repository_protocols import CompatWriteError
from conxion.core.schema_compat import extract_column_name, text_value
from conxion.infrastructure.compat_table import SqlCompatTableGateway
from conxion.models import Notification


async def test_insert_into_orm_table_reads_back_through_orm(test_db):
    gateway = SqlCompatTableGateway(test_db)
    user_id = uuid4()

    new_id = await gateway.insert("notifications", {
        "user_id": user_id, "kind": "sync_proposed", "title": "New sync",
        "metadata": {"sync_id": str(uuid4())},
    })
    await test_db.commit()

    row = await test_db.get(Notification, UUID(text_value(new_id)))
    assert row is not None
    assert row.user_id == user_id
    assert row.kind == "sync_proposed"


async def test_select_filters_on_uuid_columns(test_db):
    gateway = SqlCompatTableGateway(test_db)
    mine, theirs = uuid4(), uuid4()
    test_db.add_all([
        Notification(user_id=mine, kind="sync_accepted", title="Accepted"),
        Notification(user_id=theirs, kind="sync_accepted", title="Accepted"),
    ])
    await test_db.commit()

    rows = await gateway.select("notifications", {"user_id": mine})

    assert [text_value(r["user_id"]) for r in rows] == [str(mine)]


async def test_text_id_table_gets_generated_uuid(test_db):
    await test_db.execute(text(
        "CREATE TABLE legacy_notes (id TEXT PRIMARY KEY, author TEXT NOT NULL, content TEXT)"
    ))
    gateway = SqlCompatTableGateway(test_db)
    author = uuid4()

    new_id = await gateway.insert("legacy_notes", {"author": author, "content": "hi"})
    rows = await gateway.select("legacy_notes", {"author": author})

    assert UUID(text_value(new_id))
    assert [text_value(r["id"]) for r in rows] == [text_value(new_id)]


async def test_unknown_column_uses_postgres_message(test_db):
    gateway = SqlCompatTableGateway(test_db)

    with pytest.raises(CompatWriteError) as exc:
        await gateway.insert("notifications", {"recipient": uuid4(), "title": "x"})

    assert extract_column_name(exc.value.message) == "recipient"


async def test_missing_table(test_db):
    gateway = SqlCompatTableGateway(test_db)

    assert await gateway.columns("message_digests") is None
    with pytest.raises(CompatWriteError, match='relation "message_digests" does not exist'):
        await gateway.select("message_digests", {"id": uuid4()})


async def test_failed_insert_rolls_back_only_itself(test_db):
    gateway = SqlCompatTableGateway(test_db)
    user_id = uuid4()
    test_db.add(Notification(user_id=user_id, kind="sync_proposed", title="Kept"))
    await test_db.flush()

    with pytest.raises(CompatWriteError):
        await gateway.insert("notifications", {"user_id": user_id, "kind": "sync_proposed"})
    await test_db.commit()

    rows = await gateway.select("notifications", {"user_id": user_id})
    assert [r["title"] for r in rows] == ["Kept"]
