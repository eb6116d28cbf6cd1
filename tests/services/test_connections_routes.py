"""Connection routes — connect, lifecycle actions, blocks, reports, read model.

Invariants:
    - The requester is always the caller; the target comes from the body
    - Only the target accepts/declines; only the requester cancels
    - Blocks placed by the other side are hidden from my list
    - Every rule failure on these endpoints is a 400
"""

from datetime import timedelta
from uuid import UUID, uuid4

from conxion.models import Connection, Report
from tests.services.tokens import auth

CONNECT = "/api/v1/connections/connect"
ACTION = "/api/v1/connections/action"


def _connect_body(target, reason="Practice partner"):
    return {"targetId": str(target), "payload": {"connect_reason": reason}}


# ─── Connect ─────────────────────────────────────────────────────

async def test_connect_creates_pending_row(client, alice, bob, fresh):
    res = await client.post(CONNECT, json=_connect_body(bob), headers=auth(alice))

    assert res.status_code == 200
    connection = await fresh(Connection, UUID(res.json()["connection_id"]))
    assert connection.requester_id == alice
    assert connection.target_id == bob
    assert connection.status == "pending"
    assert connection.connect_reason == "Practice partner"


async def test_connect_to_self(client, alice):
    res = await client.post(CONNECT, json=_connect_body(alice), headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "cannot_request_self"


async def test_connect_requires_reason(client, alice, bob):
    res = await client.post(CONNECT, json=_connect_body(bob, "  "), headers=auth(alice))
    assert res.json()["error"]["code"] == "reason_required"


async def test_connect_when_already_pending(client, seed, alice, bob):
    await seed.connection(bob, alice, status="pending")
    res = await client.post(CONNECT, json=_connect_body(bob), headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "already_pending_or_connected"


async def test_connect_when_blocked(client, seed, alice, bob):
    await seed.connection(alice, bob, status="blocked", blocked_by=bob)
    res = await client.post(CONNECT, json=_connect_body(bob), headers=auth(alice))
    assert res.json()["error"]["code"] == "blocked"


async def test_hourly_rate_limit(client, seed, alice):
    for _ in range(5):
        await seed.connection(alice, uuid4(), status="pending")
    res = await client.post(CONNECT, json=_connect_body(uuid4()), headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "rate_limit_hourly"


async def test_re_request_after_recent_decline(client, seed, alice, bob):
    await seed.connection(alice, bob, status="declined", age=timedelta(days=3))
    res = await client.post(CONNECT, json=_connect_body(bob), headers=auth(alice))
    assert res.json()["error"]["code"] == "re_request_not_allowed_30_days"


async def test_re_request_after_window(client, seed, alice, bob):
    await seed.connection(alice, bob, status="declined", age=timedelta(days=31))
    res = await client.post(CONNECT, json=_connect_body(bob), headers=auth(alice))
    assert res.status_code == 200


# ─── Actions ─────────────────────────────────────────────────────

async def test_invalid_action_before_auth(client):
    res = await client.post(ACTION, json={"action": "poke", "connId": str(uuid4())})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Invalid action."


async def test_missing_target_before_auth(client):
    res = await client.post(ACTION, json={"action": "accept"})
    assert res.json()["error"]["message"] == "Missing connId (or targetUserId for block)."


async def test_target_accepts(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob, status="pending")
    body = {"action": "accept", "connId": str(connection.id)}

    res = await client.post(ACTION, json=body, headers=auth(bob))

    assert res.json() == {"ok": True}
    assert (await fresh(Connection, connection.id)).status == "accepted"


async def test_requester_cannot_accept(client, seed, alice, bob):
    connection = await seed.connection(alice, bob, status="pending")
    body = {"action": "accept", "connId": str(connection.id)}
    res = await client.post(ACTION, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "not_found_or_not_allowed"


async def test_decline_then_undo(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob, status="pending")
    conn_id = str(connection.id)

    await client.post(ACTION, json={"action": "decline", "connId": conn_id}, headers=auth(bob))
    assert (await fresh(Connection, connection.id)).status == "declined"

    await client.post(
        ACTION, json={"action": "undo_decline", "connId": conn_id}, headers=auth(bob),
    )
    assert (await fresh(Connection, connection.id)).status == "pending"


async def test_requester_cancels_pending(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob, status="pending")
    body = {"action": "cancel", "connId": str(connection.id)}

    res = await client.post(ACTION, json=body, headers=auth(alice))

    assert res.status_code == 200
    assert await fresh(Connection, connection.id) is None


async def test_block_by_user_creates_row(client, alice, bob, fresh):
    body = {"action": "block", "targetUserId": str(bob)}
    res = await client.post(ACTION, json=body, headers=auth(alice))

    connection = await fresh(Connection, UUID(res.json()["connection_id"]))
    assert connection.status == "blocked"
    assert connection.blocked_by == alice


async def test_block_by_user_takes_newest_pair_row(client, seed, alice, bob, fresh):
    old = await seed.connection(alice, bob, status="declined", age=timedelta(days=40))
    newest = await seed.connection(bob, alice, status="pending", age=timedelta(days=1))
    middle = await seed.connection(alice, bob, status="declined", age=timedelta(days=20))

    body = {"action": "block", "targetUserId": str(bob)}
    res = await client.post(ACTION, json=body, headers=auth(alice))

    assert res.json()["connection_id"] == str(newest.id)
    assert (await fresh(Connection, newest.id)).status == "blocked"
    assert (await fresh(Connection, old.id)).status == "declined"
    assert (await fresh(Connection, middle.id)).status == "declined"


async def test_block_self_rejected(client, alice):
    body = {"action": "block", "targetUserId": str(alice)}
    res = await client.post(ACTION, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "cannot_block_self"


async def test_only_blocker_unblocks(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob, status="blocked", blocked_by=alice)
    body = {"action": "unblock", "connId": str(connection.id)}

    denied = await client.post(ACTION, json=body, headers=auth(bob))
    assert denied.status_code == 400

    await client.post(ACTION, json=body, headers=auth(alice))
    restored = await fresh(Connection, connection.id)
    assert restored.blocked_by is None
    assert restored.status == "accepted"


async def test_report_from_connection(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob)
    body = {"action": "report", "connId": str(connection.id), "reason": "Harassment"}

    res = await client.post(ACTION, json=body, headers=auth(bob))

    report = await fresh(Report, UUID(res.json()["report_id"]))
    assert report.reporter_id == bob
    assert report.target_user_id == alice
    assert report.context == "connection"
    assert report.context_id == str(connection.id)
    assert report.status == "open"


async def test_report_requires_reason(client, seed, alice, bob):
    connection = await seed.connection(alice, bob)
    body = {"action": "report", "connId": str(connection.id)}
    res = await client.post(ACTION, json=body, headers=auth(bob))
    assert res.json()["error"]["message"] == "Report reason is required."


# ─── Read model ──────────────────────────────────────────────────

async def test_list_hides_blocks_by_other_side(client, seed, alice, bob):
    carol = uuid4()
    await seed.connection(alice, bob, status="blocked", blocked_by=bob)
    visible = await seed.connection(carol, alice, status="pending")

    res = await client.get("/api/v1/connections", headers=auth(alice))

    rows = res.json()["connections"]
    assert [r["id"] for r in rows] == [str(visible.id)]
    assert rows[0]["is_incoming_pending"] is True
    assert rows[0]["other_user_id"] == str(carol)


async def test_state_endpoint(client, seed, alice, bob):
    await seed.connection(bob, alice, status="pending")
    res = await client.get(f"/api/v1/connections/state/{bob}", headers=auth(alice))
    assert res.json() == {"ok": True, "state": "incoming_pending"}
