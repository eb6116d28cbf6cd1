"""Reference routes — create through the writer chain, edit/reply once, list.

Invariants:
    - Required fields answer 400 before authentication
    - A connection reference needs a completed legacy sync for the connection
    - Every create leaves exactly one reference_received notification
    - One reference per author per entity
    - Trip and event references need the pair to have shared one that ended
      0 to 15 days ago
    - Edit is author-only and single-use; reply is recipient-only and single-use
"""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from conxion.models import Reference
from tests.services.tokens import auth, utcnow

URL = "/api/v1/references"
BODY = "Great partner, really patient with new patterns."


@pytest.fixture
async def synced_pair(seed, alice, bob):
    """Accepted alice→bob connection with a completed legacy sync."""
    connection = await seed.connection(alice, bob)
    await seed.legacy_sync(connection, alice)
    return connection


def _create_body(recipient, **extra):
    return {"recipientId": str(recipient), "sentiment": "positive", "body": BODY, **extra}


# ─── Create ──────────────────────────────────────────────────────

async def test_missing_fields_before_auth(client):
    res = await client.post(URL, json={"sentiment": "positive"})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "recipientId, sentiment, and body are required."


async def test_create_requires_token(client, bob):
    res = await client.post(URL, json=_create_body(bob))
    assert res.status_code == 401


async def test_create_v2_reference(client, synced_pair, alice, bob, fresh):
    res = await client.post(URL, json=_create_body(bob), headers=auth(alice))

    assert res.status_code == 200
    data = res.json()
    assert data["ok"] is True
    assert data["mode"] == "v2"

    reference = await fresh(Reference, UUID(data["reference_id"]))
    assert reference.author_id == alice
    assert reference.recipient_id == bob
    assert reference.entity_type == "connection"
    assert reference.entity_id == synced_pair.id
    assert reference.body == BODY


async def test_create_notifies_recipient_once(client, synced_pair, alice, bob):
    res = await client.post(URL, json=_create_body(bob), headers=auth(alice))
    reference_id = res.json()["reference_id"]

    inbox = (await client.get("/api/v1/notifications", headers=auth(bob))).json()
    received = [n for n in inbox["notifications"] if n["kind"] == "reference_received"]
    assert len(received) == 1
    assert received[0]["metadata"]["reference_id"] == reference_id
    assert received[0]["actor_id"] == str(alice)


async def test_connection_reference_requires_completed_sync(client, seed, alice, bob):
    await seed.connection(alice, bob)
    res = await client.post(URL, json=_create_body(bob), headers=auth(alice))

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "references_require_completed_sync"


async def test_duplicate_reference_rejected(client, synced_pair, alice, bob):
    first = await client.post(URL, json=_create_body(bob), headers=auth(alice))
    assert first.status_code == 200

    second = await client.post(URL, json=_create_body(bob), headers=auth(alice))
    assert second.status_code == 400
    assert second.json()["error"]["code"] == "duplicate_reference_not_allowed"


async def test_no_connection_between_users(client, alice):
    res = await client.post(URL, json=_create_body(uuid4()), headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_REQUEST"


async def test_blocked_connection_not_eligible(client, seed, alice, bob):
    connection = await seed.connection(alice, bob, status="blocked", blocked_by=bob)
    await seed.legacy_sync(connection, alice)
    body = _create_body(bob, connectionId=str(connection.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "connection_not_eligible_for_reference"


async def test_invalid_sentiment(client, synced_pair, alice, bob):
    body = _create_body(bob, sentiment="ecstatic")
    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_sentiment"


async def test_sync_reference(client, seed, alice, bob, fresh):
    connection = await seed.connection(alice, bob)
    sync = await seed.sync(
        connection, alice, bob, status="completed", completed_ago=timedelta(days=1),
    )
    body = _create_body(bob, entityType="sync", entityId=str(sync.id))

    res = await client.post(URL, json=body, headers=auth(alice))

    assert res.status_code == 200
    assert res.json()["mode"] == "v2_sync"
    reference = await fresh(Reference, UUID(res.json()["reference_id"]))
    assert reference.entity_type == "sync"
    assert reference.entity_id == sync.id
    assert reference.connection_id == connection.id


async def test_sync_reference_outside_window(client, seed, alice, bob):
    connection = await seed.connection(alice, bob)
    sync = await seed.sync(
        connection, alice, bob, status="completed", completed_ago=timedelta(days=20),
    )
    body = _create_body(bob, entityType="sync", entityId=str(sync.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "sync_reference_not_allowed"


# ─── Trip and event references ─────────────────────────────────

async def _ended_trip(seed, owner, requester, days_ago, status="accepted"):
    end = utcnow().date() - timedelta(days=days_ago)
    trip = await seed.trip(owner, start=end - timedelta(days=4), end=end)
    return await seed.trip_request(trip, requester, status=status)


async def test_trip_reference(client, seed, alice, bob, fresh):
    await seed.connection(alice, bob)
    request = await _ended_trip(seed, alice, bob, days_ago=3)
    body = _create_body(bob, entityType="trip", entityId=str(request.id))

    res = await client.post(URL, json=body, headers=auth(alice))

    assert res.status_code == 200
    assert res.json()["mode"] == "v2"
    reference = await fresh(Reference, UUID(res.json()["reference_id"]))
    assert reference.entity_type == "trip"
    assert reference.entity_id == request.id


async def test_trip_reference_on_the_last_day(client, seed, alice, bob):
    await seed.connection(alice, bob)
    request = await _ended_trip(seed, alice, bob, days_ago=15)
    body = _create_body(bob, entityType="trip", entityId=str(request.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 200


async def test_trip_reference_outside_window(client, seed, alice, bob):
    await seed.connection(alice, bob)
    request = await _ended_trip(seed, alice, bob, days_ago=16)
    body = _create_body(bob, entityType="trip", entityId=str(request.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "trip_reference_not_allowed"


async def test_trip_reference_needs_accepted_request(client, seed, alice, bob):
    await seed.connection(alice, bob)
    request = await _ended_trip(seed, alice, bob, days_ago=3, status="declined")
    body = _create_body(bob, entityType="trip", entityId=str(request.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "trip_reference_not_allowed"


async def test_trip_reference_needs_the_same_pair(client, seed, alice, bob):
    await seed.connection(alice, bob)
    request = await _ended_trip(seed, alice, uuid4(), days_ago=3)
    body = _create_body(bob, entityType="trip", entityId=str(request.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "trip_reference_not_allowed"


async def _ended_event(seed, host, guest, days_ago, guest_status="going"):
    event = await seed.event(host, starts_at=utcnow() - timedelta(days=days_ago, hours=4))
    await seed.member(event, guest, guest_status)
    return event


async def test_event_reference(client, seed, alice, bob, fresh):
    await seed.connection(alice, bob)
    event = await _ended_event(seed, alice, bob, days_ago=2)
    body = _create_body(bob, entityType="event", entityId=str(event.id))

    res = await client.post(URL, json=body, headers=auth(alice))

    assert res.status_code == 200
    reference = await fresh(Reference, UUID(res.json()["reference_id"]))
    assert reference.entity_type == "event"
    assert reference.entity_id == event.id


async def test_event_reference_outside_window(client, seed, alice, bob):
    await seed.connection(alice, bob)
    event = await _ended_event(seed, alice, bob, days_ago=20)
    body = _create_body(bob, entityType="event", entityId=str(event.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "event_reference_not_allowed"


async def test_event_reference_before_the_event_ends(client, seed, alice, bob):
    await seed.connection(alice, bob)
    event = await seed.event(alice)
    await seed.member(event, bob, "going")
    body = _create_body(bob, entityType="event", entityId=str(event.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "event_reference_not_allowed"


async def test_event_reference_needs_both_members_active(client, seed, alice, bob):
    await seed.connection(alice, bob)
    event = await _ended_event(seed, alice, bob, days_ago=2, guest_status="left")
    body = _create_body(bob, entityType="event", entityId=str(event.id))

    res = await client.post(URL, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "event_reference_not_allowed"


# ─── Edit / reply ────────────────────────────────────────────────

@pytest.fixture
async def reference(seed, synced_pair, alice, bob):
    return await seed.reference(synced_pair, alice, bob, age=timedelta(days=1))


async def test_patch_requires_mode_and_id(client):
    res = await client.patch(URL, json={"mode": "edit"})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "mode and referenceId are required."


async def test_patch_unsupported_mode(client, alice):
    body = {"mode": "delete", "referenceId": str(uuid4())}
    res = await client.patch(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Unsupported mode."


async def test_author_edits_once(client, reference, alice, fresh):
    body = {
        "mode": "edit", "referenceId": str(reference.id),
        "sentiment": "neutral", "body": "Solid partner, a bit rushed.",
    }
    res = await client.patch(URL, json=body, headers=auth(alice))

    assert res.status_code == 200
    assert res.json()["mode"] == "rpc_edit"
    updated = await fresh(Reference, reference.id)
    assert updated.sentiment == "neutral"
    assert updated.edit_count == 1
    assert updated.last_edited_at is not None

    again = await client.patch(URL, json=body, headers=auth(alice))
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "reference_update_not_allowed"


async def test_recipient_cannot_edit(client, reference, bob):
    body = {
        "mode": "edit", "referenceId": str(reference.id),
        "sentiment": "negative", "body": "Not what I would say.",
    }
    res = await client.patch(URL, json=body, headers=auth(bob))
    assert res.status_code == 403


async def test_edit_after_window(client, seed, synced_pair, alice, bob):
    old = await seed.reference(synced_pair, alice, bob, age=timedelta(days=16))
    body = {
        "mode": "edit", "referenceId": str(old.id),
        "sentiment": "neutral", "body": "Solid partner, a bit rushed.",
    }
    res = await client.patch(URL, json=body, headers=auth(alice))
    assert res.status_code == 400


async def test_recipient_replies_once(client, reference, bob, fresh):
    body = {"mode": "reply", "referenceId": str(reference.id), "replyText": "Thanks a lot!"}
    res = await client.patch(URL, json=body, headers=auth(bob))

    assert res.status_code == 200
    assert res.json()["mode"] == "rpc_reply"
    updated = await fresh(Reference, reference.id)
    assert updated.reply_text == "Thanks a lot!"
    assert updated.replied_by == bob

    again = await client.patch(URL, json=body, headers=auth(bob))
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "reference_reply_not_allowed"


async def test_author_cannot_reply(client, reference, alice):
    body = {"mode": "reply", "referenceId": str(reference.id), "replyText": "Me too"}
    res = await client.patch(URL, json=body, headers=auth(alice))
    assert res.status_code == 403


async def test_reply_requires_text(client, reference, bob):
    body = {"mode": "reply", "referenceId": str(reference.id)}
    res = await client.patch(URL, json=body, headers=auth(bob))
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "replyText is required for reply."


async def test_unknown_reference(client, alice):
    body = {
        "mode": "edit", "referenceId": str(uuid4()),
        "sentiment": "neutral", "body": "Solid partner, a bit rushed.",
    }
    res = await client.patch(URL, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "reference_not_found"


# ─── List ────────────────────────────────────────────────────────

async def test_list_received(client, reference, bob):
    res = await client.get(URL, params={"userId": str(bob)}, headers=auth(bob))

    assert res.status_code == 200
    references = res.json()["references"]
    assert [r["id"] for r in references] == [str(reference.id)]
    assert references[0]["body"] == reference.body
