"""Event routes — hosting, public reads, membership, feedback, reports.

Invariants:
    - Required fields are checked before authentication
    - Rule codes map to per-endpoint statuses (409 on join, 400 elsewhere)
    - Public reads only show published, public, non-hidden events
"""

from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import func, select

from conxion.models import Event, EventMember, EventRequest
from conxion.models.event_edit_log import EventEditLog
from conxion.models.report import Report
from tests.services.tokens import auth, utcnow

EVENTS = "/api/v1/events"
COVER = "https://cdn.example.co/storage/v1/object/public/avatars/covers/friday.jpg"


def _body(**overrides):
    starts = utcnow() + timedelta(days=3)
    body = {
        "title": "Friday social",
        "city": "Lisbon",
        "country": "Portugal",
        "startsAt": starts.isoformat(),
        "endsAt": (starts + timedelta(hours=4)).isoformat(),
    }
    body.update(overrides)
    return body


async def _status(test_session_factory, event_id, user_id):
    async with test_session_factory() as session:
        return await session.scalar(
            select(EventMember.status).where(
                EventMember.event_id == event_id, EventMember.user_id == user_id,
            )
        )


# ─── Create / update ─────────────────────────────────────────────

async def test_create_requires_fields_before_auth(client):
    res = await client.post(EVENTS, json={"title": "No place"})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == (
        "title, city, country, startsAt, and endsAt are required."
    )


async def test_create_event_adds_host_member(client, alice, fresh, test_session_factory):
    res = await client.post(EVENTS, json=_body(styles=[" Bachata", "", "Zouk"]),
                            headers=auth(alice))

    event_id = UUID(res.json()["event_id"])
    event = await fresh(Event, event_id)
    assert event.status == "published"
    assert event.cover_status == "approved"
    assert event.styles == ["bachata", "zouk"]
    assert await _status(test_session_factory, event_id, alice) == "host"


async def test_create_with_cover_waits_for_review(client, alice, fresh):
    res = await client.post(EVENTS, json=_body(coverUrl=COVER), headers=auth(alice))
    event = await fresh(Event, UUID(res.json()["event_id"]))
    assert event.cover_status == "pending"


async def test_create_rejects_inverted_window(client, alice):
    starts = utcnow() + timedelta(days=3)
    body = _body(endsAt=(starts - timedelta(hours=1)).isoformat(), startsAt=starts.isoformat())
    res = await client.post(EVENTS, json=body, headers=auth(alice))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_event_window"


async def test_create_rejects_foreign_cover(client, alice):
    body = _body(coverUrl="https://elsewhere.example.com/cover.jpg")
    res = await client.post(EVENTS, json=body, headers=auth(alice))
    assert res.json()["error"]["code"] == "invalid_cover_url"


async def test_active_event_limit(client, seed, alice):
    for _ in range(3):
        await seed.event(alice)
    res = await client.post(EVENTS, json=_body(), headers=auth(alice))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "active_event_limit_reached"


async def test_verified_organizer_gets_a_higher_limit(client, seed, alice):
    await seed.profile(alice, organizer=True)
    for _ in range(3):
        await seed.event(alice)
    res = await client.post(EVENTS, json=_body(), headers=auth(alice))
    assert res.status_code == 200


async def test_update_by_host_logs_the_edit(client, seed, alice, fresh, test_session_factory):
    event = await seed.event(alice)

    res = await client.patch(
        f"{EVENTS}/{event.id}", json=_body(title="Saturday social"), headers=auth(alice),
    )

    assert res.status_code == 200
    assert (await fresh(Event, event.id)).title == "Saturday social"
    async with test_session_factory() as session:
        edits = await session.scalar(
            select(func.count()).select_from(EventEditLog).where(
                EventEditLog.event_id == event.id,
            )
        )
    assert edits == 1


async def test_update_by_non_host_is_403(client, seed, alice, bob):
    event = await seed.event(alice)
    res = await client.patch(f"{EVENTS}/{event.id}", json=_body(), headers=auth(bob))
    assert res.status_code == 403


async def test_update_unknown_event_is_404(client, alice):
    res = await client.patch(f"{EVENTS}/{uuid4()}", json=_body(), headers=auth(alice))
    assert res.status_code == 404


async def test_new_cover_resets_review(client, seed, alice, fresh):
    event = await seed.event(alice)
    await client.patch(f"{EVENTS}/{event.id}", json=_body(coverUrl=COVER), headers=auth(alice))
    assert (await fresh(Event, event.id)).cover_status == "pending"


# ─── Public reads ────────────────────────────────────────────────

async def test_list_shows_only_public_published_visible(client, seed, alice):
    shown = await seed.event(alice, venue_address="Rua Augusta 1")
    await seed.event(alice, visibility="private")
    await seed.event(alice, status="draft")
    await seed.event(alice, hidden_by_admin=True)

    res = await client.get(EVENTS)

    events = res.json()["events"]
    assert [e["id"] for e in events] == [str(shown.id)]
    assert events[0]["venue_address"] is None
    assert events[0]["links"] == []


async def test_detail_counts_members(client, seed, alice, bob):
    event = await seed.event(alice)
    await seed.member(event, bob, "going")
    await seed.member(event, uuid4(), "waitlist")

    res = await client.get(f"{EVENTS}/{event.id}")

    assert res.json()["event"]["member_counts"] == {"going": 2, "waitlist": 1}


async def test_detail_of_private_event_is_404(client, seed, alice):
    event = await seed.event(alice, visibility="private")
    res = await client.get(f"{EVENTS}/{event.id}")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "event_not_found"


async def test_pending_cover_is_not_exposed(client, seed, alice):
    event = await seed.event(alice, cover_url=COVER, cover_status="pending")
    res = await client.get(f"{EVENTS}/{event.id}")
    assert res.json()["event"]["cover_url"] is None


# ─── Membership ──────────────────────────────────────────────────

async def test_join_requires_confirmed_email(client, seed, alice, bob):
    event = await seed.event(alice)
    await seed.profile(bob, confirmed=False)
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "join"},
                            headers=auth(bob))
    assert res.status_code == 429
    assert res.json()["error"]["code"] == "email_verification_required_for_join"


async def test_new_account_join_limit(client, seed, alice, bob):
    await seed.profile(bob, age=timedelta(hours=2))
    for _ in range(3):
        await seed.member(await seed.event(alice), bob, "going")
    event = await seed.event(uuid4())

    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "join"},
                            headers=auth(bob))

    assert res.status_code == 429
    assert res.json()["error"]["code"] == "new_account_join_limit_reached"


async def test_join_fills_capacity_then_waitlists(client, seed, alice, bob):
    carol = uuid4()
    event = await seed.event(alice, capacity=2)
    await seed.profile(bob)
    await seed.profile(carol)

    first = await client.post(f"{EVENTS}/{event.id}/join", json={}, headers=auth(bob))
    second = await client.post(f"{EVENTS}/{event.id}/join", json={}, headers=auth(carol))

    assert first.json() == {"ok": True, "status": "going"}
    assert second.json() == {"ok": True, "status": "waitlist"}


async def test_join_is_idempotent(client, seed, alice, bob):
    event = await seed.event(alice)
    await seed.profile(bob)
    await seed.member(event, bob, "waitlist")
    res = await client.post(f"{EVENTS}/{event.id}/join", json={}, headers=auth(bob))
    assert res.json()["status"] == "waitlist"


async def test_private_event_needs_request(client, seed, alice, bob):
    event = await seed.event(alice, visibility="private")
    await seed.profile(bob)
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "join"},
                            headers=auth(bob))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "private_event_requires_request"


async def test_leave_marks_member_left(client, seed, alice, bob, test_session_factory):
    event = await seed.event(alice)
    await seed.member(event, bob, "going")

    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "leave"},
                            headers=auth(bob))

    assert res.json() == {"ok": True}
    assert await _status(test_session_factory, event.id, bob) == "left"


async def test_host_cannot_leave(client, seed, alice):
    event = await seed.event(alice)
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "leave"},
                            headers=auth(alice))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "host_cannot_leave_own_event"


async def test_request_on_public_event_is_409(client, seed, alice, bob):
    event = await seed.event(alice)
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "request"},
                            headers=auth(bob))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "event_is_public"


async def test_request_then_cancel(client, seed, alice, bob, fresh):
    event = await seed.event(alice, visibility="private")

    res = await client.post(f"{EVENTS}/{event.id}/join",
                            json={"action": "request", "note": "Hi!"}, headers=auth(bob))
    request_id = UUID(res.json()["request_id"])
    await client.post(f"{EVENTS}/{event.id}/join", json={"action": "cancel_request"},
                      headers=auth(bob))

    assert (await fresh(EventRequest, request_id)).status == "cancelled"


async def test_cancel_without_request_is_409(client, seed, alice, bob):
    event = await seed.event(alice, visibility="private")
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "cancel_request"},
                            headers=auth(bob))
    assert res.status_code == 409


# ─── Host responses ──────────────────────────────────────────────

async def _requested(client, seed, host, guest):
    event = await seed.event(host, visibility="private")
    res = await client.post(f"{EVENTS}/{event.id}/join", json={"action": "request"},
                            headers=auth(guest))
    return event, res.json()["request_id"]


async def test_host_accepts_by_request_id(client, seed, alice, bob, fresh, test_session_factory):
    event, request_id = await _requested(client, seed, alice, bob)

    res = await client.post(f"{EVENTS}/requests",
                            json={"requestId": request_id, "action": "accept"},
                            headers=auth(alice))

    assert res.json() == {"ok": True, "event_id": str(event.id)}
    assert (await fresh(EventRequest, UUID(request_id))).status == "accepted"
    assert await _status(test_session_factory, event.id, bob) == "going"


async def test_host_declines_by_requester(client, seed, alice, bob, fresh):
    event, request_id = await _requested(client, seed, alice, bob)

    await client.post(f"{EVENTS}/{event.id}/respond",
                      json={"requesterId": str(bob), "action": "decline"},
                      headers=auth(alice))

    assert (await fresh(EventRequest, UUID(request_id))).status == "declined"


async def test_only_host_responds(client, seed, alice, bob):
    _, request_id = await _requested(client, seed, alice, bob)
    res = await client.post(f"{EVENTS}/requests",
                            json={"requestId": request_id, "action": "accept"},
                            headers=auth(bob))
    assert res.status_code == 403


async def test_answered_request_is_409(client, seed, alice, bob):
    _, request_id = await _requested(client, seed, alice, bob)
    body = {"requestId": request_id, "action": "accept"}
    await client.post(f"{EVENTS}/requests", json=body, headers=auth(alice))
    res = await client.post(f"{EVENTS}/requests", json=body, headers=auth(alice))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "request_not_pending"


async def test_respond_validates_before_auth(client):
    res = await client.post(f"{EVENTS}/requests", json={"action": "maybe"})
    assert res.json()["error"]["message"] == "requestId and valid action are required."
    res = await client.post(f"{EVENTS}/{uuid4()}/respond", json={"action": "accept"})
    assert res.json()["error"]["message"] == "requestId or requesterId is required."


# ─── Feedback ────────────────────────────────────────────────────

async def _ended_event(seed, host):
    starts = utcnow() - timedelta(days=2)
    return await seed.event(host, starts_at=starts, ends_at=starts + timedelta(hours=4))


async def test_member_submits_feedback(client, seed, alice, bob):
    event = await _ended_event(seed, alice)
    await seed.member(event, bob, "going")

    res = await client.post(
        f"{EVENTS}/{event.id}/feedback",
        json={"happenedAsDescribed": True, "quality": 4, "visibility": "public"},
        headers=auth(bob),
    )
    assert res.status_code == 200

    state = (await client.get(f"{EVENTS}/{event.id}/feedback", headers=auth(alice))).json()
    assert state["summary"] == {
        "total_count": 1, "avg_quality": 4.0, "happened_yes": 1, "happened_no": 0,
    }
    assert state["mine"] is None


async def test_feedback_updates_own_row(client, seed, alice, bob):
    event = await _ended_event(seed, alice)
    await seed.member(event, bob, "going")
    url = f"{EVENTS}/{event.id}/feedback"

    first = await client.post(url, json={"quality": 2}, headers=auth(bob))
    second = await client.post(url, json={"quality": 5}, headers=auth(bob))

    assert first.json()["feedback_id"] == second.json()["feedback_id"]
    state = (await client.get(url, headers=auth(bob))).json()
    assert state["mine"]["quality"] == 5
    assert state["can_submit"] is True


async def test_feedback_before_end_is_403(client, seed, alice, bob):
    event = await seed.event(alice)
    await seed.member(event, bob, "going")
    res = await client.post(f"{EVENTS}/{event.id}/feedback", json={"quality": 4},
                            headers=auth(bob))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "event_feedback_not_allowed"


async def test_feedback_quality_range(client, seed, alice, bob):
    event = await _ended_event(seed, alice)
    await seed.member(event, bob, "going")
    res = await client.post(f"{EVENTS}/{event.id}/feedback", json={"quality": 9},
                            headers=auth(bob))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_quality"


async def test_private_feedback_hidden_from_other_members(client, seed, alice, bob):
    carol = uuid4()
    event = await _ended_event(seed, alice)
    await seed.member(event, bob, "going")
    await client.post(f"{EVENTS}/{event.id}/feedback", json={"quality": 3},
                      headers=auth(bob))

    state = (await client.get(f"{EVENTS}/{event.id}/feedback", headers=auth(carol))).json()

    assert state["summary"]["total_count"] == 0
    assert state["can_submit"] is False


# ─── Reports ─────────────────────────────────────────────────────

async def test_report_mirrors_into_reports(client, seed, alice, bob, test_session_factory):
    event = await seed.event(alice)

    res = await client.post(f"{EVENTS}/{event.id}/report",
                            json={"reason": "Misleading", "note": "Wrong venue"},
                            headers=auth(bob))

    assert res.status_code == 200
    async with test_session_factory() as session:
        report = await session.scalar(select(Report))
    assert report.context == "event"
    assert report.context_id == str(event.id)
    assert report.target_user_id == alice


async def test_duplicate_open_report_is_409(client, seed, alice, bob):
    event = await seed.event(alice)
    url = f"{EVENTS}/{event.id}/report"
    await client.post(url, json={"reason": "Spam"}, headers=auth(bob))
    res = await client.post(url, json={"reason": "Spam"}, headers=auth(bob))
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "duplicate_event_report"


async def test_host_cannot_report_own_event(client, seed, alice):
    event = await seed.event(alice)
    res = await client.post(f"{EVENTS}/{event.id}/report", json={"reason": "Spam"},
                            headers=auth(alice))
    assert res.status_code == 409


async def test_report_needs_reason(client, seed, alice):
    event = await seed.event(alice)
    res = await client.post(f"{EVENTS}/{event.id}/report", json={"reason": " "})
    assert res.json()["error"]["message"] == "Reason is required."
