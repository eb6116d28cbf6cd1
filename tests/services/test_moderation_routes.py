"""Moderation routes — admin gate, report triage, event actions.

Invariants:
    - Only rows in `admins` may moderate or list reports
    - Every admin action writes one moderation_logs row
"""

from uuid import UUID, uuid4

from conxion.models import Event
from conxion.models.moderation_log import ModerationLog
from conxion.models.report import Report
from tests.services.tokens import auth

MODERATION = "/api/v1/moderation"
COVER = "https://cdn.example.co/storage/v1/object/public/avatars/covers/friday.png"


# ─── Reports ─────────────────────────────────────────────────────

async def test_non_admin_cannot_moderate(client, seed, alice, bob):
    report = await seed.report(alice, bob)
    res = await client.post(f"{MODERATION}/reports",
                            json={"reportId": str(report.id), "action": "resolve"},
                            headers=auth(bob))
    assert res.status_code == 403


async def test_admin_resolves_report(client, seed, alice, bob, fresh):
    admin = uuid4()
    await seed.admin(admin)
    report = await seed.report(alice, bob)

    res = await client.post(f"{MODERATION}/reports",
                            json={"reportId": str(report.id), "action": "resolve",
                                  "note": "Warned"},
                            headers=auth(admin))

    assert (await fresh(Report, report.id)).status == "resolved"
    log = await fresh(ModerationLog, UUID(res.json()["moderation_log_id"]))
    assert log.action == "resolve"
    assert log.report_id == report.id
    assert log.target_user_id == bob
    assert log.metadata_ == {"from_status": "open"}


async def test_unknown_report_action(client, seed, alice, bob):
    admin = uuid4()
    await seed.admin(admin)
    report = await seed.report(alice, bob)
    res = await client.post(f"{MODERATION}/reports",
                            json={"reportId": str(report.id), "action": "escalate"},
                            headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "invalid_action"


async def test_unknown_report_is_404(client, seed):
    admin = uuid4()
    await seed.admin(admin)
    res = await client.post(f"{MODERATION}/reports",
                            json={"reportId": str(uuid4()), "action": "dismiss"},
                            headers=auth(admin))
    assert res.status_code == 404


async def test_list_reports_filters_by_status(client, seed, alice, bob):
    admin = uuid4()
    await seed.admin(admin)
    open_report = await seed.report(alice, bob)
    await seed.report(bob, alice, status="dismissed")

    res = await client.get(f"{MODERATION}/reports", params={"status": "open"},
                           headers=auth(admin))

    assert [r["id"] for r in res.json()["reports"]] == [str(open_report.id)]


async def test_list_reports_is_admin_only(client, alice):
    res = await client.get(f"{MODERATION}/reports", headers=auth(alice))
    assert res.status_code == 403


# ─── Events ──────────────────────────────────────────────────────

async def test_hide_event(client, seed, alice, fresh):
    admin = uuid4()
    await seed.admin(admin)
    event = await seed.event(alice)

    res = await client.post(f"{MODERATION}/events",
                            json={"eventId": str(event.id), "action": "hide"},
                            headers=auth(admin))

    hidden = await fresh(Event, event.id)
    assert hidden.hidden_by_admin is True
    assert hidden.hidden_reason == "Hidden by moderation"
    log = await fresh(ModerationLog, UUID(res.json()["moderation_log_id"]))
    assert log.action == "event_hide"
    assert log.metadata_["before"]["hidden_by_admin"] is False
    assert log.metadata_["after"]["hidden_by_admin"] is True


async def test_hidden_event_leaves_public_listing(client, seed, alice):
    admin = uuid4()
    await seed.admin(admin)
    event = await seed.event(alice)
    await client.post(f"{MODERATION}/events",
                      json={"eventId": str(event.id), "action": "hide",
                            "hiddenReason": "Spam"},
                      headers=auth(admin))

    res = await client.get("/api/v1/events")

    assert res.json()["events"] == []


async def test_reject_cover_keeps_note(client, seed, alice, fresh):
    admin = uuid4()
    await seed.admin(admin)
    event = await seed.event(alice, cover_url=COVER, cover_status="pending")

    await client.post(f"{MODERATION}/events",
                      json={"eventId": str(event.id), "action": "reject_cover"},
                      headers=auth(admin))

    rejected = await fresh(Event, event.id)
    assert rejected.cover_status == "rejected"
    assert rejected.cover_review_note == "Cover rejected by moderation."
    assert rejected.cover_reviewed_by == admin


async def test_cover_action_needs_a_cover(client, seed, alice):
    admin = uuid4()
    await seed.admin(admin)
    event = await seed.event(alice)
    res = await client.post(f"{MODERATION}/events",
                            json={"eventId": str(event.id), "action": "approve_cover"},
                            headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "event_cover_missing"


async def test_event_action_requires_fields(client, alice):
    res = await client.post(f"{MODERATION}/events", json={"action": "hide"},
                            headers=auth(alice))
    assert res.json()["error"]["message"] == "eventId and action are required."
