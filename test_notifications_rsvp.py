import asyncio
import time
from datetime import datetime, timedelta

import pytest
import pytz

from ubconnect.crud import NotificationsCRUD, RsvpCRUD
from ubconnect.errors import SelfNotificationError, StoreError, StoreErrorCode, ValidationError
from ubconnect.schemas.rsvp import RsvpStatus
from ubconnect.store.memory import MemoryDocumentStore

BASE = datetime(2024, 11, 1, tzinfo=pytz.utc)


def run(coro):
    return asyncio.run(coro)


def put_notification(store, uid, notification_id, minutes, read=False):
    run(store.set(f"users/{uid}/notifications/{notification_id}", {
        "type": "comment",
        "actorUid": "someone",
        "actorName": "Someone",
        "targetUid": uid,
        "eventId": "e1",
        "createdAt": BASE + timedelta(minutes=minutes),
        "readAt": BASE if read else None,
    }))


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def test_self_notification_rejected(notifications, store):
    with pytest.raises(SelfNotificationError):
        run(notifications.create_notification("comment", "u1", "U", "u1", event_id="e1"))
    assert run(notifications.fetch_notifications("u1")).notifications == []


def test_unknown_type_rejected(notifications):
    with pytest.raises(ValidationError) as excinfo:
        run(notifications.create_notification("poke", "u1", "U", "u2"))
    assert excinfo.value.errors == ["type must be one of: friend_request, event_live, comment, reply"]


def test_optional_ids_only_written_when_defined(notifications, store):
    created = run(notifications.create_notification("friend_request", "u1", "U", "u2"))

    raw = store.raw(f"users/u2/notifications/{created.id}")
    assert "eventId" not in raw
    assert "commentId" not in raw
    assert "rootCommentId" not in raw
    assert raw["readAt"] is None
    assert isinstance(raw["createdAt"], datetime)


def test_notify_skips_actor_and_missing_target(notifications):
    assert run(notifications.notify("comment", "u1", "U", "u1", event_id="e1")) is None
    assert run(notifications.notify("comment", "u1", "U", None, event_id="e1")) is None
    assert run(notifications.fetch_notifications("u1")).notifications == []


def test_notify_swallows_store_failures():
    def outage(op, path):
        raise StoreError(StoreErrorCode.UNAVAILABLE, "backend down")

    notifications = NotificationsCRUD(MemoryDocumentStore(guard=outage))
    assert run(notifications.notify("comment", "u1", "U", "u2", event_id="e1")) is None


def test_fan_out_dedupes_and_skips_actor(notifications):
    written = run(notifications.fan_out("event_live", "host", "Host", ["a", "b", "a", "host", ""], event_id="e1"))
    assert written == 2
    assert len(run(notifications.fetch_notifications("a")).notifications) == 1
    assert run(notifications.fetch_notifications("host")).notifications == []


def test_notifications_page_newest_first(notifications, store):
    for i in range(5):
        put_notification(store, "u1", f"n{i}", i)

    first = run(notifications.fetch_notifications("u1", page_size=3))
    second = run(notifications.fetch_notifications("u1", page_size=3, cursor=first.cursor))

    assert [n.id for n in first.notifications] == ["n4", "n3", "n2"]
    assert first.cursor == "n2"
    assert [n.id for n in second.notifications] == ["n1", "n0"]
    assert second.cursor is None


def test_unread_count_and_mark_read(notifications, store):
    put_notification(store, "u1", "n1", 1)
    put_notification(store, "u1", "n2", 2)
    put_notification(store, "u1", "n3", 3, read=True)
    assert run(notifications.fetch_unread_count("u1")) == 2

    run(notifications.mark_read("u1", "n1"))

    assert run(notifications.fetch_unread_count("u1")) == 1
    assert isinstance(store.raw("users/u1/notifications/n1")["readAt"], datetime)


def test_mark_read_missing_notification(notifications):
    with pytest.raises(StoreError) as excinfo:
        run(notifications.mark_read("u1", "ghost"))
    assert excinfo.value.code == StoreErrorCode.NOT_FOUND


def test_delete_notifications_in_one_batch(notifications, store):
    put_notification(store, "u1", "n1", 1)
    put_notification(store, "u1", "n2", 2)
    put_notification(store, "u1", "n3", 3)

    assert run(notifications.delete_notifications("u1", ["n1", "n3", "n1", "ghost"])) == 3
    assert [n.id for n in run(notifications.fetch_notifications("u1")).notifications] == ["n2"]
    assert run(notifications.delete_notifications("u1", [])) == 0


# ---------------------------------------------------------------------------
# RSVPs
# ---------------------------------------------------------------------------

def test_rsvp_upsert_overwrites(rsvps, store):
    run(rsvps.rsvp("e1", "u1", "interested"))
    run(rsvps.rsvp("e1", "u1", RsvpStatus.GOING))

    assert store.raw("connectEvents/e1/rsvps/u1")["status"] == "going"
    assert run(rsvps.fetch_rsvp_count("e1")) == 1
    assert run(rsvps.fetch_rsvp_status("e1", "u1")) == RsvpStatus.GOING


def test_rsvp_invalid_status(rsvps, store):
    with pytest.raises(ValidationError):
        run(rsvps.rsvp("e1", "u1", "maybe"))
    assert store.raw("connectEvents/e1/rsvps/u1") is None


def test_rsvp_summary_and_remove(rsvps):
    run(rsvps.rsvp("e1", "u1"))
    run(rsvps.rsvp("e1", "u2", "interested"))

    summary = run(rsvps.fetch_rsvp_summary("e1", "u2"))
    assert (summary.count, summary.status) == (2, RsvpStatus.INTERESTED)

    run(rsvps.remove_rsvp("e1", "u2"))
    run(rsvps.remove_rsvp("e1", "u2"))

    summary = run(rsvps.fetch_rsvp_summary("e1", "u2"))
    assert (summary.count, summary.status) == (1, None)
    assert run(rsvps.fetch_rsvp_summary("e1")).status is None


def test_attending_ids_come_from_going_rsvps(rsvps, store):
    for event_id, minutes, status in [("old", 1, "going"), ("new", 2, "going"), ("maybe", 3, "interested")]:
        run(store.set(f"connectEvents/{event_id}/rsvps/u1", {
            "userId": "u1", "status": status, "createdAt": BASE + timedelta(minutes=minutes),
        }))
    run(store.set("connectEvents/other/rsvps/u2", {"userId": "u2", "status": "going", "createdAt": BASE}))

    result = run(rsvps.fetch_user_attending_event_ids("u1"))

    assert result.ids == ["new", "old"]
    assert result.error is None


def test_attending_reports_error_category_instead_of_partial_list():
    def deny(op, path):
        if op == "query":
            raise StoreError(StoreErrorCode.PERMISSION_DENIED, "missing or insufficient permissions")

    result = run(RsvpCRUD(MemoryDocumentStore(guard=deny)).fetch_user_attending_event_ids("u1"))
    assert result.ids == []
    assert result.error == "permission-denied"


def test_mark_read_through_service_sets_read_at(any_store):
    notifications = NotificationsCRUD(any_store)
    created = run(notifications.create_notification("comment", "a", "A", "b", event_id="e1"))

    [unread] = run(notifications.fetch_notifications("b")).notifications
    assert unread.read_at is None
    assert isinstance(unread.created_at, datetime)

    run(notifications.mark_read("b", created.id))

    [read] = run(notifications.fetch_notifications("b")).notifications
    assert read.read_at is not None
    assert read.is_read
    assert run(notifications.fetch_unread_count("b")) == 0


def test_notifications_created_through_service_newest_first(any_store):
    notifications = NotificationsCRUD(any_store)
    for actor in ["a1", "a2", "a3"]:
        run(notifications.create_notification("comment", actor, actor.upper(), "b", event_id="e1"))
        time.sleep(0.01)

    page = run(notifications.fetch_notifications("b"))

    assert [n.actor_uid for n in page.notifications] == ["a3", "a2", "a1"]
