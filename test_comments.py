import asyncio
import time
from datetime import datetime, timedelta

import pytest
import pytz

from ubconnect.crud import CommentsCRUD
from ubconnect.errors import InvalidThreadError, NotFoundError, ValidationError
from ubconnect.schemas.comment import ReplyTarget

BASE = datetime(2024, 10, 1, tzinfo=pytz.utc)
COMMENTS = "connectEvents/e1/comments"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def hosted_event(store):
    run(store.set("connectEvents/e1", {
        "title": "Hackathon", "description": "48 hours", "createdBy": "host", "createdAt": BASE,
    }))


def put_comment(store, comment_id, minutes, parent_id=None, created_by="u1"):
    run(store.set(f"{COMMENTS}/{comment_id}", {
        "text": f"comment {comment_id}",
        "createdBy": created_by,
        "createdByName": "",
        "parentId": parent_id,
        "rootId": parent_id or comment_id,
        "replyToUid": None,
        "createdAt": BASE + timedelta(minutes=minutes),
    }))


def test_root_comment_is_its_own_root(comments, store):
    comment = run(comments.add_comment("e1", "  Count me in  ", "guest", "Guest"))

    raw = store.raw(f"{COMMENTS}/{comment.id}")
    assert raw["text"] == "Count me in"
    assert raw["parentId"] is None
    assert raw["rootId"] == comment.id
    assert comment.is_root


def test_root_comment_notifies_event_creator(comments, notifications):
    comment = run(comments.add_comment("e1", "Looks fun", "guest", "Guest"))

    [notification] = run(notifications.fetch_notifications("host")).notifications
    assert notification.type == "comment"
    assert notification.actor_uid == "guest"
    assert notification.event_id == "e1"
    assert notification.comment_id == comment.id
    assert notification.root_comment_id == comment.id


def test_commenting_on_own_event_sends_nothing(comments, notifications):
    run(comments.add_comment("e1", "Doors open at 9", "host", "Host"))
    assert run(notifications.fetch_notifications("host")).notifications == []


def test_reply_hangs_off_root_and_notifies_target(comments, notifications, store):
    root = run(comments.add_comment("e1", "Who is bringing snacks?", "guest", "Guest"))
    reply = run(comments.add_comment(
        "e1", "I will", "host", "Host",
        ReplyTarget(comment_id=root.id, root_id=root.id, uid="guest"),
    ))

    raw = store.raw(f"{COMMENTS}/{reply.id}")
    assert raw["parentId"] == root.id
    assert raw["rootId"] == root.id
    assert raw["replyToUid"] == "guest"

    [notification] = run(notifications.fetch_notifications("guest")).notifications
    assert notification.type == "reply"
    assert notification.comment_id == reply.id
    assert notification.root_comment_id == root.id


def test_reply_to_a_reply_stays_on_the_root(comments, store):
    root = run(comments.add_comment("e1", "Team up?", "a", "A"))
    first = run(comments.add_comment("e1", "Sure", "b", "B", ReplyTarget(comment_id=root.id, root_id=root.id, uid="a")))
    second = run(comments.add_comment("e1", "Me too", "c", "C", ReplyTarget(comment_id=first.id, root_id=root.id, uid="b")))

    assert store.raw(f"{COMMENTS}/{second.id}")["parentId"] == root.id
    assert store.raw(f"{COMMENTS}/{second.id}")["replyToUid"] == "b"


def test_reply_to_missing_root_rejected(comments):
    with pytest.raises(InvalidThreadError):
        run(comments.add_comment("e1", "hello?", "guest", "Guest", ReplyTarget(comment_id="x", root_id="gone", uid="u")))


def test_reply_target_must_be_top_level(comments, store):
    put_comment(store, "root", 1)
    put_comment(store, "child", 2, parent_id="root")
    with pytest.raises(InvalidThreadError):
        run(comments.add_comment("e1", "nested", "guest", "Guest", ReplyTarget(comment_id="child", root_id="child", uid="u1")))


def test_comment_on_missing_event(comments):
    with pytest.raises(NotFoundError):
        run(comments.add_comment("nope", "hi", "guest", "Guest"))


@pytest.mark.parametrize("text", ["", "    ", "x" * 501])
def test_comment_text_validated_before_write(comments, store, text):
    with pytest.raises(ValidationError):
        run(comments.add_comment("e1", text, "guest", "Guest"))
    assert run(comments.fetch_event_comments("e1")) == []


def test_roots_newest_first_and_replies_oldest_first(comments, store):
    put_comment(store, "r1", 1)
    put_comment(store, "r2", 2)
    put_comment(store, "r3", 3)
    put_comment(store, "r1a", 4, parent_id="r1")
    put_comment(store, "r1b", 5, parent_id="r1")

    roots = run(comments.fetch_top_level_comments("e1"))
    replies = run(comments.fetch_replies("e1", "r1"))

    assert [c.id for c in roots.comments] == ["r3", "r2", "r1"]
    assert [c.id for c in replies.comments] == ["r1a", "r1b"]
    assert roots.cursor is None
    assert len(run(comments.fetch_event_comments("e1"))) == 5


def test_top_level_comments_page_with_cursor(comments, store):
    for i in range(5):
        put_comment(store, f"r{i}", i)

    first = run(comments.fetch_top_level_comments("e1", page_size=2))
    second = run(comments.fetch_top_level_comments("e1", page_size=2, cursor=first.cursor))
    last = run(comments.fetch_top_level_comments("e1", page_size=2, cursor=second.cursor))

    assert [c.id for c in first.comments] == ["r4", "r3"]
    assert [c.id for c in second.comments] == ["r2", "r1"]
    assert [c.id for c in last.comments] == ["r0"]
    assert last.cursor is None


def test_comments_written_through_service_keep_thread_order(any_store):
    run(any_store.set("connectEvents/e1", {"title": "Hackathon", "description": "d", "createdBy": "host"}))
    comments = CommentsCRUD(any_store)
    first = run(comments.add_comment("e1", "first", "a", "A"))
    time.sleep(0.01)
    second = run(comments.add_comment("e1", "second", "b", "B"))
    time.sleep(0.01)
    reply_one = run(comments.add_comment("e1", "reply one", "c", "C", ReplyTarget(comment_id=first.id, root_id=first.id, uid="a")))
    time.sleep(0.01)
    reply_two = run(comments.add_comment("e1", "reply two", "d", "D", ReplyTarget(comment_id=first.id, root_id=first.id, uid="a")))

    roots = run(comments.fetch_top_level_comments("e1"))
    replies = run(comments.fetch_replies("e1", first.id))

    assert [c.id for c in roots.comments] == [second.id, first.id]
    assert [c.id for c in replies.comments] == [reply_one.id, reply_two.id]
