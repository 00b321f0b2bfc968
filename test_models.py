"""
Mapper and validator behaviour for every stored entity.
"""
from datetime import datetime, timedelta

import pytest
import pytz

from ubconnect.schemas import (
    GeoPoint,
    comment_from_stored_doc, event_from_stored_doc, friend_edge_from_stored_doc,
    friend_request_from_stored_doc, notification_from_stored_doc, rsvp_from_stored_doc,
    user_profile_from_stored_doc,
    validate_comment, validate_event, validate_friend_request, validate_notification,
    validate_rsvp, validate_user_profile,
)
from ubconnect.schemas.base import to_datetime, to_number

CREATED = datetime(2024, 3, 1, 12, 0, tzinfo=pytz.utc)


# ---------------------------------------------------------------------------
# validate_event
# ---------------------------------------------------------------------------

def test_minimal_event_is_valid():
    result = validate_event({"title": "Board games", "description": "Bring snacks"})
    assert result.valid
    assert result.errors == []


def test_missing_title_and_description_reported_in_field_order():
    result = validate_event({"title": "   ", "description": None})
    assert not result.valid
    assert result.errors == ["title is required", "description is required"]


def test_title_length_bound():
    assert validate_event({"title": "t" * 80, "description": "d"}).valid
    result = validate_event({"title": "t" * 81, "description": "d"})
    assert result.errors == ["title must be 80 characters or less"]


def test_description_length_bound():
    assert validate_event({"title": "t", "description": "d" * 2000}).valid
    result = validate_event({"title": "t", "description": "d" * 2001})
    assert result.errors == ["description must be 2000 characters or less"]


@pytest.mark.parametrize("capacity", [0, -3, "zero"])
def test_capacity_must_be_positive(capacity):
    result = validate_event({"title": "t", "description": "d", "capacity": capacity})
    assert result.errors == ["capacity must be a positive number"]


@pytest.mark.parametrize("capacity", [None, 1, 40])
def test_capacity_absent_or_positive_is_valid(capacity):
    assert validate_event({"title": "t", "description": "d", "capacity": capacity}).valid


def test_fractional_capacity_rejected():
    result = validate_event({"title": "t", "description": "d", "capacity": 2.5})
    assert result.errors == ["capacity must be a whole number"]


def test_visibility_choices():
    result = validate_event({"title": "t", "description": "d", "visibility": "secret"})
    assert result.errors == ["visibility must be one of: public, friends"]


def test_start_must_precede_end():
    start = CREATED
    same = validate_event({"title": "t", "description": "d", "startTime": start, "endTime": start})
    assert same.errors == ["startTime must be before endTime"]
    ordered = validate_event({
        "title": "t", "description": "d",
        "start_time": start.isoformat(), "end_time": (start + timedelta(hours=2)).isoformat(),
    })
    assert ordered.valid


def test_validation_accepts_stored_and_attribute_names():
    camel = validate_event({"title": "t", "description": "d", "locationName": "x" * 201})
    snake = validate_event({"title": "t", "description": "d", "location_name": "x" * 201})
    assert camel.errors == snake.errors == ["locationName must be 200 characters or less"]


def test_validation_does_not_mutate_candidate():
    candidate = {"title": "  Padded  ", "description": "d"}
    validate_event(candidate)
    assert candidate == {"title": "  Padded  ", "description": "d"}


def test_invalid_geo_reported():
    result = validate_event({"title": "t", "description": "d", "locationGeo": {"latitude": 120, "longitude": 0}})
    assert result.errors == ["locationGeo must have a valid latitude and longitude"]


# ---------------------------------------------------------------------------
# from_stored_doc
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("mapper", [
    event_from_stored_doc,
    user_profile_from_stored_doc,
    friend_request_from_stored_doc,
    friend_edge_from_stored_doc,
    comment_from_stored_doc,
    rsvp_from_stored_doc,
    notification_from_stored_doc,
])
def test_absent_document_maps_to_none(mapper):
    assert mapper("some-id", None) is None


@pytest.mark.parametrize("mapper", [
    event_from_stored_doc,
    user_profile_from_stored_doc,
    friend_request_from_stored_doc,
    comment_from_stored_doc,
    notification_from_stored_doc,
])
def test_malformed_document_never_raises(mapper):
    record = mapper("some-id", "not a mapping")
    assert record is not None


def test_legacy_event_shape_equals_canonical():
    start = datetime(2024, 3, 2, 18, 0, tzinfo=pytz.utc)
    end = start + timedelta(hours=3)
    canonical = event_from_stored_doc("e1", {
        "title": "Trivia", "description": "Pub night", "locationName": "The Pit",
        "categoryId": "social", "startTime": start, "endTime": end,
        "locationGeo": {"latitude": 49.26, "longitude": -123.25}, "createdAt": CREATED,
    })
    legacy = event_from_stored_doc("e1", {
        "title": "Trivia", "description": "Pub night", "location": "The Pit",
        "category": "social", "startAt": start.isoformat(), "endAt": int(end.timestamp() * 1000),
        "latitude": 49.26, "longitude": -123.25, "createdAt": {"seconds": int(CREATED.timestamp()), "nanoseconds": 0},
    })
    assert legacy.model_dump() == canonical.model_dump()
    assert canonical.location_geo == GeoPoint(latitude=49.26, longitude=-123.25)


def test_canonical_field_wins_over_alias():
    event = event_from_stored_doc("e1", {"title": "t", "locationName": "New", "location": "Old"})
    assert event.location_name == "New"


def test_event_defaults_for_missing_fields():
    event = event_from_stored_doc("e1", {"title": "Late Night Study"})
    assert event.title_lower == "late night study"
    assert event.description == ""
    assert event.visibility == "public"
    assert event.capacity is None
    assert event.start_time is None
    assert event.created_at.tzinfo is not None


def test_event_numeric_coercion():
    assert event_from_stored_doc("e1", {"capacity": "12"}).capacity == 12
    assert event_from_stored_doc("e1", {"capacity": "lots"}).capacity is None
    assert event_from_stored_doc("e1", {"capacity": float("nan")}).capacity is None
    assert event_from_stored_doc("e1", {"visibility": "everyone"}).visibility == "public"


def test_date_coercion_variants():
    assert to_datetime("2024-03-01T12:00:00Z") == CREATED
    assert to_datetime(int(CREATED.timestamp() * 1000)) == CREATED
    assert to_datetime({"seconds": int(CREATED.timestamp()), "nanoseconds": 0}) == CREATED
    assert to_datetime(datetime(2024, 3, 1, 12, 0)) == CREATED
    assert to_datetime("next tuesday") is None
    assert to_datetime(True) is None


def test_number_coercion():
    assert to_number("3") == 3
    assert to_number(2.0) == 2
    assert to_number(True) is None
    assert to_number(float("inf")) is None


def test_profile_falls_back_to_legacy_name():
    profile = user_profile_from_stored_doc("u1", {"name": "Alex Chen"})
    assert profile.display_name == "Alex Chen"
    assert profile.display_name_lower == "alex chen"
    assert profile.interests == []


def test_comment_root_defaults_to_own_id():
    comment = comment_from_stored_doc("c1", {"text": "hi", "createdBy": "u1"})
    assert comment.root_id == "c1"
    assert comment.is_root


def test_friend_edge_since_falls_back_to_created_at():
    edge = friend_edge_from_stored_doc("u2", {"ownerUid": "u1", "createdAt": CREATED})
    assert edge.friend_uid == "u2"
    assert edge.since == CREATED


def test_friend_request_unknown_status_reads_as_pending():
    request = friend_request_from_stored_doc("a_b", {"fromUid": "a", "toUid": "b", "status": "weird"})
    assert request.status == "pending"


def test_notification_is_read_follows_read_at():
    unread = notification_from_stored_doc("n1", {"type": "reply", "actorUid": "a", "targetUid": "b"})
    read = notification_from_stored_doc("n2", {"type": "reply", "actorUid": "a", "targetUid": "b", "readAt": CREATED})
    assert not unread.is_read
    assert read.is_read


def test_rsvp_user_id_defaults_to_doc_id():
    assert rsvp_from_stored_doc("u9", {"status": "interested"}).user_id == "u9"


# ---------------------------------------------------------------------------
# Other validators
# ---------------------------------------------------------------------------

def test_self_friend_request_rejected():
    result = validate_friend_request({"fromUid": "a", "toUid": "a", "status": "pending"})
    assert result.errors == ["cannot send friend request to yourself"]


def test_self_notification_rejected():
    result = validate_notification({"type": "comment", "actorUid": "a", "targetUid": "a"})
    assert result.errors == ["cannot notify yourself"]


def test_comment_text_bounds():
    assert validate_comment({"text": "x" * 500, "createdBy": "u"}).valid
    assert validate_comment({"text": "x" * 501, "createdBy": "u"}).errors == ["text must be 500 characters or less"]
    assert validate_comment({"text": "   ", "createdBy": "u"}).errors == ["text is required"]


def test_rsvp_status_choices():
    assert validate_rsvp({"status": "going"}).valid
    assert validate_rsvp({"status": "maybe"}).errors == ["status must be one of: going, interested"]


def test_profile_lowercase_invariant():
    assert validate_user_profile({"displayName": "Sam", "displayNameLower": "sam"}).valid
    result = validate_user_profile({"displayName": "Sam", "displayNameLower": "SAM"})
    assert result.errors == ["displayNameLower must be the lowercase of displayName"]


def test_profile_display_name_bounds():
    assert validate_user_profile({"displayName": "n" * 50}).valid
    assert validate_user_profile({"displayName": "n" * 51}).errors == ["displayName must be 50 characters or less"]
    assert validate_user_profile({"displayName": ""}).errors == ["displayName is required"]
