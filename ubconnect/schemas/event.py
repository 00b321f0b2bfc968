from pydantic import BaseModel, Field
from typing import Any, Dict, List, Mapping, Optional, Union
from datetime import datetime

from ubconnect.schemas.base import (
    DATETIME, ENUM, GEO, NUMBER, OPTIONAL_STRING, STRING,
    EntitySchema, FieldSpec, GeoPoint, Rule, ValidationResult,
    map_stored_doc, to_datetime, utc_now, validate_candidate,
)

VISIBILITIES = ("public", "friends")

TITLE_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 2000


class Event(BaseModel):
    """Normalized ``connectEvents/{id}`` document."""
    id: str
    title: str
    title_lower: str
    description: str
    location_name: str
    place_id: str
    category_id: str
    visibility: str
    capacity: Optional[Union[int, float]] = None
    created_by: str
    created_by_name: str
    created_at: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location_geo: Optional[GeoPoint] = None

    class Config:
        frozen = True


def _legacy_geo(raw: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    if raw.get("latitude") is None or raw.get("longitude") is None:
        return None
    return {"latitude": raw.get("latitude"), "longitude": raw.get("longitude")}


def _start_not_before_end(lookup) -> bool:
    start, end = to_datetime(lookup("start_time")), to_datetime(lookup("end_time"))
    return start is not None and end is not None and start >= end


EVENT_SCHEMA = EntitySchema(
    name="event",
    id_attr="id",
    fields=(
        FieldSpec("title", "title", STRING, required=True, max_length=TITLE_MAX_LENGTH),
        FieldSpec("titleLower", "title_lower", STRING,
                  default=lambda doc_id, mapped: mapped["title"].strip().lower()),
        FieldSpec("description", "description", STRING, required=True, max_length=DESCRIPTION_MAX_LENGTH),
        FieldSpec("locationName", "location_name", STRING, max_length=200, aliases=("location",)),
        FieldSpec("placeId", "place_id", STRING),
        FieldSpec("categoryId", "category_id", STRING, aliases=("category",)),
        FieldSpec("visibility", "visibility", ENUM, choices=VISIBILITIES, default="public"),
        FieldSpec("capacity", "capacity", NUMBER, positive=True),
        FieldSpec("createdBy", "created_by", STRING),
        FieldSpec("createdByName", "created_by_name", STRING),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda doc_id, mapped: utc_now()),
        FieldSpec("startTime", "start_time", DATETIME, aliases=("startAt",)),
        FieldSpec("endTime", "end_time", DATETIME, aliases=("endAt",)),
        FieldSpec("locationGeo", "location_geo", GEO, aliases=(_legacy_geo,)),
    ),
    rules=(
        Rule("startTime must be before endTime", _start_not_before_end),
    ),
)


def event_from_stored_doc(event_id: str, data: Optional[Mapping[str, Any]]) -> Optional[Event]:
    return map_stored_doc(EVENT_SCHEMA, Event, event_id, data)


def validate_event(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(EVENT_SCHEMA, candidate)


# Request / response shapes

class EventCreate(BaseModel):
    """Posting form payload. Types are loose so rules are reported by ``validate_event``."""
    title: Any = None
    description: Any = None
    location_name: Any = None
    place_id: Any = None
    category_id: Any = None
    visibility: Any = "public"
    capacity: Any = None
    start_time: Any = None
    end_time: Any = None
    location_geo: Any = None


class FeedResult(BaseModel):
    events: List[Event]
    has_more: bool = False


class AttendingResult(BaseModel):
    ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None
