from pydantic import BaseModel
from typing import Any, Mapping, Optional
from datetime import datetime
from enum import Enum

from ubconnect.schemas.base import (
    DATETIME, ENUM, STRING,
    EntitySchema, FieldSpec, ValidationResult,
    map_stored_doc, utc_now, validate_candidate,
)


class RsvpStatus(str, Enum):
    GOING = "going"
    INTERESTED = "interested"


RSVP_STATUSES = tuple(s.value for s in RsvpStatus)


class Rsvp(BaseModel):
    """Normalized ``connectEvents/{eventId}/rsvps/{uid}`` document."""
    id: str
    user_id: str
    status: str
    created_at: datetime

    class Config:
        frozen = True


RSVP_SCHEMA = EntitySchema(
    name="rsvp",
    id_attr="id",
    fields=(
        # Collection-group queries lose the parent path, so the uid is duplicated
        FieldSpec("userId", "user_id", STRING, default=lambda doc_id, mapped: doc_id),
        FieldSpec("status", "status", ENUM, required=True, choices=RSVP_STATUSES,
                  default=RsvpStatus.GOING.value),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda doc_id, mapped: utc_now()),
    ),
)


def rsvp_from_stored_doc(uid: str, data: Optional[Mapping[str, Any]]) -> Optional[Rsvp]:
    return map_stored_doc(RSVP_SCHEMA, Rsvp, uid, data)


def validate_rsvp(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(RSVP_SCHEMA, candidate)


class RsvpCreate(BaseModel):
    status: Any = None


class RsvpSummary(BaseModel):
    event_id: str
    count: int
    status: Optional[RsvpStatus] = None
