from pydantic import BaseModel
from typing import Any, List, Mapping, Optional
from datetime import datetime
from enum import Enum

from ubconnect.schemas.base import (
    DATETIME, ENUM, STRING,
    EntitySchema, FieldSpec, Rule, ValidationResult,
    map_stored_doc, utc_now, validate_candidate,
)


class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class FriendStatus(str, Enum):
    """Relationship between a viewer and another user."""
    NONE = "none"
    PENDING_SENT = "pending_sent"
    PENDING_RECEIVED = "pending_received"
    FRIENDS = "friends"


REQUEST_STATUSES = tuple(s.value for s in FriendRequestStatus)


def make_friend_request_id(from_uid: str, to_uid: str) -> str:
    """Deterministic id, one request per direction."""
    return f"{from_uid}_{to_uid}"


class FriendRequest(BaseModel):
    """Normalized ``friendRequests/{fromUid}_{toUid}`` document."""
    id: str
    from_uid: str
    to_uid: str
    status: str
    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        frozen = True


class FriendEdge(BaseModel):
    """One side of a friendship: ``users/{owner_uid}/friends/{friend_uid}``."""
    friend_uid: str
    owner_uid: str
    since: datetime
    created_at: Optional[datetime] = None

    class Config:
        frozen = True


def _self_request(lookup) -> bool:
    from_uid, to_uid = lookup("from_uid"), lookup("to_uid")
    return bool(from_uid) and from_uid == to_uid


FRIEND_REQUEST_SCHEMA = EntitySchema(
    name="friend_request",
    id_attr="id",
    fields=(
        FieldSpec("fromUid", "from_uid", STRING, required=True),
        FieldSpec("toUid", "to_uid", STRING, required=True),
        # Unknown stored statuses read back as pending
        FieldSpec("status", "status", ENUM, required=True, choices=REQUEST_STATUSES,
                  default=FriendRequestStatus.PENDING.value),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda doc_id, mapped: utc_now()),
        FieldSpec("respondedAt", "responded_at", DATETIME),
    ),
    rules=(
        Rule("cannot send friend request to yourself", _self_request),
    ),
)


def _since_default(doc_id, mapped):
    return mapped.get("created_at") or utc_now()


FRIEND_EDGE_SCHEMA = EntitySchema(
    name="friend_edge",
    id_attr="friend_uid",
    fields=(
        FieldSpec("ownerUid", "owner_uid", STRING, required=True),
        FieldSpec("createdAt", "created_at", DATETIME),
        FieldSpec("since", "since", DATETIME, default=_since_default),
    ),
)


def friend_request_from_stored_doc(request_id: str, data: Optional[Mapping[str, Any]]) -> Optional[FriendRequest]:
    return map_stored_doc(FRIEND_REQUEST_SCHEMA, FriendRequest, request_id, data)


def friend_edge_from_stored_doc(friend_uid: str, data: Optional[Mapping[str, Any]]) -> Optional[FriendEdge]:
    return map_stored_doc(FRIEND_EDGE_SCHEMA, FriendEdge, friend_uid, data)


def validate_friend_request(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(FRIEND_REQUEST_SCHEMA, candidate)


def validate_friend_edge(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(FRIEND_EDGE_SCHEMA, candidate)


# Request / response shapes

class FriendRequestCreate(BaseModel):
    to_uid: str


class FriendWithProfile(BaseModel):
    friend_uid: str
    since: datetime
    display_name: Optional[str] = None


class FriendsListResponse(BaseModel):
    friends: List[FriendWithProfile]
    total_count: int


class FriendRequestsListResponse(BaseModel):
    requests: List[FriendRequest]
    total_count: int


class FriendRequestStatusResponse(BaseModel):
    message: str
    status: str


class FriendStatusResponse(BaseModel):
    uid: str
    status: FriendStatus
