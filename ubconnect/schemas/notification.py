from pydantic import BaseModel
from typing import Any, List, Mapping, Optional
from datetime import datetime
from enum import Enum

from ubconnect.schemas.base import (
    DATETIME, ENUM, OPTIONAL_STRING, STRING,
    EntitySchema, FieldSpec, Rule, ValidationResult,
    map_stored_doc, utc_now, validate_candidate,
)


class NotificationType(str, Enum):
    FRIEND_REQUEST = "friend_request"
    EVENT_LIVE = "event_live"
    COMMENT = "comment"
    REPLY = "reply"


NOTIFICATION_TYPES = tuple(t.value for t in NotificationType)


class Notification(BaseModel):
    """Normalized ``users/{targetUid}/notifications/{id}`` document."""
    id: str
    type: str
    actor_uid: str
    actor_name: str
    target_uid: str
    event_id: Optional[str] = None
    comment_id: Optional[str] = None
    root_comment_id: Optional[str] = None
    created_at: datetime
    read_at: Optional[datetime] = None

    class Config:
        frozen = True

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


def _self_notification(lookup) -> bool:
    actor, target = lookup("actor_uid"), lookup("target_uid")
    return bool(actor) and actor == target


SELF_NOTIFICATION_MESSAGE = "cannot notify yourself"

NOTIFICATION_SCHEMA = EntitySchema(
    name="notification",
    id_attr="id",
    fields=(
        FieldSpec("type", "type", ENUM, required=True, choices=NOTIFICATION_TYPES,
                  default=NotificationType.COMMENT.value),
        FieldSpec("actorUid", "actor_uid", STRING, required=True),
        FieldSpec("actorName", "actor_name", STRING),
        FieldSpec("targetUid", "target_uid", STRING, required=True),
        FieldSpec("eventId", "event_id", OPTIONAL_STRING),
        FieldSpec("commentId", "comment_id", OPTIONAL_STRING),
        FieldSpec("rootCommentId", "root_comment_id", OPTIONAL_STRING),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda doc_id, mapped: utc_now()),
        FieldSpec("readAt", "read_at", DATETIME),
    ),
    rules=(
        Rule(SELF_NOTIFICATION_MESSAGE, _self_notification),
    ),
)


def notification_from_stored_doc(notification_id: str, data: Optional[Mapping[str, Any]]) -> Optional[Notification]:
    return map_stored_doc(NOTIFICATION_SCHEMA, Notification, notification_id, data)


def validate_notification(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(NOTIFICATION_SCHEMA, candidate)


class NotificationsPage(BaseModel):
    notifications: List[Notification]
    cursor: Optional[str] = None
    unread_count: Optional[int] = None


class NotificationsDelete(BaseModel):
    ids: List[str]
