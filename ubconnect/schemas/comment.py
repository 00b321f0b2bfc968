from pydantic import BaseModel
from typing import Any, List, Mapping, Optional
from datetime import datetime

from ubconnect.schemas.base import (
    DATETIME, OPTIONAL_STRING, STRING,
    EntitySchema, FieldSpec, ValidationResult,
    map_stored_doc, utc_now, validate_candidate,
)

TEXT_MAX_LENGTH = 500


class Comment(BaseModel):
    """Normalized ``connectEvents/{eventId}/comments/{id}`` document."""
    id: str
    text: str
    created_at: datetime
    created_by: str
    created_by_name: str
    parent_id: Optional[str] = None
    root_id: str
    reply_to_uid: Optional[str] = None

    class Config:
        frozen = True

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


COMMENT_SCHEMA = EntitySchema(
    name="comment",
    id_attr="id",
    fields=(
        FieldSpec("text", "text", STRING, required=True, max_length=TEXT_MAX_LENGTH),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda doc_id, mapped: utc_now()),
        FieldSpec("createdBy", "created_by", STRING, required=True),
        FieldSpec("createdByName", "created_by_name", STRING),
        FieldSpec("parentId", "parent_id", OPTIONAL_STRING),
        # Roots written before threading existed have no rootId: they are their own root
        FieldSpec("rootId", "root_id", STRING, default=lambda doc_id, mapped: doc_id),
        FieldSpec("replyToUid", "reply_to_uid", OPTIONAL_STRING),
    ),
)


def comment_from_stored_doc(comment_id: str, data: Optional[Mapping[str, Any]]) -> Optional[Comment]:
    return map_stored_doc(COMMENT_SCHEMA, Comment, comment_id, data)


def validate_comment(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(COMMENT_SCHEMA, candidate)


class ReplyTarget(BaseModel):
    """The comment being replied to."""
    comment_id: str
    root_id: str
    uid: str


class CommentCreate(BaseModel):
    text: Any = None
    reply_to: Optional[ReplyTarget] = None


class CommentsPage(BaseModel):
    comments: List[Comment]
    cursor: Optional[str] = None
