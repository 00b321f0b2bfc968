from pydantic import BaseModel
from typing import Any, List, Mapping, Optional
from datetime import datetime

from ubconnect.schemas.base import (
    DATETIME, OPTIONAL_STRING, STRING, STRING_LIST,
    EntitySchema, FieldSpec, Rule, ValidationResult,
    map_stored_doc, utc_now, validate_candidate,
)

DISPLAY_NAME_MAX_LENGTH = 50
BIO_MAX_LENGTH = 280

# Fields a profile owner may write; anything else in a patch is ignored
PROFILE_WRITABLE_FIELDS = ("display_name", "photo_url", "bio", "program", "year", "interests")


class UserProfile(BaseModel):
    """Normalized ``users/{uid}`` document."""
    uid: str
    display_name: str
    display_name_lower: str
    photo_url: Optional[str] = None
    bio: str = ""
    program: str = ""
    year: str = ""
    interests: List[str] = []
    created_at: datetime
    last_active_at: Optional[datetime] = None

    class Config:
        frozen = True


def _lower_mismatch(lookup) -> bool:
    name, lower = lookup("display_name"), lookup("display_name_lower")
    if not isinstance(name, str) or lower is None:
        return False
    return lower != name.lower()


USER_PROFILE_SCHEMA = EntitySchema(
    name="user_profile",
    id_attr="uid",
    fields=(
        # Legacy profiles only carried "name"
        FieldSpec("displayName", "display_name", STRING, required=True,
                  max_length=DISPLAY_NAME_MAX_LENGTH, aliases=("name",)),
        FieldSpec("displayNameLower", "display_name_lower", STRING,
                  default=lambda uid, mapped: mapped["display_name"].lower()),
        FieldSpec("photoURL", "photo_url", OPTIONAL_STRING),
        FieldSpec("bio", "bio", STRING, max_length=BIO_MAX_LENGTH),
        FieldSpec("program", "program", STRING, max_length=100),
        FieldSpec("year", "year", STRING, max_length=20),
        FieldSpec("interests", "interests", STRING_LIST),
        FieldSpec("createdAt", "created_at", DATETIME, default=lambda uid, mapped: utc_now()),
        FieldSpec("lastActiveAt", "last_active_at", DATETIME),
    ),
    rules=(
        Rule("displayNameLower must be the lowercase of displayName", _lower_mismatch),
    ),
)


def user_profile_from_stored_doc(uid: str, data: Optional[Mapping[str, Any]]) -> Optional[UserProfile]:
    return map_stored_doc(USER_PROFILE_SCHEMA, UserProfile, uid, data)


def validate_user_profile(candidate: Mapping[str, Any]) -> ValidationResult:
    return validate_candidate(USER_PROFILE_SCHEMA, candidate)


class UserProfileUpdate(BaseModel):
    """Profile edit payload; only provided fields are written."""
    display_name: Any = None
    photo_url: Any = None
    bio: Any = None
    program: Any = None
    year: Any = None
    interests: Any = None


class CurrentUser(BaseModel):
    """Identity established by the auth boundary."""
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    display_name: Optional[str] = None
