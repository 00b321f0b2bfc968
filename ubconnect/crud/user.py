import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ubconnect.config import settings, USERS_COLLECTION
from ubconnect.errors import NotFoundError, ValidationError
from ubconnect.schemas.base import to_stored_fields, utc_now
from ubconnect.schemas.user import (
    DISPLAY_NAME_MAX_LENGTH, PROFILE_WRITABLE_FIELDS, USER_PROFILE_SCHEMA,
    UserProfile, user_profile_from_stored_doc, validate_user_profile,
)
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, doc_path
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

# Stored names accepted in a patch, mapped to attribute names
_STORED_TO_ATTR = {USER_PROFILE_SCHEMA.spec(attr).stored: attr for attr in PROFILE_WRITABLE_FIELDS}


def user_path(uid: str) -> str:
    return doc_path(USERS_COLLECTION, uid)


class UserProfilesCRUD:

    def __init__(self, store: DocumentStore):
        self.store = store

    async def fetch_user_profile(self, uid: str) -> Optional[UserProfile]:
        doc = await self.store.get(user_path(uid))
        return user_profile_from_stored_doc(uid, doc.data if doc else None)

    async def get_or_create_user_profile(self, uid: str, defaults: Optional[Mapping[str, Any]] = None) -> UserProfile:
        """Return the profile, creating it on first sign-in with the default display name."""
        doc = await self.store.get(user_path(uid))
        if doc is not None:
            return user_profile_from_stored_doc(uid, doc.data)

        defaults = defaults or {}
        display_name = defaults.get("display_name")
        if not isinstance(display_name, str) or not display_name.strip():
            display_name = settings.DEFAULT_DISPLAY_NAME
        display_name = display_name.strip()[:DISPLAY_NAME_MAX_LENGTH]

        fields = {
            "displayName": display_name,
            "displayNameLower": display_name.lower(),
            "bio": "",
            "program": "",
            "year": "",
            "interests": [],
        }
        if isinstance(defaults.get("photo_url"), str):
            fields["photoURL"] = defaults["photo_url"]

        await self.store.set(user_path(uid), {**fields, "createdAt": SERVER_TIMESTAMP, "lastActiveAt": SERVER_TIMESTAMP})
        logger.info(f"Created profile for user {uid}")
        now = utc_now()
        return user_profile_from_stored_doc(uid, {**fields, "createdAt": now, "lastActiveAt": now})

    async def update_user_profile(self, uid: str, patch: Mapping[str, Any]) -> UserProfile:
        """
        Apply an owner edit to the profile.

        Only writable fields are taken from ``patch`` (attribute or stored
        names); the merged profile is validated before the full document is
        written back with a recomputed ``displayNameLower``.

        Raises:
            NotFoundError: the profile does not exist
            ValidationError: the merged profile breaks a rule
        """
        current = await self.fetch_user_profile(uid)
        if current is None:
            raise NotFoundError(f"profile {uid} not found")

        changes: Dict[str, Any] = {}
        for key, value in patch.items():
            attr = _STORED_TO_ATTR.get(key, key)
            if attr in PROFILE_WRITABLE_FIELDS and value is not None:
                changes[attr] = value.strip() if isinstance(value, str) else value

        merged = {attr: getattr(current, attr) for attr in PROFILE_WRITABLE_FIELDS}
        merged.update(changes)
        if isinstance(merged["display_name"], str):
            merged["display_name_lower"] = merged["display_name"].lower()

        result = validate_user_profile(merged)
        if not result.valid:
            raise ValidationError(result.errors)

        stored = to_stored_fields(USER_PROFILE_SCHEMA, merged)
        await self.store.set(user_path(uid), {
            **stored,
            "createdAt": current.created_at,
            "lastActiveAt": SERVER_TIMESTAMP,
        })
        logger.info(f"Updated profile for user {uid}: {sorted(changes)}")
        return user_profile_from_stored_doc(uid, {**stored, "createdAt": current.created_at, "lastActiveAt": utc_now()})

    async def search_users(self, text: str, page_size: Optional[int] = None) -> List[UserProfile]:
        """Prefix match on the lowercase display name."""
        prefix = (text or "").strip().lower()
        if len(prefix) < settings.SEARCH_MIN_CHARS:
            return []
        docs = await self.store.query(Query(
            collection=USERS_COLLECTION,
            where_prefix=("displayNameLower", prefix),
            order_by="displayNameLower",
            limit=page_size or settings.USER_SEARCH_PAGE_SIZE,
        ))
        return [user_profile_from_stored_doc(doc.id, doc.data) for doc in docs]

    async def fetch_profiles(self, uids: Iterable[str]) -> Dict[str, UserProfile]:
        """Concurrent point reads keyed by uid; missing profiles are left out."""
        unique = [uid for uid in dict.fromkeys(uids) if uid]
        profiles = await asyncio.gather(*(self.fetch_user_profile(uid) for uid in unique))
        return {uid: profile for uid, profile in zip(unique, profiles) if profile is not None}
