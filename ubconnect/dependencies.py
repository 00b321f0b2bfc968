from fastapi import Depends, Request
from typing import List, Optional
from ubconnect.auth import get_current_user
from ubconnect.config import settings
from ubconnect.crud import (
    CommentsCRUD, EventsCRUD, FriendsCRUD, NotificationsCRUD, RsvpCRUD, UserProfilesCRUD,
)
from ubconnect.schemas.user import CurrentUser, UserProfile
from ubconnect.store.base import DocumentStore
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

# One store per worker process, built lazily from settings
_store: Optional[DocumentStore] = None


def build_store(backend: str) -> DocumentStore:
    """Create the document store for ``backend`` (firestore | sql | memory)."""
    if backend == "memory":
        from ubconnect.store.memory import MemoryDocumentStore
        return MemoryDocumentStore()
    if backend == "sql":
        from ubconnect.database import get_session_local
        from ubconnect.store.sql import SqlDocumentStore
        return SqlDocumentStore(get_session_local())
    if backend == "firestore":
        from ubconnect.store.firestore import FirestoreDocumentStore
        return FirestoreDocumentStore()
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = build_store(settings.STORE_BACKEND)
        logger.info(f"Document store initialized: {type(_store).__name__}")
    return _store


def get_notifications_crud(store: DocumentStore = Depends(get_store)) -> NotificationsCRUD:
    return NotificationsCRUD(store)


def get_profiles_crud(store: DocumentStore = Depends(get_store)) -> UserProfilesCRUD:
    return UserProfilesCRUD(store)


def get_friends_crud(
    store: DocumentStore = Depends(get_store),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
) -> FriendsCRUD:
    return FriendsCRUD(store, notifications)


def get_events_crud(
    store: DocumentStore = Depends(get_store),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
) -> EventsCRUD:
    return EventsCRUD(store, notifications)


def get_comments_crud(
    store: DocumentStore = Depends(get_store),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
) -> CommentsCRUD:
    return CommentsCRUD(store, notifications)


def get_rsvp_crud(store: DocumentStore = Depends(get_store)) -> RsvpCRUD:
    return RsvpCRUD(store)


def get_optional_request_id(request: Request) -> Optional[str]:
    """Request ID set by RequestIDMiddleware, or None outside of it."""
    return getattr(request.state, 'request_id', None)


async def get_current_profile(
    user: CurrentUser = Depends(get_current_user),
    profiles: UserProfilesCRUD = Depends(get_profiles_crud),
) -> UserProfile:
    """Profile of the signed-in user, created on first use."""
    return await profiles.get_or_create_user_profile(user.uid, {"display_name": user.display_name})


async def get_friend_uids(
    user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
) -> List[str]:
    return await friends.fetch_friend_uids(user.uid)
