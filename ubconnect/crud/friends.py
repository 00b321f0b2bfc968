import asyncio
from typing import List, Optional

from ubconnect.config import USERS_COLLECTION, FRIEND_REQUESTS_COLLECTION, FRIENDS_SUBCOLLECTION
from ubconnect.crud.notifications import NotificationsCRUD
from ubconnect.crud.user import UserProfilesCRUD
from ubconnect.errors import (
    AlreadyExistsError, InvalidTransitionError, SelfReferenceError, ValidationError,
)
from ubconnect.schemas.base import utc_now
from ubconnect.schemas.friends import (
    FriendEdge, FriendRequest, FriendRequestStatus, FriendStatus,
    FriendWithProfile, FriendsListResponse,
    friend_edge_from_stored_doc, friend_request_from_stored_doc,
    make_friend_request_id, validate_friend_request,
)
from ubconnect.schemas.notification import NotificationType
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDoc, doc_path
from ubconnect.telemetry import log_event
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

SELF_REQUEST_MESSAGE = "cannot send friend request to yourself"
REQUEST_EXISTS_MESSAGE = "request already exists"

_OPEN_STATUSES = (FriendRequestStatus.PENDING.value, FriendRequestStatus.ACCEPTED.value)


def request_path(from_uid: str, to_uid: str) -> str:
    return doc_path(FRIEND_REQUESTS_COLLECTION, make_friend_request_id(from_uid, to_uid))


def friends_collection(owner_uid: str) -> str:
    return doc_path(USERS_COLLECTION, owner_uid, FRIENDS_SUBCOLLECTION)


def edge_path(owner_uid: str, friend_uid: str) -> str:
    return doc_path(friends_collection(owner_uid), friend_uid)


def _edge_fields(owner_uid: str, friend_uid: str, since=SERVER_TIMESTAMP):
    return {"friendUid": friend_uid, "ownerUid": owner_uid, "since": since, "createdAt": SERVER_TIMESTAMP}


def _request(doc: Optional[StoredDoc]) -> Optional[FriendRequest]:
    return friend_request_from_stored_doc(doc.id, doc.data) if doc else None


def _edge(owner_uid: str, doc: StoredDoc) -> FriendEdge:
    # Edges written by older clients did not store their owner
    return friend_edge_from_stored_doc(doc.id, {"ownerUid": owner_uid, **doc.data})


class FriendsCRUD:
    """
    Friend graph: requests keyed ``{fromUid}_{toUid}`` plus one edge per side.

    A request moves ``pending -> accepted | rejected | cancelled``. Accepting
    writes the status and both edges in one batch; removing a friend deletes
    both edges in one batch, so the graph stays symmetric.
    """

    def __init__(self, store: DocumentStore, notifications: Optional[NotificationsCRUD] = None):
        self.store = store
        self.notifications = notifications or NotificationsCRUD(store)
        self.profiles = UserProfilesCRUD(store)

    async def send_friend_request(self, from_uid: str, to_uid: str, from_name: Optional[str] = None) -> FriendRequest:
        """Send a friend request; an earlier rejected or cancelled request is overwritten."""
        if from_uid == to_uid:
            raise SelfReferenceError(SELF_REQUEST_MESSAGE)
        candidate = {"fromUid": from_uid, "toUid": to_uid, "status": FriendRequestStatus.PENDING.value}
        result = validate_friend_request(candidate)
        if not result.valid:
            raise ValidationError(result.errors)

        edge, outgoing, incoming = await asyncio.gather(
            self.store.get(edge_path(from_uid, to_uid)),
            self.store.get(request_path(from_uid, to_uid)),
            self.store.get(request_path(to_uid, from_uid)),
        )
        if edge is not None:
            raise AlreadyExistsError("already friends")
        for existing in (_request(outgoing), _request(incoming)):
            if existing is not None and existing.status in _OPEN_STATUSES:
                raise AlreadyExistsError(REQUEST_EXISTS_MESSAGE)

        await self.store.set(request_path(from_uid, to_uid), {
            **candidate,
            "createdAt": SERVER_TIMESTAMP,
            "respondedAt": None,
        })
        logger.info(f"Friend request sent from {from_uid} to {to_uid}")
        log_event("friend_request_sent")

        await self.notifications.notify(NotificationType.FRIEND_REQUEST.value, from_uid, from_name, to_uid)
        return friend_request_from_stored_doc(
            make_friend_request_id(from_uid, to_uid), {**candidate, "createdAt": utc_now()}
        )

    async def _pending_request(self, from_uid: str, to_uid: str) -> FriendRequest:
        request = _request(await self.store.get(request_path(from_uid, to_uid)))
        if request is None:
            raise InvalidTransitionError("no friend request to respond to")
        if request.from_uid != from_uid or request.to_uid != to_uid:
            raise InvalidTransitionError("friend request does not belong to these users")
        if request.status != FriendRequestStatus.PENDING.value:
            raise InvalidTransitionError(f"friend request is already {request.status}")
        return request

    async def _close_request(self, from_uid: str, to_uid: str, status: FriendRequestStatus) -> FriendRequest:
        request = await self._pending_request(from_uid, to_uid)
        await self.store.update(request_path(from_uid, to_uid), {
            "status": status.value,
            "respondedAt": SERVER_TIMESTAMP,
        })
        logger.info(f"Friend request {request.id} {status.value}")
        return request.model_copy(update={"status": status.value, "responded_at": utc_now()})

    async def cancel_friend_request(self, acting_uid: str, to_uid: str) -> FriendRequest:
        """Withdraw the pending request ``acting_uid`` sent to ``to_uid``."""
        return await self._close_request(acting_uid, to_uid, FriendRequestStatus.CANCELLED)

    async def reject_friend_request(self, acting_uid: str, from_uid: str) -> FriendRequest:
        """Decline the pending request ``from_uid`` sent to ``acting_uid``."""
        return await self._close_request(from_uid, acting_uid, FriendRequestStatus.REJECTED)

    async def accept_friend_request(self, acting_uid: str, from_uid: str) -> FriendRequest:
        """Accept the pending request from ``from_uid``: status and both edges in one batch."""
        request = await self._pending_request(from_uid, acting_uid)

        batch = self.store.batch()
        batch.update(request_path(from_uid, acting_uid), {
            "status": FriendRequestStatus.ACCEPTED.value,
            "respondedAt": SERVER_TIMESTAMP,
        })
        batch.set(edge_path(acting_uid, from_uid), _edge_fields(acting_uid, from_uid))
        batch.set(edge_path(from_uid, acting_uid), _edge_fields(from_uid, acting_uid))
        await batch.commit()

        logger.info(f"Friendship created between {from_uid} and {acting_uid}")
        log_event("friend_request_accepted")
        return request.model_copy(update={"status": FriendRequestStatus.ACCEPTED.value, "responded_at": utc_now()})

    async def remove_friend(self, uid: str, friend_uid: str) -> None:
        """Delete both edges, and the accepted request between the pair, in one batch. Idempotent."""
        if uid == friend_uid:
            raise SelfReferenceError("cannot unfriend yourself")
        forward, backward = await asyncio.gather(
            self.store.get(request_path(uid, friend_uid)),
            self.store.get(request_path(friend_uid, uid)),
        )

        batch = self.store.batch()
        batch.delete(edge_path(uid, friend_uid))
        batch.delete(edge_path(friend_uid, uid))
        for doc in (forward, backward):
            request = _request(doc)
            if request is not None and request.status == FriendRequestStatus.ACCEPTED.value:
                batch.delete(doc.path)
        await batch.commit()
        logger.info(f"Friendship removed between {uid} and {friend_uid}")

    async def get_friend_status(self, viewer_uid: str, other_uid: str) -> FriendStatus:
        """Edge first, so an existing friendship wins over a stale pending request."""
        if viewer_uid == other_uid:
            return FriendStatus.NONE
        edge, outgoing, incoming = await asyncio.gather(
            self.store.get(edge_path(viewer_uid, other_uid)),
            self.store.get(request_path(viewer_uid, other_uid)),
            self.store.get(request_path(other_uid, viewer_uid)),
        )
        if edge is not None:
            return FriendStatus.FRIENDS
        outgoing, incoming = _request(outgoing), _request(incoming)
        if outgoing is not None and outgoing.status == FriendRequestStatus.PENDING.value:
            return FriendStatus.PENDING_SENT
        if incoming is not None and incoming.status == FriendRequestStatus.PENDING.value:
            return FriendStatus.PENDING_RECEIVED
        return FriendStatus.NONE

    async def list_friends(self, uid: str) -> List[FriendEdge]:
        """Edges owned by ``uid``, most recent friendship first."""
        docs = await self.store.query(Query(collection=friends_collection(uid)))
        edges = [_edge(uid, doc) for doc in docs]
        edges.sort(key=lambda edge: edge.since, reverse=True)
        return edges

    async def fetch_friend_uids(self, uid: str) -> List[str]:
        return [edge.friend_uid for edge in await self.list_friends(uid)]

    async def list_friends_with_profiles(self, uid: str) -> FriendsListResponse:
        edges = await self.list_friends(uid)
        profiles = await self.profiles.fetch_profiles(edge.friend_uid for edge in edges)
        friends = []
        for edge in edges:
            profile = profiles.get(edge.friend_uid)
            friends.append(FriendWithProfile(
                friend_uid=edge.friend_uid,
                since=edge.since,
                display_name=profile.display_name if profile else None,
            ))
        return FriendsListResponse(friends=friends, total_count=len(friends))

    async def _requests(self, field: str, uid: str) -> List[FriendRequest]:
        docs = await self.store.query(Query(
            collection=FRIEND_REQUESTS_COLLECTION,
            where_equals={field: uid, "status": FriendRequestStatus.PENDING.value},
        ))
        requests = [_request(doc) for doc in docs]
        requests.sort(key=lambda request: request.created_at, reverse=True)
        return requests

    async def fetch_incoming_requests(self, uid: str) -> List[FriendRequest]:
        """Pending requests sent to ``uid``, newest first."""
        return await self._requests("toUid", uid)

    async def fetch_outgoing_requests(self, uid: str) -> List[FriendRequest]:
        """Pending requests sent by ``uid``, newest first."""
        return await self._requests("fromUid", uid)

    async def repair_friend_edge(self, uid: str, friend_uid: str) -> bool:
        """Recreate a missing mirror edge when the other side still exists. Returns True if a write happened."""
        own, mirror = await asyncio.gather(
            self.store.get(edge_path(uid, friend_uid)),
            self.store.get(edge_path(friend_uid, uid)),
        )
        if (own is None) == (mirror is None):
            return False

        if own is not None:
            since = _edge(uid, own).since
            await self.store.set(edge_path(friend_uid, uid), _edge_fields(friend_uid, uid, since))
        else:
            since = _edge(friend_uid, mirror).since
            await self.store.set(edge_path(uid, friend_uid), _edge_fields(uid, friend_uid, since))
        logger.warning(f"Repaired friend edge between {uid} and {friend_uid}")
        return True
