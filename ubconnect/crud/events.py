"""
Events and feed assembly.

The feed is the client-side merge of several independent queries (public
events, the viewer's own events, friends-only events of the viewer's
friends), issued concurrently. Pagination re-issues the queries with a
larger page size; there is no cursor.
"""
import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ubconnect.config import settings, EVENTS_COLLECTION
from ubconnect.crud.notifications import NotificationsCRUD
from ubconnect.errors import (
    NotFoundError, OwnershipError, StoreError, ValidationError, is_actionable,
)
from ubconnect.schemas.base import candidate_lookup, to_datetime, to_geo, to_number, to_stored_fields, utc_now
from ubconnect.schemas.event import (
    EVENT_SCHEMA, Event, FeedResult, event_from_stored_doc, validate_event,
)
from ubconnect.schemas.notification import NotificationType
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDoc, doc_path
from ubconnect.telemetry import capture_exception, log_event
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

PUBLIC = "public"
FRIENDS = "friends"


def event_path(event_id: str) -> str:
    return doc_path(EVENTS_COLLECTION, event_id)


def chunked(values: Sequence[str], size: int) -> List[List[str]]:
    return [list(values[i:i + size]) for i in range(0, len(values), size)]


def _clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def merge_feed(results: Iterable[List[StoredDoc]], page_size: int) -> Tuple[List[Event], bool]:
    """Dedupe by id, drop untitled events, newest first, truncate. Returns (events, has_more)."""
    seen: Dict[str, Event] = {}
    for docs in results:
        for doc in docs:
            if doc.id in seen:
                continue
            event = event_from_stored_doc(doc.id, doc.data)
            if event.title.strip():
                seen[doc.id] = event
    events = sorted(seen.values(), key=lambda event: event.created_at, reverse=True)
    return events[:page_size], len(events) > page_size


class EventsCRUD:

    def __init__(self, store: DocumentStore, notifications: Optional[NotificationsCRUD] = None):
        self.store = store
        self.notifications = notifications or NotificationsCRUD(store)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_event(self, candidate: Mapping[str, Any], created_by: str, created_by_name: Optional[str],
                           notify_uids: Iterable[str] = ()) -> Event:
        """
        Validate and write a new event.

        Raises ValidationError with every violated rule before anything is
        written. ``notify_uids`` receive an ``event_live`` notification; a
        failed fan-out is logged and does not fail the creation.
        """
        result = validate_event(candidate)
        if not result.valid:
            raise ValidationError(result.errors)

        lookup = candidate_lookup(EVENT_SCHEMA, candidate)
        title = _clean_text(lookup("title"))
        geo = to_geo(lookup("location_geo"))
        values = {
            "title": title,
            "title_lower": title.lower(),
            "description": _clean_text(lookup("description")),
            "location_name": _clean_text(lookup("location_name")),
            "place_id": _clean_text(lookup("place_id")),
            "category_id": _clean_text(lookup("category_id")),
            "visibility": lookup("visibility") or PUBLIC,
            "capacity": to_number(lookup("capacity")),
            "created_by": created_by,
            "created_by_name": created_by_name or "",
            "start_time": to_datetime(lookup("start_time")),
            "end_time": to_datetime(lookup("end_time")),
            "location_geo": geo,
        }
        fields = to_stored_fields(EVENT_SCHEMA, values)

        event_id = self.store.new_id(EVENTS_COLLECTION)
        await self.store.set(event_path(event_id), {**fields, "createdAt": SERVER_TIMESTAMP})
        logger.info(f"Event {event_id} created by {created_by}")
        log_event("event_created", visibility=values["visibility"])

        try:
            await self.notifications.fan_out(
                NotificationType.EVENT_LIVE.value, created_by, created_by_name, notify_uids, event_id=event_id
            )
        except StoreError as e:
            logger.warning(f"Could not notify followers of event {event_id}: {e}")
            capture_exception(e, {"operation": "event_live_fan_out", "event_id": event_id})

        return event_from_stored_doc(event_id, {**fields, "createdAt": utc_now()})

    async def delete_event(self, event_id: str, acting_uid: str) -> None:
        """Only the creator may delete an event."""
        event = await self.fetch_event(event_id)
        if event is None:
            raise NotFoundError(f"event {event_id} not found")
        if event.created_by != acting_uid:
            raise OwnershipError("only the creator can delete this event")
        await self.store.delete(event_path(event_id))
        logger.info(f"Event {event_id} deleted by {acting_uid}")

    # ------------------------------------------------------------------
    # Point reads
    # ------------------------------------------------------------------

    async def fetch_event(self, event_id: str) -> Optional[Event]:
        doc = await self.store.get(event_path(event_id))
        return event_from_stored_doc(event_id, doc.data if doc else None)

    async def fetch_events_by_creator(self, uid: str, page_size: Optional[int] = None) -> List[Event]:
        docs = await self.store.query(Query(
            collection=EVENTS_COLLECTION,
            where_equals={"createdBy": uid},
            order_by="createdAt",
            descending=True,
            limit=page_size or settings.CREATOR_EVENTS_PAGE_SIZE,
        ))
        return [event_from_stored_doc(doc.id, doc.data) for doc in docs]

    async def _fetch_readable(self, event_id: str) -> Optional[Event]:
        try:
            return await self.fetch_event(event_id)
        except StoreError as e:
            logger.warning(f"Skipping unreadable event {event_id}: {e}")
            return None

    async def fetch_events_by_ids(self, event_ids: Iterable[str]) -> List[Event]:
        """Concurrent point reads in input order; missing or unreadable ids are skipped."""
        unique = [event_id for event_id in dict.fromkeys(event_ids) if event_id]
        events = await asyncio.gather(*(self._fetch_readable(event_id) for event_id in unique))
        return [event for event in events if event is not None]

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    def _feed_queries(self, page_size: int, current_uid: Optional[str], friend_uids: Sequence[str],
                      category_id: Optional[str], categories: Optional[List[str]]) -> List[Query]:
        category_eq = {"categoryId": category_id} if category_id else {}
        category_in = ("categoryId", categories) if categories else None

        def ordered(where_equals, where_in=None) -> Query:
            return Query(
                collection=EVENTS_COLLECTION,
                where_equals=where_equals,
                where_in=where_in,
                order_by="createdAt",
                descending=True,
                limit=page_size,
            )

        queries = [ordered({"visibility": PUBLIC, **category_eq}, category_in)]
        if current_uid:
            queries.append(ordered({"createdBy": current_uid, **category_eq}, category_in))
        # Only one "in" filter per query: the friends queries spend it on createdBy
        friends = [uid for uid in dict.fromkeys(friend_uids) if uid and uid != current_uid]
        for chunk in chunked(friends, settings.IN_QUERY_CHUNK_SIZE):
            queries.append(ordered({"visibility": FRIENDS, **category_eq}, ("createdBy", chunk)))
        return queries

    async def _assemble(self, page_size: int, current_uid: Optional[str], friend_uids: Sequence[str],
                        category_id: Optional[str] = None,
                        categories: Optional[List[str]] = None) -> Tuple[List[Event], bool]:
        queries = self._feed_queries(page_size, current_uid, friend_uids, category_id, categories)
        results = await asyncio.gather(*(self.store.query(query) for query in queries))
        if categories:
            wanted = set(categories)
            results = [[doc for doc in docs if doc.data.get("categoryId") in wanted] for docs in results]
        events, has_more = merge_feed(results, page_size)
        has_more = has_more or any(len(docs) >= page_size for docs in results)
        return events, has_more

    def _degrade(self, operation: str, error: Exception, context: Dict[str, Any]) -> None:
        """Re-raise errors the caller must surface; report everything else."""
        if is_actionable(error):
            logger.warning(f"{operation} failed: {error}")
            raise error
        capture_exception(error, {"operation": operation, **context})

    async def fetch_feed(self, page_size: Optional[int] = None, current_uid: Optional[str] = None,
                         friend_uids: Sequence[str] = (), category_id: Optional[str] = None) -> FeedResult:
        """
        Merged event feed for a viewer.

        Permission and missing-index failures propagate; any other failure is
        reported and the feed degrades to empty.
        """
        page_size = page_size or settings.FEED_PAGE_SIZE
        try:
            events, has_more = await self._assemble(page_size, current_uid, list(friend_uids), category_id)
        except Exception as e:
            self._degrade("fetch_feed", e, {"uid": current_uid})
            return FeedResult(events=[], has_more=False)
        log_event("feed_fetch", count=len(events))
        return FeedResult(events=events, has_more=has_more)

    async def fetch_interests_feed(self, interests: Sequence[str], page_size: Optional[int] = None,
                                   current_uid: Optional[str] = None,
                                   friend_uids: Sequence[str] = ()) -> FeedResult:
        """Events in the viewer's interest categories first, remaining slots from the general feed."""
        categories = [
            interest.strip() for interest in dict.fromkeys(interests or [])
            if isinstance(interest, str) and interest.strip()
        ][:settings.IN_QUERY_CHUNK_SIZE]
        if not categories:
            return await self.fetch_feed(page_size, current_uid, friend_uids)

        page_size = page_size or settings.FEED_PAGE_SIZE
        friend_uids = list(friend_uids)
        try:
            ranked, has_more = await self._assemble(page_size, current_uid, friend_uids, categories=categories)
            if len(ranked) < page_size:
                general, general_more = await self._assemble(page_size, current_uid, friend_uids)
                seen = {event.id for event in ranked}
                for event in general:
                    if len(ranked) >= page_size:
                        break
                    if event.id not in seen:
                        ranked.append(event)
                        seen.add(event.id)
                has_more = has_more or general_more
        except Exception as e:
            self._degrade("fetch_interests_feed", e, {"uid": current_uid, "interests": categories})
            return FeedResult(events=[], has_more=False)
        log_event("interests_feed_fetch", count=len(ranked), interests=len(categories))
        return FeedResult(events=ranked, has_more=has_more)

    async def search_events(self, text: str, viewer_uid: Optional[str] = None,
                            friend_uids: Sequence[str] = ()) -> List[Event]:
        """Prefix search on the lowercase title; friends-only events stay hidden from non-friends."""
        prefix = (text or "").strip().lower() if isinstance(text, str) else ""
        if len(prefix) < settings.SEARCH_MIN_CHARS:
            return []
        try:
            docs = await self.store.query(Query(
                collection=EVENTS_COLLECTION,
                where_prefix=("titleLower", prefix),
                order_by="titleLower",
                limit=settings.SEARCH_RESULT_CAP,
            ))
        except Exception as e:
            self._degrade("search_events", e, {"uid": viewer_uid})
            return []

        allowed = set(friend_uids)
        if viewer_uid:
            allowed.add(viewer_uid)
        events = []
        for doc in docs:
            event = event_from_stored_doc(doc.id, doc.data)
            if event.visibility == FRIENDS and event.created_by not in allowed:
                continue
            events.append(event)
        log_event("event_search", count=len(events))
        return events
