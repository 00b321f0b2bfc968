import asyncio
from typing import Optional

from ubconnect.config import settings, RSVPS_SUBCOLLECTION
from ubconnect.crud.events import event_path
from ubconnect.errors import StoreError, ValidationError, is_actionable
from ubconnect.schemas.base import utc_now
from ubconnect.schemas.event import AttendingResult
from ubconnect.schemas.rsvp import (
    Rsvp, RsvpStatus, RsvpSummary, rsvp_from_stored_doc, validate_rsvp,
)
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, doc_path
from ubconnect.telemetry import capture_exception, log_event
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)


def rsvps_collection(event_id: str) -> str:
    return doc_path(event_path(event_id), RSVPS_SUBCOLLECTION)


class RsvpCRUD:
    """One RSVP per (event, user) at ``connectEvents/{eventId}/rsvps/{uid}``."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def rsvp(self, event_id: str, uid: str, status: str = RsvpStatus.GOING.value) -> Rsvp:
        """Create or overwrite the user's RSVP."""
        status = status.value if isinstance(status, RsvpStatus) else status
        fields = {"userId": uid, "status": status}
        result = validate_rsvp(fields)
        if not result.valid:
            raise ValidationError(result.errors)
        await self.store.set(doc_path(rsvps_collection(event_id), uid), {**fields, "createdAt": SERVER_TIMESTAMP})
        log_event("rsvp", status=status)
        return rsvp_from_stored_doc(uid, {**fields, "createdAt": utc_now()})

    async def remove_rsvp(self, event_id: str, uid: str) -> None:
        await self.store.delete(doc_path(rsvps_collection(event_id), uid))

    async def fetch_rsvp_count(self, event_id: str) -> int:
        return await self.store.count(Query(collection=rsvps_collection(event_id)))

    async def fetch_rsvp_status(self, event_id: str, uid: str) -> Optional[RsvpStatus]:
        doc = await self.store.get(doc_path(rsvps_collection(event_id), uid))
        if doc is None:
            return None
        return RsvpStatus(rsvp_from_stored_doc(uid, doc.data).status)

    async def fetch_rsvp_summary(self, event_id: str, uid: Optional[str] = None) -> RsvpSummary:
        """Count and the viewer's own status, read concurrently."""
        if uid:
            count, status = await asyncio.gather(
                self.fetch_rsvp_count(event_id),
                self.fetch_rsvp_status(event_id, uid),
            )
        else:
            count, status = await self.fetch_rsvp_count(event_id), None
        return RsvpSummary(event_id=event_id, count=count, status=status)

    async def fetch_user_attending_event_ids(self, uid: str, page_size: Optional[int] = None) -> AttendingResult:
        """
        Ids of events ``uid`` is going to, newest RSVP first.

        A store failure yields no ids and the error category
        (``permission-denied``, ``failed-precondition``, ...) instead of a
        partial list.
        """
        try:
            docs = await self.store.query(Query(
                collection=RSVPS_SUBCOLLECTION,
                collection_group=True,
                where_equals={"userId": uid, "status": RsvpStatus.GOING.value},
                order_by="createdAt",
                descending=True,
                limit=page_size or settings.ATTENDING_PAGE_SIZE,
            ))
        except StoreError as e:
            if is_actionable(e):
                logger.warning(f"Attending events query for {uid} failed: {e}")
            else:
                capture_exception(e, {"operation": "fetch_user_attending_event_ids", "uid": uid})
            return AttendingResult(ids=[], error=e.code.value)

        ids = [doc.parent_id for doc in docs if doc.parent_id]
        return AttendingResult(ids=list(dict.fromkeys(ids)))
