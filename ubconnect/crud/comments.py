from typing import List, Optional

from ubconnect.config import settings, COMMENTS_SUBCOLLECTION
from ubconnect.crud.events import event_path
from ubconnect.crud.notifications import NotificationsCRUD
from ubconnect.errors import InvalidThreadError, NotFoundError, ValidationError
from ubconnect.schemas.base import utc_now
from ubconnect.schemas.comment import (
    Comment, CommentsPage, ReplyTarget, comment_from_stored_doc, validate_comment,
)
from ubconnect.schemas.event import event_from_stored_doc
from ubconnect.schemas.notification import NotificationType
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, doc_path
from ubconnect.telemetry import log_event
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)


def comments_collection(event_id: str) -> str:
    return doc_path(event_path(event_id), COMMENTS_SUBCOLLECTION)


class CommentsCRUD:
    """
    Two-level comment threads under ``connectEvents/{eventId}/comments``.

    Roots have ``parentId = None`` and ``rootId`` equal to their own id.
    Replies, including replies to replies, hang off the root: ``parentId``
    and ``rootId`` both hold the root id and ``replyToUid`` names the user
    being answered.
    """

    def __init__(self, store: DocumentStore, notifications: Optional[NotificationsCRUD] = None):
        self.store = store
        self.notifications = notifications or NotificationsCRUD(store)

    async def add_comment(self, event_id: str, text: str, author_uid: str, author_name: Optional[str],
                          reply_target: Optional[ReplyTarget] = None) -> Comment:
        text = text.strip() if isinstance(text, str) else text
        result = validate_comment({"text": text, "createdBy": author_uid})
        if not result.valid:
            raise ValidationError(result.errors)

        event_doc = await self.store.get(event_path(event_id))
        if event_doc is None:
            raise NotFoundError(f"event {event_id} not found")
        event = event_from_stored_doc(event_id, event_doc.data)

        collection = comments_collection(event_id)
        root_id = None
        if reply_target is not None:
            root_doc = await self.store.get(doc_path(collection, reply_target.root_id))
            if root_doc is None:
                raise InvalidThreadError("the comment being replied to no longer exists")
            root = comment_from_stored_doc(root_doc.id, root_doc.data)
            if not root.is_root or root.root_id != root.id:
                raise InvalidThreadError("replies must belong to a top-level comment")
            root_id = root.id

        # The id is allocated up front so rootId is final in the creating write
        comment_id = self.store.new_id(collection)
        fields = {
            "text": text,
            "createdBy": author_uid,
            "createdByName": author_name or "",
            "parentId": root_id,
            "rootId": root_id or comment_id,
            "replyToUid": reply_target.uid if reply_target else None,
        }
        await self.store.set(doc_path(collection, comment_id), {**fields, "createdAt": SERVER_TIMESTAMP})
        log_event("comment_added", reply=reply_target is not None)

        if reply_target is not None:
            await self.notifications.notify(
                NotificationType.REPLY.value, author_uid, author_name, reply_target.uid,
                event_id=event_id, comment_id=comment_id, root_comment_id=root_id,
            )
        else:
            await self.notifications.notify(
                NotificationType.COMMENT.value, author_uid, author_name, event.created_by,
                event_id=event_id, comment_id=comment_id, root_comment_id=comment_id,
            )
        return comment_from_stored_doc(comment_id, {**fields, "createdAt": utc_now()})

    async def _page(self, query: Query, page_size: int) -> CommentsPage:
        docs = await self.store.query(query)
        comments = [comment_from_stored_doc(doc.id, doc.data) for doc in docs]
        cursor = comments[-1].id if len(comments) == page_size else None
        return CommentsPage(comments=comments, cursor=cursor)

    async def fetch_top_level_comments(self, event_id: str, page_size: Optional[int] = None,
                                       cursor: Optional[str] = None) -> CommentsPage:
        """Root comments, newest first."""
        page_size = page_size or settings.COMMENTS_PAGE_SIZE
        collection = comments_collection(event_id)
        return await self._page(Query(
            collection=collection,
            where_equals={"parentId": None},
            order_by="createdAt",
            descending=True,
            limit=page_size,
            start_after=doc_path(collection, cursor) if cursor else None,
        ), page_size)

    async def fetch_replies(self, event_id: str, root_id: str, page_size: Optional[int] = None,
                            cursor: Optional[str] = None) -> CommentsPage:
        """Replies of one root, oldest first so the conversation reads top-down."""
        page_size = page_size or settings.REPLIES_PAGE_SIZE
        collection = comments_collection(event_id)
        return await self._page(Query(
            collection=collection,
            where_equals={"parentId": root_id},
            order_by="createdAt",
            limit=page_size,
            start_after=doc_path(collection, cursor) if cursor else None,
        ), page_size)

    async def fetch_event_comments(self, event_id: str) -> List[Comment]:
        docs = await self.store.query(Query(collection=comments_collection(event_id), order_by="createdAt"))
        return [comment_from_stored_doc(doc.id, doc.data) for doc in docs]
