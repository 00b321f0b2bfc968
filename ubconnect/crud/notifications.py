from typing import Any, Dict, Iterable, List, Optional

from ubconnect.config import settings, USERS_COLLECTION, NOTIFICATIONS_SUBCOLLECTION
from ubconnect.errors import SelfNotificationError, StoreError, ValidationError
from ubconnect.schemas.base import utc_now
from ubconnect.schemas.notification import (
    Notification, NotificationsPage, SELF_NOTIFICATION_MESSAGE,
    notification_from_stored_doc, validate_notification,
)
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, doc_path
from ubconnect.telemetry import log_event
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)


def notifications_collection(uid: str) -> str:
    return doc_path(USERS_COLLECTION, uid, NOTIFICATIONS_SUBCOLLECTION)


class NotificationsCRUD:
    """Per-user notification lists under ``users/{uid}/notifications``."""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _candidate(type: str, actor_uid: str, actor_name: Optional[str], target_uid: str,
                   event_id: Optional[str] = None, comment_id: Optional[str] = None,
                   root_comment_id: Optional[str] = None) -> Dict[str, Any]:
        """Stored fields for a new notification; optional ids only when defined."""
        fields = {
            "type": type,
            "actorUid": actor_uid,
            "actorName": actor_name or "",
            "targetUid": target_uid,
        }
        if event_id:
            fields["eventId"] = event_id
        if comment_id:
            fields["commentId"] = comment_id
        if root_comment_id:
            fields["rootCommentId"] = root_comment_id
        return fields

    @staticmethod
    def _check(candidate: Dict[str, Any]) -> None:
        result = validate_notification(candidate)
        if result.valid:
            return
        if SELF_NOTIFICATION_MESSAGE in result.errors:
            raise SelfNotificationError(SELF_NOTIFICATION_MESSAGE)
        raise ValidationError(result.errors)

    async def create_notification(self, type: str, actor_uid: str, actor_name: Optional[str], target_uid: str,
                                  event_id: Optional[str] = None, comment_id: Optional[str] = None,
                                  root_comment_id: Optional[str] = None) -> Notification:
        """
        Append a notification to the target's list.

        Raises:
            SelfNotificationError: actor and target are the same user
            ValidationError: any other rule failed; nothing is written
        """
        candidate = self._candidate(type, actor_uid, actor_name, target_uid, event_id, comment_id, root_comment_id)
        self._check(candidate)

        collection = notifications_collection(target_uid)
        notification_id = self.store.new_id(collection)
        await self.store.set(
            doc_path(collection, notification_id),
            {**candidate, "createdAt": SERVER_TIMESTAMP, "readAt": None},
        )
        logger.debug(f"Notification {notification_id} ({type}) created for {target_uid}")
        return notification_from_stored_doc(notification_id, {**candidate, "createdAt": utc_now(), "readAt": None})

    async def notify(self, type: str, actor_uid: str, actor_name: Optional[str], target_uid: Optional[str],
                     **ids: Optional[str]) -> Optional[Notification]:
        """Side-effect variant for other services: never notifies the actor, never raises on store failure."""
        if not target_uid or target_uid == actor_uid:
            return None
        try:
            return await self.create_notification(type, actor_uid, actor_name, target_uid, **ids)
        except StoreError as e:
            logger.warning(f"Could not deliver {type} notification to {target_uid}: {e}")
            return None

    async def fan_out(self, type: str, actor_uid: str, actor_name: Optional[str], target_uids: Iterable[str],
                      **ids: Optional[str]) -> int:
        """Write one notification per distinct target in a single batch; returns how many were written."""
        targets: List[str] = []
        for uid in target_uids:
            if uid and uid != actor_uid and uid not in targets:
                targets.append(uid)
        if not targets:
            return 0

        batch = self.store.batch()
        for uid in targets:
            candidate = self._candidate(type, actor_uid, actor_name, uid, **ids)
            self._check(candidate)
            collection = notifications_collection(uid)
            batch.set(
                doc_path(collection, self.store.new_id(collection)),
                {**candidate, "createdAt": SERVER_TIMESTAMP, "readAt": None},
            )
        await batch.commit()
        log_event("notifications_fan_out", type=type, count=len(targets))
        return len(targets)

    async def fetch_notifications(self, uid: str, page_size: Optional[int] = None,
                                  cursor: Optional[str] = None) -> NotificationsPage:
        """Newest first. ``cursor`` is the id of the last notification of the previous page."""
        page_size = page_size or settings.NOTIFICATIONS_PAGE_SIZE
        collection = notifications_collection(uid)
        docs = await self.store.query(Query(
            collection=collection,
            order_by="createdAt",
            descending=True,
            limit=page_size,
            start_after=doc_path(collection, cursor) if cursor else None,
        ))
        notifications = [notification_from_stored_doc(doc.id, doc.data) for doc in docs]
        next_cursor = notifications[-1].id if len(notifications) == page_size else None
        return NotificationsPage(notifications=notifications, cursor=next_cursor)

    async def fetch_unread_count(self, uid: str) -> int:
        return await self.store.count(Query(
            collection=notifications_collection(uid),
            where_equals={"readAt": None},
        ))

    async def mark_read(self, uid: str, notification_id: str) -> None:
        await self.store.update(
            doc_path(notifications_collection(uid), notification_id),
            {"readAt": SERVER_TIMESTAMP},
        )

    async def delete_notifications(self, uid: str, notification_ids: Iterable[str]) -> int:
        """Delete the given notifications of ``uid`` in one batch."""
        ids = [notification_id for notification_id in dict.fromkeys(notification_ids) if notification_id]
        if not ids:
            return 0
        batch = self.store.batch()
        collection = notifications_collection(uid)
        for notification_id in ids:
            batch.delete(doc_path(collection, notification_id))
        await batch.commit()
        logger.info(f"Deleted {len(ids)} notifications for {uid}")
        return len(ids)
