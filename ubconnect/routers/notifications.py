from fastapi import APIRouter, Depends, Query
from typing import Optional
from ubconnect.auth import get_current_user
from ubconnect.crud.notifications import NotificationsCRUD
from ubconnect.dependencies import get_notifications_crud
from ubconnect.schemas.notification import NotificationsDelete, NotificationsPage
from ubconnect.schemas.user import CurrentUser

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationsPage)
async def get_notifications(
    page_size: Optional[int] = Query(None, ge=1, le=100),
    cursor: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
):
    """The user's notifications, newest first, with the unread count on the first page."""
    page = await notifications.fetch_notifications(current_user.uid, page_size, cursor)
    if cursor is None:
        page.unread_count = await notifications.fetch_unread_count(current_user.uid)
    return page


@router.get("/unread-count")
async def get_unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
):
    return {"unread_count": await notifications.fetch_unread_count(current_user.uid)}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
):
    await notifications.mark_read(current_user.uid, notification_id)
    return {"message": "Notification marked as read"}


@router.post("/delete")
async def delete_notifications(
    body: NotificationsDelete,
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsCRUD = Depends(get_notifications_crud),
):
    deleted = await notifications.delete_notifications(current_user.uid, body.ids)
    return {"deleted": deleted}
