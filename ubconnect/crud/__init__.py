from ubconnect.crud.notifications import NotificationsCRUD
from ubconnect.crud.user import UserProfilesCRUD
from ubconnect.crud.friends import FriendsCRUD
from ubconnect.crud.events import EventsCRUD
from ubconnect.crud.comments import CommentsCRUD
from ubconnect.crud.rsvp import RsvpCRUD

__all__ = [
    "NotificationsCRUD",
    "UserProfilesCRUD",
    "FriendsCRUD",
    "EventsCRUD",
    "CommentsCRUD",
    "RsvpCRUD",
]
