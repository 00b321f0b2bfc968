from ubconnect.schemas.base import GeoPoint, ValidationResult
from ubconnect.schemas.event import (
    Event, EventCreate, FeedResult, AttendingResult,
    event_from_stored_doc, validate_event,
)
from ubconnect.schemas.user import (
    UserProfile, UserProfileUpdate, CurrentUser,
    user_profile_from_stored_doc, validate_user_profile,
)
from ubconnect.schemas.friends import (
    FriendRequest, FriendRequestStatus, FriendEdge, FriendStatus, FriendRequestCreate,
    FriendWithProfile, FriendsListResponse, FriendRequestsListResponse,
    FriendRequestStatusResponse, FriendStatusResponse,
    make_friend_request_id, friend_request_from_stored_doc, friend_edge_from_stored_doc,
    validate_friend_request, validate_friend_edge,
)
from ubconnect.schemas.comment import (
    Comment, CommentCreate, CommentsPage, ReplyTarget,
    comment_from_stored_doc, validate_comment,
)
from ubconnect.schemas.rsvp import (
    Rsvp, RsvpStatus, RsvpCreate, RsvpSummary,
    rsvp_from_stored_doc, validate_rsvp,
)
from ubconnect.schemas.notification import (
    Notification, NotificationType, NotificationsPage, NotificationsDelete,
    notification_from_stored_doc, validate_notification,
)

__all__ = [
    "GeoPoint", "ValidationResult",
    "Event", "EventCreate", "FeedResult", "AttendingResult",
    "event_from_stored_doc", "validate_event",
    "UserProfile", "UserProfileUpdate", "CurrentUser",
    "user_profile_from_stored_doc", "validate_user_profile",
    "FriendRequest", "FriendRequestStatus", "FriendEdge", "FriendStatus", "FriendRequestCreate",
    "FriendWithProfile", "FriendsListResponse", "FriendRequestsListResponse",
    "FriendRequestStatusResponse", "FriendStatusResponse",
    "make_friend_request_id", "friend_request_from_stored_doc", "friend_edge_from_stored_doc",
    "validate_friend_request", "validate_friend_edge",
    "Comment", "CommentCreate", "CommentsPage", "ReplyTarget",
    "comment_from_stored_doc", "validate_comment",
    "Rsvp", "RsvpStatus", "RsvpCreate", "RsvpSummary",
    "rsvp_from_stored_doc", "validate_rsvp",
    "Notification", "NotificationType", "NotificationsPage", "NotificationsDelete",
    "notification_from_stored_doc", "validate_notification",
]
