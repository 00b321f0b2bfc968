from fastapi import APIRouter, Depends, Request
from ubconnect.auth import get_current_user
from ubconnect.crud.friends import FriendsCRUD
from ubconnect.dependencies import get_current_profile, get_friends_crud
from ubconnect.middleware.rate_limit import rate_limit_api_write
from ubconnect.schemas.friends import (
    FriendRequest, FriendRequestCreate, FriendRequestsListResponse, FriendRequestStatusResponse,
    FriendsListResponse, FriendStatusResponse,
)
from ubconnect.schemas.user import CurrentUser, UserProfile
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("", response_model=FriendsListResponse)
async def get_friends(
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    """Get the user's friends with their display names."""
    return await friends.list_friends_with_profiles(current_user.uid)


@router.get("/requests/incoming", response_model=FriendRequestsListResponse)
async def get_incoming_requests(
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    requests = await friends.fetch_incoming_requests(current_user.uid)
    return FriendRequestsListResponse(requests=requests, total_count=len(requests))


@router.get("/requests/outgoing", response_model=FriendRequestsListResponse)
async def get_outgoing_requests(
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    requests = await friends.fetch_outgoing_requests(current_user.uid)
    return FriendRequestsListResponse(requests=requests, total_count=len(requests))


@router.post("/requests", response_model=FriendRequest, status_code=201)
@rate_limit_api_write
async def send_friend_request(
    request: Request,
    body: FriendRequestCreate,
    profile: UserProfile = Depends(get_current_profile),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    """Send a friend request to another user."""
    return await friends.send_friend_request(profile.uid, body.to_uid, profile.display_name)


@router.post("/requests/{from_uid}/accept", response_model=FriendRequestStatusResponse)
@rate_limit_api_write
async def accept_friend_request(
    request: Request,
    from_uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    accepted = await friends.accept_friend_request(current_user.uid, from_uid)
    return FriendRequestStatusResponse(message="Friend request accepted", status=accepted.status)


@router.post("/requests/{from_uid}/reject", response_model=FriendRequestStatusResponse)
@rate_limit_api_write
async def reject_friend_request(
    request: Request,
    from_uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    rejected = await friends.reject_friend_request(current_user.uid, from_uid)
    return FriendRequestStatusResponse(message="Friend request rejected", status=rejected.status)


@router.delete("/requests/{to_uid}", response_model=FriendRequestStatusResponse)
@rate_limit_api_write
async def cancel_friend_request(
    request: Request,
    to_uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    """Withdraw a request the user sent."""
    cancelled = await friends.cancel_friend_request(current_user.uid, to_uid)
    return FriendRequestStatusResponse(message="Friend request cancelled", status=cancelled.status)


@router.get("/status/{uid}", response_model=FriendStatusResponse)
async def get_friend_status(
    uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    status = await friends.get_friend_status(current_user.uid, uid)
    return FriendStatusResponse(uid=uid, status=status)


@router.post("/{friend_uid}/repair")
async def repair_friend_edge(
    friend_uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    repaired = await friends.repair_friend_edge(current_user.uid, friend_uid)
    return {"repaired": repaired}


@router.delete("/{friend_uid}")
@rate_limit_api_write
async def remove_friend(
    request: Request,
    friend_uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    friends: FriendsCRUD = Depends(get_friends_crud),
):
    """Remove a friend from both sides."""
    await friends.remove_friend(current_user.uid, friend_uid)
    return {"message": "Friend removed"}
