from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import List, Optional
from ubconnect.auth import get_current_user
from ubconnect.crud.events import EventsCRUD
from ubconnect.crud.rsvp import RsvpCRUD
from ubconnect.dependencies import get_current_profile, get_events_crud, get_friend_uids, get_rsvp_crud
from ubconnect.middleware.rate_limit import rate_limit_api_read, rate_limit_api_write, rate_limit_search
from ubconnect.schemas.event import AttendingResult, Event, EventCreate, FeedResult
from ubconnect.schemas.user import CurrentUser, UserProfile
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/feed", response_model=FeedResult)
@rate_limit_api_read
async def get_feed(
    request: Request,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    category_id: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    """Public events, the user's own events and friends-only events of friends, newest first."""
    return await events.fetch_feed(page_size, current_user.uid, friend_uids, category_id)


@router.get("/feed/interests", response_model=FeedResult)
@rate_limit_api_read
async def get_interests_feed(
    request: Request,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    profile: UserProfile = Depends(get_current_profile),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    """Events in the user's interest categories first, then the general feed."""
    return await events.fetch_interests_feed(profile.interests, page_size, profile.uid, friend_uids)


@router.get("/search", response_model=List[Event])
@rate_limit_search
async def search_events(
    request: Request,
    q: str = Query(..., description="Title prefix"),
    current_user: CurrentUser = Depends(get_current_user),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    return await events.search_events(q, current_user.uid, friend_uids)


@router.get("/attending", response_model=AttendingResult)
async def get_attending_event_ids(
    page_size: Optional[int] = Query(None, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    rsvps: RsvpCRUD = Depends(get_rsvp_crud),
):
    """Ids of events the user is going to."""
    return await rsvps.fetch_user_attending_event_ids(current_user.uid, page_size)


@router.get("/by-creator/{uid}", response_model=List[Event])
async def get_events_by_creator(
    uid: str,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    created = await events.fetch_events_by_creator(uid, page_size)
    if uid == current_user.uid or uid in friend_uids:
        return created
    return [event for event in created if event.visibility == "public"]


@router.post("", response_model=Event, status_code=201)
@rate_limit_api_write
async def create_event(
    request: Request,
    body: EventCreate,
    profile: UserProfile = Depends(get_current_profile),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    """Post an event; the creator's friends are notified that it is live."""
    return await events.create_event(body.model_dump(), profile.uid, profile.display_name, notify_uids=friend_uids)


@router.get("/{event_id}", response_model=Event)
async def get_event(
    event_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    friend_uids: List[str] = Depends(get_friend_uids),
    events: EventsCRUD = Depends(get_events_crud),
):
    event = await events.fetch_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    if event.visibility == "friends" and event.created_by not in friend_uids + [current_user.uid]:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.delete("/{event_id}")
@rate_limit_api_write
async def delete_event(
    request: Request,
    event_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    events: EventsCRUD = Depends(get_events_crud),
):
    """Delete an event. Only its creator may do this."""
    await events.delete_event(event_id, current_user.uid)
    return {"message": "Event deleted"}
