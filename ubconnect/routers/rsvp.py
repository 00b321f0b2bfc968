from fastapi import APIRouter, Depends, Request
from ubconnect.auth import get_current_user
from ubconnect.crud.events import EventsCRUD
from ubconnect.crud.rsvp import RsvpCRUD
from ubconnect.dependencies import get_events_crud, get_rsvp_crud
from ubconnect.errors import NotFoundError
from ubconnect.middleware.rate_limit import rate_limit_api_write
from ubconnect.schemas.rsvp import Rsvp, RsvpCreate, RsvpStatus, RsvpSummary
from ubconnect.schemas.user import CurrentUser

router = APIRouter(prefix="/events/{event_id}/rsvp", tags=["rsvp"])


@router.get("", response_model=RsvpSummary)
async def get_rsvp_summary(
    event_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    rsvps: RsvpCRUD = Depends(get_rsvp_crud),
):
    """RSVP count for the event and the user's own status."""
    return await rsvps.fetch_rsvp_summary(event_id, current_user.uid)


@router.put("", response_model=Rsvp)
@rate_limit_api_write
async def upsert_rsvp(
    request: Request,
    event_id: str,
    body: RsvpCreate,
    current_user: CurrentUser = Depends(get_current_user),
    rsvps: RsvpCRUD = Depends(get_rsvp_crud),
    events: EventsCRUD = Depends(get_events_crud),
):
    if await events.fetch_event(event_id) is None:
        raise NotFoundError(f"event {event_id} not found")
    return await rsvps.rsvp(event_id, current_user.uid, body.status or RsvpStatus.GOING.value)


@router.delete("")
@rate_limit_api_write
async def remove_rsvp(
    request: Request,
    event_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    rsvps: RsvpCRUD = Depends(get_rsvp_crud),
):
    await rsvps.remove_rsvp(event_id, current_user.uid)
    return {"message": "RSVP removed"}
