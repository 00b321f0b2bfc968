from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import List, Optional
from ubconnect.dependencies import get_current_profile, get_profiles_crud
from ubconnect.auth import get_current_user
from ubconnect.crud.user import UserProfilesCRUD
from ubconnect.middleware.rate_limit import rate_limit_api_write, rate_limit_search
from ubconnect.schemas.user import CurrentUser, UserProfile, UserProfileUpdate
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfile)
async def read_own_profile(profile: UserProfile = Depends(get_current_profile)):
    """Get the signed-in user's profile, creating it on first sign-in."""
    return profile


@router.patch("/me", response_model=UserProfile)
@rate_limit_api_write
async def update_own_profile(
    request: Request,
    update: UserProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    profiles: UserProfilesCRUD = Depends(get_profiles_crud),
):
    """Update the signed-in user's profile. Only provided fields change."""
    await profiles.get_or_create_user_profile(current_user.uid, {"display_name": current_user.display_name})
    return await profiles.update_user_profile(current_user.uid, update.model_dump(exclude_none=True))


@router.get("/search", response_model=List[UserProfile])
@rate_limit_search
async def search_users(
    request: Request,
    q: str = Query(..., description="Display name prefix"),
    page_size: Optional[int] = Query(None, ge=1, le=50),
    current_user: CurrentUser = Depends(get_current_user),
    profiles: UserProfilesCRUD = Depends(get_profiles_crud),
):
    """Find users whose display name starts with ``q``."""
    results = await profiles.search_users(q, page_size)
    return [profile for profile in results if profile.uid != current_user.uid]


@router.get("/{uid}", response_model=UserProfile)
async def read_profile(
    uid: str,
    current_user: CurrentUser = Depends(get_current_user),
    profiles: UserProfilesCRUD = Depends(get_profiles_crud),
):
    profile = await profiles.fetch_user_profile(uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile
