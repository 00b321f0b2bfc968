from fastapi import APIRouter, Depends
from ubconnect.auth import get_current_user
from ubconnect.schemas.user import CurrentUser

router = APIRouter()


@router.get("/protected")
async def protected_route(user: CurrentUser = Depends(get_current_user)):
    """Echo the verified identity; lets the client check its token."""
    return {
        "user_id": user.uid,
        "email": user.email,
        "display_name": user.display_name,
    }
