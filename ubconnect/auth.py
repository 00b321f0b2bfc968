from fastapi import Depends, HTTPException, Request, status, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from typing import Optional
from ubconnect.config import settings
from ubconnect.errors import PERMISSION_DENIED_MESSAGE, UNAUTHENTICATED_MESSAGE
from ubconnect.schemas.user import CurrentUser
from ubconnect.utils.logger import bind_user, get_logger

logger = get_logger(__name__)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> CurrentUser:
    """
    Verify the Firebase ID token and return the signed-in user.

    Only users with a verified email may use the social features. When
    ``ALLOW_HEADER_AUTH`` is enabled (local development), an ``X-User-ID``
    header is trusted instead of a bearer token.

    Raises:
        HTTPException: 401 when no valid credentials are present,
            403 when the email address is not verified
    """
    if credentials is not None:
        try:
            decoded_token = auth.verify_id_token(credentials.credentials)
        except Exception as firebase_error:
            logger.warning(f"Rejected ID token: {firebase_error}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {str(firebase_error)}",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user = CurrentUser(
            uid=decoded_token.get("uid"),
            email=decoded_token.get("email"),
            email_verified=bool(decoded_token.get("email_verified", False)),
            display_name=decoded_token.get("name"),
        )
    elif x_user_id and settings.ALLOW_HEADER_AUTH:
        user = CurrentUser(uid=x_user_id, email_verified=True)
    else:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHENTICATED_MESSAGE,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.email_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PERMISSION_DENIED_MESSAGE)

    # Lets the rate limiter key on the user instead of the IP
    request.state.user_id = user.uid
    bind_user(user.uid)
    return user
