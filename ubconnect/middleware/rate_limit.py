from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import redis
from ubconnect.config import settings
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)


def _storage_uri() -> str:
    """Redis when reachable, otherwise per-process memory."""
    try:
        redis_client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            socket_connect_timeout=2,
            socket_timeout=2
        )
        redis_client.ping()
        logger.info(f"Rate limiting Redis connected: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}"
    except redis.RedisError as e:
        logger.warning(f"Rate limiting Redis connection failed: {e}. Using in-memory fallback.")
        return "memory://"


def get_user_id_or_ip(request: Request):
    """Key on the authenticated uid when auth already ran, else on the client IP."""
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_id_or_ip,
    storage_uri=_storage_uri(),
    default_limits=["1000/hour"]
)

RATE_LIMITS = {
    # Friend requests, comments, events, RSVPs
    "api_write": "100/hour",
    "api_read": "600/hour",
    # Prefix searches hit the store on every keystroke
    "search": "120/minute",
}


def get_rate_limit_for_endpoint(endpoint: str) -> str:
    return RATE_LIMITS.get(endpoint, "100/hour")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}. Please try again later."},
        headers={"Retry-After": "60"},
    )


def rate_limit_api_write(func):
    """Rate limit for write API endpoints."""
    return limiter.limit(get_rate_limit_for_endpoint("api_write"))(func)


def rate_limit_api_read(func):
    """Rate limit for read API endpoints."""
    return limiter.limit(get_rate_limit_for_endpoint("api_read"))(func)


def rate_limit_search(func):
    return limiter.limit(get_rate_limit_for_endpoint("search"))(func)
