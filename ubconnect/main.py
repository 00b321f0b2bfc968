from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import firebase_admin
from firebase_admin import credentials
from slowapi.errors import RateLimitExceeded
import os

from ubconnect.config import settings
from ubconnect.errors import (
    AlreadyExistsError, InvalidThreadError, InvalidTransitionError, NotFoundError, OwnershipError,
    SelfNotificationError, SelfReferenceError, SocialError, StoreError, StoreErrorCode, ValidationError,
    GENERIC_MESSAGE, error_message,
)
from ubconnect.logging_config import configure_logging
from ubconnect.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from ubconnect.middleware.request_id import RequestIDMiddleware
from ubconnect.routers import api, users, friends, events, comments, rsvp, notifications
from ubconnect.telemetry import capture_exception
from ubconnect.utils.logger import get_logger

# Configure logging first
configure_logging()
logger = get_logger(__name__)


def init_firebase():
    """Initialize the Firebase Admin SDK once per process with explicit credentials when available."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    firebase_json_path = settings.FIREBASE_SERVICE_ACCOUNT_JSON
    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    if os.path.exists(firebase_json_path):
        app = firebase_admin.initialize_app(credentials.Certificate(firebase_json_path), options)
        logger.info("Initialized Firebase Admin with provided service account JSON")
    else:
        # Application Default Credentials, e.g. on Cloud Run
        app = firebase_admin.initialize_app(options=options)
        logger.warning(f"FIREBASE_SERVICE_ACCOUNT_JSON not found at {firebase_json_path}. Initialized Firebase with default credentials.")
    return app


try:
    firebase_app = init_firebase()
except Exception as e:
    if settings.STORE_BACKEND == "firestore":
        logger.exception(f"Failed to initialize Firebase Admin SDK: {e}")
        raise
    # Token verification stays unavailable; the store does not need Firebase
    logger.warning(f"Firebase Admin SDK not initialized: {e}")
    firebase_app = None

# Conditional docs configuration
if settings.DEBUG:
    docs_config = {"docs_url": "/docs", "redoc_url": "/redoc", "openapi_url": "/openapi.json"}
    logger.info("DEBUG mode: Swagger docs enabled at /docs")
else:
    docs_config = {"docs_url": None, "redoc_url": None, "openapi_url": None}

app = FastAPI(
    title="UBConnect API",
    description="Social layer for UBConnect: friends, events, comments, RSVPs and notifications",
    version="1.0.0",
    **docs_config
)

# Set up rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# Error mapping: invariant violations and store failures to HTTP statuses
SOCIAL_ERROR_STATUS = (
    (ValidationError, 422),
    (SelfReferenceError, 400),
    (SelfNotificationError, 400),
    (InvalidThreadError, 400),
    (AlreadyExistsError, 409),
    (InvalidTransitionError, 409),
    (OwnershipError, 403),
    (NotFoundError, 404),
)

STORE_ERROR_STATUS = {
    StoreErrorCode.PERMISSION_DENIED: 403,
    StoreErrorCode.UNAUTHENTICATED: 401,
    StoreErrorCode.FAILED_PRECONDITION: 400,
    StoreErrorCode.NOT_FOUND: 404,
    StoreErrorCode.ALREADY_EXISTS: 409,
    StoreErrorCode.DEADLINE_EXCEEDED: 503,
    StoreErrorCode.UNAVAILABLE: 503,
}


@app.exception_handler(SocialError)
async def social_error_handler(request: Request, exc: SocialError):
    status_code = 400
    for error_type, code in SOCIAL_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    content = {"detail": error_message(exc)}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    status_code = STORE_ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        capture_exception(exc, {"path": request.url.path})
    else:
        logger.warning(f"Store error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": error_message(exc), "code": exc.code.value})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    capture_exception(exc, {"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": GENERIC_MESSAGE})


logger.info(f"CORS_ORIGINS: {settings.CORS_ORIGINS}")

# Add Request ID middleware first for proper request tracing
app.add_middleware(RequestIDMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api.router)
app.include_router(users.router)
app.include_router(friends.router)
app.include_router(events.router)
app.include_router(comments.router)
app.include_router(rsvp.router)
app.include_router(notifications.router)


@app.on_event("startup")
async def startup_event():
    """Prepare the configured document store in this worker process."""
    if settings.STORE_BACKEND == "sql":
        from ubconnect.database import init_db
        init_db()
    logger.info(f"UBConnect API started with {settings.STORE_BACKEND} store")


@app.get("/")
async def root():
    return {"message": "UBConnect API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "ubconnect-api", "store": settings.STORE_BACKEND}
