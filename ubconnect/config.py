import os
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    """Application settings."""
    # Base settings
    DEBUG: bool = False

    # CORS settings
    CORS_ORIGINS: List[str] = [
        "http://localhost:8081",  # Expo dev server
        "http://localhost:8000",  # Backend server
    ]

    # Which document store backs the social layer: firestore | sql | memory
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "firestore")
    # Explicit per-call timeout for store RPCs (seconds)
    STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

    # Firebase settings
    FIREBASE_PROJECT_ID: str = ""
    # Explicit Firebase Admin SDK credentials JSON path
    FIREBASE_SERVICE_ACCOUNT_JSON: str = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON", "./firebase-service-account.json")
    # Local development only: trust an X-User-ID header instead of a bearer token
    ALLOW_HEADER_AUTH: bool = os.getenv("ALLOW_HEADER_AUTH", "false").lower() == "true"

    # Database settings (sql store backend)
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "5432")
    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "postgres")
    DB_NAME: str = os.getenv("DB_NAME", "ubconnect")
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    )

    # Redis settings (rate limit storage)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))

    # Profiles
    DEFAULT_DISPLAY_NAME: str = os.getenv("DEFAULT_DISPLAY_NAME", "UBC User")

    # Page sizes
    FEED_PAGE_SIZE: int = int(os.getenv("FEED_PAGE_SIZE", "25"))
    CREATOR_EVENTS_PAGE_SIZE: int = 20
    COMMENTS_PAGE_SIZE: int = 20
    REPLIES_PAGE_SIZE: int = 10
    NOTIFICATIONS_PAGE_SIZE: int = 20
    ATTENDING_PAGE_SIZE: int = 20
    USER_SEARCH_PAGE_SIZE: int = 20

    # Search
    SEARCH_RESULT_CAP: int = int(os.getenv("SEARCH_RESULT_CAP", "20"))
    SEARCH_MIN_CHARS: int = 2

    # Firestore 'in' filters accept a bounded list; larger lists are chunked
    IN_QUERY_CHUNK_SIZE: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Firestore collection names
EVENTS_COLLECTION = "connectEvents"
USERS_COLLECTION = "users"
FRIEND_REQUESTS_COLLECTION = "friendRequests"
FRIENDS_SUBCOLLECTION = "friends"
COMMENTS_SUBCOLLECTION = "comments"
RSVPS_SUBCOLLECTION = "rsvps"
NOTIFICATIONS_SUBCOLLECTION = "notifications"
