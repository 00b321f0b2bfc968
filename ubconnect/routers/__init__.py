# API Routers
from ubconnect.routers import api, users, friends, events, comments, rsvp, notifications

__all__ = ["api", "users", "friends", "events", "comments", "rsvp", "notifications"]
