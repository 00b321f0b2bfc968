"""
Lightweight telemetry: named events and captured exceptions, both written
through the request-aware loggers so they carry the request ID.
"""
from typing import Any, Dict, Optional

from ubconnect.utils.logger import get_logger

logger = get_logger("ubconnect.telemetry")


def log_event(name: str, **props: Any) -> None:
    """Record a named product event (feed_fetch, friend_request_sent, ...)."""
    logger.info(f"event={name} {props}" if props else f"event={name}")


def capture_exception(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Report an unexpected error together with the operation context."""
    logger.error(
        f"{type(error).__name__}: {error} context={context or {}}",
        exc_info=(type(error), error, error.__traceback__),
    )
