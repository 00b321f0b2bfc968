from logging.config import dictConfig

from ubconnect.config import settings
from ubconnect.utils.logger import RequestAwareFormatter

APP_LEVEL = "DEBUG" if settings.DEBUG else "INFO"

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [req=%(request_id)s uid=%(uid)s] %(message)s"


def _console_logger(level: str) -> dict:
    return {"level": level, "handlers": ["console"], "propagate": False}


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "request": {
            "()": RequestAwareFormatter,
            "format": LOG_FORMAT,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "request",
        },
    },
    "root": {"level": APP_LEVEL, "handlers": ["console"]},
    "loggers": {
        # Services, routers, store backends and telemetry all live under this name
        "ubconnect": _console_logger(APP_LEVEL),
        "uvicorn": _console_logger("INFO"),
        # The middleware already logs one line per request
        "uvicorn.access": _console_logger("WARNING"),
        "google.cloud.firestore": _console_logger("WARNING"),
        "firebase_admin": _console_logger("WARNING"),
        "sqlalchemy.engine": _console_logger("WARNING"),
    },
}


def configure_logging():
    """Install the console handler with request id and uid on every line."""
    dictConfig(LOGGING_CONFIG)
