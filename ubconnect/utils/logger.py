"""
Request-scoped log context.

Each HTTP request binds its request id (and, once the token is verified, the
caller's uid) into a context variable. Loggers obtained from ``get_logger``
stamp every record with both, so store failures and friend graph writes can be
traced back to the request and the user that caused them.
"""
import logging
import contextvars
from typing import Any, Dict, MutableMapping, Tuple

NO_REQUEST = "no-request-id"
ANONYMOUS = "-"

_log_context: contextvars.ContextVar = contextvars.ContextVar("ubconnect_log_context", default={})


def bind_request(request_id: str) -> contextvars.Token:
    """Start a fresh context for one request; pass the token to ``reset_context``."""
    return _log_context.set({"request_id": request_id})


def bind_user(uid: str) -> None:
    """Attach the authenticated uid to the current request context."""
    _log_context.set({**_log_context.get(), "uid": uid})


def reset_context(token: contextvars.Token) -> None:
    _log_context.reset(token)


def current_context() -> Dict[str, Any]:
    return dict(_log_context.get())


class RequestAwareFormatter(logging.Formatter):
    """Fills ``%(request_id)s`` and ``%(uid)s`` for records logged outside a ContextLogger."""

    def format(self, record: logging.LogRecord) -> str:
        context = _log_context.get()
        if not getattr(record, "request_id", None):
            record.request_id = context.get("request_id") or NO_REQUEST
        if not getattr(record, "uid", None):
            record.uid = context.get("uid") or ANONYMOUS
        return super().format(record)


class ContextLogger(logging.LoggerAdapter):
    """Adapter that merges the bound request context into each record's ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        context = _log_context.get()
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("request_id", context.get("request_id") or NO_REQUEST)
        extra.setdefault("uid", context.get("uid") or ANONYMOUS)
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})
