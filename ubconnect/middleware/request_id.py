import time
import uuid
from typing import Callable
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from ubconnect.utils.logger import bind_request, get_logger, reset_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id to the log context for the lifetime of the request.

    The client's X-Request-ID is reused when present so mobile and server logs
    line up; the id is echoed back and each request logs one summary line with
    its status and latency.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = bind_request(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{request.method} {request.url.path} failed")
            raise
        finally:
            reset_context(token)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)",
            extra={"request_id": request_id, "uid": getattr(request.state, "user_id", None) or "-"},
        )
        return response


def get_request_id(request: Request) -> str:
    """Request id of the current request; RuntimeError outside RequestIDMiddleware."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        raise RuntimeError("Request ID not available. Ensure RequestIDMiddleware is configured.")
    return request_id
