"""
Logging setup and per-request access logging
"""
import time
import uuid
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO"):
    """Configure the root logger once for the whole process"""
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not any(getattr(h, "_wareflow", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._wareflow = True
        root.addHandler(handler)

    # uvicorn already logs every request line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and latency for every request.

    Each response carries an X-Request-ID header; an incoming one is reused.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        start = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.time() - start) * 1000, 2)
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} raised {type(e).__name__} after {duration_ms}ms"
            )
            raise

        duration_ms = round((time.time() - start) * 1000, 2)
        message = f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"

        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)

        response.headers["X-Request-ID"] = request_id
        return response
