import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger("http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request: client, method, path, status and duration."""

    async def dispatch(self, request: Request, call_next):
        t0 = time.time()
        response: Response = await call_next(request)
        dt_ms = int((time.time() - t0) * 1000)
        client = request.client.host if request.client else "-"
        logger.info(
            f'{client} "{request.method} {request.url.path}" {response.status_code} {dt_ms}ms'
        )
        return response
