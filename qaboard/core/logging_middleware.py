import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("qaboard.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response access log with a per-request id.

    Ledger-bound endpoints can take up to the confirmation timeout, so the
    duration is always logged.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        method = request.method
        path = request.url.path
        client = request.headers.get("x-forwarded-for") or (
            request.client.host if request.client else "-"
        )

        logger.info(f"[Request] {request_id} {method} {path} from {client}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[Unhandled Error] {request_id} {method} {path} from {client}")
            raise

        duration_ms = (time.time() - start) * 1000
        message = (
            f"[Response] {request_id} {method} {path} -> {response.status_code} in {duration_ms:.1f}ms"
        )
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)

        response.headers["x-request-id"] = request_id
        return response
