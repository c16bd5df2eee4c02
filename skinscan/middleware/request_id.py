from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from skinscan.observability.metrics import HTTP_REQUESTS_TOTAL
from skinscan.utils.request_context import clear_request_id, new_request_id, set_request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (inbound X-Request-Id or a fresh one) and counts it."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("X-Request-Id") or new_request_id()

        # contextvar for log records, request.state for error handlers
        set_request_id(rid)
        request.state.request_id = rid

        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        HTTP_REQUESTS_TOTAL.labels(
            path=request.url.path, method=request.method, status=str(response.status_code)
        ).inc()
        response.headers["X-Request-Id"] = rid
        return response
