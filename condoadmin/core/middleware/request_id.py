import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from condoadmin.core.logging import request_id_ctx_var, latency_bucket_ms, log_event


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request_id to each request and log completion.

    The completion line carries the subscription or condominium the route
    addressed, so billing logs can be joined to the HTTP call.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers[self.header_name] = rid

        params = request.scope.get("path_params") or {}
        log_event(
            "info",
            "request.complete",
            request_id=rid,
            subscription_id=params.get("subscription_id"),
            condominium_id=params.get("condominium_id"),
            extra={
                "path": request.url.path,
                "method": request.method,
                "status": getattr(response, "status_code", None),
                "latency_bucket": latency_bucket_ms(duration_ms),
            },
        )
        return response
