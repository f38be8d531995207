import time
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from xsslab.metrics import REQUEST_LATENCY


class LatencyMiddleware(BaseHTTPMiddleware):
    """Observes request duration per route template, method and status."""

    def __init__(self, app, *, exclude_prefixes: Iterable[str] = ("/metrics",)):
        super().__init__(app)
        self.exclude_prefixes = tuple(exclude_prefixes)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path or "/"
        if any(path.startswith(p) for p in self.exclude_prefixes):
            return await call_next(request)

        start = time.perf_counter()
        status = "500"
        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            # route template ("/comments/{comment_id}") keeps label cardinality bounded
            route = request.scope.get("route")
            route_tpl = getattr(route, "path", None) or path
            REQUEST_LATENCY.labels(route=route_tpl, method=request.method, status=status).observe(
                time.perf_counter() - start
            )
