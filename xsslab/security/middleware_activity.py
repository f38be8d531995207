import json
import logging
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from xsslab.security.ip_utils import get_client_ip, parse_cidrs

__all__ = ["ActivityLogMiddleware", "request_category"]

logger = logging.getLogger(__name__)

HOME_CATEGORY = "home"


def request_category(path: str) -> str:
    # "/stored/comments" -> "stored", "/" -> "home"
    first = (path or "/").lstrip("/").split("/", 1)[0]
    return first[:50] or HOME_CATEGORY


def _query_payload(request: Request) -> str:
    params = {}
    for key, value in request.query_params.multi_items():
        # repeated keys keep the last value
        params[key] = value
    return json.dumps(params, ensure_ascii=False)


class ActivityLogMiddleware(BaseHTTPMiddleware):
    """
    Records every inbound request in the event log before it is handled:
    - category: first path segment, or "home" for "/"
    - action: HTTP method
    - payload: query parameters as JSON
    Also writes the resolved client address to request.state.client_ip.
    Recording is best-effort and never blocks the request.
    """

    def __init__(
        self,
        app,
        *,
        exclude_paths: Iterable[str] = (),
        trusted_proxies: Iterable[str] = (),
        session_cookie: Optional[str] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.exclude_paths = tuple(p for p in exclude_paths if p)
        self.trusted = parse_cidrs(trusted_proxies)
        self.session_cookie = session_cookie
        self.enabled = enabled

    def _excluded(self, path: str) -> bool:
        return any(path == p or path.startswith(p.rstrip("/") + "/") for p in self.exclude_paths)

    async def dispatch(self, request: Request, call_next):
        ip = get_client_ip(request, self.trusted)
        request.state.client_ip = ip

        path = request.url.path
        ingestion = getattr(request.app.state, "ingestion", None)
        if self.enabled and ingestion is not None and not self._excluded(path):
            session_id = request.cookies.get(self.session_cookie, "") if self.session_cookie else ""
            await ingestion.record(
                request_category(path),
                request.method,
                _query_payload(request),
                ip,
                request.headers.get("user-agent", ""),
                session_id,
            )

        response: Response = await call_next(request)
        return response
