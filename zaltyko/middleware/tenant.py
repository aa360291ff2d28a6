"""
Tenant Middleware

Extracts the academy a request refers to and stores it on request.state
before routing happens. The tenant itself is resolved later, by the
get_tenant_context dependency, once the user is authenticated.

Academy id sources, in priority order:
1. /academies/<id> path segment
2. academyId query parameter
3. X-Academy-Id header

Route path parameters named academy_id win over all of these; they are
only known after routing, so the dependency checks them first.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware that injects academy_id and request_id into request.state.

    SECURITY: The academy id here is an untrusted hint. Nothing in this
    middleware grants access; it only tells the dependency where to look.
    """

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        request.state.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.academy_id = None
        request.state.tenant_id = None

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        request.state.academy_id = self._extract_academy_id(request)
        if request.state.academy_id:
            logger.debug(f"Academy hint for {request.url.path}: {request.state.academy_id}")

        response = await call_next(request)
        response.headers["X-Request-Id"] = request.state.request_id
        return response

    def _extract_academy_id(self, request: Request) -> Optional[str]:
        parts = [p for p in request.url.path.split("/") if p]
        if "academies" in parts:
            index = parts.index("academies")
            if index + 1 < len(parts):
                return parts[index + 1]

        academy_id = request.query_params.get("academyId")
        if academy_id:
            return academy_id

        return request.headers.get("X-Academy-Id")
