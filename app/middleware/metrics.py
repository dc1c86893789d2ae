"""Prometheus instrumentation for every HTTP request.

The endpoint label is the matched route template
(/v1/enrollments/{enrollment_id}/progress), not the raw path: every
enrollment and verification code would otherwise mint a new time series.
Unmatched paths are folded into a single "unmatched" label.
"""

from __future__ import annotations

import time
from collections.abc import MutableMapping
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

_UNMATCHED = "unmatched"


def route_template(scope: MutableMapping[str, Any], app_root_path: str = "") -> str:
    """Template of the route the router matched, read after routing.

    The router records the matched route in the scope.  A route inside a
    mounted or included sub-application carries a path relative to its
    mount point, which routing appends to root_path.
    """
    path = getattr(scope.get("route"), "path", None)
    if not path:
        return _UNMATCHED
    mounted_at = scope.get("root_path", "")[len(app_root_path) :]
    return f"{mounted_at}{path}"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Scrapes would otherwise count themselves.
        if request.url.path == "/metrics":
            return await call_next(request)

        app_root_path = request.scope.get("root_path", "")
        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            ACTIVE_REQUESTS.dec()
            endpoint = route_template(request.scope, app_root_path)
            REQUEST_COUNT.labels(
                method=request.method, endpoint=endpoint, status_code=status_code
            ).inc()
            REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
                time.monotonic() - start
            )

        return response
