"""Prometheus scrape endpoint (text exposition format).

Besides the HTTP series, this exposes the engine counters: module
completions, eligibility evaluations by result, certificates issued by
outcome (created / existing / race), verification cache hits and misses,
and task queue depth.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
