"""Prometheus metrics endpoint.

Scraped by Prometheus; returns plain text in the exposition format,
not JSON.  Besides the HTTP request metrics it carries the domain
counters: policy decisions per rule, hierarchy mutations, enrollment
transitions and store transaction outcomes.

In production, restrict access to /metrics (e.g. only the Prometheus
server's network).
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
