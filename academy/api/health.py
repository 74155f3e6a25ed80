"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200 while the process can answer;
    the body reports per-dependency status so a degraded database is
    visible without triggering a restart.

  /ready (readiness):
    "Can this instance take traffic?"  503 when a configured database
    is unreachable, so the load balancer stops routing here until it
    recovers.  Without a database the in-memory store is always ready.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from academy.db.engine import check_database

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness check + dependency status.

    Returns 200 even when degraded; the ``status`` field carries the
    actual health.
    """
    database = await check_database()
    overall = "degraded" if database == "degraded" else "ok"
    return {
        "status": overall,
        "checks": {"store": "ok", "database": database},
    }


@router.get("/ready")
async def ready() -> Response:
    if await check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
