from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from academy.api.dashboards import router as dashboards_router
from academy.api.dependencies import store
from academy.api.enrollments import router as enrollments_router
from academy.api.health import router as health_router
from academy.api.metrics_endpoint import router as metrics_router
from academy.api.nodes import router as nodes_router
from academy.api.orgs import router as orgs_router
from academy.core.config import SETTINGS
from academy.core.errors import DomainError
from academy.core.logging import setup_logging
from academy.db.engine import lifespan_db
from academy.middleware.metrics import MetricsMiddleware
from academy.middleware.request_context import RequestContextMiddleware
from academy.middleware.route_guard import RouteGuardMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

STATUS_BY_CLASS: dict[str, int] = {
    "permission_denied": 403,
    "not_found": 404,
    "conflict": 409,
    "transient": 503,
}
# Input range errors are the caller's malformed value, not a state conflict.
STATUS_BY_CODE: dict[str, int] = {
    "PROGRESS_OUT_OF_RANGE": 422,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        await run_in_threadpool(store.open)
        try:
            yield
        finally:
            await run_in_threadpool(store.close)


app = FastAPI(
    title="academy-access",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, STATUS_BY_CLASS[exc.status_class])
    headers = {"Retry-After": "1"} if exc.status_class == "transient" else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, "details": exc.details},
        headers=headers,
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → RouteGuard → CORS → route handler
# Guard redirects and 401s still get a request ID and are counted.
app.add_middleware(RouteGuardMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(orgs_router)
app.include_router(nodes_router)
app.include_router(enrollments_router)
app.include_router(dashboards_router)

logger.info(
    "academy-access started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
