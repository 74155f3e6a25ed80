"""Role-area route guard.

Requests under ``/owner``, ``/instructor`` and ``/learner`` must carry
a bearer token whose role matches the area.  A mismatched role is
redirected (303) to the subject's own landing page; a missing or
invalid token gets a 401.  All other paths pass straight through and
rely on the per-endpoint policy checks.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from academy.api.dependencies import subject_from_token
from academy.services.route_guard import check_route, required_role

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


class RouteGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if required_role(path) is None:
            return await call_next(request)

        token = _bearer_token(request)
        if token is None:
            return JSONResponse(
                {"detail": "Not authenticated"},
                status_code=401,
                headers={"WWW-Authenticate": "Bearer"},
            )
        try:
            subject = subject_from_token(token)
        except HTTPException as e:
            return JSONResponse(
                {"detail": e.detail}, status_code=e.status_code, headers=e.headers
            )

        request.state.subject_id = str(subject.id)
        result = check_route(path, subject)
        if not result.allowed:
            logger.info(
                "Route guard redirect: subject=%s role=%s path=%s -> %s",
                subject.id,
                subject.role,
                path,
                result.redirect_to,
            )
            return RedirectResponse(result.redirect_to or "/", status_code=303)

        return await call_next(request)
