from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from academy.core.config import SETTINGS
from academy.models.subject import Subject
from academy.repos.pg_store import PgStore
from academy.repos.store import InMemoryStore
from academy.services import token_service
from academy.services.enrollment import EnrollmentLifecycle
from academy.services.hierarchy import ResourceHierarchyManager
from academy.services.membership import MembershipRegistry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons (shared by every router and reset by tests)
# ---------------------------------------------------------------------------

# With DATABASE_URL set, every commit is also written to Postgres.
store: InMemoryStore = (
    PgStore(SETTINGS.database_url, lock_timeout=SETTINGS.store_lock_timeout_seconds)
    if SETTINGS.database_url
    else InMemoryStore(lock_timeout=SETTINGS.store_lock_timeout_seconds)
)
membership_registry = MembershipRegistry(store)
hierarchy = ResourceHierarchyManager(store)
enrollments = EnrollmentLifecycle(store)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def subject_from_token(raw_token: str) -> Subject:
    """Decode a bearer token into a Subject or raise a 401."""
    try:
        claims = token_service.decode_access_token(raw_token)
        return token_service.subject_from_claims(claims)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None


def require_subject(
    request: Request,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Subject:
    """Extract and validate the JWT bearer token. Returns the acting Subject.

    Inactive subjects are returned as-is; the policy table denies them
    with SUBJECT_INACTIVE so the caller sees the precise reason.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Not authenticated")
    subject = subject_from_token(credentials.credentials)
    request.state.subject_id = str(subject.id)
    logger.debug(
        "Token validated for subject=%s role=%s active=%s",
        subject.id,
        subject.role,
        subject.is_active,
    )
    return subject


CurrentSubject = Annotated[Subject, Depends(require_subject)]
