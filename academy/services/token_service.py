"""JWT access token creation and validation (ES256).

Subjects are issued by an upstream identity provider; this service only
verifies the bearer token and reads three facts from it: ``sub`` (the
subject id), ``role`` (the global role) and ``active``.

``create_access_token`` signs with the same ephemeral key the decoder
trusts.  It exists for local development and the test suite, not as a
login endpoint.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from academy.models.subject import ROLES, Subject

# Dev/test: generate an ephemeral EC key pair on import.
# Production: the identity provider's public key replaces _public_key.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "academy-identity"
AUDIENCE = "academy-access"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    role: str,
    active: bool = True,
    ttl: timedelta | None = None,
) -> str:
    """Build and sign a JWT access token carrying a subject's role."""
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "role": role,
        "active": active,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + (ttl or timedelta(minutes=ACCESS_TOKEN_TTL_MIN)),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.
    Validates exp, iss, and aud automatically via PyJWT options.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "role", "exp", "iat", "jti"]},
    )


def subject_from_claims(claims: dict) -> Subject:
    """Turn verified claims into a Subject.

    Raises jwt.InvalidTokenError when ``sub`` is not a UUID or ``role``
    is not one of the three global roles.
    """
    try:
        subject_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        raise jwt.InvalidTokenError("sub is not a valid subject id") from None
    role = claims.get("role")
    if role not in ROLES:
        raise jwt.InvalidTokenError(f"unknown role {role!r}")
    return Subject(
        id=subject_id,
        role=role,
        is_active=bool(claims.get("active", True)),
    )
