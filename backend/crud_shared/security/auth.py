"""
Authentication utilities.
Admin users authenticate with HS256 JWT access tokens, sent either as a
Bearer Authorization header or in the ``access_token`` cookie (browser pages).
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Cookie, Header, HTTPException, status

from crud_shared.config.logging import get_logger, mask_email
from crud_shared.config.settings import settings

logger = get_logger(__name__)


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign a JWT access token with the given payload.

    Args:
        payload: Claims to include in the token (sub, email, roles).
        ttl_seconds: Token lifetime in seconds. Defaults to the configured expiry.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, settings.jwt_secret, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        HTTPException: If token is invalid, expired or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError as e:
        # Generic message to the client, details in the log
        logger.warning("JWT validation failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject claim",
        )

    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed roles claim",
        )

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer <token>",
        )
    return authorization.split(" ", 1)[1].strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
    access_token: str | None = Cookie(default=None),
) -> dict[str, Any]:
    """
    FastAPI dependency to get the current admin user from JWT.

    Usage:
        @app.get("/protected")
        def protected_endpoint(user = Depends(current_user_context)):
            roles = user["roles"]

    Returns:
        Dict with: sub, email, roles
    """
    if authorization:
        token = get_bearer_token(authorization)
    elif access_token:
        token = access_token
    else:
        token = get_bearer_token(None)

    payload = verify_jwt(token)
    logger.debug("Admin user authenticated", sub=payload["sub"], email=mask_email(payload.get("email")))
    return {
        "sub": str(payload["sub"]),
        "email": payload.get("email"),
        "roles": list(payload.get("roles", [])),
    }
