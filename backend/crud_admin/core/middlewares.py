"""
Security middlewares for the admin application.
Implements security headers for server-rendered admin pages.
"""

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from crud_shared.config.settings import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff (prevent MIME sniffing)
    - X-Frame-Options: DENY (prevent clickjacking)
    - Referrer-Policy: same-origin (admin URLs carry filters and ids)
    - Permissions-Policy: disable dangerous browser features
    - Content-Security-Policy: same-origin pages, inline styles only
    - Strict-Transport-Security: in production
    """

    CSP_DIRECTIVES = (
        "default-src 'self'",
        "script-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data:",
        "font-src 'self'",
        "connect-src 'self'",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
    )

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "same-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers["Content-Security-Policy"] = "; ".join(self.CSP_DIRECTIVES)

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


def register_middlewares(app: FastAPI, session_secret: str, session_cookie: str, max_age: int) -> None:
    """
    Register the admin middlewares.

    Middlewares run in reverse order of registration: the correlation id is
    set first, then the session is loaded, then security headers are added
    on the way out.
    """
    from starlette.middleware.sessions import SessionMiddleware

    from crud_shared.infrastructure.correlation import CorrelationIdMiddleware

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=session_cookie,
        max_age=max_age,
        same_site="lax",
        https_only=settings.environment == "production",
    )
    app.add_middleware(CorrelationIdMiddleware)
