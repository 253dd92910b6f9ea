"""
Security helpers: JWT authentication and session CSRF tokens.
"""

from crud_shared.security.auth import (
    current_user_context,
    get_bearer_token,
    sign_jwt,
    verify_jwt,
)
from crud_shared.security.csrf import CsrfTokenManager

__all__ = [
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "CsrfTokenManager",
]
