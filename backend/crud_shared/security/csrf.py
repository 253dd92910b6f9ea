"""
Session-backed CSRF tokens, one per intention (batch, delete, acl).
"""

import hmac
import secrets
from collections.abc import MutableMapping
from typing import Any

SESSION_KEY = "_csrf_tokens"


class CsrfTokenManager:
    """
    Issues and validates CSRF tokens stored in the signed session cookie.

    Usage:
        manager = CsrfTokenManager(request.session)
        token = manager.get_token("crud_admin.delete")
        manager.is_token_valid("crud_admin.delete", submitted)
    """

    def __init__(self, session: MutableMapping[str, Any]):
        self.session = session

    def _tokens(self) -> dict[str, str]:
        tokens = self.session.get(SESSION_KEY)
        if not isinstance(tokens, dict):
            tokens = {}
        return tokens

    def get_token(self, intention: str) -> str:
        tokens = self._tokens()
        token = tokens.get(intention)
        if not token:
            token = secrets.token_urlsafe(32)
            tokens[intention] = token
            # Reassign so the session middleware sees the change
            self.session[SESSION_KEY] = tokens
        return token

    def is_token_valid(self, intention: str, token: str | None) -> bool:
        expected = self._tokens().get(intention)
        if not expected or not token:
            return False
        return hmac.compare_digest(expected, str(token))

