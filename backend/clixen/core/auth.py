"""Authentication module, exposing FastAPI dependencies.

Public interface:
    ``require_auth``  - returns AuthContext or raises 401.
    ``require_admin`` - returns AuthContext, raises 403 if not admin.

Tokens are Supabase access tokens, verified locally when
``SUPABASE_JWT_SECRET`` is set and through ``GET /auth/v1/user`` otherwise.
Tokens signed with ``JWT_SECRET_KEY`` (issued by the CLI) are accepted too,
unless that key is still the development default and Supabase is configured.

When ``settings.auth_enabled`` is False every request runs as the
development user, who is also an admin.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .token_factory import decode_token
from ..exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

_ADMIN_ROLES = frozenset({"service_role", "admin"})


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity available to every endpoint."""

    user_id: str
    email: str = ""
    role: str = "authenticated"

    @property
    def is_admin(self) -> bool:
        if self.role in _ADMIN_ROLES:
            return True
        return bool(self.email) and self.email.lower() in settings.get_admin_emails()


def _dev_context() -> AuthContext:
    return AuthContext(user_id=settings.dev_user_id, email="dev@localhost", role="admin")


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Require a valid access token and return the caller's AuthContext.

    When ``AUTH_ENABLED=false`` returns the development user.
    """
    if not settings.auth_enabled:
        return _dev_context()

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    context = resolve_token(credentials.credentials)
    if context is None:
        raise AuthenticationError("Invalid or expired token")
    return context


def require_admin(
    auth: AuthContext = Depends(require_auth),
) -> AuthContext:
    """Require the authenticated user to be an admin. Raises 403 otherwise."""
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth


def resolve_token(token: str) -> Optional[AuthContext]:
    """Turn a bearer token into an AuthContext, or None when it is not valid.

    Verifiers are tried in order until one accepts the token: the Supabase
    JWT secret, the local ``JWT_SECRET_KEY``, then Supabase ``/auth/v1/user``.
    """
    if settings.supabase_jwt_secret:
        context = _from_payload(decode_token(token, settings.supabase_jwt_secret, settings.jwt_algorithm))
        if context is not None:
            return context

    if settings.local_tokens_enabled:
        context = _from_payload(decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm))
        if context is not None:
            return context

    if settings.supabase_configured:
        return _from_supabase(token)
    return None


def _from_payload(payload) -> Optional[AuthContext]:
    if payload is None:
        return None
    return AuthContext(user_id=payload.sub, email=payload.email, role=payload.role or "authenticated")


def _from_supabase(token: str) -> Optional[AuthContext]:
    from ..clients.supabase_client import SupabaseAuthClient, SupabaseClientError

    client = SupabaseAuthClient.from_settings(settings)
    try:
        user = client.get_user(token)
    except SupabaseClientError as exc:
        logger.warning("Token verification via Supabase failed: %s", exc)
        raise AuthenticationError("Could not verify token with Supabase")
    if not user or not user.get("id"):
        return None
    return AuthContext(
        user_id=user["id"],
        email=user.get("email") or "",
        role=user.get("role") or "authenticated",
    )
