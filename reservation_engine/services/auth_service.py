"""Bearer token check and tenant/role context resolution."""

from __future__ import annotations

import secrets
from typing import Iterable, Optional

from reservation_engine.domain.models import AuthContext, Role
from reservation_engine.services.errors import ForbiddenError
from reservation_engine.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class InvalidTokenError(AuthenticationError):
    """Raised when the provided bearer token is missing or invalid."""


class AuthService:
    """Validates bearer tokens and turns auth headers into an `AuthContext`.

    Identity itself is owned by the upstream auth layer; this service only
    trusts the tenant and role it forwards.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.api_token)

    def validate_bearer_token(self, bearer_token: str | None) -> None:
        if not self.auth_enabled:
            return
        if not bearer_token:
            raise InvalidTokenError("Authorization header with Bearer token is required")
        if not secrets.compare_digest(bearer_token, str(self._settings.api_token)):
            raise InvalidTokenError("Invalid bearer token")

    def resolve_context(
        self,
        tenant_id: str | None,
        role: str | None,
        user_id: str | None = None,
    ) -> AuthContext:
        if not tenant_id or not tenant_id.strip():
            raise ForbiddenError("No company association")
        try:
            resolved_role = Role((role or "").strip().lower())
        except ValueError as exc:
            raise ForbiddenError(f"Unknown role: {role!r}") from exc
        return AuthContext(tenant_id=tenant_id.strip(), role=resolved_role, user_id=user_id)


def require_role(context: AuthContext, allowed: Iterable[str]) -> None:
    """Raise `ForbiddenError` unless the context's role is in `allowed`."""
    allowed_roles = set(allowed)
    if context.role.value not in allowed_roles:
        raise ForbiddenError(
            f"Insufficient permissions. Required roles: {', '.join(sorted(allowed_roles))}"
        )
