from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from grantflow.storage.models import AccessToken, Identifier, RefreshToken, User


@runtime_checkable
class OrchestratorHandlers(Protocol):
    """Storage and authentication operations an integrator supplies.

    Every method may raise; the orchestrator translates failures into its own
    error taxonomy. Implementations own locking: two concurrent refreshes of
    the same refresh token must not both succeed.
    """

    async def authenticate_user(self, username: str, password: str) -> User:
        """Return the user for valid credentials; raise otherwise."""
        ...

    async def create_access_token(
        self, expires: datetime, scope: str, user_id: Identifier
    ) -> AccessToken:
        """Persist and return a new access token with a unique ``token`` value."""
        ...

    async def create_refresh_token(
        self, access_token: str, expires: datetime, user_id: Identifier
    ) -> RefreshToken:
        """Persist and return a new refresh token bound to ``access_token``."""
        ...

    async def retrieve_access_token(self, token: str) -> AccessToken:
        """Return the stored access token; raise if absent. Expiry is not checked here."""
        ...

    async def retrieve_refresh_token(self, token: str) -> RefreshToken:
        """Return the stored refresh token; raise if absent. Expiry is not checked here."""
        ...

    async def revoke_access_token(self, token: str) -> None:
        """Remove the access token and every refresh token bound to it; raise if absent."""
        ...


__all__ = ["OrchestratorHandlers"]
