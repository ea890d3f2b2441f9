from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_ACCESS_TOKEN_LIFETIME = 86400  # one day
DEFAULT_REFRESH_TOKEN_LIFETIME = 604800  # one week


@dataclass(frozen=True)
class OrchestratorOptions:
    """Engine configuration, fixed for the lifetime of an orchestrator.

    Lifetimes are in seconds. ``superuser_scope`` names a single permission
    token that, when granted, satisfies every scope requirement.
    """

    access_token_lifetime: int = DEFAULT_ACCESS_TOKEN_LIFETIME
    issue_refresh_token: bool = True
    refresh_token_lifetime: int = DEFAULT_REFRESH_TOKEN_LIFETIME
    superuser_scope: Optional[str] = None

    def __post_init__(self) -> None:
        if self.access_token_lifetime < 0:
            raise ValueError("access_token_lifetime must be non-negative")
        if self.refresh_token_lifetime < 0:
            raise ValueError("refresh_token_lifetime must be non-negative")
        if self.superuser_scope is not None:
            scope = self.superuser_scope.strip()
            if len(scope.split()) > 1:
                raise ValueError("superuser_scope must be a single scope token")
            object.__setattr__(self, "superuser_scope", scope or None)


__all__ = [
    "OrchestratorOptions",
    "DEFAULT_ACCESS_TOKEN_LIFETIME",
    "DEFAULT_REFRESH_TOKEN_LIFETIME",
]
