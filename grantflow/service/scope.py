from __future__ import annotations

from typing import FrozenSet, Optional


def split_scope(value: Optional[str]) -> FrozenSet[str]:
    """Return the set of permission tokens in a space-delimited scope string."""
    if not value:
        return frozenset()
    return frozenset(value.split())


def included(
    required: Optional[str],
    allowed: Optional[str],
    superuser_scope: Optional[str] = None,
) -> bool:
    """Is every token of ``required`` granted by ``allowed``?

    A configured ``superuser_scope`` present in ``allowed`` satisfies any
    requirement. An empty requirement is always satisfied. Tokens are compared
    whole: ``"admin"`` is not granted by ``"administrator"``.
    """
    allowed_scopes = split_scope(allowed)
    if superuser_scope and superuser_scope in allowed_scopes:
        return True
    required_scopes = split_scope(required)
    if not required_scopes:
        return True
    if not allowed_scopes:
        return False
    return required_scopes <= allowed_scopes


__all__ = ["included", "split_scope"]
