from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from grantflow.logging import get_logger
from grantflow.service.options import (
    DEFAULT_ACCESS_TOKEN_LIFETIME,
    DEFAULT_REFRESH_TOKEN_LIFETIME,
    OrchestratorOptions,
)

logger = get_logger(__name__)


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Process settings for the token service."""

    access_token_lifetime: int = env_field(
        DEFAULT_ACCESS_TOKEN_LIFETIME,
        "ACCESS_TOKEN_LIFETIME",
        description="Access token lifetime in seconds",
    )
    issue_refresh_token: bool = env_field(
        True,
        "ISSUE_REFRESH_TOKEN",
        description="Issue a refresh token alongside every access token",
    )
    refresh_token_lifetime: int = env_field(
        DEFAULT_REFRESH_TOKEN_LIFETIME,
        "REFRESH_TOKEN_LIFETIME",
        description="Refresh token lifetime in seconds",
    )
    superuser_scope: Optional[str] = env_field(
        None,
        "SUPERUSER_SCOPE",
        description="Scope token that satisfies every scope requirement",
    )
    token_bytes: int = env_field(
        32,
        "TOKEN_BYTES",
        description="Entropy of generated token values for the in-memory handlers",
    )
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Allow runtime resets and other deterministic testing behaviors",
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("access_token_lifetime", "refresh_token_lifetime")
    @classmethod
    def _non_negative_lifetime(cls, value: int) -> int:
        if value < 0:
            raise ValueError("token lifetimes must be non-negative")
        return value

    @field_validator("token_bytes")
    @classmethod
    def _minimum_entropy(cls, value: int) -> int:
        if value < 16:
            raise ValueError("token_bytes must be at least 16")
        return value

    @field_validator("superuser_scope")
    @classmethod
    def _normalize_superuser_scope(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if len(value.split()) > 1:
            raise ValueError("SUPERUSER_SCOPE must be a single scope token")
        return value

    def orchestrator_options(self) -> OrchestratorOptions:
        return OrchestratorOptions(
            access_token_lifetime=self.access_token_lifetime,
            issue_refresh_token=self.issue_refresh_token,
            refresh_token_lifetime=self.refresh_token_lifetime,
            superuser_scope=self.superuser_scope,
        )


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
        if _settings_cache.superuser_scope:
            logger.info("superuser_scope_enabled", scope=_settings_cache.superuser_scope)
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
