"""Tests for environment-driven settings and orchestrator options."""

import pytest
from pydantic import ValidationError

from grantflow.config import Settings, get_settings, reset_settings_cache
from grantflow.service.options import (
    DEFAULT_ACCESS_TOKEN_LIFETIME,
    DEFAULT_REFRESH_TOKEN_LIFETIME,
    OrchestratorOptions,
)
from grantflow.service.runtime import Runtime, get_runtime, reset_runtime_for_tests


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)
    for name in (
        "ACCESS_TOKEN_LIFETIME",
        "ISSUE_REFRESH_TOKEN",
        "REFRESH_TOKEN_LIFETIME",
        "SUPERUSER_SCOPE",
        "TOKEN_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    reset_settings_cache()


class TestOrchestratorOptions:
    def test_defaults(self):
        options = OrchestratorOptions()
        assert options.access_token_lifetime == DEFAULT_ACCESS_TOKEN_LIFETIME == 86400
        assert options.refresh_token_lifetime == DEFAULT_REFRESH_TOKEN_LIFETIME == 604800
        assert options.issue_refresh_token is True
        assert options.superuser_scope is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"access_token_lifetime": -1},
            {"refresh_token_lifetime": -5},
            {"superuser_scope": "root admin"},
        ],
    )
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            OrchestratorOptions(**kwargs)

    def test_blank_superuser_scope_disabled(self):
        assert OrchestratorOptions(superuser_scope="   ").superuser_scope is None

    def test_zero_lifetime_allowed(self):
        assert OrchestratorOptions(access_token_lifetime=0).access_token_lifetime == 0


class TestSettings:
    def test_defaults_from_empty_environment(self, clean_env):
        settings = Settings.from_env()
        assert settings.access_token_lifetime == DEFAULT_ACCESS_TOKEN_LIFETIME
        assert settings.issue_refresh_token is True
        assert settings.token_bytes == 32

    def test_reads_environment(self, clean_env):
        clean_env.setenv("ACCESS_TOKEN_LIFETIME", "60")
        clean_env.setenv("ISSUE_REFRESH_TOKEN", "false")
        clean_env.setenv("REFRESH_TOKEN_LIFETIME", "120")
        clean_env.setenv("SUPERUSER_SCOPE", " root ")
        settings = Settings.from_env()
        assert settings.access_token_lifetime == 60
        assert settings.issue_refresh_token is False
        assert settings.refresh_token_lifetime == 120
        assert settings.superuser_scope == "root"

    def test_dotenv_file_used_when_environment_is_silent(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("ACCESS_TOKEN_LIFETIME=30\nTOKEN_BYTES=24\n")
        clean_env.setenv("TOKEN_BYTES", "40")
        settings = Settings.from_env()
        assert settings.access_token_lifetime == 30
        assert settings.token_bytes == 40

    @pytest.mark.parametrize(
        "name,value",
        [
            ("ACCESS_TOKEN_LIFETIME", "-1"),
            ("REFRESH_TOKEN_LIFETIME", "-1"),
            ("TOKEN_BYTES", "8"),
            ("SUPERUSER_SCOPE", "root admin"),
            ("ACCESS_TOKEN_LIFETIME", "soon"),
        ],
    )
    def test_invalid_values_rejected(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings.from_env()

    def test_orchestrator_options(self, clean_env):
        clean_env.setenv("ACCESS_TOKEN_LIFETIME", "10")
        clean_env.setenv("SUPERUSER_SCOPE", "root")
        options = Settings.from_env().orchestrator_options()
        assert options == OrchestratorOptions(
            access_token_lifetime=10,
            issue_refresh_token=True,
            refresh_token_lifetime=DEFAULT_REFRESH_TOKEN_LIFETIME,
            superuser_scope="root",
        )

    def test_settings_are_cached(self, clean_env):
        reset_settings_cache()
        first = get_settings()
        clean_env.setenv("ACCESS_TOKEN_LIFETIME", "5")
        assert get_settings() is first
        reset_settings_cache()
        assert get_settings().access_token_lifetime == 5


class TestRuntime:
    def test_runtime_uses_settings(self, clean_env):
        clean_env.setenv("ACCESS_TOKEN_LIFETIME", "15")
        runtime = reset_runtime_for_tests()
        assert get_runtime() is runtime
        assert runtime.orchestrator.access_token_lifetime == 15

    def test_reset_requires_test_mode(self, clean_env):
        clean_env.setenv("TEST_MODE", "false")
        with pytest.raises(RuntimeError):
            reset_runtime_for_tests()
        clean_env.setenv("TEST_MODE", "true")

    def test_explicit_handlers(self, handlers):
        runtime = Runtime(handlers=handlers)
        assert runtime.orchestrator.handlers is handlers
