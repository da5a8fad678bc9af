"""Unit tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from bluegreen.config import (
    DatabaseSettings,
    DeploymentSettings,
    Environment,
    load_deployment_config,
    ObservabilitySettings,
    PlatformKind,
    PlatformSettings,
    RedisSettings,
    Settings,
    StorageBackend,
    StorageSettings,
)
from bluegreen.domain.models.deployment import ValidationKind
from bluegreen.domain.models.environment import Color


class TestDatabaseSettings:
    def test_defaults(self) -> None:
        settings = DatabaseSettings()
        assert settings.host == "localhost"
        assert settings.port == 5432

    def test_async_url(self) -> None:
        settings = DatabaseSettings(host="db", port=5432, name="test", user="u", password="p")
        assert settings.async_url == "postgresql+asyncpg://u:p@db:5432/test"

    def test_url_override(self) -> None:
        settings = DatabaseSettings(url_override="sqlite+aiosqlite:///state.db")
        assert settings.async_url == "sqlite+aiosqlite:///state.db"


class TestRedisSettings:
    def test_url_without_password(self) -> None:
        settings = RedisSettings(host="redis", port=6379, password="", db=0)
        assert settings.url == "redis://redis:6379/0"

    def test_url_with_password(self) -> None:
        settings = RedisSettings(host="redis", port=6379, password="secret", db=1)
        assert settings.url == "redis://:secret@redis:6379/1"


class TestDeploymentSettings:
    def test_defaults(self) -> None:
        settings = DeploymentSettings()
        assert settings.default_color == Color.BLUE
        assert settings.health_max_retries == 30
        assert settings.health_retry_delay_seconds == 10.0
        assert settings.post_switch_max_retries == 3
        assert settings.switch_poll_interval_seconds == 5.0

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEPLOY_HEALTH_MAX_RETRIES", "5")
        monkeypatch.setenv("DEPLOY_DEFAULT_COLOR", "green")
        settings = DeploymentSettings()
        assert settings.health_max_retries == 5
        assert settings.default_color == Color.GREEN


class TestPlatformSettings:
    def test_defaults(self) -> None:
        settings = PlatformSettings()
        assert settings.kind == PlatformKind.SIMULATED
        assert settings.service_selector_key == "color"


class TestObservabilitySettings:
    def test_defaults(self) -> None:
        settings = ObservabilitySettings()
        assert settings.log_level == "INFO"
        assert settings.tracing_enabled is False


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        settings = Settings()
        assert settings.environment == Environment.DEVELOPMENT
        assert settings.debug is False
        assert settings.api_prefix == "/api/v1"

    def test_nested_settings(self) -> None:
        settings = Settings(storage=StorageSettings(backend=StorageBackend.MEMORY))
        assert isinstance(settings.database, DatabaseSettings)
        assert isinstance(settings.deployment, DeploymentSettings)
        assert settings.storage.backend == StorageBackend.MEMORY


class TestLoadDeploymentConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_deployment_config("prod", config_dir=tmp_path)
        assert config.environment == "prod"
        assert config.validation_steps == []

    def test_reads_environment_file(self, tmp_path: Path) -> None:
        (tmp_path / "prod.yaml").write_text(
            "strategy: blue-green\n"
            "timeout_seconds: 120\n"
            "health_check_endpoints: [/health]\n"
            "validation_steps:\n"
            "  - name: smoke\n"
            "    kind: http\n"
            "    critical: true\n"
            "    retries: 2\n"
            "    params: {endpoint: /smoke}\n"
            "hooks:\n"
            "  pre_deploy: ./scripts/migrate.sh\n",
            encoding="utf-8",
        )
        config = load_deployment_config("prod", config_dir=tmp_path)
        assert config.environment == "prod"
        assert config.timeout_seconds == 120
        assert config.health_check_endpoints == ["/health"]
        assert config.validation_steps[0].kind == ValidationKind.HTTP
        assert config.validation_steps[0].params == {"endpoint": "/smoke"}
        assert config.hooks.pre_deploy == "./scripts/migrate.sh"

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yml"
        path.write_text("environment: staging\nrollback_on_failure: false\n", encoding="utf-8")
        config = load_deployment_config("staging", path=path)
        assert config.rollback_on_failure is False

    def test_environment_mismatch(self, tmp_path: Path) -> None:
        path = tmp_path / "prod.yaml"
        path.write_text("environment: staging\n", encoding="utf-8")
        with pytest.raises(ValueError, match="staging"):
            load_deployment_config("prod", path=path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "prod.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_deployment_config("prod", path=path)


class TestEnvironment:
    def test_values(self) -> None:
        assert Environment.DEVELOPMENT == "development"
        assert Environment.PRODUCTION == "production"
        assert Environment.TESTING == "testing"
        assert Environment.STAGING == "staging"
