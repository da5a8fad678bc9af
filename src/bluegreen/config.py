"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from bluegreen.domain.models.deployment import DeploymentConfig
from bluegreen.domain.models.environment import Color


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class PlatformKind(str, Enum):
    KUBERNETES = "kubernetes"
    CDN = "cdn"
    STATIC_HOST = "static_host"
    SIMULATED = "simulated"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    FILE = "file"
    DATABASE = "database"


class LockBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class DeploymentSettings(BaseSettings):
    """Orchestration tuning knobs."""

    default_color: Color = Field(default=Color.BLUE, alias="DEPLOY_DEFAULT_COLOR")
    base_url_template: str = Field(
        default="http://{environment}-{color}.internal",
        alias="DEPLOY_BASE_URL_TEMPLATE",
    )
    health_latency_threshold_ms: float = Field(
        default=2000.0, alias="DEPLOY_HEALTH_LATENCY_THRESHOLD_MS"
    )
    health_check_timeout_seconds: float = Field(
        default=5.0, alias="DEPLOY_HEALTH_CHECK_TIMEOUT_SECONDS"
    )
    health_max_retries: int = Field(default=30, alias="DEPLOY_HEALTH_MAX_RETRIES")
    health_retry_delay_seconds: float = Field(
        default=10.0, alias="DEPLOY_HEALTH_RETRY_DELAY_SECONDS"
    )
    post_switch_max_retries: int = Field(default=3, alias="DEPLOY_POST_SWITCH_MAX_RETRIES")
    switch_poll_interval_seconds: float = Field(
        default=5.0, alias="DEPLOY_SWITCH_POLL_INTERVAL_SECONDS"
    )
    validation_retry_delay_seconds: float = Field(
        default=1.0, alias="DEPLOY_VALIDATION_RETRY_DELAY_SECONDS"
    )
    hook_timeout_seconds: float = Field(default=300.0, alias="DEPLOY_HOOK_TIMEOUT_SECONDS")
    lock_ttl_seconds: int = Field(default=3600, alias="DEPLOY_LOCK_TTL_SECONDS")
    state_persist_max_attempts: int = Field(
        default=5, alias="DEPLOY_STATE_PERSIST_MAX_ATTEMPTS"
    )
    config_dir: str = Field(default="deploy", alias="DEPLOY_CONFIG_DIR")

    model_config = {"env_prefix": "DEPLOY_", "extra": "ignore", "populate_by_name": True}


class PlatformSettings(BaseSettings):
    """Hosting platform configuration."""

    kind: PlatformKind = Field(default=PlatformKind.SIMULATED, alias="PLATFORM_KIND")
    kubectl_binary: str = Field(default="kubectl", alias="PLATFORM_KUBECTL_BINARY")
    namespace: str = Field(default="default", alias="PLATFORM_NAMESPACE")
    manifest_dir: str = Field(default="k8s", alias="PLATFORM_MANIFEST_DIR")
    image: str = Field(default="", alias="PLATFORM_IMAGE")
    service_selector_key: str = Field(default="color", alias="PLATFORM_SERVICE_SELECTOR_KEY")
    api_url: str = Field(default="", alias="PLATFORM_API_URL")
    api_token: str = Field(default="", alias="PLATFORM_API_TOKEN")
    request_timeout_seconds: float = Field(default=30.0, alias="PLATFORM_REQUEST_TIMEOUT")

    model_config = {"env_prefix": "PLATFORM_", "extra": "ignore", "populate_by_name": True}


class StorageSettings(BaseSettings):
    """State store configuration."""

    backend: StorageBackend = Field(default=StorageBackend.FILE, alias="STORAGE_BACKEND")
    state_dir: str = Field(default=".bluegreen", alias="STORAGE_STATE_DIR")

    model_config = {"env_prefix": "STORAGE_", "extra": "ignore", "populate_by_name": True}


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    host: str = Field(default="localhost", alias="DB_HOST")
    port: int = Field(default=5432, alias="DB_PORT")
    name: str = Field(default="bluegreen", alias="DB_NAME")
    user: str = Field(default="bluegreen", alias="DB_USER")
    password: str = Field(default="", alias="DB_PASSWORD")
    pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=5, alias="DB_MAX_OVERFLOW")
    pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")
    url_override: str = Field(default="", alias="DB_URL")

    @property
    def async_url(self) -> str:
        if self.url_override:
            return self.url_override
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    model_config = {"env_prefix": "DB_", "extra": "ignore", "populate_by_name": True}


class RedisSettings(BaseSettings):
    """Redis configuration for the environment lock."""

    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: str = Field(default="", alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    otlp_endpoint: str = Field(default="http://localhost:4317", alias="OTLP_ENDPOINT")
    service_name: str = Field(default="bluegreen-orchestrator", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    host: str = Field(default="0.0.0.0", alias="HOST")  # noqa: S104
    port: int = Field(default=8000, alias="PORT")
    lock_backend: LockBackend = Field(default=LockBackend.MEMORY, alias="LOCK_BACKEND")

    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    platform: PlatformSettings = Field(default_factory=PlatformSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def load_deployment_config(
    environment: str,
    path: str | Path | None = None,
    config_dir: str | Path | None = None,
) -> DeploymentConfig:
    """Load the deployment configuration of ``environment`` from YAML.

    Without an explicit ``path`` the file ``<config_dir>/<environment>.yaml``
    is used when it exists; otherwise a default configuration is returned.
    """
    if path is None:
        directory = Path(config_dir or get_settings().deployment.config_dir)
        candidate = directory / f"{environment}.yaml"
        if not candidate.exists():
            return DeploymentConfig(environment=environment)
        path = candidate

    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    declared = data.setdefault("environment", environment)
    if declared != environment:
        raise ValueError(
            f"{path} configures environment '{declared}', not '{environment}'"
        )
    return DeploymentConfig.model_validate(data)
