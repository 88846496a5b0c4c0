"""Settings for converge runners and collaborators.

Every setting can come from the environment or a ``.env`` file. Runner keys
keep the names operators already use (RUNNER_TIMEOUT, DRY_RUN, RUN_ONCE,
SLEEP_DURATION_SECS, RUNNER_USE_FEATURE_TOGGLE); collaborator settings are
grouped per client with their own prefixes.
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_COMMON_CONFIG = dict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    populate_by_name=True,
)


class RunnerSettings(BaseSettings):
    """Scheduling loop configuration shared by both runner variants."""

    timeout: int = Field(default=0, ge=0, validation_alias="RUNNER_TIMEOUT")
    """Per-cycle timeout in seconds. 0 disables the timeout."""

    dry_run: bool = Field(default=True, validation_alias="DRY_RUN")
    """When true, reconcile is skipped."""

    run_once: bool = Field(default=False, validation_alias="RUN_ONCE")
    """When true, the process exits after one cycle."""

    sleep_duration_secs: int = Field(default=600, ge=0, validation_alias="SLEEP_DURATION_SECS")

    use_feature_toggle: bool = Field(default=False, validation_alias="RUNNER_USE_FEATURE_TOGGLE")
    """Gate execution on the remote feature flag named after the integration."""

    prometheus_port: int = Field(default=9090, ge=0, le=65535, validation_alias="PROMETHEUS_PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(**_COMMON_CONFIG)

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level


# =============================================================================
# COLLABORATORS
# =============================================================================

class VaultSettings(BaseSettings):
    server: str = "http://localhost:8200"
    token: str = ""
    timeout: float = Field(default=60.0, gt=0)
    kv_version: int = Field(default=2, ge=1, le=2)

    model_config = SettingsConfigDict(env_prefix="VAULT_", **_COMMON_CONFIG)


class GraphQLSettings(BaseSettings):
    server: str = "http://localhost:4000/graphql"
    token: str = ""
    timeout: float = Field(default=60.0, gt=0)
    retries: int = Field(default=5, ge=0, le=20)
    compare_sha: str = Field(default="", validation_alias="COMPARE_SHA")

    model_config = SettingsConfigDict(env_prefix="GRAPHQL_", **_COMMON_CONFIG)


class UnleashSettings(BaseSettings):
    api_url: str = "http://localhost:4242/api"
    client_access_token: str = ""
    timeout: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="UNLEASH_", **_COMMON_CONFIG)


class GithubSettings(BaseSettings):
    api: str = Field(default="https://api.github.com", validation_alias="GITHUB_API")
    timeout: float = Field(default=60.0, gt=0, validation_alias="GITHUB_API_TIMEOUT")

    model_config = SettingsConfigDict(**_COMMON_CONFIG)


class StateSettings(BaseSettings):
    """Which durable state backend integrations use."""

    backend: Literal["s3", "sqlite"] = "s3"
    database_path: str = "converge-state.db"
    """SQLite file for the sqlite backend."""

    model_config = SettingsConfigDict(env_prefix="STATE_", **_COMMON_CONFIG)


class S3StateSettings(BaseSettings):
    bucket: str = Field(default="", validation_alias="APP_INTERFACE_STATE_BUCKET")
    region: Optional[str] = Field(default=None, validation_alias="AWS_REGION")
    endpoint_url: Optional[str] = Field(default=None, validation_alias="AWS_ENDPOINT_URL")

    model_config = SettingsConfigDict(**_COMMON_CONFIG)


# =============================================================================
# INTEGRATIONS
# =============================================================================

class UserValidatorSettings(BaseSettings):
    concurrency: int = Field(default=10, ge=1, le=100)
    invalid_users: str = ""
    """Comma separated user file paths to skip."""

    model_config = SettingsConfigDict(env_prefix="USER_VALIDATOR_", **_COMMON_CONFIG)

    @property
    def invalid_user_paths(self) -> List[str]:
        return [p.strip() for p in self.invalid_users.split(",") if p.strip()]


class KeyValidatorSettings(BaseSettings):
    userfile: str = ""

    model_config = SettingsConfigDict(env_prefix="KEY_VALIDATOR_", **_COMMON_CONFIG)


class ExampleSettings(BaseSettings):
    tempdir: str = "/tmp/example"

    model_config = SettingsConfigDict(env_prefix="EXAMPLE_", **_COMMON_CONFIG)


# =============================================================================
# GLOBAL RUNNER SETTINGS (Lazy Initialization)
# =============================================================================

_settings: Optional[RunnerSettings] = None


def get_settings() -> RunnerSettings:
    """Get the process-wide runner settings, creating them lazily.

    Prefer passing settings to runners explicitly; this getter is for the
    CLI composition root.
    """
    global _settings
    if _settings is None:
        _settings = RunnerSettings()
    return _settings


def set_settings(settings_instance: RunnerSettings) -> None:
    global _settings
    _settings = settings_instance


def reset_settings() -> None:
    global _settings
    _settings = None


__all__ = [
    "RunnerSettings",
    "VaultSettings",
    "GraphQLSettings",
    "UnleashSettings",
    "GithubSettings",
    "StateSettings",
    "S3StateSettings",
    "UserValidatorSettings",
    "KeyValidatorSettings",
    "ExampleSettings",
    "get_settings",
    "set_settings",
    "reset_settings",
]
