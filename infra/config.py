"""Provisioner settings, validated with pydantic.

Values come from an optional ``.env`` file overlaid by the process
environment. Every field can be set through its nested name
(``PROVISIONING__STATE_DIR``) or through one of its flat aliases
(``STATE_DIR``); the nested name wins.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_DEFAULT_MONITORING_ACCOUNT_ID = "377024778620"
_DEFAULT_STATE_DIR = ".lambda_state"
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def _as_bool(value: object, *, default: bool) -> bool:
    if value is None or isinstance(value, bool):
        return default if value is None else value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


class AWSConfig(BaseModel):
    """SDK transport and region defaults."""

    model_config = ConfigDict(frozen=True)

    default_region: str = Field(default="us-east-1")
    max_retries: int = Field(default=10, ge=1, le=25)
    timeout: int = Field(default=60, ge=1, le=900)
    connect_timeout: int = Field(default=5, ge=1, le=60)
    max_pool_connections: int = Field(default=10, ge=1, le=100)
    tcp_keepalive: bool = Field(default=True)

    @field_validator("default_region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> str:
        return str(value or "").strip().lower() or "us-east-1"

    @field_validator("tcp_keepalive", mode="before")
    @classmethod
    def _normalize_keepalive(cls, value: object) -> bool:
        return _as_bool(value, default=True)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> str:
        # unknown names fall back to INFO rather than failing the run
        text = str(value or "").strip().upper()
        return text if text in _LOG_LEVELS else "INFO"

    @field_validator("json_logs", "override_root_handlers", mode="before")
    @classmethod
    def _normalize_flags(cls, value: object) -> bool:
        return _as_bool(value, default=False)


class ProvisioningConfig(BaseModel):
    """Knobs for the deploy/remove workflow."""

    model_config = ConfigDict(frozen=True)

    role_propagation_max_attempts: int = Field(default=10, ge=1, le=100)
    role_propagation_delay_seconds: float = Field(default=5.0, ge=0.0, le=300.0)
    monitoring_account_id: str = Field(default=_DEFAULT_MONITORING_ACCOUNT_ID)
    state_dir: str = Field(default=_DEFAULT_STATE_DIR)

    @field_validator("monitoring_account_id")
    @classmethod
    def _validate_account_id(cls, value: str) -> str:
        text = str(value or "").strip()
        if not re.fullmatch(r"\d{12}", text):
            raise ValueError("monitoring_account_id must be a 12-digit AWS account id")
        return text

    @field_validator("state_dir", mode="before")
    @classmethod
    def _normalize_state_dir(cls, value: object) -> str:
        return str(value or "").strip() or _DEFAULT_STATE_DIR


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    aws: AWSConfig = Field(default_factory=AWSConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from ``env_file`` overlaid by ``env`` (default: os.environ)."""
        source = os.environ if env is None else env
        merged = {**_read_dotenv(Path(env_file)), **{str(k): str(v) for k, v in source.items()}}
        return cls.model_validate(_build_payload(merged))


# Flat aliases per (section, field), tried after the nested SECTION__FIELD name.
_ENV_ALIASES: dict[tuple[str, str], tuple[str, ...]] = {
    ("aws", "default_region"): ("AWS_DEFAULT_REGION", "AWS_REGION"),
    ("aws", "max_retries"): ("AWS_MAX_RETRIES",),
    ("aws", "timeout"): ("AWS_TIMEOUT",),
    ("aws", "connect_timeout"): ("AWS_CONNECT_TIMEOUT",),
    ("aws", "max_pool_connections"): ("AWS_MAX_POOL_CONNECTIONS",),
    ("aws", "tcp_keepalive"): ("AWS_TCP_KEEPALIVE",),
    ("logging", "level"): ("LAMBDAPROV_LOG_LEVEL", "LOG_LEVEL"),
    ("logging", "json_logs"): ("LAMBDAPROV_LOG_JSON",),
    ("logging", "override_root_handlers"): ("LAMBDAPROV_LOG_OVERRIDE",),
    ("provisioning", "role_propagation_max_attempts"): ("ROLE_PROPAGATION_MAX_ATTEMPTS",),
    ("provisioning", "role_propagation_delay_seconds"): ("ROLE_PROPAGATION_DELAY_SECONDS",),
    ("provisioning", "monitoring_account_id"): ("MONITORING_ACCOUNT_ID",),
    ("provisioning", "state_dir"): ("STATE_DIR",),
}


def _read_dotenv(path: Path) -> dict[str, str]:
    """``KEY=value`` lines of an optional ``.env`` file; matching quotes are stripped."""
    if not path.is_file():
        return {}

    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0]:
            value = value[1:-1]
        values[key] = value
    return values


def _lookup(env: Mapping[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = str(env.get(key) or "").strip()
        if value:
            return value
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, dict[str, str]]:
    payload: dict[str, dict[str, str]] = {"aws": {}, "logging": {}, "provisioning": {}}
    for (section, name), aliases in _ENV_ALIASES.items():
        value = _lookup(env, (f"{section.upper()}__{name.upper()}", *aliases))
        if value is not None:
            payload[section][name] = value
    return payload


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings.from_env()


def get_settings(*, reload: bool = False) -> Settings:
    """Process-wide settings; ``reload=True`` re-reads ``.env`` and the environment."""
    if reload:
        _cached_settings.cache_clear()
    return _cached_settings()


def clear_settings_cache() -> None:
    _cached_settings.cache_clear()


__all__ = [
    "AWSConfig",
    "LoggingSettings",
    "ProvisioningConfig",
    "Settings",
    "ValidationError",
    "clear_settings_cache",
    "get_settings",
]
