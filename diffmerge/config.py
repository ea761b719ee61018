# diffmerge/config.py

import os
from typing import Optional

import anyio
import yaml
from pydantic import BaseModel, Field


class APIConfig(BaseModel):
    """Where the diff/merge service lives."""
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = Field(default=60.0, gt=0)


class AuthConfig(BaseModel):
    token_env_var: str = "DIFFMERGE_AUTH_TOKEN"
    credentials_path: str = "~/.diffmerge/credentials.json"


class PollingConfig(BaseModel):
    """Task polling budget. Wall-clock ceiling is roughly interval * max_attempts."""
    interval_seconds: float = Field(default=1.0, ge=0)
    max_attempts: int = Field(default=120, ge=1)
    # Consecutive transient failures tolerated before giving up early (None = share the attempt budget)
    max_network_failures: Optional[int] = Field(default=None, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = "./logs"
    file_logging: bool = False
    console_logging: bool = True


class Config(BaseModel):
    api: APIConfig = Field(default_factory=APIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _get_env_value(name: str) -> Optional[str]:
    """Get environment variable value, treating empty as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_env_int(name: str) -> Optional[int]:
    value = _get_env_value(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer") from e


def _get_env_float(name: str) -> Optional[float]:
    value = _get_env_value(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number") from e


def _apply_env_overrides(config: Config) -> Config:
    base_url = _get_env_value("DIFFMERGE_API_BASE_URL")
    if base_url is not None:
        config.api.base_url = base_url

    timeout = _get_env_float("DIFFMERGE_API_TIMEOUT")
    if timeout is not None:
        config.api.timeout_seconds = timeout

    interval = _get_env_float("DIFFMERGE_POLL_INTERVAL")
    if interval is not None:
        config.polling.interval_seconds = interval

    max_attempts = _get_env_int("DIFFMERGE_POLL_MAX_ATTEMPTS")
    if max_attempts is not None:
        config.polling.max_attempts = max_attempts

    log_level = _get_env_value("DIFFMERGE_LOG_LEVEL")
    if log_level is not None:
        config.logging.level = log_level

    return config


async def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file (async)."""
    path = anyio.Path(config_path or "configs/settings.yaml")
    if await path.exists():
        text = await path.read_text()
        # Run YAML parsing in a thread to avoid blocking the event loop
        data = await anyio.to_thread.run_sync(yaml.safe_load, text)
        config = Config(**data) if data else Config()
        return _apply_env_overrides(config)

    return _apply_env_overrides(Config())
