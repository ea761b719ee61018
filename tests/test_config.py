# tests/test_config.py
"""Tests for config loading and env overrides."""

import pytest

from diffmerge.config import load_config

ENV_VARS = (
    "DIFFMERGE_API_BASE_URL",
    "DIFFMERGE_API_TIMEOUT",
    "DIFFMERGE_POLL_INTERVAL",
    "DIFFMERGE_POLL_MAX_ATTEMPTS",
    "DIFFMERGE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.asyncio
async def test_defaults_when_file_missing(tmp_path):
    config = await load_config(config_path=str(tmp_path / "missing.yaml"))

    assert config.api.base_url == "http://localhost:8000"
    assert config.api.timeout_seconds == 60
    assert config.polling.interval_seconds == 1.0
    assert config.polling.max_attempts == 120
    assert config.polling.max_network_failures is None
    assert config.logging.level == "INFO"


@pytest.mark.asyncio
async def test_yaml_values_are_loaded(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "api:\n"
        "  base_url: https://merge.example.com\n"
        "polling:\n"
        "  interval_seconds: 2.5\n"
        "  max_network_failures: 5\n"
    )

    config = await load_config(config_path=str(path))

    assert config.api.base_url == "https://merge.example.com"
    assert config.api.timeout_seconds == 60
    assert config.polling.interval_seconds == 2.5
    assert config.polling.max_network_failures == 5


@pytest.mark.asyncio
async def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")

    config = await load_config(config_path=str(path))

    assert config.polling.max_attempts == 120


@pytest.mark.asyncio
async def test_env_overrides_apply(monkeypatch, tmp_path):
    monkeypatch.setenv("DIFFMERGE_API_BASE_URL", "http://merge:9000")
    monkeypatch.setenv("DIFFMERGE_API_TIMEOUT", "15")
    monkeypatch.setenv("DIFFMERGE_POLL_INTERVAL", "0.25")
    monkeypatch.setenv("DIFFMERGE_POLL_MAX_ATTEMPTS", "10")
    monkeypatch.setenv("DIFFMERGE_LOG_LEVEL", "DEBUG")

    config = await load_config(config_path=str(tmp_path / "missing.yaml"))

    assert config.api.base_url == "http://merge:9000"
    assert config.api.timeout_seconds == 15.0
    assert config.polling.interval_seconds == 0.25
    assert config.polling.max_attempts == 10
    assert config.logging.level == "DEBUG"


@pytest.mark.asyncio
async def test_blank_env_values_are_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("DIFFMERGE_API_BASE_URL", "   ")

    config = await load_config(config_path=str(tmp_path / "missing.yaml"))

    assert config.api.base_url == "http://localhost:8000"


@pytest.mark.asyncio
async def test_env_overrides_invalid_attempts(monkeypatch, tmp_path):
    monkeypatch.setenv("DIFFMERGE_POLL_MAX_ATTEMPTS", "many")

    with pytest.raises(ValueError):
        await load_config(config_path=str(tmp_path / "missing.yaml"))


@pytest.mark.asyncio
async def test_env_overrides_invalid_timeout(monkeypatch, tmp_path):
    monkeypatch.setenv("DIFFMERGE_API_TIMEOUT", "soon")

    with pytest.raises(ValueError):
        await load_config(config_path=str(tmp_path / "missing.yaml"))
