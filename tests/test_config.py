from __future__ import annotations

import os
from pathlib import Path

import pytest

from s3_tier_mcp import config


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    for key in list(config.ENV_KEYS.values()) + ["AWS_REGION", "SDK_TIMEOUT_SECONDS"]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("POLICY_STORE_PATH", str(tmp_path / "cfg" / "policies.json"))
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


def test_defaults(tmp_path: Path) -> None:
    settings = config.load_settings()
    assert settings.execution.max_concurrency == 8
    assert settings.execution.restore_days == 7
    assert settings.execution.restore_tier == "Standard"
    assert settings.storage.status_log_limit == 20
    assert settings.storage.status_log_path is None
    assert settings.storage.policy_path == str((tmp_path / "cfg" / "policies.json").resolve())
    assert (tmp_path / "cfg").is_dir()


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TIERING_MAX_CONCURRENCY", "4")
    monkeypatch.setenv("TIERING_RESTORE_DAYS", "3")
    monkeypatch.setenv("TIERING_RESTORE_TIER", "Bulk")
    monkeypatch.setenv("STATUS_LOG_PATH", str(tmp_path / "logs" / "outcomes.jsonl"))
    monkeypatch.setenv("AWS_REGION", "eu-central-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-west-2")

    settings = config.load_settings()

    assert settings.execution.max_concurrency == 4
    assert settings.execution.restore_days == 3
    assert settings.execution.restore_tier == "Bulk"
    assert settings.storage.status_log_path.endswith("outcomes.jsonl")
    assert settings.aws.default_region == "eu-central-1"


def test_load_settings_is_cached() -> None:
    assert config.load_settings() is config.load_settings()


def test_env_int_uses_default_for_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_INT_VALUE", "")
    assert config._env_int("TEST_INT_VALUE", 7) == 7


def test_env_int_invalid_value_returns_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_INT_INVALID", "not_a_number")
    assert config._env_int("TEST_INT_INVALID", 42) == 42


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("TIERING_MAX_CONCURRENCY", "0"),
        ("TIERING_MAX_CONCURRENCY", "17"),
        ("TIERING_RESTORE_DAYS", "31"),
        ("TIERING_RESTORE_TIER", "Instant"),
    ],
)
def test_invalid_values_raise_runtime_error(
    monkeypatch: pytest.MonkeyPatch, key: str, value: str
) -> None:
    monkeypatch.setenv(key, value)
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_dotenv_file_is_loaded(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("TIERING_RESTORE_DAYS=5\n", encoding="utf-8")
    try:
        assert config.load_settings().execution.restore_days == 5
    finally:
        # load_dotenv writes straight into os.environ
        os.environ.pop("TIERING_RESTORE_DAYS", None)
