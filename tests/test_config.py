"""Tests for config/settings.py."""

import yaml

from submission_review.config.settings import load_settings

_ENV_KEYS = (
    "SRV_DATA_DIR", "SRV_LOG_LEVEL", "SRV_POLICY_FILE", "SRV_LEASE_SECONDS",
    "SRV_FINALIZATION_MODE", "SRV_REWARD_POOL", "SRV_ADMIN_TOKEN", "SRV_MONITOR_INTERVAL",
)


def _clear_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_when_no_file_or_env(monkeypatch, tmp_path):
    """Default settings when no config file or env vars exist."""
    _clear_env(monkeypatch)
    settings = load_settings(config_path=str(tmp_path / "nonexistent.yaml"))
    assert settings.data_dir == "data"
    assert settings.review.policy_file is None
    assert settings.review.lease_seconds == 900
    assert settings.finalization.mode == "store"
    assert settings.finalization.reward_pool is None
    assert settings.monitor.interval_seconds == 30.0
    assert settings.monitor.batch_size == 50
    assert settings.api.admin_token == ""


def test_yaml_file_overrides_defaults(tmp_path, monkeypatch):
    """YAML config file values override Pydantic defaults."""
    _clear_env(monkeypatch)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "review": {"lease_seconds": 60},
        "finalization": {"mode": "http", "base_url": "http://backend"},
    }))

    settings = load_settings(config_path=str(config_file))
    assert settings.review.lease_seconds == 60
    assert settings.finalization.mode == "http"
    assert settings.finalization.base_url == "http://backend"
    # Unset fields keep defaults
    assert settings.monitor.interval_seconds == 30.0


def test_env_vars_override_yaml(tmp_path, monkeypatch):
    """Env vars take priority over YAML file values."""
    _clear_env(monkeypatch)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "data_dir": "/from/yaml",
        "review": {"lease_seconds": 60},
    }))

    monkeypatch.setenv("SRV_LEASE_SECONDS", "120")
    monkeypatch.setenv("SRV_REWARD_POOL", "500.5")
    monkeypatch.setenv("SRV_ADMIN_TOKEN", "secret")

    settings = load_settings(config_path=str(config_file))
    assert settings.review.lease_seconds == 120
    assert settings.finalization.reward_pool == 500.5
    assert settings.api.admin_token == "secret"
    # YAML still applies where env not set
    assert settings.data_dir == "/from/yaml"


def test_env_var_config_file_path(tmp_path, monkeypatch):
    """SRV_CONFIG_FILE env var points to config file."""
    _clear_env(monkeypatch)
    config_file = tmp_path / "custom.yaml"
    config_file.write_text(yaml.dump({"log_level": "DEBUG"}))
    monkeypatch.setenv("SRV_CONFIG_FILE", str(config_file))

    settings = load_settings()
    assert settings.log_level == "DEBUG"
