"""Configuration loading: YAML file -> env vars -> Pydantic defaults."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel


class ReviewConfig(BaseModel):
    policy_file: str | None = None  # None = built-in default policy
    lease_seconds: int = 900


class FinalizationConfig(BaseModel):
    mode: str = "store"  # "store" or "http"
    base_url: str = ""
    token: str = ""
    reward_pool: float | None = None
    timeout_seconds: float = 30.0


class HarnessConfig(BaseModel):
    run_url: str = "https://api.coze.cn/v1/workflow/run"
    history_url: str = "https://api.coze.cn/v1/workflows"
    timeout_seconds: float = 60.0


class MonitorConfig(BaseModel):
    interval_seconds: float = 30.0
    batch_size: int = 50


class ApiConfig(BaseModel):
    admin_token: str = ""


class Settings(BaseModel):
    data_dir: str = "data"
    log_level: str = "INFO"
    review: ReviewConfig = ReviewConfig()
    finalization: FinalizationConfig = FinalizationConfig()
    harness: HarnessConfig = HarnessConfig()
    monitor: MonitorConfig = MonitorConfig()
    api: ApiConfig = ApiConfig()


# env var -> (section or None for top level, field, type)
_ENV_MAP: dict[str, tuple[str | None, str, type]] = {
    "SRV_DATA_DIR": (None, "data_dir", str),
    "SRV_LOG_LEVEL": (None, "log_level", str),
    "SRV_POLICY_FILE": ("review", "policy_file", str),
    "SRV_LEASE_SECONDS": ("review", "lease_seconds", int),
    "SRV_FINALIZATION_MODE": ("finalization", "mode", str),
    "SRV_FINALIZATION_URL": ("finalization", "base_url", str),
    "SRV_FINALIZATION_TOKEN": ("finalization", "token", str),
    "SRV_REWARD_POOL": ("finalization", "reward_pool", float),
    "SRV_HARNESS_RUN_URL": ("harness", "run_url", str),
    "SRV_HARNESS_HISTORY_URL": ("harness", "history_url", str),
    "SRV_HARNESS_TIMEOUT": ("harness", "timeout_seconds", float),
    "SRV_MONITOR_INTERVAL": ("monitor", "interval_seconds", float),
    "SRV_ADMIN_TOKEN": ("api", "admin_token", str),
}


def load_settings(config_path: str | None = None) -> Settings:
    """Load settings: YAML file -> env var overrides -> Pydantic defaults."""
    yaml_data: dict = {}

    # 1. Resolve config file path
    path = _resolve_config_path(config_path)
    if path and path.is_file():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}

    # 2. Override with env vars
    for env_key, (section, field_name, field_type) in _ENV_MAP.items():
        val = os.environ.get(env_key)
        if val is None:
            continue
        if section is None:
            yaml_data[field_name] = field_type(val)
        else:
            if not isinstance(yaml_data.get(section), dict):
                yaml_data[section] = {}
            yaml_data[section][field_name] = field_type(val)

    # 3. Validate into settings (defaults fill the rest)
    return Settings.model_validate(yaml_data)


def _resolve_config_path(explicit_path: str | None) -> Path | None:
    if explicit_path:
        return Path(explicit_path)

    env_path = os.environ.get("SRV_CONFIG_FILE")
    if env_path:
        return Path(env_path)

    # Default: config.yaml next to this module
    pkg_dir = Path(__file__).parent
    default = pkg_dir / "config.yaml"
    if default.is_file():
        return default

    return None
