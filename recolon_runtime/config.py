"""Recolon config loader.

Reads recolon.config (YAML) from the project directory.
Caches result after first load. Call _reset_config() in tests.
"""

import os
import yaml

from recolon_runtime.exceptions import RecolonConfigError

_config = None

DEFAULTS = {
    "runtime": {
        "max_call_depth": 128,
        "random_seed": None,
    },
    "ownership": {
        "max_errors": 20,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _require_positive_int(config: dict, section: str, key: str) -> None:
    table = config.get(section)
    if not isinstance(table, dict):
        raise RecolonConfigError(f"'{section}' must be a mapping")
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise RecolonConfigError(f"{section}.{key} must be a positive integer, got {value!r}")


def _validate(config: dict) -> dict:
    _require_positive_int(config, "runtime", "max_call_depth")
    _require_positive_int(config, "ownership", "max_errors")
    return config


def get_config(config_dir: str | None = None) -> dict:
    """Load and return the Recolon config, caching after first call."""
    global _config
    if _config is not None:
        return _config

    if config_dir is None:
        config_dir = os.getcwd()

    config_path = os.path.join(config_dir, "recolon.config")

    user_config = None
    if os.path.exists(config_path):
        with open(config_path) as f:
            try:
                user_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise RecolonConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if user_config is not None and not isinstance(user_config, dict):
            raise RecolonConfigError(f"{config_path} must contain a mapping")

    _config = _validate(_deep_merge(DEFAULTS, user_config or {}))
    return _config


def _reset_config():
    """Clear cached config. Call this in tests."""
    global _config
    _config = None
