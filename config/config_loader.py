import os
import yaml
from pathlib import Path

from core.errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")
CONFIG_ENV_VAR = "MECHASENSE_CONFIG"

REQUIRED_SECTIONS = ("mqtt", "session", "alert", "thresholds", "predictor")

_CONFIG_CACHE = {}


def load_config(path: str = None) -> dict:
    """
    Load YAML config with per-file cache.

    Resolution order:
    - explicit path
    - $MECHASENSE_CONFIG
    - bundled config/default.yaml
    """

    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or str(DEFAULT_CONFIG_PATH)

    if path in _CONFIG_CACHE:
        return _CONFIG_CACHE[path]

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")

    missing = [s for s in REQUIRED_SECTIONS if s not in data]
    if missing:
        raise ConfigError(f"Config {path} missing sections: {missing}")

    _CONFIG_CACHE[path] = data
    return data


def load_yaml(path) -> dict:
    """
    Plain YAML read for auxiliary files (knowledge base).
    Not cached: callers load these once at startup.
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def clear_config_cache():
    _CONFIG_CACHE.clear()
