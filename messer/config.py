"""Configuration and logging setup."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

APPSTATE_DIR = "~/.messer"
DEFAULT_CONFIG_PATH = f"{APPSTATE_DIR}/config.yaml"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(Exception):
    """Raised when the config file exists but cannot be used."""
    pass


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load configuration from YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Failed to parse config {config_path}: expected mapping, got {type(data).__name__}")

    return data


def get_api_url(config: dict) -> Optional[str]:
    """Bridge URL; MESSER_API_URL wins over the config file."""
    return os.environ.get("MESSER_API_URL") or config.get("api", {}).get("url")


def get_appstate_dir(config: dict) -> Path:
    return Path(config.get("paths", {}).get("appstate_dir", APPSTATE_DIR)).expanduser()


def get_log_file(config: dict) -> Path:
    log_file = config.get("paths", {}).get("log_file")
    if log_file:
        return Path(log_file).expanduser()
    return get_appstate_dir(config) / "messer.log"


def setup_logging(config: dict, debug: bool = False):
    """
    Send logs to the log file so they don't interleave with the prompt.

    Args:
        config: Loaded config dict
        debug: Force DEBUG level (also enabled by config "debug: true")
    """
    log_file = get_log_file(config)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug or config.get("debug", False) else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        filename=str(log_file),
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)
