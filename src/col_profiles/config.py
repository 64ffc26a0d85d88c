"""Configuration file loading."""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "col-profiles"
CONFIG_PATH = CONFIG_DIR / "col-profiles.json"
LOCAL_CONFIG_PATH = Path("col-profiles.json")
CACHE_DIR = Path.home() / ".cache" / "col-profiles"

DEFAULTS = {
    "catalogue_path": "cols.json",
    "cache_dir": str(CACHE_DIR),
    "provider": "openrouteservice",
    "rate_limit_max_requests": 40,
    "rate_limit_window_seconds": 60.0,
    "rate_limit_retry_after_seconds": 2.0,
    "log_level": "INFO",
}


def load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/col-profiles/col-profiles.json (global, loaded first)
    2. ./col-profiles.json (local, overrides global)

    Keeps the API key in the global file while catalogue paths live with
    the project. The OpenRouteService key falls back to OPENROUTE_API_KEY.

    Returns:
        Dict with DEFAULTS overlaid by the merged file values.
    """
    config = dict(DEFAULTS)
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config %s: %s", config_path, e)
                continue

    if not config.get("openrouteservice_api_key"):
        config["openrouteservice_api_key"] = os.environ.get("OPENROUTE_API_KEY", "")
    return config
