"""
Configuration loading for generative fill.

Config is a JSON file looked up in a fixed list of locations; the first one
that loads wins. Missing keys fall back to DEFAULT_CONFIG.
"""

import copy
import json
import logging
import os
from datetime import datetime

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "SLICEFILL_CONFIG"
ENV_API_KEY = "GEMINI_API_KEY"
ENV_DEBUG = "SLICEFILL_DEBUG"

DEFAULT_CONFIG = {
    "gemini": {"api_key": None, "model": "nano-banana"},
    "settings": {
        "timeout": 120,
        "image_size": None,
        "output_format": "png",
        "debug": False,
        "debug_dir": os.path.join(os.path.expanduser("~"), ".cache", "slicefill", "debug"),
    },
}


def config_paths():
    """Candidate config file locations, in lookup order."""
    paths = []
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        paths.append(env_path)
    paths.extend(
        [
            os.path.expanduser("~/.config/slicefill/config.json"),
            os.path.expanduser("~/.slicefill-config.json"),
        ]
    )
    return paths


def _merge(defaults, overrides):
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if value is None and isinstance(merged.get(key), dict):
            # A null section keeps its defaults
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(paths=None):
    """Load configuration from the first readable config file, else defaults."""
    for config_path in paths if paths is not None else config_paths():
        try:
            if os.path.exists(config_path):
                with open(config_path, "r") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("top-level JSON value must be an object")
                logger.debug(f"Loaded config from {config_path}")
                return _merge(DEFAULT_CONFIG, loaded)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            continue

    logger.debug("Using default config (no config file found)")
    return copy.deepcopy(DEFAULT_CONFIG)


def get_api_key(config):
    """Get the Gemini API key from config or environment"""
    key = ((config or {}).get("gemini") or {}).get("api_key")
    if key:
        return key

    key = os.environ.get(ENV_API_KEY)
    if key:
        return key

    return None


def get_setting(config, name):
    settings = (config or {}).get("settings") or {}
    value = settings.get(name)
    if value is None:
        return DEFAULT_CONFIG["settings"].get(name)
    return value


def is_debug_mode(config):
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return True
    return bool(get_setting(config, "debug"))


def save_debug_image(config, image_bytes, filename):
    """
    Write an image to the debug directory when debug mode is on.

    Debug output is best-effort: failures are logged, never raised.

    Returns:
        str or None: Path written, if any
    """
    if not is_debug_mode(config) or not image_bytes:
        return None

    debug_dir = get_setting(config, "debug_dir")
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    path = os.path.join(debug_dir, f"{stamp}_{filename}")
    try:
        os.makedirs(debug_dir, exist_ok=True)
        with open(path, "wb") as f:
            f.write(image_bytes)
    except OSError as e:
        logger.error(f"Failed to save debug image {filename}: {e}")
        return None

    logger.info(f"Saved debug image: {path}")
    return path
