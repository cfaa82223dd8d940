"""Posh config loader.

Reads posh.config (YAML) from the working directory.
Caches result after first load. Call _reset_config() in tests.
"""

import logging
import os

import yaml

logger = logging.getLogger(__name__)

_config = None

CONFIG_FILENAME = "posh.config"

DEFAULTS = {
    "shell": {
        "prompt": "PS > ",
        "continuation_prompt": ">> ",
    },
    "evaluator": {
        "strict_variables": False,
    },
    "commands": {
        "disabled": [],
    },
    "http": {
        "timeout": 30,
        "headers": {},
    },
    "logging": {
        "level": "WARNING",
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


def get_config(config_dir: str | None = None) -> dict:
    """Load and return the Posh config, caching after first call."""
    global _config
    if _config is not None:
        return _config

    if config_dir is None:
        config_dir = os.getcwd()

    config_path = os.path.join(config_dir, CONFIG_FILENAME)

    if os.path.exists(config_path):
        logger.debug("loading config from %s", config_path)
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
        if user_config and isinstance(user_config, dict):
            _config = _deep_merge(DEFAULTS, user_config)
        else:
            _config = dict(DEFAULTS)
    else:
        _config = dict(DEFAULTS)

    return _config


def get_setting(dotted_key: str, default=None, config_dir: str | None = None):
    """Look up a ``section.key`` path in the loaded config."""
    node = get_config(config_dir)
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _reset_config():
    """Clear cached config. Call this in tests."""
    global _config
    _config = None
