"""
Resolve the options a B2Client runs with from the environment settings and the (optional) user config file.
"""

import logging
from pathlib import Path

from b2_client.client_config import client_settings
from b2_client.user_config import UserConfig, load_user_config

logger = logging.getLogger(__name__)


def resolve_user_config(config_path: Path | None = None) -> UserConfig:
    """
    Load the user config file if there is one, otherwise fall back to the default options.
    A missing config file is not an error, most users never need to create one.
    """
    config_path = config_path or client_settings.CONFIG_PATH
    if not config_path.exists():
        logger.debug(f"No config file at '{config_path}', using default options.")
        return UserConfig(config_path=config_path)
    return load_user_config(config_path=config_path)


def resolve_cache_path(cache_path: Path | None = None, no_cache: bool | None = None) -> Path | None:
    """
    Work out where the session cache file lives.
    Returns None when the disk cache is disabled and an in-memory cache should be used instead.
    """
    if no_cache is None:
        no_cache = client_settings.NO_CACHE
    if no_cache:
        return None
    return cache_path or client_settings.CACHE_PATH
