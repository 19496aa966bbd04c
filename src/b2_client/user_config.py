"""
Handles the user's configuration file for the b2-client package.
User configuration is stored in a local YAML file.
By default the config will be stored at: "~/.config/b2/config.yaml"

Only tunables live here. Credentials are read from the environment (see client_config.py)
and the authorization token is kept in the session cache, not in this file.
"""

from dataclasses import dataclass
from pathlib import Path

import yaml

from b2_client.client_config import client_settings
from b2_lib.b2_constants import DEFAULT_PART_RETRY_ATTEMPTS, DEFAULT_TOKEN_TTL_SECONDS, DEFAULT_UPLOAD_WORKERS

CONFIG_OPTIONS = ("token_ttl_seconds", "upload_workers", "part_retry_attempts")


@dataclass
class UserConfig:
    """Overall user configuration"""

    config_path: Path
    # The authorization response has no expiry, this is how long a cached token is trusted for.
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    # Number of parts of a large file uploaded concurrently.
    upload_workers: int = DEFAULT_UPLOAD_WORKERS
    # Attempts per part before the whole large file upload is given up on.
    part_retry_attempts: int = DEFAULT_PART_RETRY_ATTEMPTS

    def __post_init__(self):
        for option in CONFIG_OPTIONS:
            value = getattr(self, option)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(
                    f"Invalid value '{value}' for '{option}' in the config file at '{self.config_path}', "
                    "it must be a positive whole number."
                )

    def dump_config(self) -> None:
        """
        Dump the user configuration to the specified output path
        Don't include the config_path in the dumped file.
        """
        config_dict = {option: getattr(self, option) for option in CONFIG_OPTIONS}

        with open(self.config_path, "w") as file:
            yaml.safe_dump(config_dict, file, sort_keys=False)

    def set_option(self, name: str, value: int) -> int:
        """
        Set a single option in the user configuration file.
        """
        if name not in CONFIG_OPTIONS:
            raise ValueError(f"Unknown config option: '{name}'. Valid options are: {', '.join(CONFIG_OPTIONS)}")

        updated = UserConfig(config_path=self.config_path, **{**self.options(), name: value})
        setattr(self, name, getattr(updated, name))
        self.dump_config()
        return getattr(self, name)

    def options(self) -> dict[str, int]:
        return {option: getattr(self, option) for option in CONFIG_OPTIONS}


def load_user_config(config_path: Path = client_settings.CONFIG_PATH) -> UserConfig:
    """Helper function to load the user config file"""
    with open(config_path, "r") as file:
        config_contents = yaml.safe_load(file) or {}

    unknown_options = set(config_contents) - set(CONFIG_OPTIONS)
    if unknown_options:
        raise ValueError(
            f"Unknown option(s) {sorted(unknown_options)} in the config file at '{config_path}'. "
            f"Valid options are: {', '.join(CONFIG_OPTIONS)}"
        )

    return UserConfig(config_path=config_path, **config_contents)


def create_user_config(config_path: Path) -> UserConfig:
    """Create a user configuration file with the default options at the specified path."""
    if config_path.exists():
        raise FileExistsError(f"Config file already exists at {config_path}.")
    config_path.parent.mkdir(parents=True, exist_ok=True)

    user_config = UserConfig(config_path=config_path)
    user_config.dump_config()
    return user_config
