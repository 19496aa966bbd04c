"""
Settings for the B2 client.

This class creates a single 'client_settings' object at module load time that can be imported and used throughout the entire package.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import SecretStr

from b2_lib.b2_constants import DEFAULT_AUTHORIZATION_URL

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "b2" / "config.yaml"
DEFAULT_CACHE_PATH = Path.home() / ".cache" / "b2" / "cache.json"


@dataclass
class B2ClientSettings:
    """
    Settings for the B2 client.
    NOTE: Do not create an instance of this class yourself,
    import the 'client_settings' instance created at this module's load time.

    Credentials are only ever read from the environment so they never end up in the config file.
    The use case for changing the path env variables is for running with pytest.
    """

    CONFIG_PATH: Path = Path(os.getenv("B2_CONFIG_PATH", DEFAULT_CONFIG_PATH))
    CACHE_PATH: Path = Path(os.getenv("B2_CACHE_PATH", DEFAULT_CACHE_PATH))
    AUTHORIZATION_URL: str = os.getenv("B2_AUTHORIZATION_URL", DEFAULT_AUTHORIZATION_URL)
    KEY_ID: str = os.getenv("B2_KEY_ID", "")
    KEY_SECRET: SecretStr = SecretStr(os.getenv("B2_KEY_SECRET", ""))
    # Any value disables the disk cache, e.g. when leaving a token on disk is unwise.
    NO_CACHE: bool = "B2_NO_CACHE" in os.environ


client_settings = B2ClientSettings()
