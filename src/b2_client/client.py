"""
B2Client ties the session cache, the API client and the upload pipeline together.

Typical use:

    with B2Client() as client:
        client.upload_file(Path("backup.tar"), "my-bucket/backups/")

Credentials default to the B2_KEY_ID and B2_KEY_SECRET environment variables,
tunables to the user config file (see user_config.py).
"""

import time
from pathlib import Path
from typing import Callable

import httpx
from pydantic import SecretStr

from b2_client import __version__
from b2_client.api_client import B2APIClient
from b2_client.buckets import BucketResolver
from b2_client.client_config import client_settings
from b2_client.client_exceptions import AuthenticationError
from b2_client.config_resolver import resolve_cache_path, resolve_user_config
from b2_client.services.uploads import upload_file_command
from b2_client.session_manager import B2Credentials, Session, SessionManager
from b2_client.session_store import SessionStore, create_session_store
from b2_lib.api_schemas.b2 import B2File, Bucket

USER_AGENT = f"b2-client/{__version__}"


class B2Client:
    """Client for the B2 native API."""

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: SecretStr | str | None = None,
        authorization_url: str | None = None,
        config_path: Path | None = None,
        cache_path: Path | None = None,
        no_cache: bool | None = None,
        session_store: SessionStore | None = None,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if isinstance(key_secret, str):
            key_secret = SecretStr(key_secret)
        credentials = B2Credentials(
            key_id=key_id or client_settings.KEY_ID,
            key_secret=key_secret or client_settings.KEY_SECRET,
        )
        if not credentials.key_id or not credentials.key_secret.get_secret_value():
            raise AuthenticationError(
                "No application key provided. Set the B2_KEY_ID and B2_KEY_SECRET environment variables."
            )

        self.user_config = resolve_user_config(config_path=config_path)

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.Client(headers={"User-Agent": USER_AGENT}, timeout=30.0)

        if session_store is None:
            session_store = create_session_store(resolve_cache_path(cache_path=cache_path, no_cache=no_cache))

        self.session_manager = SessionManager(
            store=session_store,
            credentials=credentials,
            http_client=self.http_client,
            authorization_url=authorization_url or client_settings.AUTHORIZATION_URL,
            token_ttl_seconds=self.user_config.token_ttl_seconds,
            clock=clock,
        )
        self.api = B2APIClient(session_manager=self.session_manager, http_client=self.http_client)
        self.buckets = BucketResolver(self.api)

    def current_session(self) -> Session:
        return self.session_manager.current_session()

    def find_bucket_by_name(self, bucket_name: str) -> Bucket:
        return self.buckets.find_bucket_by_name(bucket_name)

    def upload_file(self, source: Path, destination: str) -> B2File:
        """
        Upload 'source' to 'destination'. If the destination has a trailing slash it is treated as a directory
        and the file is uploaded keeping the original file name.
        """
        return upload_file_command(
            api_client=self.api,
            http_client=self.http_client,
            file_path=Path(source),
            destination=destination,
            upload_workers=self.user_config.upload_workers,
            part_retry_attempts=self.user_config.part_retry_attempts,
        )

    def close(self) -> None:
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> "B2Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
