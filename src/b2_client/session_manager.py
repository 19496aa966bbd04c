"""
Manage the account authorization ("session") with B2.

This includes getting a new authorization token with the application key,
storing it in the session cache so repeated invocations can reuse it,
and refreshing it once it has expired.

Every API call reads the current session, including the upload workers running in parallel,
so the session is only ever exposed as an immutable snapshot and refreshes are serialized.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
from pydantic import SecretStr

from b2_client.responses import send_request
from b2_client.session_store import SessionStore
from b2_lib.api_schemas.b2 import AccountAuthorizationResponse
from b2_lib.b2_constants import AUTHORIZE_ACCOUNT_ROUTE, DEFAULT_TOKEN_TTL_SECONDS, SESSION_CACHE_KEY
from b2_lib.exceptions import SessionCacheError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class B2Credentials:
    """Application key used to log in to B2."""

    key_id: str
    key_secret: SecretStr


@dataclass(frozen=True)
class Session:
    """
    Snapshot of the information obtained from the authorization call,
    enough to interact with the API directly.

    A session is fresh while `now < token_expires_at`, an expired session must never be used to authorize a request.
    """

    account_id: str
    authorization_token: SecretStr
    api_url: str
    download_url: str
    recommended_part_size: int
    absolute_minimum_part_size: int
    # POSIX timestamp of when the token will be considered invalid.
    token_expires_at: float
    capabilities: tuple[str, ...] = field(default_factory=tuple)

    def is_expired(self, now: float) -> bool:
        """Check if the authorization token has expired at 'now'"""
        return now >= self.token_expires_at

    def to_cache_dict(self) -> dict[str, Any]:
        """The session as stored in the session cache, keys match the B2 authorization response."""
        return {
            "accountId": self.account_id,
            "authorizationToken": self.authorization_token.get_secret_value(),
            "apiUrl": self.api_url,
            "downloadUrl": self.download_url,
            "recommendedPartSize": self.recommended_part_size,
            "absoluteMinimumPartSize": self.absolute_minimum_part_size,
            "capabilities": list(self.capabilities),
            "tokenExpiresAt": self.token_expires_at,
        }

    @classmethod
    def from_cache_dict(cls, cached: dict[str, Any]) -> "Session":
        return cls(
            account_id=cached["accountId"],
            authorization_token=SecretStr(cached["authorizationToken"]),
            api_url=cached["apiUrl"],
            download_url=cached["downloadUrl"],
            recommended_part_size=int(cached["recommendedPartSize"]),
            absolute_minimum_part_size=int(cached["absoluteMinimumPartSize"]),
            capabilities=tuple(cached.get("capabilities", ())),
            token_expires_at=float(cached["tokenExpiresAt"]),
        )


class SessionManager:
    """
    Owns the authoritative in-memory session.

    Only one authorization call is in flight at any time: if several threads find the session expired
    at the same moment, one of them refreshes it and the others wait for and reuse its result.
    """

    def __init__(
        self,
        store: SessionStore,
        credentials: B2Credentials,
        http_client: httpx.Client,
        authorization_url: str,
        token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.credentials = credentials
        self.http_client = http_client
        self.authorization_url = authorization_url.rstrip("/")
        self.token_ttl_seconds = token_ttl_seconds
        self.clock = clock
        self._session: Session | None = None
        self._refresh_lock = threading.Lock()

    def current_session(self) -> Session:
        """
        Return a fresh session, restoring it from the session cache or authorizing with B2 as needed.
        """
        session = self._session
        if session is not None and not session.is_expired(self.clock()):
            return session

        with self._refresh_lock:
            # Another thread may have refreshed the session while this one waited for the lock.
            session = self._session
            if session is not None and not session.is_expired(self.clock()):
                return session

            session = self._restore_from_store()
            if session is None or session.is_expired(self.clock()):
                session = self._authorize()

            self._session = session
            return session

    def refresh_session(self, stale_session: Session) -> Session:
        """
        Replace a session B2 reported as expired, even if it has not reached its local expiry yet.

        Callers pass the session their request was rejected with. If another thread has already replaced it,
        that newer session is returned instead of authorizing again.
        """
        with self._refresh_lock:
            session = self._session
            if session is not None and session.authorization_token != stale_session.authorization_token:
                return session

            logger.info("B2 reported the authorization token as expired, re-authorizing.")
            session = self._authorize()
            self._session = session
            return session

    def _restore_from_store(self) -> Session | None:
        cached = self.store.get(SESSION_CACHE_KEY)
        if cached is None:
            return None
        try:
            return Session.from_cache_dict(cached)
        except (KeyError, TypeError, ValueError) as err:
            raise SessionCacheError(cache_path=getattr(self.store, "cache_path", None), reason=repr(err)) from err

    def _authorize(self) -> Session:
        """
        Log in to B2 with the application key, then store the new session in the session cache.
        """
        logger.info("Authorizing account with B2.")
        # Unlike the other calls, b2_authorize_account is sent to the fixed authorization URL.
        response = send_request(
            self.http_client,
            "GET",
            f"{self.authorization_url}/{AUTHORIZE_ACCOUNT_ROUTE}",
            auth=(self.credentials.key_id, self.credentials.key_secret.get_secret_value()),
        )
        data = AccountAuthorizationResponse(**response.json())

        session = Session(
            account_id=data.account_id,
            authorization_token=SecretStr(data.authorization_token),
            api_url=data.api_url,
            download_url=data.download_url,
            recommended_part_size=data.recommended_part_size,
            absolute_minimum_part_size=data.absolute_minimum_part_size,
            capabilities=tuple(data.allowed.capabilities),
            token_expires_at=self.clock() + self.token_ttl_seconds,
        )
        self.store.set(SESSION_CACHE_KEY, session.to_cache_dict())
        return session
