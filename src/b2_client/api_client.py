"""
Make authenticated requests to the B2 API, handles re-authorizing if the token has expired.
"""

import logging
from typing import Any

import httpx

from b2_client.client_exceptions import ExpiredTokenError
from b2_client.responses import send_request
from b2_client.session_manager import Session, SessionManager

logger = logging.getLogger(__name__)


class B2APIClient:
    """
    Thin client for the JSON API calls, shared by everything that talks to the API URL of the session.

    Safe to use from several threads, the session is read from the SessionManager on every request.
    """

    def __init__(self, session_manager: SessionManager, http_client: httpx.Client):
        self.session_manager = session_manager
        self.http_client = http_client

    def current_session(self) -> Session:
        return self.session_manager.current_session()

    def post(self, api_route: str, json: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body to an API route and return the decoded JSON response."""
        response = self.make_authenticated_request(method="POST", api_route=api_route, json=json)
        return response.json()

    def make_authenticated_request(self, method: str, api_route: str, **kwargs: Any) -> httpx.Response:
        """
        Make an authenticated request to the API URL of the current session.

        If B2 rejects the token as expired, the session is refreshed and the request repeated exactly once.
        A second rejection is raised to the caller, so persistently invalid credentials can not cause a loop.
        """
        session = self.session_manager.current_session()
        try:
            return self._send(session=session, method=method, api_route=api_route, **kwargs)
        except ExpiredTokenError:
            logger.info(f"Token expired during {method} {api_route}, retrying once with a new token.")
            session = self.session_manager.refresh_session(stale_session=session)
            return self._send(session=session, method=method, api_route=api_route, **kwargs)

    def _send(self, session: Session, method: str, api_route: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = session.authorization_token.get_secret_value()

        url = f"{session.api_url.rstrip('/')}/{api_route.lstrip('/')}"
        return send_request(self.http_client, method, url, headers=headers, **kwargs)
