"""
Sending requests to B2 and turning error responses into the b2-client exception types.

Every non-2xx response from B2 carries a JSON body: {"status": 400, "code": "bad_request", "message": "..."}.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from b2_client.client_exceptions import B2APIConnectionError, B2APIError, ExpiredTokenError, UnauthorizedError
from b2_lib.api_schemas.b2 import ErrorResponse

logger = logging.getLogger(__name__)


def send_request(http_client: httpx.Client, method: str, url: str, **kwargs: Any) -> httpx.Response:
    """
    Send a request and check the response.
    Transport level failures are raised as B2APIConnectionError with the httpx error as the cause.
    """
    try:
        response = http_client.request(method, url, **kwargs)
    except httpx.TransportError as err:
        raise B2APIConnectionError(f"Unable to reach B2 at {url}: {err!r}") from err

    check_response(response)
    return response


def check_response(response: httpx.Response) -> None:
    """
    Check the API response for errors and raise them if present.

    A 401 is split into the two cases callers act on differently:
    - 'expired_auth_token': ExpiredTokenError, repeating the request with a new token will succeed.
    - 'unauthorized': UnauthorizedError, the credentials themselves are wrong.
    """
    if response.is_success:
        return

    error = _parse_error_body(response)

    if response.status_code == 401:
        if error.code == "expired_auth_token":
            raise ExpiredTokenError()
        if error.code == "unauthorized":
            raise UnauthorizedError()

    raise B2APIError(
        error_details=error.message,
        error_code=error.code,
        status_code=response.status_code,
        http_method=response.request.method,
        url=str(response.request.url),
    )


def _parse_error_body(response: httpx.Response) -> ErrorResponse:
    """B2 documents a JSON error body, but proxies in between may answer with anything."""
    if not response.content:
        return ErrorResponse(message="empty error body")
    try:
        return ErrorResponse(**response.json())
    except (ValueError, TypeError, ValidationError):
        return ErrorResponse(message=response.text)
