"""
Custom exceptions for the b2 client's communication with the B2 API.
"""


class B2ClientError(Exception):
    """Base exception for all errors talking to the B2 API."""

    pass


class B2APIConnectionError(B2ClientError):
    """
    Raised when a request to B2 fails at the transport level (DNS, connection refused, timeouts...).
    The original httpx exception is kept as __cause__.
    """

    def __init__(
        self,
        error_message: str = "Unable to connect to the B2 API. Check your network connection. Perhaps the service is down?",
    ):
        super().__init__(error_message)


class AuthenticationError(B2ClientError):
    """Raised for authentication errors when talking to B2."""

    def __init__(self, error_message: str = "Authentication with B2 failed."):
        super().__init__(error_message)


class UnauthorizedError(AuthenticationError):
    """Raised when the application key id and/or the application key are wrong. Fatal."""

    def __init__(
        self,
        error_message: str = "Invalid credentials. Check the B2_KEY_ID and B2_KEY_SECRET environment variables.",
    ):
        super().__init__(error_message)


class ExpiredTokenError(AuthenticationError):
    """
    Raised when B2 reports that the authorization token has expired.
    Recoverable: repeating the request with a freshly obtained token is expected to succeed.
    """

    def __init__(self, error_message: str = "The B2 authorization token has expired."):
        super().__init__(error_message)


class B2APIError(B2ClientError):
    """
    Raised when the B2 API responds with an error status code,
    e.g. a malformed request, misordered part checksums or an unknown bucket id.
    Provides a helpful and easy-to-read error message for the user.
    """

    def __init__(
        self,
        error_details: str = "Not Provided",
        error_code: str = "unknown",
        status_code: int = None,
        http_method: str = "unknown",
        url: str = "unknown",
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.error_details = error_details
        self.http_method = http_method
        self.url = url

        self.error_message = (
            f"B2 returned an error response:\n"
            f"HTTP Status code: {status_code}\n"
            f"HTTP method: {http_method}\n"
            f"URL: {url}\n"
            f"Error code: {error_code}\n"
            f"Details: {error_details}\n"
        )
        super().__init__(self.error_message)

    def __str__(self):
        return self.error_message


class ExpiredUploadTokenError(ExpiredTokenError):
    """
    Raised when an upload URL rejects its upload token as expired.
    Recoverable by requesting a new upload URL, unlike an account token B2APIClient already refreshed once.
    """

    def __init__(self, error_message: str = "The B2 upload authorization token has expired."):
        super().__init__(error_message)
