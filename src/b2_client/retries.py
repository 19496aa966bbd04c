"""
Retry logic for the b2-client package.

Defines functions to determine whether to retry based on the type of exceptions raised.
Functions are used with stamina (package) retry contexts.
"""

from b2_client.client_exceptions import B2APIConnectionError, B2APIError, ExpiredUploadTokenError

RETRYABLE_STATUS_CODES = {408, 429}


def retry_only_on_retryable_b2_api_errors(exception: Exception) -> bool:
    """
    Retry condition function for stamina to only retry on retryable B2 API errors.

    - Connection errors and timeouts.
    - An expired upload token, the caller is expected to get a new upload URL before the next attempt.
    - Request timeouts (408), rate limiting (429) and server errors (5xx), B2 uses 503 for a busy upload pod.

    An expired account token is not retried here: B2APIClient has already refreshed the session once
    before raising it, so another attempt would only authorize again.
    Checksum mismatches and other 4xx (validation) errors are never retried, repeating them can not help.
    """
    if isinstance(exception, (B2APIConnectionError, ExpiredUploadTokenError)):
        return True

    return isinstance(exception, B2APIError) and (
        exception.status_code in RETRYABLE_STATUS_CODES
        or (exception.status_code is not None and exception.status_code >= 500)
    )
