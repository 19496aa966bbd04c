import pytest

from b2_client.client_exceptions import (
    B2APIConnectionError,
    B2APIError,
    ExpiredTokenError,
    ExpiredUploadTokenError,
    UnauthorizedError,
)
from b2_client.retries import retry_only_on_retryable_b2_api_errors
from b2_lib.exceptions import ChecksumVerificationError


@pytest.mark.parametrize(
    "exception",
    [
        B2APIConnectionError(),
        ExpiredUploadTokenError(),
        B2APIError(status_code=408),
        B2APIError(status_code=429),
        B2APIError(status_code=500),
        B2APIError(status_code=503),
    ],
)
def test_retryable_errors(exception):
    assert retry_only_on_retryable_b2_api_errors(exception) is True


@pytest.mark.parametrize(
    "exception",
    [
        UnauthorizedError(),
        # B2APIClient has already refreshed the account token once when this reaches the retry loop.
        ExpiredTokenError(),
        B2APIError(status_code=400),
        B2APIError(status_code=404),
        B2APIError(status_code=None),
        ChecksumVerificationError(expected_checksum="a", calculated_checksum="b"),
        ValueError("not from the API"),
    ],
)
def test_non_retryable_errors(exception):
    assert retry_only_on_retryable_b2_api_errors(exception) is False
