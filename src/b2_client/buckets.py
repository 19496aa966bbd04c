"""
Resolve human readable bucket names to bucket ids, and split upload destinations into bucket and file name.
"""

import logging
import posixpath
from pathlib import Path

from b2_client.api_client import B2APIClient
from b2_lib.api_schemas.b2 import Bucket, ListBucketsRequest, ListBucketsResponse
from b2_lib.b2_constants import LIST_BUCKETS_ROUTE
from b2_lib.exceptions import BucketNotFoundError

logger = logging.getLogger(__name__)


class BucketResolver:
    """
    Looks up buckets by name.

    TODO: cache name to id mappings in the session cache, every upload currently costs one extra list call.
    """

    def __init__(self, api_client: B2APIClient):
        self.api_client = api_client

    def find_bucket_by_name(self, bucket_name: str) -> Bucket:
        """Return the bucket with the given name, raises BucketNotFoundError if there is none."""
        session = self.api_client.current_session()
        request_body = ListBucketsRequest(account_id=session.account_id, bucket_name=bucket_name)

        response = self.api_client.post(LIST_BUCKETS_ROUTE, json=request_body.model_dump(by_alias=True))
        buckets = ListBucketsResponse(**response).buckets

        for bucket in buckets:
            if bucket.bucket_name == bucket_name:
                logger.debug(f"Resolved bucket '{bucket_name}' to id '{bucket.bucket_id}'.")
                return bucket
        raise BucketNotFoundError(bucket_name=bucket_name)


def destination_bucket_and_filename(source: Path, destination: str) -> tuple[str, str]:
    """
    Split an upload destination into the bucket name and the name of the file in the bucket.

    B2 has no concept of folders, so:
    - "bucket" or "bucket/" uploads to the bucket keeping the source's file name.
    - "bucket/dir/" (trailing slash) is treated as a directory, the source's file name is kept.
    - "bucket/dir/name.bin" uploads under exactly that name.
    """
    bucket_name, _, file_prefix = destination.partition("/")
    if not bucket_name:
        raise ValueError(f"The destination '{destination}' does not start with a bucket name.")

    original_filename = source.name
    if not file_prefix:
        return bucket_name, original_filename
    if file_prefix.endswith("/"):
        return bucket_name, posixpath.join(file_prefix, original_filename)
    return bucket_name, file_prefix
