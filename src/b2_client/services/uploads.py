"""
Upload a local file to a bucket.

Files that plan to fewer than 2 parts go up in a single request with a bucket scoped upload authorization,
anything bigger goes through the large file pipeline:

1. Start the large file (its file info carries the whole file's SHA1 and last modified time).
2. Upload the parts concurrently (UploadCoordinator + ChunkUploader).
3. Finish the large file with the parts' SHA1s in part number order.

If anything fails after the large file was started it is cancelled, so no unfinished upload is left in the bucket.
"""

import logging
from pathlib import Path
from urllib.parse import quote

import httpx

from b2_client.api_client import B2APIClient
from b2_client.buckets import BucketResolver, destination_bucket_and_filename
from b2_client.chunk_planner import PartPlan, plan_parts
from b2_client.chunk_uploader import ChunkUploader
from b2_client.client_exceptions import B2ClientError
from b2_client.large_file import LargeFileLifecycle, LargeFileState, LargeFileUpload
from b2_client.responses import send_request
from b2_client.upload_coordinator import UploadCoordinator
from b2_client.utils import format_file_size, last_modified_millis
from b2_lib.api_schemas.b2 import B2File, Bucket, GetUploadUrlRequest, UploadAuthorization
from b2_lib.b2_constants import (
    AUTO_CONTENT_TYPE,
    DEFAULT_PART_RETRY_ATTEMPTS,
    DEFAULT_UPLOAD_WORKERS,
    GET_UPLOAD_URL_ROUTE,
    LARGE_FILE_SHA1_FILE_INFO_KEY,
    LAST_MODIFIED_FILE_INFO_KEY,
    MIN_LARGE_FILE_PART_COUNT,
)
from b2_lib.exceptions import LargeFileCancelError
from b2_lib.sha1_checksums import calculate_sha1_checksum

logger = logging.getLogger(__name__)


def upload_file_command(
    api_client: B2APIClient,
    http_client: httpx.Client,
    file_path: Path,
    destination: str,
    upload_workers: int = DEFAULT_UPLOAD_WORKERS,
    part_retry_attempts: int = DEFAULT_PART_RETRY_ATTEMPTS,
) -> B2File:
    """
    Upload 'file_path' to 'destination' ("bucket", "bucket/dir/" or "bucket/dir/name").
    Returns the file record of the uploaded file.
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"File does not exist: {file_path}")

    bucket_name, file_name = destination_bucket_and_filename(source=file_path, destination=destination)
    bucket = BucketResolver(api_client).find_bucket_by_name(bucket_name)

    file_size = file_path.stat().st_size
    session = api_client.current_session()

    if file_size == 0:
        return upload_small_file(
            api_client=api_client, http_client=http_client, file_path=file_path, bucket=bucket, file_name=file_name
        )

    plan = plan_parts(file_size=file_size, recommended_part_size=session.recommended_part_size)
    if plan.part_count < MIN_LARGE_FILE_PART_COUNT:
        return upload_small_file(
            api_client=api_client, http_client=http_client, file_path=file_path, bucket=bucket, file_name=file_name
        )

    return upload_large_file(
        api_client=api_client,
        http_client=http_client,
        file_path=file_path,
        bucket=bucket,
        file_name=file_name,
        plan=plan,
        upload_workers=upload_workers,
        part_retry_attempts=part_retry_attempts,
    )


def upload_small_file(
    api_client: B2APIClient, http_client: httpx.Client, file_path: Path, bucket: Bucket, file_name: str
) -> B2File:
    """Upload a whole file in a single request using a bucket scoped upload authorization."""
    request_body = GetUploadUrlRequest(bucket_id=bucket.bucket_id)
    authorization = UploadAuthorization(
        **api_client.post(GET_UPLOAD_URL_ROUTE, json=request_body.model_dump(by_alias=True))
    )

    file_size = file_path.stat().st_size
    headers = {
        "Authorization": authorization.authorization_token,
        "X-Bz-File-Name": quote(file_name, safe="/"),
        "Content-Type": AUTO_CONTENT_TYPE,
        "Content-Length": str(file_size),
        "X-Bz-Content-Sha1": calculate_sha1_checksum(file_path),
        f"X-Bz-Info-{LAST_MODIFIED_FILE_INFO_KEY}": last_modified_millis(file_path),
    }

    logger.info(f"Uploading '{file_path}' ({format_file_size(file_size)}) as '{file_name}' to '{bucket.bucket_name}'.")
    with open(file_path, "rb") as file:
        response = send_request(http_client, "POST", authorization.upload_url, content=file, headers=headers)
    return B2File(**response.json())


def upload_large_file(
    api_client: B2APIClient,
    http_client: httpx.Client,
    file_path: Path,
    bucket: Bucket,
    file_name: str,
    plan: PartPlan,
    upload_workers: int = DEFAULT_UPLOAD_WORKERS,
    part_retry_attempts: int = DEFAULT_PART_RETRY_ATTEMPTS,
) -> B2File:
    """
    Upload a file as a large file following 'plan'.

    On any failure after the start call, the large file is cancelled before the error is raised.
    If cancelling fails as well a LargeFileCancelError carrying both errors is raised instead.
    """
    logger.info(
        f"Uploading '{file_path}' ({format_file_size(plan.file_size)}) as large file '{file_name}' "
        f"to '{bucket.bucket_name}'."
    )
    file_info = {
        LAST_MODIFIED_FILE_INFO_KEY: last_modified_millis(file_path),
        LARGE_FILE_SHA1_FILE_INFO_KEY: calculate_sha1_checksum(file_path),
    }

    lifecycle = LargeFileLifecycle(api_client)
    upload = lifecycle.start_large_file(
        bucket_id=bucket.bucket_id, file_name=file_name, content_type=AUTO_CONTENT_TYPE, file_info=file_info
    )

    chunk_uploader = ChunkUploader(
        lifecycle=lifecycle, upload=upload, http_client=http_client, retry_attempts=part_retry_attempts
    )
    coordinator = UploadCoordinator(chunk_uploader=chunk_uploader, workers=upload_workers)

    try:
        part_sha1s = coordinator.upload(file_path=file_path, remote_file_id=upload.file_id, plan=plan)
        return lifecycle.finish_large_file(upload=upload, part_sha1s=part_sha1s)
    except Exception as upload_error:
        _cancel_failed_upload(lifecycle=lifecycle, upload=upload, upload_error=upload_error)
        raise


def _cancel_failed_upload(lifecycle: LargeFileLifecycle, upload: LargeFileUpload, upload_error: Exception) -> None:
    """Cancel an upload that failed part way, raising LargeFileCancelError if that fails too."""
    if upload.state is not LargeFileState.STARTED:
        return

    logger.warning(f"Large file upload of '{upload.file_name}' failed, cancelling it.")
    try:
        lifecycle.cancel_large_file(upload)
    except B2ClientError as cancel_error:
        raise LargeFileCancelError(
            file_id=upload.file_id, upload_error=upload_error, cancel_error=cancel_error
        ) from upload_error
