"""
Upload a single part ("chunk") of a large file.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

import httpx
import stamina

from b2_client.client_exceptions import B2ClientError, ExpiredTokenError, ExpiredUploadTokenError
from b2_client.large_file import LargeFileLifecycle, LargeFileUpload
from b2_client.responses import send_request
from b2_client.retries import retry_only_on_retryable_b2_api_errors
from b2_lib.api_schemas.b2 import FilePart, UploadAuthorization
from b2_lib.b2_constants import AUTO_CONTENT_TYPE, DEFAULT_PART_RETRY_ATTEMPTS
from b2_lib.exceptions import ChecksumVerificationError, UnexpectedEndOfFileError, UploadAuthorizationScopeError
from b2_lib.sha1_checksums import calculate_sha1_checksum_for_bytes, verify_checksum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """One part of a large file, ready to be uploaded once its SHA1 is known."""

    file_path: Path
    remote_file_id: str
    byte_offset: int
    part_number: int
    part_size: int
    content_sha1: str


class ChunkUploader:
    """
    Uploads the parts of one large file, shared by all upload workers.

    The file scoped upload authorization is requested lazily on first use and reused for every part.
    It is only replaced after an upload failed in a way that points at the upload URL/token
    (expired token, busy upload pod, connection problems).
    """

    def __init__(
        self,
        lifecycle: LargeFileLifecycle,
        upload: LargeFileUpload,
        http_client: httpx.Client,
        retry_attempts: int = DEFAULT_PART_RETRY_ATTEMPTS,
    ):
        self.lifecycle = lifecycle
        self.upload = upload
        self.http_client = http_client
        self.retry_attempts = retry_attempts
        self._authorization: UploadAuthorization | None = None
        self._authorization_lock = threading.Lock()

    def upload_chunk(self, chunk: Chunk) -> FilePart:
        """
        Upload one part and return B2's confirmation of it.

        Each part has its own retry budget of 'retry_attempts' attempts,
        only errors that can succeed on a second try are retried (see retries.py).
        """
        if chunk.remote_file_id != self.upload.file_id:
            raise ValueError(
                f"Part {chunk.part_number} belongs to large file '{chunk.remote_file_id}', "
                f"this uploader uploads parts of '{self.upload.file_id}'."
            )

        # No overall time limit, a slow part still gets all of its attempts.
        for attempt in stamina.retry_context(
            on=retry_only_on_retryable_b2_api_errors, attempts=self.retry_attempts, timeout=None
        ):
            with attempt:
                if attempt.num > 1:
                    logger.warning(f"Retrying part {chunk.part_number}, attempt {attempt.num}/{self.retry_attempts}.")
                return self._upload_chunk_once(chunk)

    def _upload_chunk_once(self, chunk: Chunk) -> FilePart:
        authorization = self._get_authorization()
        data = self._read_chunk(chunk)

        # The SHA1 was calculated when the chunk was queued, make sure the bytes did not change since.
        verify_checksum(
            expected_checksum=chunk.content_sha1,
            calculated_checksum=calculate_sha1_checksum_for_bytes(data),
            part_number=chunk.part_number,
        )

        headers = {
            "Authorization": authorization.authorization_token,
            "X-Bz-Part-Number": str(chunk.part_number),
            "Content-Type": AUTO_CONTENT_TYPE,
            "X-Bz-Content-Sha1": chunk.content_sha1,
        }
        logger.debug(f"Uploading part {chunk.part_number}: offset {chunk.byte_offset}, {chunk.part_size} bytes.")
        try:
            response = send_request(
                self.http_client,
                "POST",
                authorization.upload_url,
                content=data,
                headers=headers,
                timeout=httpx.Timeout(10.0, write=60.0),
            )
        except ExpiredTokenError as err:
            self._discard_authorization(authorization)
            raise ExpiredUploadTokenError() from err
        except B2ClientError:
            self._discard_authorization(authorization)
            raise

        part = FilePart(**response.json())
        self._verify_part(chunk=chunk, part=part)
        logger.debug(f"Part {chunk.part_number} uploaded.")
        return part

    def _get_authorization(self) -> UploadAuthorization:
        with self._authorization_lock:
            if self._authorization is None:
                authorization = self.lifecycle.get_upload_part_url(self.upload)
                if not authorization.is_part_scoped or authorization.file_id != self.upload.file_id:
                    raise UploadAuthorizationScopeError(
                        expected_file_id=self.upload.file_id, authorized_file_id=authorization.file_id
                    )
                self._authorization = authorization
            return self._authorization

    def _discard_authorization(self, stale: UploadAuthorization) -> None:
        """Forget the upload authorization, unless another worker already replaced it."""
        with self._authorization_lock:
            if self._authorization is stale:
                self._authorization = None

    @staticmethod
    def _read_chunk(chunk: Chunk) -> bytes:
        """Read exactly the bytes of the part, each call opens its own file handle."""
        with open(chunk.file_path, "rb") as f:
            f.seek(chunk.byte_offset)
            data = f.read(chunk.part_size)

        if len(data) != chunk.part_size:
            raise UnexpectedEndOfFileError(
                file_path=chunk.file_path,
                start_byte=chunk.byte_offset,
                expected_length=chunk.part_size,
                actual_length=len(data),
            )
        return data

    @staticmethod
    def _verify_part(chunk: Chunk, part: FilePart) -> None:
        """Compare what B2 says it received with what was sent."""
        verify_checksum(
            expected_checksum=chunk.content_sha1, calculated_checksum=part.content_sha1, part_number=chunk.part_number
        )
        if part.part_number != chunk.part_number or part.content_length != chunk.part_size:
            raise ChecksumVerificationError(
                expected_checksum=f"part {chunk.part_number} of {chunk.part_size} bytes",
                calculated_checksum=f"part {part.part_number} of {part.content_length} bytes",
                part_number=chunk.part_number,
            )
