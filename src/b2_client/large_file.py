"""
The start / finish / cancel calls that bracket every large file upload.

A large file is started once, then either finished with the SHA1s of all of its parts,
or cancelled so the parts uploaded so far are released. No other transitions are valid,
and a started upload that is never finished nor cancelled stays behind in the bucket.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from b2_client.api_client import B2APIClient
from b2_lib.api_schemas.b2 import (
    B2File,
    CancelLargeFileRequest,
    FinishLargeFileRequest,
    GetUploadPartUrlRequest,
    StartLargeFileRequest,
    UploadAuthorization,
)
from b2_lib.b2_constants import (
    CANCEL_LARGE_FILE_ROUTE,
    FINISH_LARGE_FILE_ROUTE,
    GET_UPLOAD_PART_URL_ROUTE,
    LAST_MODIFIED_FILE_INFO_KEY,
    START_LARGE_FILE_ROUTE,
)
from b2_lib.exceptions import LargeFileStateError, UploadAuthorizationScopeError

logger = logging.getLogger(__name__)


class LargeFileState(Enum):
    STARTED = "started"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass
class LargeFileUpload:
    """A large file upload as tracked locally, identified by the remote file id."""

    file_id: str
    bucket_id: str
    file_name: str
    content_type: str
    file_info: dict[str, str] = field(default_factory=dict)
    state: LargeFileState = LargeFileState.STARTED


class LargeFileLifecycle:
    """
    Drives the large file calls and keeps the local state of each upload,
    so finish after cancel (or the other way round) is refused before it reaches B2.
    """

    def __init__(self, api_client: B2APIClient):
        self.api_client = api_client

    def start_large_file(
        self, bucket_id: str, file_name: str, content_type: str, file_info: dict[str, str]
    ) -> LargeFileUpload:
        """
        Start a large file upload and return it in the STARTED state.

        'file_info' must contain the last modified time of the source (milliseconds since the epoch),
        and should contain the whole file's SHA1 under 'large_file_sha1' when it is known up front.
        B2 keeps that one as information only, large files are verified part by part.
        """
        if LAST_MODIFIED_FILE_INFO_KEY not in file_info:
            raise ValueError(f"file_info of a large file must include '{LAST_MODIFIED_FILE_INFO_KEY}'.")

        request_body = StartLargeFileRequest(
            bucket_id=bucket_id, file_name=file_name, content_type=content_type, file_info=file_info
        )
        response = self.api_client.post(START_LARGE_FILE_ROUTE, json=request_body.model_dump(by_alias=True))
        started_file = B2File(**response)

        logger.info(f"Started large file upload of '{file_name}', file id: '{started_file.file_id}'.")
        return LargeFileUpload(
            file_id=started_file.file_id,
            bucket_id=bucket_id,
            file_name=file_name,
            content_type=content_type,
            file_info=dict(file_info),
        )

    def get_upload_part_url(self, upload: LargeFileUpload) -> UploadAuthorization:
        """Get a file scoped upload authorization, valid for uploading any number of parts of this file."""
        self._ensure_started(upload=upload, attempted_action="upload parts of")

        request_body = GetUploadPartUrlRequest(file_id=upload.file_id)
        response = self.api_client.post(GET_UPLOAD_PART_URL_ROUTE, json=request_body.model_dump(by_alias=True))
        authorization = UploadAuthorization(**response)
        if not authorization.is_part_scoped or authorization.file_id != upload.file_id:
            raise UploadAuthorizationScopeError(
                expected_file_id=upload.file_id, authorized_file_id=authorization.file_id
            )
        return authorization

    def finish_large_file(self, upload: LargeFileUpload, part_sha1s: list[str]) -> B2File:
        """
        Assemble the uploaded parts into the final file.
        'part_sha1s' holds exactly one SHA1 per part in ascending part number order,
        B2 rejects missing or misordered checksums with a validation error.
        """
        self._ensure_started(upload=upload, attempted_action="finish")
        if not part_sha1s:
            raise ValueError("Can not finish a large file without any parts.")

        request_body = FinishLargeFileRequest(file_id=upload.file_id, part_sha1_array=part_sha1s)
        response = self.api_client.post(FINISH_LARGE_FILE_ROUTE, json=request_body.model_dump(by_alias=True))

        upload.state = LargeFileState.FINISHED
        logger.info(f"Finished large file '{upload.file_name}' from {len(part_sha1s)} parts.")
        return B2File(**response)

    def cancel_large_file(self, upload: LargeFileUpload) -> B2File:
        """Cancel the upload, B2 deletes the parts uploaded so far."""
        self._ensure_started(upload=upload, attempted_action="cancel")

        request_body = CancelLargeFileRequest(file_id=upload.file_id)
        response = self.api_client.post(CANCEL_LARGE_FILE_ROUTE, json=request_body.model_dump(by_alias=True))

        upload.state = LargeFileState.CANCELLED
        logger.info(f"Cancelled large file upload '{upload.file_id}' of '{upload.file_name}'.")
        return B2File(**response)

    @staticmethod
    def _ensure_started(upload: LargeFileUpload, attempted_action: str) -> None:
        if upload.state is not LargeFileState.STARTED:
            raise LargeFileStateError(
                file_id=upload.file_id, current_state=upload.state.value, attempted_action=attempted_action
            )
