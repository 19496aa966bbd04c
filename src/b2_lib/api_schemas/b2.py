"""
Schemas for the B2 native API routes used by the session cache and the upload pipeline.

B2 uses camelCase keys on the wire, every model is populated/dumped through camelCase aliases
while the Python side keeps snake_case attribute names.
Dump request bodies with `model_dump(by_alias=True)`.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class B2Model(BaseModel):
    """Base model for all B2 payloads. Unknown keys sent by the server are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenCapability(B2Model):
    """What an application key (and so the authorization token) is allowed to do."""

    bucket_id: str | None = Field(None, description="Set when access is restricted to a single bucket")
    bucket_name: str | None = Field(None, description="Name of the bucket identified by bucket_id")
    capabilities: list[str] = Field(default_factory=list, description="Capabilities the key has")
    name_prefix: str | None = Field(None, description="Set when access is restricted to a file name prefix")


class AccountAuthorizationResponse(B2Model):
    """Response model of the b2_authorize_account call."""

    account_id: str = Field(..., description="The identifier for the account")
    authorization_token: str = Field(..., description="Token used for all API calls, valid for at most 24 hours")
    allowed: TokenCapability = Field(default_factory=TokenCapability, description="Capabilities of the token")
    api_url: str = Field(..., description="Base URL for all API calls except uploading and downloading")
    download_url: str = Field(..., description="Base URL to use for downloading files")
    recommended_part_size: int = Field(..., description="Recommended size for each part of a large file")
    absolute_minimum_part_size: int = Field(..., description="Smallest possible size of a part except the last")
    s3_api_url: str | None = Field(None, description="Base URL of the S3 compatible API")


class ErrorResponse(B2Model):
    """Body of every non-2xx response of the B2 API."""

    status: int | None = None
    code: str = "unknown"
    message: str = "No error details provided"


class Bucket(B2Model):
    """A B2 bucket, only the fields this client needs."""

    bucket_id: str = Field(..., description="Identifier of the bucket")
    bucket_name: str = Field(..., description="Human readable unique name of the bucket")
    bucket_type: str | None = Field(None, description="e.g. allPrivate or allPublic")
    account_id: str | None = None


class ListBucketsRequest(B2Model):
    """Request model for b2_list_buckets, filtered to a single bucket by name."""

    account_id: str
    bucket_name: str | None = None


class ListBucketsResponse(B2Model):
    buckets: list[Bucket]


class B2File(B2Model):
    """
    A file record as returned by start/finish/cancel large file and small file uploads.
    The cancel call only returns the identifying fields, so most fields are optional.
    """

    file_id: str = Field(..., description="Remote identifier of the file (or of the unfinished large file)")
    file_name: str = Field(..., description="Name of the file in the bucket")
    bucket_id: str | None = None
    account_id: str | None = None
    action: str | None = Field(None, description="'start' for an unfinished large file, 'upload' once complete")
    content_type: str | None = None
    content_length: int | None = None
    content_sha1: str | None = None
    file_info: dict[str, str] = Field(default_factory=dict)
    upload_timestamp: int | None = None


class StartLargeFileRequest(B2Model):
    """Request model for b2_start_large_file."""

    bucket_id: str
    file_name: str
    content_type: str
    file_info: dict[str, str] = Field(default_factory=dict)


class FinishLargeFileRequest(B2Model):
    """Request model for b2_finish_large_file, SHA1s must be in ascending part number order."""

    file_id: str
    part_sha1_array: list[str]


class CancelLargeFileRequest(B2Model):
    """Request model for b2_cancel_large_file."""

    file_id: str


class GetUploadUrlRequest(B2Model):
    """Request model for b2_get_upload_url (bucket scoped upload authorization)."""

    bucket_id: str


class GetUploadPartUrlRequest(B2Model):
    """Request model for b2_get_upload_part_url (file scoped upload authorization)."""

    file_id: str


class UploadAuthorization(B2Model):
    """
    URL and token pair for uploading, returned by b2_get_upload_url and b2_get_upload_part_url.

    A bucket scoped authorization (bucket_id set) is for whole small files,
    a file scoped one (file_id set) for the parts of exactly one large file.
    """

    upload_url: str = Field(..., description="URL to POST the upload to")
    authorization_token: str = Field(..., description="Token for the Authorization header of the upload")
    bucket_id: str | None = None
    file_id: str | None = None

    @property
    def is_part_scoped(self) -> bool:
        return self.file_id is not None


class FilePart(B2Model):
    """Server confirmation of a single uploaded part of a large file."""

    file_id: str
    part_number: int
    content_length: int
    content_sha1: str
    upload_timestamp: int | None = None
