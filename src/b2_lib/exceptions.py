"""
Custom exceptions for the b2 packages.

These are raised by lower-level functions/methods which understand the context of the error.

Note: By adding the `__str__` method to each exception,
we ensure that when you manually raise a specific exception the error message looks good
"""

from pathlib import Path


class BucketNotFoundError(LookupError):
    """Raised when no bucket with the requested name is visible to the account."""

    def __init__(self, bucket_name: str):
        error_message = (
            f"The bucket '{bucket_name}' was not found. "
            "Check the name and that your application key is allowed to access it."
        )
        super().__init__(error_message)
        self.bucket_name = bucket_name
        self.error_message = error_message

    def __str__(self):
        return self.error_message


class ChecksumVerificationError(Exception):
    """Raised when a calculated SHA1 checksum does not match the expected one."""

    def __init__(self, expected_checksum: str, calculated_checksum: str, part_number: int | None = None):
        self.expected_checksum = expected_checksum
        self.calculated_checksum = calculated_checksum
        self.part_number = part_number

        subject = f"part {part_number}" if part_number is not None else "file"
        self.error_message = (
            f"Checksum verification failed for {subject}. "
            f"Expected: {expected_checksum}, Calculated: {calculated_checksum}"
        )
        super().__init__(self.error_message)

    def __str__(self):
        return self.error_message


class UnexpectedEndOfFileError(EOFError):
    """
    Raised when a byte range of a local file could not be read in full.
    Usually means the file was truncated while it was being uploaded.
    """

    def __init__(self, file_path: Path, start_byte: int, expected_length: int, actual_length: int):
        error_message = (
            f"Expected to read {expected_length} bytes at offset {start_byte} of '{file_path}', "
            f"but only {actual_length} bytes were available. Was the file modified during the upload?"
        )
        super().__init__(error_message)
        self.file_path = file_path
        self.start_byte = start_byte
        self.expected_length = expected_length
        self.actual_length = actual_length
        self.error_message = error_message

    def __str__(self):
        return self.error_message


class SessionCacheError(OSError):
    """Raised when the session cache can not be read from or written to."""

    def __init__(self, cache_path: Path | None, reason: str):
        location = f"'{cache_path}'" if cache_path else "the in-memory cache"
        error_message = f"Could not access the session cache at {location}: {reason}"
        super().__init__(error_message)
        self.cache_path = cache_path
        self.reason = reason
        self.error_message = error_message

    def __str__(self):
        return self.error_message


class LargeFileStateError(Exception):
    """
    Raised when finish or cancel is requested for a large file upload
    that is no longer in progress (e.g. finish after cancel).

    This is a programming error on the caller's side, the server is never contacted.
    """

    def __init__(self, file_id: str, current_state: str, attempted_action: str):
        error_message = (
            f"Can not {attempted_action} the large file upload '{file_id}', it is already {current_state}."
        )
        super().__init__(error_message)
        self.file_id = file_id
        self.current_state = current_state
        self.attempted_action = attempted_action
        self.error_message = error_message

    def __str__(self):
        return self.error_message


class LargeFileCancelError(Exception):
    """
    Raised when a large file upload failed and cancelling it on the server failed as well.
    Both errors are kept so neither gets lost, the unfinished parts may still be stored remotely.
    """

    def __init__(self, file_id: str, upload_error: BaseException, cancel_error: BaseException):
        error_message = (
            f"The large file upload '{file_id}' failed and could not be cancelled.\n"
            f"Upload error: {upload_error}\n"
            f"Cancel error: {cancel_error}\n"
            "The unfinished upload may still be listed in the bucket and should be cancelled manually."
        )
        super().__init__(error_message)
        self.file_id = file_id
        self.upload_error = upload_error
        self.cancel_error = cancel_error
        self.error_message = error_message

    def __str__(self):
        return self.error_message


class UploadAuthorizationScopeError(ValueError):
    """
    Raised when an upload authorization is used outside of its scope,
    e.g. a bucket scoped authorization (or one for another large file) to upload a part.
    """

    def __init__(self, expected_file_id: str, authorized_file_id: str | None):
        error_message = (
            f"The upload authorization is scoped to file '{authorized_file_id}', "
            f"it can not be used to upload parts of '{expected_file_id}'."
        )
        super().__init__(error_message)
        self.expected_file_id = expected_file_id
        self.authorized_file_id = authorized_file_id
        self.error_message = error_message

    def __str__(self):
        return self.error_message
