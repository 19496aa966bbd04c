"""
Calculating and verifying SHA1 checksums of files and file parts.

B2 verifies every upload request against the "X-Bz-Content-Sha1" header,
for large files this happens per part and the parts' checksums are sent again to finish the file.
"""

import hashlib
from pathlib import Path
from typing import Iterator

from b2_lib.b2_constants import ONE_MiB
from b2_lib.exceptions import ChecksumVerificationError, UnexpectedEndOfFileError

# Size of the blocks read from disk while hashing, keeps memory use flat for large parts.
READ_BLOCK_SIZE = 8 * ONE_MiB


def _read_file_chunks(file_path: Path, chunk_size: int) -> Iterator[bytes]:
    """Helper function to read a file in 'chunk_size' sized chunks."""

    with file_path.open(mode="rb") as infile:
        yield from iter(lambda: infile.read(chunk_size), b"")


def calculate_sha1_checksum(file_path: Path, chunk_size: int = READ_BLOCK_SIZE) -> str:
    """
    Calculate the hex-encoded SHA1 checksum of a whole file.

    Used for:
    - The "X-Bz-Content-Sha1" header of a small file upload
    - The informational "large_file_sha1" file info of a large file
    """
    sha1_hash = hashlib.sha1()
    for chunk in _read_file_chunks(file_path=file_path, chunk_size=chunk_size):
        sha1_hash.update(chunk)
    return sha1_hash.hexdigest()


def calculate_sha1_checksum_for_chunk(file_path: Path, start_byte: int, chunk_size: int) -> str:
    """
    Calculate the hex-encoded SHA1 checksum for exactly 'chunk_size' bytes of a file starting at 'start_byte'.

    Raises UnexpectedEndOfFileError if the file ends before the whole range could be read,
    so a truncated file is never silently uploaded as a shorter part.
    """
    sha1_hash = hashlib.sha1()
    bytes_read = 0
    with file_path.open("rb") as f:
        f.seek(start_byte)
        while bytes_read < chunk_size:
            block = f.read(min(READ_BLOCK_SIZE, chunk_size - bytes_read))
            if not block:
                break
            sha1_hash.update(block)
            bytes_read += len(block)

    if bytes_read != chunk_size:
        raise UnexpectedEndOfFileError(
            file_path=file_path, start_byte=start_byte, expected_length=chunk_size, actual_length=bytes_read
        )
    return sha1_hash.hexdigest()


def calculate_sha1_checksum_for_bytes(data: bytes) -> str:
    """Calculate the hex-encoded SHA1 checksum of an in-memory buffer."""
    return hashlib.sha1(data).hexdigest()


def verify_checksum(expected_checksum: str, calculated_checksum: str, part_number: int | None = None) -> None:
    """
    Compare two hex-encoded SHA1 checksums, ignoring case.
    Raises ChecksumVerificationError if they differ.
    """
    if expected_checksum.lower() != calculated_checksum.lower():
        raise ChecksumVerificationError(
            expected_checksum=expected_checksum, calculated_checksum=calculated_checksum, part_number=part_number
        )
