"""Small helpers for log lines and file metadata that have no better home in b2-client."""

from pathlib import Path

DECIMAL_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size_bytes: int | float | None) -> str:
    """
    Human readable file size for log lines, e.g. 1_500_000 -> "1.50 MB".

    Decimal units (powers of 1000), the same units B2 uses for part sizes. Sizes past TB stay in TB.
    """
    if size_bytes is None:
        return "N/A"
    if size_bytes == 0:
        return "0 B"

    size = float(size_bytes)
    for unit in DECIMAL_SIZE_UNITS[:-1]:
        if size < 1000:
            return f"{size:.2f} {unit}"
        size /= 1000
    return f"{size:.2f} {DECIMAL_SIZE_UNITS[-1]}"


def last_modified_millis(file_path: Path) -> str:
    """Last modification time of a file in milliseconds since the epoch, as B2 expects it in file info."""
    return str(int(file_path.stat().st_mtime * 1000))
