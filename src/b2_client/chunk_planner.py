"""
Split a file into the parts of a large file upload.

Part numbers are contiguous and start at 1. Every part has the same size except the last one,
which takes whatever remains so the tail of the file is never dropped.
"""

from dataclasses import dataclass
from typing import Iterator

from b2_lib.b2_constants import MAX_PART_COUNT


@dataclass(frozen=True)
class PartPlan:
    """How a file of 'file_size' bytes is split into 'part_count' parts of (mostly) 'part_size' bytes."""

    file_size: int
    part_size: int
    part_count: int

    def part_offset(self, part_number: int) -> int:
        """Byte offset in the file where the part starts."""
        self._check_part_number(part_number)
        return (part_number - 1) * self.part_size

    def part_length(self, part_number: int) -> int:
        """Number of bytes in the part, the last part also holds the remainder."""
        self._check_part_number(part_number)
        if part_number == self.part_count:
            return self.file_size - self.part_size * (self.part_count - 1)
        return self.part_size

    def byte_ranges(self) -> Iterator[tuple[int, int, int]]:
        """Yield (part_number, offset, length) for every part in ascending part number order."""
        for part_number in range(1, self.part_count + 1):
            yield part_number, self.part_offset(part_number), self.part_length(part_number)

    def _check_part_number(self, part_number: int) -> None:
        if not 1 <= part_number <= self.part_count:
            raise ValueError(f"Part number {part_number} is outside of 1..{self.part_count}.")


def plan_parts(file_size: int, recommended_part_size: int, max_part_count: int = MAX_PART_COUNT) -> PartPlan:
    """
    Work out the part size and number of parts for a file.

    Uses the recommended part size from the authorization, unless that results in more parts than B2 allows.
    Then the part size grows instead, so a file of any size fits within 'max_part_count' parts.
    """
    if file_size <= 0:
        raise ValueError(f"Can not plan parts for a file of {file_size} bytes.")
    if recommended_part_size <= 0:
        raise ValueError(f"Invalid recommended part size: {recommended_part_size}.")

    part_size = recommended_part_size
    part_count = file_size // recommended_part_size

    if part_count > max_part_count:
        part_size = file_size // max_part_count
        part_count = max_part_count

    # A file smaller than one part is still one part.
    if part_count == 0:
        return PartPlan(file_size=file_size, part_size=file_size, part_count=1)

    return PartPlan(file_size=file_size, part_size=part_size, part_count=part_count)
