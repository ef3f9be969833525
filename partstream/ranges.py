"""Mapping of global byte ranges onto an ordered list of file parts.

No IO; everything here is derived from the part sizes alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import RangeOutOfBounds
from .models import ByteRange, ResolvedPartRange

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import FilePart


def total_size(parts: Sequence[FilePart]) -> int:
    return sum(part.size for part in parts)


def resolve_range(
    parts: Sequence[FilePart], start: int, end: int
) -> list[ResolvedPartRange]:
    """Select the parts, and the window inside each, covering ``[start, end]``.

    Args:
        parts: File parts in storage order; their concatenation is the file.
        start: Inclusive first byte of the request.
        end: Inclusive last byte of the request.

    Returns:
        One entry per touched part, in part order. The first entry may start
        mid-part and the last may stop mid-part; every entry in between spans
        its whole part.

    Raises:
        RangeOutOfBounds: If the range is inverted, negative or reaches past
            the last byte of the file.
    """
    if start < 0 or start > end:
        msg = f"invalid byte range {start}-{end}"
        raise RangeOutOfBounds(msg)

    resolved: list[ResolvedPartRange] = []
    position = 0
    for index, part in enumerate(parts):
        if part.size == 0:
            continue
        part_end = position + part.size
        if start < part_end:
            local_start = start - position if not resolved else 0
            if end < part_end:
                # end is inclusive, the window end is exclusive
                resolved.append(
                    ResolvedPartRange(index, part, local_start, end - position + 1)
                )
                return resolved
            resolved.append(ResolvedPartRange(index, part, local_start, part.size))
        position = part_end

    msg = f"byte range {start}-{end} exceeds file size {position}"
    raise RangeOutOfBounds(msg)


def part_range(parts: Sequence[FilePart], index: int) -> ByteRange:
    """Return the global byte range occupied by the part at ``index``."""
    if index < 0 or index >= len(parts):
        msg = f"file has no part {index} (parts: {len(parts)})"
        raise RangeOutOfBounds(msg)
    offset = total_size(parts[:index])
    size = parts[index].size
    if size == 0:
        msg = f"part {index} is empty"
        raise RangeOutOfBounds(msg)
    return ByteRange(offset, offset + size - 1)


def parse_range_header(range_header: str | None, total: int) -> ByteRange:
    """Parse an HTTP ``Range`` header against a file of ``total`` bytes.

    Malformed headers and units other than ``bytes`` select the whole file.
    Only the first range of a multi-range header is honoured.

    Raises:
        RangeOutOfBounds: If the range cannot be satisfied.
    """
    if total <= 0:
        msg = "cannot select a range of an empty file"
        raise RangeOutOfBounds(msg)

    full = ByteRange(0, total - 1)
    if not range_header:
        return full

    try:
        unit, ranges = range_header.split("=", 1)
        if unit.strip().lower() != "bytes":
            return full

        r = ranges.split(",")[0].strip()
        if "-" not in r:
            return full

        start_str, end_str = r.split("-", 1)
        start_str = start_str.strip()
        end_str = end_str.strip()

        if start_str and end_str:
            start = int(start_str)
            end = int(end_str)
        elif start_str:
            start = int(start_str)
            end = total - 1
        elif end_str:
            length = int(end_str)
            if length <= 0:
                msg = f"unsatisfiable suffix range {r!r}"
                raise RangeOutOfBounds(msg)
            start = max(total - length, 0)
            end = total - 1
        else:
            return full
    except ValueError as error:
        if isinstance(error, RangeOutOfBounds):
            raise
        return full

    if start < 0 or start >= total or start > end:
        msg = f"unsatisfiable range {r!r} for {total} bytes"
        raise RangeOutOfBounds(msg)
    return ByteRange(start, min(end, total - 1))
