from __future__ import annotations

import mimetypes
import secrets
from typing import TYPE_CHECKING

from .models import FilePortion

if TYPE_CHECKING:
    from collections.abc import Iterator

DEFAULT_MIME = "application/octet-stream"


def guess_mime(filename: str) -> str:
    mime, _ = mimetypes.guess_type(filename, strict=False)
    return mime or DEFAULT_MIME


def new_file_id() -> int:
    """Random positive 63-bit id, as the backend expects for new uploads."""
    return secrets.randbits(63) or 1


class PartLedger:
    """Ordered portions produced by one upload."""

    def __init__(self, filename: str, mime: str | None = None):
        self.filename = filename
        self.mime = mime or guess_mime(filename)
        self.split = False
        self._portions: list[FilePortion] = []

    def __len__(self) -> int:
        return len(self._portions)

    def __iter__(self) -> Iterator[FilePortion]:
        return iter(self._portions)

    @property
    def portions(self) -> list[FilePortion]:
        return list(self._portions)

    @property
    def current(self) -> FilePortion | None:
        return self._portions[-1] if self._portions else None

    @property
    def total_size(self) -> int:
        return sum(portion.size for portion in self._portions)

    def open_portion(self) -> FilePortion:
        portion = FilePortion(
            index=len(self._portions),
            file_id=new_file_id(),
            mime=self.mime,
            filename=self.filename,
        )
        self._portions.append(portion)
        return portion

    def mark_split(self) -> None:
        """Record that the file no longer fits into a single stored object."""
        self.split = True

    def portion_filename(self, portion: FilePortion) -> str:
        # a portion that fills up counts as split even if no data follows it,
        # so a file ending exactly at the cap is still stored as "name.001"
        if not self.split:
            return portion.filename
        return f"{portion.filename}.{portion.index + 1:03d}"
