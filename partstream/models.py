from __future__ import annotations

import base64
import math
import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


def new_session_id() -> str:
    return secrets.token_hex(6)


@dataclass(frozen=True)
class FilePart:
    """One stored segment of a logical file, addressed by channel and message."""

    channel: str | int
    message: int
    size: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FilePart:
        """Build a part from a manifest entry.

        Accepts both the short ``{"ch", "msg", "size"}`` form and the long
        ``{"channel", "message", "size"}`` form.
        """
        channel = data.get("channel", data.get("ch"))
        message = data.get("message", data.get("msg"))
        size = data.get("size")
        if channel is None or message is None or size is None:
            msg = f"incomplete file part entry: {dict(data)!r}"
            raise ValueError(msg)
        if not isinstance(channel, (str, int)) or isinstance(channel, bool):
            msg = f"invalid channel in file part entry: {channel!r}"
            raise ValueError(msg)
        try:
            message = int(message)
            size = int(size)
        except (TypeError, ValueError) as error:
            msg = f"invalid file part entry {dict(data)!r}: {error}"
            raise ValueError(msg) from error
        if size < 0:
            msg = f"file part size must not be negative: {size}"
            raise ValueError(msg)
        return cls(channel=channel, message=message, size=size)


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class RangeInfo:
    start: int
    end: int
    total_size: int


@dataclass(frozen=True)
class ResolvedPartRange:
    """Window of one part selected by a range request.

    ``start`` is inclusive and ``end`` exclusive, both relative to the part.
    """

    part_index: int
    part: FilePart
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class TransferSession:
    id: str = field(default_factory=new_session_id)
    aborted: bool = False


@dataclass(frozen=True)
class ChannelAccess:
    id: int
    access_hash: int


@dataclass(frozen=True)
class Document:
    id: int
    access_hash: int
    file_reference: bytes


@dataclass(frozen=True)
class Message:
    id: int
    document: Document


@dataclass(frozen=True)
class FileCommit:
    file_id: int
    parts: int
    filename: str
    mime: str


@dataclass(frozen=True)
class CommittedMessage:
    message_id: int
    document_id: int
    filename: str


@dataclass
class FilePortion:
    """Logical part being assembled by an upload.

    ``current_page`` is the index of the last page pushed to the backend, -1
    before the first push. ``content`` holds the bytes of a portion that was
    small enough to stay in memory and never reached the backend.
    """

    index: int
    file_id: int
    mime: str
    filename: str
    current_page: int = -1
    message_id: int | None = None
    size: int = 0
    content: bytes | None = None
    finalized: bool = False

    def page_count(self, page_size: int) -> int:
        return math.ceil(self.size / page_size)

    @property
    def inline(self) -> bool:
        return self.content is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "file_id": self.file_id,
            "message_id": self.message_id,
            "filename": self.filename,
            "mime": self.mime,
            "size": self.size,
            "content": (
                base64.b64encode(self.content).decode("ascii")
                if self.content is not None
                else None
            ),
        }


@dataclass(frozen=True)
class UploadResult:
    parts: list[FilePortion]
    channel_id: str | int | None
