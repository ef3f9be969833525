"""Interface of the remote object backend the transfer pipelines talk to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import (
        ChannelAccess,
        CommittedMessage,
        Document,
        FileCommit,
        Message,
    )


@runtime_checkable
class RemoteObjectClient(Protocol):
    """Channel/message lookups plus paged reads and writes of stored objects.

    Implementations raise the ``partstream.errors.BackendError`` subclasses
    and do their own retrying, if any.
    """

    @property
    def max_upload_parts(self) -> int:
        """Largest number of pages a single stored object may have."""
        ...

    async def get_channel(self, channel_ref: str | int) -> ChannelAccess: ...

    async def get_message(self, channel: ChannelAccess, message_id: int) -> Message: ...

    async def get_file(self, document: Document, offset: int, limit: int) -> bytes:
        """Fetch up to ``limit`` bytes at ``offset``.

        Fewer bytes are returned only for the last page of a document.
        """
        ...

    async def send_file_part(
        self, file_id: int, part_index: int, total_parts: int, data: bytes
    ) -> None:
        """Store one page of an object being uploaded.

        ``total_parts`` is -1 until the last page of the object.
        """
        ...

    async def move_file_to_chat(
        self, channel: ChannelAccess | None, commit: FileCommit
    ) -> CommittedMessage:
        """Turn the uploaded pages of ``commit.file_id`` into a channel message.

        A ``channel`` of ``None`` targets the backend's default destination.
        """
        ...
