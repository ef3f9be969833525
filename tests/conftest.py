from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from anyio.lowlevel import checkpoint
from partstream.errors import BackendFetchError, ChannelNotFound
from partstream.models import (
    ChannelAccess,
    CommittedMessage,
    Document,
    FileCommit,
    FilePart,
    Message,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Generator


@dataclass
class SentPart:
    file_id: int
    index: int
    total: int
    data: bytes


class FakeBackend:
    """In-memory remote object client recording every call."""

    def __init__(self, max_upload_parts: int = 2000):
        self._max_upload_parts = max_upload_parts
        self.channels: dict[str, ChannelAccess] = {}
        self.messages: dict[tuple[int, int], Message] = {}
        self.documents: dict[int, bytes] = {}
        self.calls: list[str] = []
        self.fetches: list[tuple[int, int, int]] = []
        self.sent: list[SentPart] = []
        self.commits: list[tuple[ChannelAccess | None, FileCommit]] = []
        self.fail_fetch_at: int | None = None
        self.on_fetch: Callable[[int], None] | None = None
        self._next_id = 100

    @property
    def max_upload_parts(self) -> int:
        return self._max_upload_parts

    def add_channel(self, ref: str) -> ChannelAccess:
        if ref not in self.channels:
            self.channels[ref] = ChannelAccess(id=self._new_id(), access_hash=42)
        return self.channels[ref]

    def store(self, channel_ref: str, data: bytes) -> FilePart:
        """Store ``data`` as a new message and return the part pointing at it."""
        channel = self.add_channel(channel_ref)
        message_id = self._new_id()
        document = Document(
            id=self._new_id(), access_hash=7, file_reference=b"ref-%d" % message_id
        )
        self.messages[(channel.id, message_id)] = Message(message_id, document)
        self.documents[document.id] = data
        return FilePart(channel=channel_ref, message=message_id, size=len(data))

    async def get_channel(self, channel_ref: str | int) -> ChannelAccess:
        self.calls.append("get_channel")
        await checkpoint()
        try:
            return self.channels[str(channel_ref)]
        except KeyError:
            msg = f"channel {channel_ref} not found"
            raise ChannelNotFound(msg) from None

    async def get_message(self, channel: ChannelAccess, message_id: int) -> Message:
        self.calls.append("get_message")
        await checkpoint()
        try:
            return self.messages[(channel.id, message_id)]
        except KeyError:
            msg = f"message {message_id} not found"
            raise BackendFetchError(msg) from None

    async def get_file(self, document: Document, offset: int, limit: int) -> bytes:
        self.calls.append("get_file")
        self.fetches.append((document.id, offset, limit))
        await checkpoint()
        if self.fail_fetch_at is not None and len(self.fetches) >= self.fail_fetch_at:
            msg = f"fetch of {document.id} at {offset} failed"
            raise BackendFetchError(msg)
        if self.on_fetch is not None:
            self.on_fetch(len(self.fetches))
        return self.documents[document.id][offset : offset + limit]

    async def send_file_part(
        self, file_id: int, part_index: int, total_parts: int, data: bytes
    ) -> None:
        self.calls.append("send_file_part")
        await checkpoint()
        self.sent.append(SentPart(file_id, part_index, total_parts, bytes(data)))

    async def move_file_to_chat(
        self, channel: ChannelAccess | None, commit: FileCommit
    ) -> CommittedMessage:
        self.calls.append("move_file_to_chat")
        await checkpoint()
        self.commits.append((channel, commit))
        pages = sorted(
            (p for p in self.sent if p.file_id == commit.file_id),
            key=lambda p: p.index,
        )
        target = channel or self.add_channel("default")
        message_id = self._new_id()
        document = Document(id=self._new_id(), access_hash=7, file_reference=b"")
        self.messages[(target.id, message_id)] = Message(message_id, document)
        self.documents[document.id] = b"".join(p.data for p in pages)
        return CommittedMessage(
            message_id=message_id, document_id=document.id, filename=commit.filename
        )

    def pages_for(self, file_id: int) -> list[SentPart]:
        return [p for p in self.sent if p.file_id == file_id]

    def channel_ref(self, channel: ChannelAccess | None) -> str:
        if channel is None:
            return "default"
        return next(ref for ref, c in self.channels.items() if c == channel)

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id


@dataclass
class CollectingSink:
    """Byte sink that keeps what it receives and counts closes."""

    chunks: list[bytes] = field(default_factory=list)
    close_count: int = 0
    on_send: Callable[[bytes], None] | None = None

    async def send(self, item: bytes) -> None:
        if self.close_count:
            msg = "send on closed sink"
            raise RuntimeError(msg)
        self.chunks.append(item)
        if self.on_send is not None:
            self.on_send(item)

    async def aclose(self) -> None:
        self.close_count += 1

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


def pattern(size: int, seed: int = 0) -> bytes:
    """Deterministic, non-repeating-looking test payload."""
    return bytes((i * 31 + seed * 7 + i // 251) % 256 for i in range(size))


async def iter_source(data: bytes, chunk_size: int) -> AsyncIterator[bytes]:
    for offset in range(0, len(data), chunk_size):
        await checkpoint()
        yield data[offset : offset + chunk_size]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def transfer_env_vars() -> Generator[dict[str, str]]:
    """Set up environment variables for small pages and no in-memory buffering."""
    env_vars = {
        "PARTSTREAM_DOWNLOAD_PAGE_SIZE": "1024",
        "PARTSTREAM_UPLOAD_PAGE_SIZE": "1024",
        "PARTSTREAM_UPLOAD_MIN_SIZE": "0",
        "PARTSTREAM_UPLOAD_CHANNEL": "uploads",
        "PARTSTREAM_GATEWAY_ENDPOINT": "http://gateway.test",
        "PARTSTREAM_GATEWAY_MAX_UPLOAD_PARTS": "3",
    }

    # Set environment variables
    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    # Restore original values
    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


@pytest.fixture
def transfer_helpers():
    return {
        "pattern": pattern,
        "source": iter_source,
        "sink": CollectingSink,
        "backend": FakeBackend,
    }
