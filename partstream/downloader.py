"""Range downloads of files stored as several parts.

A file may be split over several messages, possibly in different channels.
The caller passes the ordered part list and an inclusive byte range; only the
pages holding that range are fetched, part by part, and written to one sink::

    parts = [
        FilePart(channel="1234567890", message=1, size=459578337),
        FilePart(channel="1234567890", message=2, size=452920795),
        FilePart(channel="9876543210", message=3, size=4529207),
    ]
    downloader = Downloader("task-1", parts, 0, 917028338)
    await downloader.execute(client, sink)

The caller must have access to every channel involved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from .models import RangeInfo, TransferSession
from .pages import stream_document
from .ranges import resolve_range, total_size
from .settings import PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from .client import RemoteObjectClient
    from .models import FilePart, ResolvedPartRange

LOG = logging.getLogger("partstream.downloader")


class ByteSink(Protocol):
    async def send(self, item: bytes, /) -> None: ...

    async def aclose(self) -> None: ...


class Downloader:
    def __init__(
        self,
        session_id: str | None,
        parts: Sequence[FilePart],
        start: int,
        end: int,
        *,
        page_size: int = PAGE_SIZE,
    ):
        self.session = (
            TransferSession(id=session_id) if session_id else TransferSession()
        )
        self._parts = tuple(parts)
        self._start = start
        self._end = end
        self._total_size = total_size(self._parts)
        self._page_size = page_size
        self._resolved: list[ResolvedPartRange] | None = None
        self._started = False

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def range(self) -> RangeInfo:
        return RangeInfo(self._start, self._end, self._total_size)

    @property
    def aborted(self) -> bool:
        return self.session.aborted

    def stop(self) -> None:
        """Stop after the page currently being written."""
        LOG.warning("[%s] aborted", self.session.id)
        self.session.aborted = True

    def resolve(self) -> list[ResolvedPartRange]:
        if self._resolved is None:
            self._resolved = resolve_range(self._parts, self._start, self._end)
        return list(self._resolved)

    async def iter_bytes(self, client: RemoteObjectClient) -> AsyncIterator[bytes]:
        """Yield the requested range in order, fetching only the needed pages."""
        self._claim()
        resolved = self.resolve()
        LOG.debug(
            "[%s] range %d-%d spans %d part(s)",
            self.session.id,
            self._start,
            self._end,
            len(resolved),
        )

        for item in resolved:
            if self.session.aborted:
                break

            part = item.part
            LOG.debug("[%s] getting channel %s", self.session.id, part.channel)
            channel = await client.get_channel(part.channel)

            LOG.debug("[%s] getting message %s", self.session.id, part.message)
            message = await client.get_message(channel, part.message)

            LOG.debug(
                "[%s] ready for streaming part %d", self.session.id, item.part_index
            )
            async for chunk in stream_document(
                client,
                message.document,
                item.start,
                item.end,
                page_size=self._page_size,
                session=self.session,
            ):
                yield chunk

    async def execute(self, client: RemoteObjectClient, sink: ByteSink) -> None:
        """Write the requested range to ``sink`` and close it.

        The sink is closed whether the download completes, is stopped or
        fails; backend errors propagate after the sink is closed.
        """
        written = 0
        try:
            async for chunk in self.iter_bytes(client):
                await sink.send(chunk)
                written += len(chunk)
        except Exception:
            LOG.exception(
                "[%s] download failed after %d bytes", self.session.id, written
            )
            raise
        finally:
            await sink.aclose()

        if self.session.aborted:
            LOG.info("[%s] download stopped after %d bytes", self.session.id, written)
        else:
            LOG.info("[%s] download complete (%d bytes)", self.session.id, written)

    def _claim(self) -> None:
        if self._started:
            msg = f"downloader {self.session.id} has already been executed"
            raise RuntimeError(msg)
        self._started = True
