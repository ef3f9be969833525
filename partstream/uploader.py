"""Streaming upload of a file into one or more stored objects.

The source is cut into fixed-size pages. Small files are kept in memory and
returned inline instead of becoming a one-page object; larger ones are pushed
page by page, and split into several objects (portions) whenever a portion
reaches the backend's page limit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import BackendError
from .ledger import PartLedger
from .models import FileCommit, UploadResult
from .settings import TransferSettings
from .splitter import PageSplitter

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Callable

    from .client import RemoteObjectClient
    from .models import ChannelAccess, FilePortion

LOG = logging.getLogger("partstream.uploader")


class Uploader:
    def __init__(
        self,
        client: RemoteObjectClient,
        channel_id: str | int | None,
        filename: str,
        *,
        settings: TransferSettings | None = None,
        mime: str | None = None,
        on_portion_uploaded: Callable[[FilePortion], Any] | None = None,
        on_complete: Callable[[list[FilePortion], str | int | None], Any]
        | None = None,
        on_stopped: Callable[[], Any] | None = None,
    ):
        self._settings = settings or TransferSettings()
        self.client = client
        self.channel_id = (
            channel_id if channel_id is not None else self._settings.upload_channel
        )
        self.filename = filename
        self.ledger = PartLedger(filename, mime)
        self.aborted = False
        self._on_portion_uploaded = on_portion_uploaded
        self._on_complete = on_complete
        self._on_stopped = on_stopped
        self._channel: ChannelAccess | None = None
        # bytes held back while the file is still below upload_min_size;
        # None once pages go straight to the backend
        self._buffer: bytearray | None = bytearray()
        self._seen = 0
        self._splitter: PageSplitter | None = None
        self._started = False

    @property
    def page_size(self) -> int:
        return self._settings.upload_page_size

    @property
    def max_upload_parts(self) -> int:
        return self._settings.max_upload_parts or self.client.max_upload_parts

    @property
    def channel(self) -> ChannelAccess | None:
        return self._channel

    @property
    def total_size(self) -> int:
        return self.ledger.total_size

    def stop(self) -> None:
        LOG.warning("uploader for %s has been stopped", self.filename)
        self.aborted = True
        if self._splitter is not None:
            self._splitter.detach()
        self._emit(self._on_stopped)

    async def prepare(self) -> None:
        """Resolve the target channel once for the whole upload."""
        if self._channel is not None or self.channel_id is None:
            return
        self._channel = await self.client.get_channel(self.channel_id)
        LOG.debug("upload channel %s resolved to %d", self.channel_id, self._channel.id)

    async def execute(self, source: AsyncIterable[bytes]) -> UploadResult | None:
        """Upload everything ``source`` yields.

        Returns:
            The produced portions, or None when the upload was stopped.
        """
        if self._started:
            msg = f"uploader for {self.filename} has already been executed"
            raise RuntimeError(msg)
        self._started = True

        splitter = self._splitter = PageSplitter(source, self.page_size)
        try:
            if self.aborted:
                LOG.info("upload of %s stopped before it started", self.filename)
                return None
            await self.prepare()
            self.ledger.open_portion()
            while not self.aborted:
                page = await splitter.read_page()
                if self.aborted:
                    break
                if splitter.exhausted:
                    LOG.debug(
                        "stream ended: %d bytes left, %d bytes read",
                        len(page),
                        splitter.bytes_read,
                    )
                    if page:
                        await self._commit_page(page, last=True)
                    else:
                        await self._finish_current()
                    break
                await self._commit_page(page, last=False)
        except BackendError:
            LOG.exception("upload of %s failed", self.filename)
            raise
        finally:
            await splitter.aclose()

        if self.aborted:
            return None

        parts = self.ledger.portions
        LOG.info(
            "uploaded %s (%d bytes in %d portion(s))",
            self.filename,
            self.ledger.total_size,
            len(parts),
        )
        self._emit(self._on_complete, parts, self.channel_id)
        return UploadResult(parts=parts, channel_id=self.channel_id)

    def _current_portion(self) -> FilePortion:
        portion = self.ledger.current
        if portion is None or portion.finalized:
            portion = self.ledger.open_portion()
        return portion

    async def _commit_page(self, page: bytes, *, last: bool) -> None:
        self._seen += len(page)

        if self._buffer is not None:
            if self._seen <= self._settings.upload_min_size:
                portion = self._current_portion()
                self._buffer += page
                portion.size += len(page)
                LOG.debug(
                    "buffer in memory because of upload_min_size: %d",
                    len(self._buffer),
                )
                if last:
                    await self._finalize(portion)
                return
            await self._flush_buffer()

        await self._push_page(page, last=last)

    async def _flush_buffer(self) -> None:
        assert self._buffer is not None
        buffered = bytes(self._buffer)
        self._buffer = None
        if not buffered:
            return

        LOG.debug(
            "force upload of in-memory buffer because it exceeds upload_min_size: %d",
            len(buffered),
        )
        portion = self._current_portion()
        portion.size -= len(buffered)
        for offset in range(0, len(buffered), self.page_size):
            if self.aborted:
                return
            await self._push_page(
                buffered[offset : offset + self.page_size], last=False
            )

    async def _push_page(self, page: bytes, *, last: bool) -> None:
        if self.aborted:
            return

        portion = self._current_portion()
        portion.size += len(page)
        portion.current_page += 1

        full = portion.current_page + 1 >= self.max_upload_parts
        if full:
            self.ledger.mark_split()
        total = portion.page_count(self.page_size) if full or last else -1

        await self.client.send_file_part(
            portion.file_id, portion.current_page, total, page
        )
        LOG.debug(
            "upload OK, portion: %d, part: %d, total bytes: %d",
            portion.index,
            portion.current_page,
            portion.size,
        )

        if full or last:
            await self._finalize(portion)

    async def _finish_current(self) -> None:
        portion = self.ledger.current
        if portion is None or portion.finalized:
            return
        await self._finalize(portion)

    async def _finalize(self, portion: FilePortion) -> None:
        if self.aborted:
            LOG.warning(
                "cannot finish upload of %s because it was aborted", self.filename
            )
            return

        if self._buffer is not None:
            # small enough to be stored inline by the caller
            portion.content = bytes(self._buffer)
        else:
            committed = await self.client.move_file_to_chat(
                self._channel,
                FileCommit(
                    file_id=portion.file_id,
                    parts=portion.page_count(self.page_size),
                    filename=self.ledger.portion_filename(portion),
                    mime=portion.mime,
                ),
            )
            portion.message_id = committed.message_id
            portion.file_id = committed.document_id
            portion.filename = committed.filename

        portion.finalized = True
        LOG.info(
            "portion %d of %s committed (%d bytes, %s)",
            portion.index,
            self.filename,
            portion.size,
            "inline" if portion.inline else f"message {portion.message_id}",
        )
        self._emit(self._on_portion_uploaded, portion)

    @staticmethod
    def _emit(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is not None:
            callback(*args)
