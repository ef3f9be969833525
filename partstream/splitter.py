from __future__ import annotations

from typing import TYPE_CHECKING

import anyio

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator


class PageSplitter:
    """Read an async byte source in fixed-size pages.

    Data is pulled only when a page is requested, so the source is never read
    ahead of the consumer.
    """

    def __init__(self, source: AsyncIterable[bytes], page_size: int):
        if page_size <= 0:
            msg = f"page size must be positive, got {page_size}"
            raise ValueError(msg)
        self._source = source
        self._iterator: AsyncIterator[bytes] | None = None
        self._page_size = page_size
        self._buffer = bytearray()
        self._read_scope: anyio.CancelScope | None = None
        self._closed = False
        self.exhausted = False
        self.bytes_read = 0

    async def read_page(self) -> bytes:
        """Return the next full page, or the remainder once the source ends.

        The remainder may be empty; ``exhausted`` is set when it is returned.
        """
        while len(self._buffer) < self._page_size and not self.exhausted:
            chunk = await self._next_chunk()
            if chunk is None:
                self.exhausted = True
                break
            self._buffer += chunk
            self.bytes_read += len(chunk)

        if self.exhausted:
            page = bytes(self._buffer)
            self._buffer.clear()
            return page

        page = bytes(self._buffer[: self._page_size])
        del self._buffer[: self._page_size]
        return page

    def detach(self) -> None:
        """Stop reading from the source, cancelling a read in progress."""
        self.exhausted = True
        self._buffer.clear()
        if self._read_scope is not None:
            self._read_scope.cancel()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.exhausted = True
        target = self._iterator if self._iterator is not None else self._source
        aclose = getattr(target, "aclose", None)
        if aclose is not None:
            await aclose()

    async def _next_chunk(self) -> bytes | None:
        if self._iterator is None:
            self._iterator = aiter(self._source)
        with anyio.CancelScope() as scope:
            self._read_scope = scope
            try:
                chunk = await anext(self._iterator, None)
            finally:
                self._read_scope = None
        if scope.cancelled_caught or self.exhausted:
            return None
        return bytes(chunk) if chunk is not None else None
