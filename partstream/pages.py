from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import BackendFetchError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .client import RemoteObjectClient
    from .models import Document, TransferSession

LOG = logging.getLogger("partstream.pages")


async def stream_document(
    client: RemoteObjectClient,
    document: Document,
    start: int,
    end: int,
    *,
    page_size: int,
    session: TransferSession,
) -> AsyncIterator[bytes]:
    """Yield bytes ``[start, end)`` of a stored document, one page at a time.

    Pages are fetched at page-aligned offsets; the first and last page are
    trimmed to the window. The generator returns after the slice that is
    yielded while ``session.aborted`` is set.
    """
    offset = start - (start % page_size)
    first = True

    LOG.debug("[%s] stream from %d to %d", session.id, start, end)

    while True:
        LOG.debug("[%s] get file page at %d", session.id, offset)
        page = await client.get_file(document, offset, page_size)
        if not page:
            msg = (
                f"document {document.id} ended at offset {offset}, "
                f"expected data up to {end}"
            )
            raise BackendFetchError(msg)

        first_byte = 0
        last_byte = len(page)
        done = False

        if first:
            first_byte = start - offset
            first = False

        if offset + len(page) >= end:
            last_byte = end - offset
            done = True

        chunk = page[first_byte:last_byte]
        LOG.debug("[%s] write %d bytes", session.id, len(chunk))
        yield chunk

        offset += page_size

        if done or session.aborted:
            LOG.debug("[%s] stop streaming", session.id)
            return
