from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar.response import Response, Stream

from .downloader import Downloader
from .errors import RangeOutOfBounds
from .gateway import GatewayClient
from .models import FilePart
from .ranges import parse_range_header, part_range, total_size
from .settings import (
    GatewaySettings,
    TransferSettings,
    load_gateway_settings_from_env,
    load_transfer_settings_from_env,
)
from .uploader import Uploader

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Mapping

    from .client import RemoteObjectClient

LOG = logging.getLogger("partstream.service")

OCTET_STREAM = "application/octet-stream"


def parse_manifest(payload: Mapping[str, Any]) -> list[FilePart]:
    """Read the ordered part list out of a download request body."""
    entries = payload.get("parts")
    if not isinstance(entries, list) or not entries:
        msg = "request must carry a non-empty 'parts' list"
        raise ValueError(msg)
    parts = []
    for entry in entries:
        if not isinstance(entry, dict):
            msg = f"invalid part entry: {entry!r}"
            raise ValueError(msg)
        parts.append(FilePart.from_mapping(entry))
    return parts


class TransferService:
    """Downloads and uploads on top of one remote object client."""

    def __init__(
        self,
        transfer: TransferSettings,
        gateway: GatewaySettings,
        *,
        client: RemoteObjectClient | None = None,
    ):
        self._transfer_settings = transfer
        self._gateway_settings = gateway
        self._gateway = GatewayClient(gateway) if client is None else None
        self._client: RemoteObjectClient = client or self._gateway

    @property
    def client(self) -> RemoteObjectClient:
        return self._client

    async def startup(self) -> None:
        if self._gateway is not None:
            await self._gateway.startup()
        LOG.info(
            "partstream ready (backend=%s, download page=%d, upload page=%d, "
            "upload min size=%d)",
            self._describe_backend(),
            self._transfer_settings.download_page_size,
            self._transfer_settings.upload_page_size,
            self._transfer_settings.upload_min_size,
        )

    async def shutdown(self) -> None:
        if self._gateway is not None:
            await self._gateway.shutdown()

    async def download(
        self, payload: Mapping[str, Any], range_header: str | None
    ) -> Response:
        try:
            parts = parse_manifest(payload)
        except ValueError as error:
            return Response(content={"detail": str(error)}, status_code=400)

        size = total_size(parts)
        part_index = payload.get("part")
        if part_index is not None and (
            not isinstance(part_index, int) or isinstance(part_index, bool)
        ):
            return Response(
                content={"detail": f"part must be an integer index: {part_index!r}"},
                status_code=400,
            )
        if part_index is None and not range_header and size == 0:
            return Response(
                content=b"",
                status_code=200,
                headers=self._headers(0),
                media_type=OCTET_STREAM,
            )

        try:
            if part_index is not None:
                selected = part_range(parts, part_index)
            else:
                selected = parse_range_header(range_header, size)
        except (RangeOutOfBounds, ValueError) as error:
            LOG.debug("unsatisfiable download request: %s", error)
            return Response(
                content={"detail": str(error)},
                status_code=416,
                headers={"Content-Range": f"bytes */{size}"},
            )

        downloader = Downloader(
            None,
            parts,
            selected.start,
            selected.end,
            page_size=self._transfer_settings.download_page_size,
        )
        LOG.info(
            "[%s] download bytes %d-%d of %d over %d part(s)",
            downloader.id,
            selected.start,
            selected.end,
            size,
            len(parts),
        )

        chunks = downloader.iter_bytes(self._client)
        # pull the first slice now so lookup errors still produce an error status
        try:
            first = await anext(chunks)
        except StopAsyncIteration:
            first = b""

        async def iterator() -> AsyncIterator[bytes]:
            completed = False
            try:
                yield first
                async for chunk in chunks:
                    yield chunk
                completed = True
            finally:
                if not completed:
                    downloader.stop()
                await chunks.aclose()

        headers = self._headers(selected.length)
        partial = part_index is not None or bool(range_header)
        if partial:
            headers["Content-Range"] = f"bytes {selected.start}-{selected.end}/{size}"
        return Stream(
            content=iterator(),
            status_code=206 if partial else 200,
            headers=headers,
            media_type=OCTET_STREAM,
        )

    async def upload(
        self,
        filename: str,
        channel: str | int | None,
        source: AsyncIterable[bytes],
    ) -> dict[str, Any]:
        uploader = Uploader(
            self._client, channel, filename, settings=self._transfer_settings
        )
        result = await uploader.execute(source)
        if result is None:
            msg = f"upload of {filename} was stopped"
            raise RuntimeError(msg)
        return {
            "channel": result.channel_id,
            "parts": [portion.to_dict() for portion in result.parts],
        }

    @staticmethod
    def _headers(length: int) -> dict[str, str]:
        return {
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
        }

    def _describe_backend(self) -> str:
        if self._gateway is None:
            return type(self._client).__name__
        return self._gateway_settings.endpoint

    @classmethod
    def from_env(cls) -> TransferService:
        """Create a TransferService from environment variables.

        Returns:
            TransferService talking to the configured gateway.
        """
        return cls(
            transfer=load_transfer_settings_from_env(),
            gateway=load_gateway_settings_from_env(),
        )
