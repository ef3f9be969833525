"""Remote object client speaking to an HTTP gateway in front of the backend."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx

from .errors import (
    AccessDenied,
    BackendFetchError,
    BackendPushError,
    ChannelNotFound,
)
from .models import ChannelAccess, CommittedMessage, Document, Message

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .models import FileCommit
    from .settings import GatewaySettings

LOG = logging.getLogger("partstream.gateway")


def _document_from_json(data: Mapping[str, Any]) -> Document:
    reference = data.get("file_reference") or ""
    return Document(
        id=int(data["id"]),
        access_hash=int(data["access_hash"]),
        file_reference=base64.b64decode(reference),
    )


def _document_to_json(document: Document) -> dict[str, Any]:
    return {
        "id": document.id,
        "access_hash": document.access_hash,
        "file_reference": base64.b64encode(document.file_reference).decode("ascii"),
    }


def committed_message_from_updates(
    payload: Mapping[str, Any], fallback_filename: str
) -> CommittedMessage:
    """Pick the committed message out of a ``{"updates": [...]}`` response."""
    updates = payload.get("updates") or []
    message = next(
        (u["message"] for u in updates if isinstance(u, dict) and u.get("message")),
        None,
    )
    if message is None:
        msg = "commit response carries no message update"
        raise BackendPushError(msg)

    document = (message.get("media") or {}).get("document") or {}
    filename = fallback_filename
    for attribute in document.get("attributes") or []:
        if attribute.get("_") == "documentAttributeFilename":
            filename = attribute.get("file_name") or fallback_filename
            break

    try:
        return CommittedMessage(
            message_id=int(message["id"]),
            document_id=int(document["id"]),
            filename=filename,
        )
    except (KeyError, TypeError, ValueError) as error:
        msg = f"malformed commit response: {error}"
        raise BackendPushError(msg) from error


class GatewayClient:
    def __init__(
        self,
        settings: GatewaySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @property
    def max_upload_parts(self) -> int:
        return self._settings.max_upload_parts

    async def startup(self) -> None:
        self._http_client = httpx.AsyncClient(
            base_url=self._settings.endpoint,
            timeout=httpx.Timeout(self._settings.timeout, read=300.0),
            transport=self._transport,
            trust_env=False,
        )
        LOG.info("gateway client ready (endpoint=%s)", self._settings.endpoint)

    async def shutdown(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def get_channel(self, channel_ref: str | int) -> ChannelAccess:
        response = await self._request(
            "GET", f"/channels/{channel_ref}", error=BackendFetchError
        )
        if response.status_code == 404:
            msg = f"channel {channel_ref} not found"
            raise ChannelNotFound(msg)
        self._raise_for_status(response, BackendFetchError, f"channel {channel_ref}")
        data = response.json()
        return ChannelAccess(id=int(data["id"]), access_hash=int(data["access_hash"]))

    async def get_message(self, channel: ChannelAccess, message_id: int) -> Message:
        response = await self._request(
            "GET",
            f"/channels/{channel.id}/messages/{message_id}",
            headers={"X-Access-Hash": str(channel.access_hash)},
            error=BackendFetchError,
        )
        self._raise_for_status(
            response, BackendFetchError, f"message {message_id} in {channel.id}"
        )
        data = response.json()
        try:
            document = _document_from_json(data["media"]["document"])
        except (KeyError, TypeError, ValueError) as error:
            msg = f"message {message_id} in {channel.id} has no document"
            raise BackendFetchError(msg) from error
        return Message(id=int(data.get("id", message_id)), document=document)

    async def get_file(self, document: Document, offset: int, limit: int) -> bytes:
        response = await self._request(
            "POST",
            "/files/download",
            json={
                "document": _document_to_json(document),
                "offset": offset,
                "limit": limit,
            },
            error=BackendFetchError,
        )
        self._raise_for_status(
            response, BackendFetchError, f"document {document.id} at {offset}"
        )
        return response.content

    async def send_file_part(
        self, file_id: int, part_index: int, total_parts: int, data: bytes
    ) -> None:
        response = await self._request(
            "PUT",
            f"/uploads/{file_id}/parts/{part_index}",
            params={"total": total_parts},
            content=data,
            headers={"Content-Type": "application/octet-stream"},
            error=BackendPushError,
        )
        self._raise_for_status(
            response, BackendPushError, f"part {part_index} of upload {file_id}"
        )

    async def move_file_to_chat(
        self, channel: ChannelAccess | None, commit: FileCommit
    ) -> CommittedMessage:
        response = await self._request(
            "POST",
            f"/uploads/{commit.file_id}/commit",
            json={
                "channel": (
                    {"id": channel.id, "access_hash": channel.access_hash}
                    if channel is not None
                    else None
                ),
                "parts": commit.parts,
                "filename": commit.filename,
                "mime": commit.mime,
            },
            error=BackendPushError,
        )
        self._raise_for_status(
            response, BackendPushError, f"commit of {commit.file_id}"
        )
        return committed_message_from_updates(response.json(), commit.filename)

    async def _request(
        self, method: str, url: str, *, error: type[Exception], **kwargs: Any
    ) -> httpx.Response:
        if self._http_client is None:
            message = "gateway client not initialised"
            raise RuntimeError(message)
        try:
            return await self._http_client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            LOG.warning("gateway request %s %s failed: %s", method, url, exc)
            msg = f"{method} {url} failed: {exc}"
            raise error(msg) from exc

    @staticmethod
    def _raise_for_status(
        response: httpx.Response, error: type[Exception], what: str
    ) -> None:
        if response.status_code in {401, 403}:
            msg = f"access denied to {what}"
            raise AccessDenied(msg)
        if response.is_error:
            msg = f"{what}: gateway returned {response.status_code}"
            raise error(msg)
