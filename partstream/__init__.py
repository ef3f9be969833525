"""Range-addressable transfer of files stored as sequences of backend parts."""

from .app import create_app
from .downloader import Downloader
from .errors import (
    AccessDenied,
    BackendError,
    BackendFetchError,
    BackendPushError,
    ChannelNotFound,
    PartstreamError,
    RangeOutOfBounds,
)
from .models import FilePart, FilePortion
from .ranges import resolve_range
from .settings import GatewaySettings, TransferSettings
from .uploader import Uploader

__all__ = [
    "AccessDenied",
    "BackendError",
    "BackendFetchError",
    "BackendPushError",
    "ChannelNotFound",
    "Downloader",
    "FilePart",
    "FilePortion",
    "GatewaySettings",
    "PartstreamError",
    "RangeOutOfBounds",
    "TransferSettings",
    "Uploader",
    "create_app",
    "resolve_range",
]
