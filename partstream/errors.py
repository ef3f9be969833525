"""Exception hierarchy for range resolution and backend transfers."""

from __future__ import annotations


class PartstreamError(Exception):
    """Base class for every error raised by partstream."""


class RangeOutOfBounds(PartstreamError, ValueError):
    """The requested byte range does not fit inside the file."""


class BackendError(PartstreamError):
    """A call to the remote object backend failed."""


class ChannelNotFound(BackendError):
    pass


class AccessDenied(BackendError):
    pass


class BackendFetchError(BackendError):
    """Reading a page or resolving a message failed."""


class BackendPushError(BackendError):
    """Sending a page or committing an object failed."""
