"""Exception hierarchy shared by the ifsync library and agent."""

from __future__ import annotations


class IfsyncError(Exception):
    """Base class for ifsync errors."""


class PushError(IfsyncError):
    """A configuration write to the device failed."""


class SessionError(IfsyncError):
    """The telemetry session can no longer be used.

    Session errors are terminal: the event loop stops and the failure is
    propagated to whoever started it.
    """


class InitialSyncFailed(SessionError):
    """The server reported that the initial snapshot could not be streamed."""


class SessionClosed(SessionError):
    """The subscription stream ended."""
