"""Reactive interface address management over a telemetry stream.

The library keeps the IPv4 address of every managed interface consistent
with an in-memory :class:`~ifsync.ipdb.AddressDatabase`. It does not poll:
fragments of interface state (admin status, address, prefix length) arrive
from a subscription, in no particular order and possibly repeated, and are
fed through:

* :mod:`ifsync.classifier`, which turns leaf paths into typed events;
* :class:`~ifsync.dispatcher.Dispatcher`, which owns one
  :class:`~ifsync.interface.InterfaceStateMachine` per interface; and
* a :class:`~ifsync.pusher.ConfigPusher`, called only when the device
  disagrees with the database.

Transport and device access are left to the caller (see ``ifsync_agent`` for
the gNMI runtime), so everything here is pure Python and easy to test.
"""

from .dispatcher import Dispatcher  # noqa: F401
from .events import (  # noqa: F401
    ErrorResponse,
    Event,
    EventKind,
    Notification,
    SyncResponse,
    Update,
)
from .exceptions import (  # noqa: F401
    IfsyncError,
    InitialSyncFailed,
    PushError,
    SessionClosed,
    SessionError,
)
from .interface import InterfaceState, InterfaceStateMachine  # noqa: F401
from .ipdb import AddressDatabase, Allocation  # noqa: F401
from .pusher import ConfigPusher  # noqa: F401

__all__ = [
    "AddressDatabase",
    "Allocation",
    "ConfigPusher",
    "Dispatcher",
    "ErrorResponse",
    "Event",
    "EventKind",
    "IfsyncError",
    "InitialSyncFailed",
    "InterfaceState",
    "InterfaceStateMachine",
    "Notification",
    "PushError",
    "SessionClosed",
    "SessionError",
    "SyncResponse",
    "Update",
]
