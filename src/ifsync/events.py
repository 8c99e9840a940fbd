"""Event and stream message primitives consumed by the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Sequence


class EventKind(Enum):
    """What a single leaf update (or an internal timer) means for an interface."""

    UNKNOWN = auto()
    ADMIN_STATUS = auto()
    ADDRESS = auto()
    PREFIX_LENGTH = auto()
    TIMER = auto()


@dataclass(frozen=True)
class Event:
    """A classified fragment addressed to one interface.

    ``interface`` is ``None`` only for :attr:`EventKind.UNKNOWN` events and
    ``value`` is ``None`` for timer events, which are synthesised internally
    rather than read from the stream.
    """

    kind: EventKind
    interface: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class Update:
    """One leaf update inside a notification; ``value`` is already a string."""

    path: str
    value: str


@dataclass(frozen=True)
class Notification:
    """A batch of updates sharing a common path prefix."""

    prefix: str
    updates: Sequence[Update]


@dataclass(frozen=True)
class SyncResponse:
    """Marks the end of the initial snapshot."""

    ok: bool = True


@dataclass(frozen=True)
class ErrorResponse:
    """Server-side error delivered on the subscription."""

    message: str
