"""Event loop routing stream notifications to interface state machines."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Union

from .classifier import EventClassifier, join_path
from .events import ErrorResponse, Event, EventKind, Notification, SyncResponse
from .exceptions import InitialSyncFailed, SessionClosed, SessionError
from .interface import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_SETTLE_PERIOD,
    InterfaceStateMachine,
    InterfaceStatus,
    TimerFactory,
    start_timer,
)
from .ipdb import AddressDatabase
from .pusher import ConfigPusher

LOG = logging.getLogger(__name__)

Message = Union[Notification, SyncResponse, ErrorResponse]


class Dispatcher:
    """Own the interface table and feed it from the subscription stream.

    The dispatcher keeps no per-interface state of its own: records are
    created on first reference and everything else lives in the
    :class:`~ifsync.interface.InterfaceStateMachine` instances.
    """

    def __init__(
        self,
        ipdb: AddressDatabase,
        pusher: ConfigPusher,
        *,
        classifier: Optional[EventClassifier] = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        settle_period: float = DEFAULT_SETTLE_PERIOD,
        timer_factory: TimerFactory = start_timer,
    ) -> None:
        self._ipdb = ipdb
        self._pusher = pusher
        self._classifier = classifier or EventClassifier()
        self._grace_period = grace_period
        self._settle_period = settle_period
        self._timer_factory = timer_factory
        self._interfaces: Dict[str, InterfaceStateMachine] = {}

    # ------------------------------------------------------------------
    # Interface table
    # ------------------------------------------------------------------
    def interface(self, name: str) -> InterfaceStateMachine:
        """Return the state machine for ``name``, creating it if needed."""

        machine = self._interfaces.get(name)
        if machine is None:
            machine = InterfaceStateMachine(
                name,
                self._ipdb,
                self._pusher,
                grace_period=self._grace_period,
                settle_period=self._settle_period,
                timer_factory=self._timer_factory,
            )
            self._interfaces[name] = machine
            LOG.debug("tracking interface %s", name)
        return machine

    def list_interfaces(self) -> List[InterfaceStatus]:
        return [machine.status() for machine in self._interfaces.values()]

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------
    def dispatch(self, event: Event) -> None:
        if event.kind is EventKind.UNKNOWN or event.interface is None:
            LOG.debug("dropping unclassified event %r", event)
            return
        self.interface(event.interface).handle(event)

    def process(self, message: Message) -> None:
        """Handle a single stream message.

        Raises :class:`~ifsync.exceptions.SessionError` for conditions that
        end the session.
        """

        if isinstance(message, Notification):
            for update in message.updates:
                path = join_path(message.prefix, update.path)
                LOG.debug("received update for %s value %s", path, update.value)
                self.dispatch(self._classifier.classify(path, update.value))
        elif isinstance(message, SyncResponse):
            if not message.ok:
                raise InitialSyncFailed("initial sync failed")
            LOG.info("initial sync complete, tracking %d interfaces", len(self._interfaces))
        elif isinstance(message, ErrorResponse):
            raise SessionError(message.message)
        else:
            raise TypeError(f"Unsupported message type: {type(message)!r}")

    def run(self, stream: Iterable[Message]) -> None:
        """Process ``stream`` until the session fails.

        The loop never returns normally: the end of the stream is reported as
        :class:`~ifsync.exceptions.SessionClosed`.
        """

        for message in stream:
            self.process(message)
        raise SessionClosed("subscription stream terminated")

    def shutdown(self) -> None:
        """Cancel every pending timer."""

        for machine in self._interfaces.values():
            machine.cancel_timer()
