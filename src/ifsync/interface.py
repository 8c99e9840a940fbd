"""Per-interface state machine.

Configuration fragments for an interface (admin status, address and prefix
length) are streamed independently, in any order and possibly more than once.
Each :class:`InterfaceStateMachine` collects them and decides, together with
the :class:`~ifsync.ipdb.AddressDatabase`, whether the device needs a new
address.

The machine is driven from two threads: the dispatcher's event loop and the
timer threads it arms itself. Every entry point therefore runs under the
machine's own lock. Locks are per interface so one slow interface never
blocks another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from threading import Lock, Timer
from typing import Any, Callable, Dict, Optional

from .events import Event, EventKind
from .exceptions import PushError
from .ipdb import AddressDatabase, Allocation
from .pusher import ConfigPusher

LOG = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 20.0
DEFAULT_SETTLE_PERIOD = 5.0

TimerFactory = Callable[[float, Callable[[], None]], Any]


class InterfaceState(IntEnum):
    """Interface states, ordered so that ``state > ADMIN_DOWN`` means "up"."""

    UNKNOWN = 0
    ADMIN_DOWN = 1
    ADMIN_UP = 2
    CONFIGURED = 3
    # Configured, but the device reported a different address or prefix
    # length; waiting for the stream to settle before reconciling again.
    SETTLING = 4


@dataclass(frozen=True)
class InterfaceStatus:
    """Read-only snapshot of an interface record."""

    name: str
    state: InterfaceState
    address: Optional[str]
    prefix_length: Optional[int]
    timer_pending: bool


def start_timer(delay: float, callback: Callable[[], None]) -> Timer:
    """Default timer factory: a daemon :class:`threading.Timer`."""

    timer = Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class InterfaceStateMachine:
    """Reactive state machine for a single interface.

    Parameters
    ----------
    name:
        Interface name, e.g. ``Ethernet1``.
    ipdb:
        Shared address database used for reconciliation and allocation.
    pusher:
        Collaborator that writes a new address to the device.
    grace_period:
        Seconds to wait after the interface comes up for missing fragments
        before allocating an address.
    settle_period:
        Seconds a configured interface waits after the device reports a
        different address before reconciling again. Restarted by every
        further change.
    timer_factory:
        ``factory(delay, callback)`` returning a started one-shot timer with a
        ``cancel()`` method. Tests inject a manual implementation.
    """

    def __init__(
        self,
        name: str,
        ipdb: AddressDatabase,
        pusher: ConfigPusher,
        *,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        settle_period: float = DEFAULT_SETTLE_PERIOD,
        timer_factory: TimerFactory = start_timer,
    ) -> None:
        self._name = name
        self._ipdb = ipdb
        self._pusher = pusher
        self._grace_period = grace_period
        self._settle_period = settle_period
        self._timer_factory = timer_factory

        self._state = InterfaceState.UNKNOWN
        self._address: Optional[str] = None
        self._prefix_length: Optional[int] = None
        # Last value streamed for each fragment, which can differ from the
        # recorded one after we pushed a new address.
        self._seen: Dict[str, Any] = {}
        self._timer: Optional[Any] = None
        # Identifies the armed timer so a callback that lost the race with
        # cancel() cannot act on a later state.
        self._timer_token: Optional[object] = None
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> InterfaceState:
        return self._state

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def prefix_length(self) -> Optional[int]:
        return self._prefix_length

    def status(self) -> InterfaceStatus:
        with self._lock:
            return InterfaceStatus(
                name=self._name,
                state=self._state,
                address=self._address,
                prefix_length=self._prefix_length,
                timer_pending=self._timer is not None,
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def handle(self, event: Event) -> None:
        """Apply ``event`` to this interface."""

        if event.interface is not None and event.interface != self._name:
            raise ValueError(
                f"event for {event.interface} delivered to {self._name}"
            )
        with self._lock:
            self._run(event)

    def cancel_timer(self) -> None:
        with self._lock:
            self._cancel_timer()

    def _timer_fired(self, token: object) -> None:
        with self._lock:
            if token is not self._timer_token:
                LOG.debug("%s: ignoring stale timer", self._name)
                return
            self._run(Event(EventKind.TIMER, self._name))

    # ------------------------------------------------------------------
    # Event handlers, called with the lock held
    # ------------------------------------------------------------------
    def _run(self, event: Event) -> None:
        LOG.debug("%s: handling %s %r", self._name, event.kind.name, event.value)
        previous = self._state

        if event.kind is EventKind.ADMIN_STATUS:
            self._on_admin_status(event.value)
        elif event.kind is EventKind.ADDRESS:
            self._on_address(event.value)
        elif event.kind is EventKind.PREFIX_LENGTH:
            self._on_prefix_length(event.value)
        elif event.kind is EventKind.TIMER:
            self._on_timer()
        else:
            LOG.error("%s: cannot handle event %r", self._name, event)

        if self._state is not previous:
            LOG.info("%s: %s -> %s", self._name, previous.name, self._state.name)

    def _on_admin_status(self, value: Optional[str]) -> None:
        if value == "UP":
            if self._state > InterfaceState.ADMIN_DOWN:
                return
            self._enter_admin_up()
            if self._fragments_complete():
                self._enter_configured()
        elif value == "DOWN":
            if self._state is InterfaceState.ADMIN_DOWN:
                # Re-delivery; the address was already released.
                self._cancel_timer()
                return
            self._enter_admin_down()
        else:
            LOG.error("%s: unknown admin status %r", self._name, value)

    def _on_address(self, value: Optional[str]) -> None:
        self._on_fragment("address", value or None)

    def _on_prefix_length(self, value: Optional[str]) -> None:
        try:
            prefix_length = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            LOG.error("%s: invalid prefix length %r", self._name, value)
            return
        self._on_fragment("prefix_length", prefix_length)

    def _on_fragment(self, field: str, value: Any) -> None:
        attr = "_" + field
        previous = self._seen.get(field)
        self._seen[field] = value

        if self._state in (InterfaceState.CONFIGURED, InterfaceState.SETTLING):
            # Repeats, and the device catching up with the recorded value,
            # are not changes.
            if value == previous or value == getattr(self, attr):
                return
            setattr(self, attr, value)
            self._enter_settling()
            return

        setattr(self, attr, value)
        if self._state is InterfaceState.ADMIN_UP and self._fragments_complete():
            self._enter_configured()

    def _on_timer(self) -> None:
        if self._state not in (InterfaceState.ADMIN_UP, InterfaceState.SETTLING):
            return
        self._cancel_timer()
        self._enter_configured()

    # ------------------------------------------------------------------
    # State entry actions
    # ------------------------------------------------------------------
    def _enter_admin_down(self) -> None:
        self._cancel_timer()
        # The recorded address is stale while settling; prefer the binding.
        held = self._ipdb.lookup(self._name)
        self._ipdb.release(held or self._address, self._name)
        self._state = InterfaceState.ADMIN_DOWN

    def _enter_admin_up(self) -> None:
        self._state = InterfaceState.ADMIN_UP
        if not self._fragments_complete():
            self._arm_timer(self._grace_period)

    def _enter_settling(self) -> None:
        self._state = InterfaceState.SETTLING
        self._arm_timer(self._settle_period)

    def _enter_configured(self) -> None:
        self._cancel_timer()
        self._state = InterfaceState.CONFIGURED

        if self._fragments_complete():
            allocation, matched = self._ipdb.reconcile(
                self._name, self._address, self._prefix_length  # type: ignore[arg-type]
            )
            if matched:
                LOG.debug(
                    "%s: %s/%d reconciled",
                    self._name,
                    allocation.address,
                    allocation.prefix_length,
                )
                return
        else:
            allocation = self._ipdb.allocate(self._name)

        if allocation.degraded:
            LOG.error("%s: no address available, leaving it unconfigured", self._name)
            return

        self._address, self._prefix_length = allocation.as_tuple()
        self._push(allocation)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _fragments_complete(self) -> bool:
        return bool(self._address) and (self._prefix_length or 0) > 0

    def _push(self, allocation: Allocation) -> None:
        LOG.info(
            "setting %s/%d on %s",
            allocation.address,
            allocation.prefix_length,
            self._name,
        )
        try:
            self._pusher.set_address(
                self._name, allocation.address, allocation.prefix_length
            )
        except PushError as exc:
            # Not retried; the next notification for this interface corrects
            # the recorded state.
            LOG.error(
                "failed to set %s/%d on %s: %s",
                allocation.address,
                allocation.prefix_length,
                self._name,
                exc,
            )

    def _arm_timer(self, delay: float) -> None:
        self._cancel_timer()
        token = object()
        self._timer_token = token
        self._timer = self._timer_factory(delay, lambda: self._timer_fired(token))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_token = None
