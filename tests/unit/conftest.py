from typing import Callable, List, Tuple

import pytest

from ifsync.exceptions import PushError
from ifsync.ipdb import AddressDatabase
from ifsync.pusher import ConfigPusher


class RecordingPusher(ConfigPusher):
    def __init__(self):
        self.calls: List[Tuple[str, str, int]] = []
        self.fail = False

    def set_address(self, interface: str, address: str, prefix_length: int) -> None:
        self.calls.append((interface, address, prefix_length))
        if self.fail:
            raise PushError("device unreachable")


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback()


class ManualTimers:
    """Timer factory that only fires when told to."""

    def __init__(self):
        self.created: List[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.created.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [timer for timer in self.created if not timer.cancelled]

    def fire_pending(self) -> None:
        for timer in self.pending:
            timer.fire()


@pytest.fixture
def pusher() -> RecordingPusher:
    return RecordingPusher()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def ipdb() -> AddressDatabase:
    return AddressDatabase(pool_size=2, prefix_length=24)
