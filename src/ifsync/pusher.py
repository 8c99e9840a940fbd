"""Abstract interface for writing interface addresses to a device."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ConfigPusher(ABC):
    """Base class for the collaborators that apply address changes."""

    @abstractmethod
    def set_address(self, interface: str, address: str, prefix_length: int) -> None:
        """Configure ``address``/``prefix_length`` on ``interface``.

        Implementations raise :class:`~ifsync.exceptions.PushError` when the
        device rejects the change or cannot be reached.
        """
