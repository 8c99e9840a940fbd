"""Map gNMI leaf paths to interface events.

Paths are matched with regular expressions rather than parsed against the
OpenConfig models. That is enough for the three leaves the agent subscribes
to; anything else classifies as :attr:`EventKind.UNKNOWN` and is dropped by
the dispatcher.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .events import Event, EventKind

# Only Ethernet interfaces are managed unless told otherwise.
DEFAULT_NAME_PATTERN = r"Ethernet[^\]]*"

_INTERFACE = r"/interfaces/interface\[name=({name})\]"
_ADDRESS = r"/.*/address\[ip=[^\]]*\]/state"

_TEMPLATES: Tuple[Tuple[EventKind, str], ...] = (
    (EventKind.ADMIN_STATUS, _INTERFACE + r"/state/admin-status$"),
    (EventKind.ADDRESS, _INTERFACE + _ADDRESS + r"/ip$"),
    (EventKind.PREFIX_LENGTH, _INTERFACE + _ADDRESS + r"/prefix-length$"),
)


def join_path(prefix: str, path: str) -> str:
    """Return the absolute path for ``path`` below the notification ``prefix``."""

    elements = [part.strip("/") for part in (prefix, path)]
    return "/" + "/".join(part for part in elements if part)


class EventClassifier:
    """Classify slash-delimited paths into :class:`Event` objects.

    Parameters
    ----------
    name_pattern:
        Regular expression matching the interface names to manage. It must
        not contain capturing groups and must not match ``]``.
    """

    def __init__(self, name_pattern: str = DEFAULT_NAME_PATTERN) -> None:
        self._patterns: List[Tuple[EventKind, re.Pattern[str]]] = [
            (kind, re.compile(template.format(name=name_pattern)))
            for kind, template in _TEMPLATES
        ]

    def classify(self, path: str, value: Optional[str] = None) -> Event:
        for kind, pattern in self._patterns:
            match = pattern.search(path)
            if match:
                return Event(kind=kind, interface=match.group(1), value=value)
        return Event(kind=EventKind.UNKNOWN, value=value)


_DEFAULT = EventClassifier()


def classify(path: str, value: Optional[str] = None) -> Event:
    """Classify ``path`` with the default (Ethernet only) classifier."""

    return _DEFAULT.classify(path, value)
