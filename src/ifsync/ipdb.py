"""In-memory IPv4 address database for interface allocations."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from itertools import islice
from threading import Lock
from typing import Dict, Optional, Tuple

LOG = logging.getLogger(__name__)

# Returned when the pool is exhausted. It is never a member of the pool.
EXHAUSTED_ADDRESS = "1.1.1.1"
EXHAUSTED_PREFIX_LENGTH = 32


@dataclass(frozen=True)
class Allocation:
    """An address/prefix length handed out to an interface.

    ``degraded`` is only set on the exhaustion sentinel, which callers must
    not treat as a real assignment.
    """

    address: str
    prefix_length: int
    degraded: bool = False

    def as_tuple(self) -> Tuple[str, int]:
        return self.address, self.prefix_length


EXHAUSTED = Allocation(EXHAUSTED_ADDRESS, EXHAUSTED_PREFIX_LENGTH, degraded=True)


class AddressDatabase:
    """Fixed pool of addresses, each assigned to at most one interface.

    The pool is made of host ``.1`` of consecutive ``/prefix_length`` subnets
    of ``base_network``, skipping the first subnet, so a ``/24`` pool over
    ``10.0.0.0/8`` holds ``10.0.1.1``, ``10.0.2.1`` and so on. Every
    allocation uses the same prefix length.

    Parameters
    ----------
    pool_size:
        Number of candidate addresses. Fixed for the lifetime of the database.
    prefix_length:
        Prefix length handed out with every allocation.
    base_network:
        Network the pool is carved from.
    """

    def __init__(
        self,
        pool_size: int,
        prefix_length: int,
        base_network: str = "10.0.0.0/8",
    ) -> None:
        network = ipaddress.IPv4Network(base_network)
        if pool_size <= 0:
            raise ValueError("pool_size must be positive")
        if not network.prefixlen <= prefix_length <= 30:
            raise ValueError(
                f"prefix_length must be between {network.prefixlen} and 30, "
                f"got {prefix_length}"
            )
        available = 2 ** (prefix_length - network.prefixlen) - 1
        if pool_size > available:
            raise ValueError(
                f"{base_network} only holds {available} /{prefix_length} subnets, "
                f"pool_size is {pool_size}"
            )

        self._prefix_length = prefix_length
        self._lock = Lock()
        # address -> interface holding it (None when unassigned). Sole source
        # of truth for who holds what; ``_interfaces`` is derived from it.
        self._pool: Dict[str, Optional[str]] = {}
        self._interfaces: Dict[str, str] = {}

        subnets = network.subnets(new_prefix=prefix_length)
        for subnet in islice(subnets, 1, pool_size + 1):
            self._pool[str(subnet.network_address + 1)] = None

    @property
    def prefix_length(self) -> int:
        return self._prefix_length

    @property
    def pool_size(self) -> int:
        return len(self._pool)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------
    def allocate(self, interface: str) -> Allocation:
        """Return the address held by ``interface``, assigning one if needed."""

        with self._lock:
            return self._allocate(interface)

    def reconcile(
        self, interface: str, address: str, prefix_length: int
    ) -> Tuple[Allocation, bool]:
        """Check an observed assignment against the database.

        If ``address`` belongs to the pool and is free or already held by
        ``interface``, it is (re)bound to ``interface`` and returned; the
        boolean is true when ``prefix_length`` also matches the database so
        the device needs no change. Otherwise the observed assignment is
        discarded and a regular allocation is returned with ``False``.
        """

        with self._lock:
            if address in self._pool and self._pool[address] in (None, interface):
                self._bind(interface, address)
                allocation = Allocation(address, self._prefix_length)
                return allocation, prefix_length == self._prefix_length
            return self._allocate(interface), False

    def release(self, address: Optional[str], interface: Optional[str] = None) -> None:
        """Mark ``address`` as unassigned.

        Unknown or unassigned addresses are ignored. When ``interface`` is
        given the address is only released if that interface holds it.
        """

        if not address:
            return
        with self._lock:
            holder = self._pool.get(address)
            if holder is None:
                return
            if interface is not None and holder != interface:
                LOG.debug(
                    "not releasing %s for %s: held by %s", address, interface, holder
                )
                return
            self._pool[address] = None
            del self._interfaces[holder]
            LOG.debug("released %s from %s", address, holder)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def lookup(self, interface: str) -> Optional[str]:
        with self._lock:
            return self._interfaces.get(interface)

    def holder(self, address: str) -> Optional[str]:
        with self._lock:
            return self._pool.get(address)

    def free_count(self) -> int:
        with self._lock:
            return sum(1 for holder in self._pool.values() if holder is None)

    def assignments(self) -> Dict[str, str]:
        """Return a copy of the interface -> address mapping."""

        with self._lock:
            return dict(self._interfaces)

    # ------------------------------------------------------------------
    # Internal helpers, called with the lock held
    # ------------------------------------------------------------------
    def _allocate(self, interface: str) -> Allocation:
        current = self._interfaces.get(interface)
        if current is not None:
            return Allocation(current, self._prefix_length)

        for address, holder in self._pool.items():
            if holder is None:
                self._bind(interface, address)
                LOG.info("allocated %s/%d to %s", address, self._prefix_length, interface)
                return Allocation(address, self._prefix_length)

        LOG.error("address pool exhausted, cannot allocate for %s", interface)
        return EXHAUSTED

    def _bind(self, interface: str, address: str) -> None:
        previous = self._interfaces.get(interface)
        if previous is not None and previous != address:
            self._pool[previous] = None
            LOG.debug("%s moved from %s to %s", interface, previous, address)
        self._pool[address] = interface
        self._interfaces[interface] = address
