"""YAML configuration loader for the ifsync agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from ifsync.classifier import DEFAULT_NAME_PATTERN
from ifsync.interface import DEFAULT_GRACE_PERIOD, DEFAULT_SETTLE_PERIOD


@dataclass
class TargetConfig:
    address: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    tls: bool = False
    cafile: Optional[Path] = None
    certfile: Optional[Path] = None
    keyfile: Optional[Path] = None

    def host_port(self) -> Tuple[str, int]:
        """Split ``address`` into host and port; IPv6 hosts use brackets."""

        host, sep, port = self.address.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"target address '{self.address}' must be host:port")
        return host.strip("[]"), int(port)

    def validate(self) -> None:
        """Reject TLS settings the gNMI client would silently misuse."""

        if (self.certfile or self.keyfile) and not (self.certfile and self.keyfile):
            raise ValueError("certfile and keyfile must be given together")
        if self.certfile and not self.cafile:
            raise ValueError("client certificates require cafile to verify the target")


@dataclass
class IPDBConfig:
    pool_size: int = 200
    prefix_length: int = 24
    base_network: str = "10.0.0.0/8"


@dataclass
class TimerConfig:
    grace_period: float = DEFAULT_GRACE_PERIOD
    settle_period: float = DEFAULT_SETTLE_PERIOD


@dataclass
class AgentConfig:
    target: TargetConfig = field(default_factory=TargetConfig)
    ipdb: IPDBConfig = field(default_factory=IPDBConfig)
    timers: TimerConfig = field(default_factory=TimerConfig)
    interface_pattern: str = DEFAULT_NAME_PATTERN


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _optional_path(value) -> Optional[Path]:
    return Path(value) if value else None


def _parse_target(section: dict) -> TargetConfig:
    target = TargetConfig(
        address=str(section.get("address", "")),
        username=section.get("username"),
        password=section.get("password"),
        tls=bool(section.get("tls", False)),
        cafile=_optional_path(section.get("cafile")),
        certfile=_optional_path(section.get("certfile")),
        keyfile=_optional_path(section.get("keyfile")),
    )
    target.validate()
    return target


def _parse_ipdb(section: dict) -> IPDBConfig:
    defaults = IPDBConfig()
    return IPDBConfig(
        pool_size=int(section.get("pool_size", defaults.pool_size)),
        prefix_length=int(section.get("prefix_length", defaults.prefix_length)),
        base_network=str(section.get("base_network", defaults.base_network)),
    )


def _parse_timers(section: dict) -> TimerConfig:
    timers = TimerConfig(
        grace_period=float(section.get("grace_period", DEFAULT_GRACE_PERIOD)),
        settle_period=float(section.get("settle_period", DEFAULT_SETTLE_PERIOD)),
    )
    if timers.grace_period <= 0 or timers.settle_period <= 0:
        raise ValueError("timer periods must be positive")
    return timers


def parse_config(data: dict) -> AgentConfig:
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    return AgentConfig(
        target=_parse_target(_section(data, "target")),
        ipdb=_parse_ipdb(_section(data, "ipdb")),
        timers=_parse_timers(_section(data, "timers")),
        interface_pattern=str(data.get("interface_pattern", DEFAULT_NAME_PATTERN)),
    )


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    return parse_config(data)
