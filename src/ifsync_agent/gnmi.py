"""gNMI transport: subscription session and address pusher.

Both sides sit on top of :class:`pygnmi.client.gNMIclient`. The subscription
yields pygnmi's parsed dictionaries, which :func:`parse_response` converts to
the message types consumed by :class:`ifsync.dispatcher.Dispatcher`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterator, Optional, Sequence

from pygnmi.client import gNMIclient

from ifsync.dispatcher import Message
from ifsync.events import ErrorResponse, Notification, SyncResponse, Update
from ifsync.exceptions import PushError, SessionError
from ifsync.pusher import ConfigPusher

from .config import TargetConfig

LOG = logging.getLogger(__name__)

# Admin status: a single leaf, "UP" or "DOWN".
ADMIN_STATUS_PATH = "/interfaces/interface/state/admin-status"
# Two leaves per address: "ip" and "prefix-length".
IPV4_ADDRESS_PATH = (
    "/interfaces/interface/subinterfaces/subinterface/ipv4/addresses/address/state"
)
SUBSCRIBED_PATHS = (ADMIN_STATUS_PATH, IPV4_ADDRESS_PATH)

IPV4_CONFIG_PATH = (
    "/interfaces/interface[name={interface}]/subinterfaces/subinterface[index=0]"
    "/ipv4/addresses/address[ip={address}]"
)

DEFAULT_ENCODING = "json"


def client_kwargs(target: TargetConfig) -> Dict[str, Any]:
    """Translate ``target`` into :class:`gNMIclient` keyword arguments."""

    kwargs: Dict[str, Any] = {
        "target": target.host_port(),
        # gRPC rejects None in call metadata; no credentials means empty ones.
        "username": target.username or "",
        "password": target.password or "",
        "insecure": not target.tls,
    }
    if target.tls:
        target.validate()
        if target.certfile and target.keyfile:
            kwargs["path_cert"] = str(target.certfile)
            kwargs["path_key"] = str(target.keyfile)
            kwargs["path_root"] = str(target.cafile)
        elif target.cafile:
            kwargs["path_cert"] = str(target.cafile)
    return kwargs


def build_subscription(
    paths: Sequence[str] = SUBSCRIBED_PATHS, encoding: str = DEFAULT_ENCODING
) -> Dict[str, Any]:
    return {
        "subscription": [{"path": path, "mode": "on_change"} for path in paths],
        "mode": "stream",
        "encoding": encoding,
    }


def stringify_value(value: Any) -> str:
    """Render a decoded gNMI value as the string form the state machines use."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def parse_response(raw: Dict[str, Any]) -> Optional[Message]:
    """Convert one pygnmi subscribe response into a stream message.

    Returns ``None`` for payloads the agent does not act on (e.g. deletes).
    """

    if "update" in raw:
        body = raw["update"] or {}
        updates = [
            Update(path=str(entry.get("path", "")), value=stringify_value(entry.get("val")))
            for entry in body.get("update", [])
        ]
        return Notification(prefix=str(body.get("prefix") or ""), updates=updates)
    if "sync_response" in raw:
        return SyncResponse(ok=bool(raw["sync_response"]))
    if "error" in raw:
        error = raw["error"]
        if isinstance(error, dict):
            error = error.get("message", error)
        return ErrorResponse(message=str(error))
    return None


class GnmiPusher(ConfigPusher):
    """Write interface addresses with a gNMI ``update``."""

    def __init__(self, client: gNMIclient, encoding: str = DEFAULT_ENCODING) -> None:
        self._client = client
        self._encoding = encoding

    def set_address(self, interface: str, address: str, prefix_length: int) -> None:
        path = IPV4_CONFIG_PATH.format(interface=interface, address=address)
        value = {"config": {"ip": address, "prefix-length": prefix_length}}
        LOG.debug("gNMI update %s -> %s", path, value)
        try:
            self._client.set(update=[(path, value)], encoding=self._encoding)
        except Exception as exc:
            raise PushError(
                f"gNMI set of {address}/{prefix_length} on {interface} failed: {exc}"
            ) from exc


class GnmiSession:
    """A connected gNMI client and the subscription stream it serves.

    Use as a context manager; the connection is closed on exit.
    """

    def __init__(
        self,
        target: TargetConfig,
        *,
        encoding: str = DEFAULT_ENCODING,
        paths: Sequence[str] = SUBSCRIBED_PATHS,
        client_factory: Callable[..., Any] = gNMIclient,
        timeout: Optional[float] = None,
    ) -> None:
        self._target = target
        self._encoding = encoding
        self._paths = tuple(paths)
        self._client_factory = client_factory
        self._timeout = timeout
        self._client: Optional[Any] = None

    def __enter__(self) -> "GnmiSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RuntimeError("gNMI session is not connected")
        return self._client

    def connect(self) -> None:
        LOG.info("connecting to gNMI target %s", self._target.address)
        try:
            client = self._client_factory(**client_kwargs(self._target))
            client.connect(timeout=self._timeout)
        except Exception as exc:
            raise SessionError(
                f"cannot connect to gNMI target {self._target.address}: {exc}"
            ) from exc
        self._client = client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def pusher(self) -> GnmiPusher:
        return GnmiPusher(self.client, encoding=self._encoding)

    def messages(self) -> Iterator[Message]:
        """Yield stream messages until the subscription ends or fails."""

        subscription = build_subscription(self._paths, self._encoding)
        LOG.info("subscribing to %s", ", ".join(self._paths))
        try:
            for raw in self.client.subscribe2(subscribe=subscription):
                message = parse_response(raw)
                if message is None:
                    LOG.debug("ignoring subscribe response %r", raw)
                    continue
                yield message
        except Exception as exc:
            raise SessionError(f"gNMI subscription failed: {exc}") from exc
