"""Entry point for the ifsync agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from ifsync import AddressDatabase, Dispatcher, SessionError
from ifsync.classifier import EventClassifier

from .config import AgentConfig, load_config
from .gnmi import GnmiSession

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keep interface addresses in sync with the address database"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the agent configuration file",
    )
    parser.add_argument("--addr", help="Address of the gNMI server (host:port)")
    parser.add_argument("--username", help="Username to authenticate with")
    parser.add_argument("--password", help="Password to authenticate with")
    parser.add_argument(
        "--tls", action="store_true", default=None, help="Enable TLS"
    )
    parser.add_argument("--cafile", type=Path, help="Path to server TLS certificate file")
    parser.add_argument("--certfile", type=Path, help="Path to client TLS certificate file")
    parser.add_argument("--keyfile", type=Path, help="Path to client TLS private key file")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def apply_overrides(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    """Let command-line flags take precedence over the configuration file."""

    target = config.target
    if args.addr:
        target.address = args.addr
    if args.username is not None:
        target.username = args.username
    if args.password is not None:
        target.password = args.password
    if args.tls:
        target.tls = True
    for name in ("cafile", "certfile", "keyfile"):
        value = getattr(args, name)
        if value is not None:
            setattr(target, name, value)
    return config


def build_dispatcher(config: AgentConfig, pusher) -> Dispatcher:
    ipdb = AddressDatabase(
        config.ipdb.pool_size,
        config.ipdb.prefix_length,
        base_network=config.ipdb.base_network,
    )
    return Dispatcher(
        ipdb,
        pusher,
        classifier=EventClassifier(config.interface_pattern),
        grace_period=config.timers.grace_period,
        settle_period=config.timers.settle_period,
    )


def _interrupt(signum, frame):
    LOG.info("received signal %s, shutting down", signum)
    raise KeyboardInterrupt


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config) if args.config else AgentConfig()
    apply_overrides(config, args)
    if not config.target.address:
        parser.error("address not specified")
    try:
        config.target.validate()
    except ValueError as exc:
        parser.error(str(exc))

    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        with GnmiSession(config.target) as session:
            dispatcher = build_dispatcher(config, session.pusher())
            LOG.info(
                "managing %d addresses (/%d) for interfaces matching %s",
                config.ipdb.pool_size,
                config.ipdb.prefix_length,
                config.interface_pattern,
            )
            try:
                dispatcher.run(session.messages())
            finally:
                dispatcher.shutdown()
    except SessionError as exc:
        LOG.error("session failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        LOG.info("interrupted, shutting down")
    finally:
        signal.signal(signal.SIGTERM, previous)

    LOG.info("ifsync agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
