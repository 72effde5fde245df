"""CLI entry point for LocalShare discovery."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import load_config
from .discovery import ContractViolation, DiscoveredPeer, DiscoveryManager, LocalIdentity, ProviderError


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logging.basicConfig(level=level, handlers=[handler])


def _describe(peer: DiscoveredPeer) -> str:
    return f"{peer.username} ({peer.service_name}) at {peer.address}:{peer.port}"


async def cmd_run(args: argparse.Namespace) -> int:
    """Announce this instance and browse until interrupted."""
    config = load_config(args.config)
    if args.name:
        config.node.username = args.name
    if not config.discovery.enabled:
        print("Discovery is disabled in the configuration", file=sys.stderr)
        return 1

    manager = DiscoveryManager.from_config(config)
    manager.peer_added.connect(lambda peer: print(f"+ {_describe(peer)}"))
    manager.peer_removed.connect(lambda name: print(f"- {name}"))

    print(f"Starting LocalShare discovery as {manager.identity.requested_name}")
    print(f"Service type: {config.discovery.service_type}, port {config.node.port}")

    try:
        await manager.start()
        await manager.wait()
    except ProviderError as e:
        print(f"Discovery unavailable: {e}", file=sys.stderr)
        return 1
    except ContractViolation as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 2
    except asyncio.CancelledError:
        print("\nShutting down...")
    finally:
        await manager.stop()

    return 0


async def cmd_browse(args: argparse.Namespace) -> int:
    """Browse for a while and list the peers found."""
    config = load_config(args.config)
    config.discovery.announce = False
    if not config.discovery.enabled:
        print("Discovery is disabled in the configuration", file=sys.stderr)
        return 1

    manager = DiscoveryManager.from_config(config)
    try:
        await manager.start()
        try:
            await asyncio.wait_for(manager.wait(), timeout=args.timeout)
        except asyncio.TimeoutError:
            pass
        peers = manager.peers()
    except ProviderError as e:
        print(f"Discovery unavailable: {e}", file=sys.stderr)
        return 1
    except ContractViolation as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 2
    finally:
        await manager.stop()

    if args.json:
        print(json.dumps([peer.to_dict() for peer in peers], indent=2))
    elif not peers:
        print(f"No peers discovered after {args.timeout}s")
    else:
        for peer in sorted(peers, key=lambda p: p.service_name):
            print(_describe(peer))
    return 0


def cmd_identity(args: argparse.Namespace) -> int:
    """Show the identity this instance would publish."""
    config = load_config(args.config)
    identity = LocalIdentity(config.node.username, config.node.port, suffix=config.node.suffix)

    print(f"Username: {identity.username}")
    print(f"Suffix: {identity.suffix}")
    print(f"Service name: {identity.requested_name}")
    print(f"Port: {identity.port}")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="localshare",
        description="Local network peer discovery for LocalShare",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Announce and browse until interrupted")
    run_parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Username to publish (overrides config)",
    )
    run_parser.set_defaults(func=cmd_run)

    # Browse command
    browse_parser = subparsers.add_parser("browse", help="List peers on the local network")
    browse_parser.add_argument(
        "-t", "--timeout",
        type=float,
        default=5.0,
        help="Seconds to browse before listing (default: 5)",
    )
    browse_parser.add_argument(
        "--json",
        action="store_true",
        help="Output peers as JSON",
    )
    browse_parser.set_defaults(func=cmd_browse)

    # Identity command
    identity_parser = subparsers.add_parser("identity", help="Show the local identity")
    identity_parser.set_defaults(func=cmd_identity)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if asyncio.iscoroutinefunction(func):
        try:
            return asyncio.run(func(args))
        except KeyboardInterrupt:
            return 0
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
