"""Command line entry point: query an MPD server and print the result."""

import argparse
import asyncio
import logging
import sys
from dataclasses import fields, is_dataclass

from mpdlink.api.mpd import (
    MpdClient,
    MpdConnectionError,
    MpdError,
    MpdParseError,
    MpdProtocolError,
    Subsystem,
)
from mpdlink.core.config import ConfigManager

logger = logging.getLogger(__name__)

# Commands that take no arguments and map straight onto a client method
QUERIES = {
    "status": "status",
    "currentsong": "currentsong",
    "queue": "queue",
    "outputs": "outputs",
    "stats": "stats",
    "playlists": "playlists",
    "decoders": "decoders",
    "mounts": "mounts",
    "neighbors": "neighbors",
    "channels": "channels",
}


def format_entity(entity: object) -> str:
    """Render an entity as one "field: value" line per field."""
    if not is_dataclass(entity):
        return str(entity)
    lines = []
    for field in fields(entity):
        value = getattr(entity, field.name)
        if field.name == "tags":
            lines.extend(f"{key}: {tag}" for key, tag in value.items())
        elif value is not None:
            lines.append(f"{field.name}: {value}")
    return "\n".join(lines)


def print_result(result: object) -> None:
    """Print a query result; lists are printed as blank-line separated records."""
    if result is None:
        return
    if isinstance(result, list):
        print("\n\n".join(format_entity(item) for item in result))
    elif isinstance(result, frozenset):
        for subsystem in sorted(result):
            print(f"changed: {subsystem}")
    else:
        print(format_entity(result))


def resolve_server(args: argparse.Namespace, config: ConfigManager) -> tuple[str, int, str]:
    """Pick host, port and password from flags, a saved profile or the settings.

    Without --server, the last profile chosen with --server is used if it
    still exists. A profile given with --server is remembered as the last one.

    Raises:
        MpdConnectionError: If the requested profile does not exist.
    """
    host, port, password = config.get_mpd_host(), config.get_mpd_port(), config.get_mpd_password()
    profile = None
    if args.server:
        profile = config.get_profile(args.server)
        if profile is None:
            raise MpdConnectionError(f"No saved server profile {args.server!r}")
        config.set_last_server_id(profile.id)
    else:
        last_id = config.get_last_server_id()
        if last_id:
            profile = config.get_profile(last_id)
    if profile is not None:
        host, port, password = profile.host, profile.port, profile.password
    return (
        args.host or host,
        args.port or port,
        args.password if args.password is not None else password,
    )


async def run(args: argparse.Namespace, config: ConfigManager) -> object:
    """Connect, run the requested command and return its result."""
    host, port, password = resolve_server(args, config)
    client = MpdClient(
        host,
        port,
        password,
        connect_timeout=config.get_connect_timeout(),
        command_timeout=config.get_command_timeout(),
    )
    async with client:
        if args.command == "idle":
            return await client.idle(*args.subsystems)
        return await getattr(client, QUERIES[args.command])()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="mpdlink",
        description="Query a Music Player Daemon server",
    )
    parser.add_argument("--host", default=None, help="server hostname or IP (default: from settings)")
    parser.add_argument("--port", type=int, default=None, help="TCP port (default: from settings)")
    parser.add_argument("--password", default=None, help="password sent after connecting")
    parser.add_argument(
        "--server", default=None, help="ID of a saved server profile (default: the last one used)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    for name in QUERIES:
        commands.add_parser(name, help=f"print the {name} response")
    idle = commands.add_parser("idle", help="wait for the next change and print it")
    idle.add_argument(
        "subsystems",
        nargs="*",
        type=Subsystem,
        help=f"subsystems to watch, any of: {', '.join(Subsystem)} (default: all)",
    )
    return parser


def main() -> int:
    """Run the command line tool.

    Returns:
        Exit code (0 for success).
    """
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(run(args, ConfigManager()))
    except MpdConnectionError as e:
        logger.error("Connection failed: %s", e)
        return 1
    except MpdError as e:
        logger.error("Server error %d: %s", e.code, e.message)
        return 1
    except (MpdProtocolError, MpdParseError) as e:
        logger.error("Protocol error: %s", e)
        return 1
    except KeyboardInterrupt:
        return 130

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
