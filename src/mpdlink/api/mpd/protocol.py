"""MPD protocol parsing utilities.

MPD uses a simple line-based text protocol:
- Commands are sent as plain text lines
- Responses are key-value pairs: "key: value"
- Responses end with "OK" or "ACK [error@command_listNum] {command} message"
- The connection greeting is "OK MPD <version>"

Reference: https://mpd.readthedocs.io/en/stable/protocol.html
"""

import re
from collections.abc import AsyncIterator
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mpdlink.api.mpd.transport import MpdTransport

Pair = tuple[str, str]

OK = "OK"
ACK_PREFIX = "ACK "
SEPARATOR = ": "

# Pattern for ACK responses: ACK [error@command_listNum] {current_command} message_text
ACK_PATTERN = re.compile(r"ACK \[(\d+)@(\d+)\] \{([^}]*)\}(?: (.*))?")


class AckCode(IntEnum):
    """Well-known error codes carried by ACK lines."""

    NOT_LIST = 1
    ARG = 2
    PASSWORD = 3
    PERMISSION = 4
    UNKNOWN = 5
    NO_EXIST = 50
    PLAYLIST_MAX = 51
    SYSTEM = 52
    PLAYLIST_LOAD = 53
    UPDATE_ALREADY = 54
    PLAYER_SYNC = 55
    EXIST = 56


class MpdError(Exception):
    """Error reported by the server in an ACK line."""

    def __init__(self, code: int, command_index: int, current_command: str, message: str) -> None:
        self.code = code
        self.command_index = command_index
        self.current_command = current_command
        self.message = message
        super().__init__(f"MPD error {code} in {current_command}: {message}")

    @property
    def ack_code(self) -> AckCode | None:
        """Return the code as AckCode, or None for codes this client does not know."""
        try:
            return AckCode(self.code)
        except ValueError:
            return None


class MpdProtocolError(Exception):
    """The server sent something that does not follow the protocol grammar."""


class MpdMissingFieldError(MpdProtocolError):
    """A record lacks a field that is required to build it."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Missing field {key!r}")


class MpdParseError(Exception):
    """A recognized field carries a value that cannot be converted."""

    def __init__(self, key: str, value: str, reason: str = "") -> None:
        self.key = key
        self.value = value
        detail = f": {reason}" if reason else ""
        super().__init__(f"Bad value {value!r} for field {key!r}{detail}")


def parse_ack(line: str) -> MpdError:
    """Decode an ACK line into the error it reports.

    Args:
        line: The full ACK line, without terminator.

    Returns:
        MpdError carrying code, command index, command and message.

    Raises:
        MpdProtocolError: If the line does not follow the ACK grammar.
    """
    match = ACK_PATTERN.fullmatch(line)
    if not match:
        raise MpdProtocolError(f"Malformed ACK line: {line!r}")
    code, index, command, message = match.groups()
    return MpdError(int(code), int(index), command, message or "")


def parse_line(line: str) -> Pair:
    """Split a response line into its key and value.

    Raises:
        MpdProtocolError: If the line has no "key: value" separator.
    """
    key, sep, value = line.partition(SEPARATOR)
    if not sep:
        raise MpdProtocolError(f"Malformed response line: {line!r}")
    return key, value


def is_ok(line: str) -> bool:
    """Return True for the plain success terminator."""
    return line == OK


def is_ack(line: str) -> bool:
    """Return True for an error terminator."""
    return line.startswith(ACK_PREFIX)


async def read_pairs(transport: "MpdTransport") -> AsyncIterator[Pair]:
    """Yield the key-value pairs of one response.

    The generator stops at the terminator and never reads past it, so
    the connection stays framed for the next command.

    Raises:
        MpdError: If the response ends with an ACK line.
        MpdProtocolError: On a malformed line, or if the stream ends
            before a terminator.
    """
    while True:
        line = await transport.read_line()
        if line is None:
            raise MpdProtocolError("Connection closed before response terminator")
        if is_ok(line):
            return
        if is_ack(line):
            raise parse_ack(line)
        yield parse_line(line)


async def read_response(transport: "MpdTransport") -> list[Pair]:
    """Read one complete response and return its pairs."""
    return [pair async for pair in read_pairs(transport)]


def escape_arg(arg: str) -> str:
    """Escape an argument for MPD command.

    MPD requires arguments with spaces or special chars to be quoted.
    Inside quotes, backslash and double-quote must be escaped.

    Args:
        arg: The argument to escape.

    Returns:
        Escaped argument, quoted if necessary.

    Raises:
        ValueError: If the argument contains a line break.
    """
    if "\n" in arg or "\r" in arg:
        raise ValueError(f"Command argument cannot contain line breaks: {arg!r}")

    # If no special characters, return as-is
    if arg and not any(c in arg for c in ' "\t\'\\'):
        return arg

    # Escape backslashes and quotes, wrap in quotes
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_arg(arg: object) -> str:
    """Render a command argument as protocol text."""
    if isinstance(arg, bool):
        return "1" if arg else "0"
    if isinstance(arg, float):
        # Fixed point; the server does not parse exponent notation
        return f"{arg:f}".rstrip("0").rstrip(".")
    return str(arg)


def format_command(command: str, *args: object) -> str:
    """Format an MPD command with arguments.

    Args:
        command: The MPD command name.
        *args: Command arguments; non-strings are rendered with format_arg.

    Returns:
        Formatted command string (without newline).
    """
    if not args:
        return command
    escaped_args = [escape_arg(format_arg(arg)) for arg in args]
    return f"{command} {' '.join(escaped_args)}"
