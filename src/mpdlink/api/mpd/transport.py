"""Line-oriented transport over an asyncio stream pair.

MPD frames everything on "\\n": commands go out as single lines and
responses come back line by line. The transport only deals with that
framing; interpreting the lines is left to the protocol module.
"""

import asyncio
import logging
from typing import Self

from mpdlink.api.mpd.protocol import MpdProtocolError

logger = logging.getLogger(__name__)

# Tag values and stored playlist listings can produce very long lines
STREAM_LIMIT = 1024 * 1024


class MpdConnectionError(Exception):
    """Failed to connect to MPD server, or the connection broke."""


class MpdTransport:
    """Read and write protocol lines on a connected stream pair.

    The stream reader buffers partial reads; lines are split strictly on
    the protocol terminator. No retries happen here: any I/O failure is
    raised as MpdConnectionError and the caller decides what to do.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def open(cls, host: str, port: int, timeout: float) -> Self:
        """Open a TCP connection to an MPD server.

        Args:
            host: Server hostname or IP.
            port: Server port.
            timeout: Connect timeout in seconds.

        Returns:
            Connected transport.

        Raises:
            MpdConnectionError: If the connection cannot be established.
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, limit=STREAM_LIMIT),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise MpdConnectionError(f"Connection to {host}:{port} timed out") from e
        except OSError as e:
            raise MpdConnectionError(f"Failed to connect to {host}:{port}: {e}") from e
        return cls(reader, writer)

    @property
    def is_closing(self) -> bool:
        """Return True if the underlying writer is closed or closing."""
        return self._writer.is_closing()

    async def read_line(self) -> str | None:
        """Read one line, without its terminator.

        Returns:
            The decoded line, or None at end of stream. A trailing
            fragment without a terminator also counts as end of stream.

        Raises:
            MpdConnectionError: On a read failure.
        """
        try:
            raw = await self._reader.readline()
        except OSError as e:
            raise MpdConnectionError(f"Read from MPD failed: {e}") from e
        except ValueError as e:
            # StreamReader.readline reports an overrun as ValueError
            raise MpdProtocolError(f"Response line exceeds {STREAM_LIMIT} bytes") from e

        if not raw.endswith(b"\n"):
            if raw:
                logger.debug("Discarding unterminated trailing data: %r", raw)
            return None

        try:
            return raw[:-1].decode("utf-8")
        except UnicodeDecodeError as e:
            raise MpdProtocolError(f"Response line is not valid UTF-8: {raw!r}") from e

    async def write_line(self, line: str) -> None:
        """Write one line and flush it.

        Raises:
            MpdConnectionError: On a write failure.
        """
        try:
            self._writer.write(f"{line}\n".encode())
            await self._writer.drain()
        except OSError as e:
            raise MpdConnectionError(f"Write to MPD failed: {e}") from e

    async def close(self) -> None:
        """Close the connection, logging rather than raising on failure."""
        try:
            self._writer.close()
            await self._writer.wait_closed()
        except (OSError, TimeoutError, asyncio.CancelledError) as e:
            logger.debug("Expected error during MPD disconnect: %s", e)
        except Exception as e:  # noqa: BLE001
            logger.warning("Unexpected error during MPD disconnect: %s", e)
