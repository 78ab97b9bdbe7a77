"""Async MPD client.

This module provides an asyncio-based MPD client. Every command goes
through execute(), which writes one command line and reads the complete
response before decoding it, so the connection is always positioned at
the start of the next response.

Example:
    async with MpdClient("192.168.1.100") as client:
        status = await client.status()
        if status.is_playing:
            song = await client.currentsong()
            print(f"Playing: {song.display_title} by {song.artist}")
"""

import asyncio
import logging
from typing import Self, TypeVar, overload

from mpdlink.api.mpd.decode import (
    Decoder,
    parse_channels,
    parse_messages,
    parse_mounts,
    parse_neighbors,
    parse_outputs,
    parse_playlists,
    parse_plugins,
    parse_replay_gain,
    parse_song_opt,
    parse_songs,
    parse_stats,
    parse_status,
    parse_update_job,
    parse_version,
)
from mpdlink.api.mpd.idle import IdleController, IdleState, MpdIdleError
from mpdlink.api.mpd.protocol import (
    MpdParseError,
    Pair,
    format_command,
    read_response,
)
from mpdlink.api.mpd.transport import MpdConnectionError, MpdTransport
from mpdlink.api.mpd.types import (
    Channel,
    Message,
    Mount,
    Neighbor,
    Output,
    Playlist,
    Plugin,
    Range,
    ReplayGain,
    Song,
    Stats,
    Status,
    Subsystem,
    Version,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PORT = 6600
CONNECT_TIMEOUT = 5.0
COMMAND_TIMEOUT = 10.0

GREETING_PREFIX = "OK MPD "


class MpdClient:
    """Async MPD client.

    One command/response exchange runs at a time; concurrent callers
    queue on an internal lock. The only exception is noidle(), which must
    reach the server while idle() is still waiting.

    Attributes:
        host: MPD server hostname or IP.
        port: MPD server port (default 6600).
        password: Optional password for authentication.
        connect_timeout: Seconds to wait for the TCP connection.
        command_timeout: Seconds to wait for a command response, or None
            to wait forever. Does not apply to idle().
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: str = "",
        connect_timeout: float = CONNECT_TIMEOUT,
        command_timeout: float | None = COMMAND_TIMEOUT,
    ) -> None:
        """Initialize MPD client.

        Args:
            host: MPD server hostname or IP.
            port: MPD server port.
            password: Optional password for authentication.
            connect_timeout: Connect timeout in seconds.
            command_timeout: Response timeout in seconds, None to disable.
        """
        self.host = host
        self.port = port
        self.password = password
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

        self._transport: MpdTransport | None = None
        self._idle: IdleController | None = None
        self._lock = asyncio.Lock()
        self._version: str = ""

    @property
    def is_connected(self) -> bool:
        """Return True if connected to MPD."""
        return self._transport is not None and not self._transport.is_closing

    @property
    def version(self) -> str:
        """Return MPD protocol version string from initial handshake."""
        return self._version

    @property
    def protocol_version(self) -> Version | None:
        """Return the parsed protocol version, or None before connecting."""
        if not self._version:
            return None
        return parse_version(self._version)

    @property
    def is_idle(self) -> bool:
        """Return True while an idle() wait is pending."""
        return self._idle is not None and self._idle.state is IdleState.IDLE

    async def connect(self) -> None:
        """Connect to MPD server.

        Raises:
            MpdConnectionError: If connection fails or the greeting is wrong.
            MpdError: If authentication fails.
        """
        transport = await MpdTransport.open(self.host, self.port, self.connect_timeout)

        # Read greeting: "OK MPD version"
        greeting = await transport.read_line()
        if greeting is None or not greeting.startswith(GREETING_PREFIX):
            await transport.close()
            raise MpdConnectionError(f"Invalid MPD greeting: {greeting}")

        version = greeting[len(GREETING_PREFIX) :]
        try:
            parse_version(version)
        except MpdParseError as e:
            await transport.close()
            raise MpdConnectionError(f"Invalid MPD greeting: {greeting}") from e

        self._transport = transport
        self._idle = IdleController(transport)
        self._version = version
        logger.info("Connected to MPD %s at %s:%d", self._version, self.host, self.port)

        # Authenticate if password provided
        if self.password:
            await self.execute("password", self.password)

    async def disconnect(self) -> None:
        """Disconnect from MPD server."""
        transport, self._transport, self._idle = self._transport, None, None
        if transport:
            await transport.close()
            logger.info("Disconnected from MPD")

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _require_transport(self) -> MpdTransport:
        if not self._transport:
            raise MpdConnectionError("Not connected")
        return self._transport

    def _require_idle(self) -> IdleController:
        if not self._idle:
            raise MpdConnectionError("Not connected")
        return self._idle

    async def _read_response(self, transport: MpdTransport) -> list[Pair]:
        """Read a full response, giving up after command_timeout.

        A timed out response leaves unread data on the connection, so the
        connection is closed rather than reused.
        """
        try:
            return await asyncio.wait_for(read_response(transport), timeout=self.command_timeout)
        except TimeoutError as e:
            await self.disconnect()
            raise MpdConnectionError(
                f"No response from {self.host}:{self.port} within {self.command_timeout}s"
            ) from e

    @overload
    async def execute(self, command: str, *args: object) -> None: ...

    @overload
    async def execute(self, command: str, *args: object, decoder: Decoder[T]) -> T: ...

    async def execute(self, command: str, *args: object, decoder: Decoder[T] | None = None) -> T | None:
        """Send a command and read its whole response.

        The response is always drained up to its terminator before
        decoding starts, whether it succeeds, fails or is not needed.

        Args:
            command: The MPD command name.
            *args: Command arguments.
            decoder: Turns the response pairs into the result. Without one
                the response is checked for errors and discarded.

        Returns:
            The decoded result, or None without a decoder.

        Raises:
            MpdConnectionError: If not connected or the connection fails.
            MpdProtocolError: If the response breaks the protocol grammar.
            MpdParseError: If a field value cannot be decoded.
            MpdError: If the server rejects the command.
        """
        command_str = format_command(command, *args)
        async with self._lock:
            transport = self._require_transport()
            logger.debug("MPD command: %s", command_str)
            try:
                await transport.write_line(command_str)
                pairs = await self._read_response(transport)
            except asyncio.CancelledError:
                # The rest of the response is still unread and would be
                # taken for the reply to the next command.
                logger.warning("Command %s cancelled mid-response, closing connection", command)
                await self.disconnect()
                raise

        if decoder is None:
            return None
        return decoder(pairs)

    # -------------------------------------------------------------------------
    # Idle
    # -------------------------------------------------------------------------

    async def idle(self, *subsystems: Subsystem | str) -> frozenset[Subsystem]:
        """Wait for changes in specified subsystems.

        Blocks until something changes or noidle() is called from another
        task. Other commands wait until the idle wait is over.

        Args:
            *subsystems: Subsystems to watch (player, mixer, options, etc.).
                         If empty, watches all subsystems.

        Returns:
            Set of changed subsystems, possibly empty after noidle().

        Raises:
            MpdIdleError: If another idle wait is already pending.
        """
        if self.is_idle:
            raise MpdIdleError("An idle wait is already in progress on this connection")

        async with self._lock:
            idle = self._require_idle()
            try:
                return await idle.wait(*subsystems)
            except asyncio.CancelledError:
                # The server is still idling; the next response on this
                # connection would belong to the abandoned idle.
                logger.warning("Idle wait cancelled without noidle, closing connection")
                await self.disconnect()
                raise

    async def noidle(self) -> None:
        """Cancel the pending idle() wait.

        Raises:
            MpdIdleError: If no idle wait is pending.
        """
        await self._require_idle().cancel()

    # -------------------------------------------------------------------------
    # Status & Info Commands
    # -------------------------------------------------------------------------

    async def status(self) -> Status:
        """Get current player status."""
        return await self.execute("status", decoder=parse_status)

    async def currentsong(self) -> Song | None:
        """Get current song information.

        Returns:
            Song if a song is loaded, None otherwise.
        """
        return await self.execute("currentsong", decoder=parse_song_opt)

    async def stats(self) -> Stats:
        """Get database statistics."""
        return await self.execute("stats", decoder=parse_stats)

    async def replaygain(self) -> ReplayGain:
        """Get the replay gain mode."""
        return await self.execute("replay_gain_status", decoder=parse_replay_gain)

    # -------------------------------------------------------------------------
    # Queue & Playlists
    # -------------------------------------------------------------------------

    async def queue(self) -> list[Song]:
        """Get every song in the play queue."""
        return await self.execute("playlistinfo", decoder=parse_songs)

    async def songs(self, positions: Range) -> list[Song]:
        """Get the queued songs in a position range (end exclusive)."""
        return await self.execute("playlistinfo", positions, decoder=parse_songs)

    async def playlistid(self, song_id: int) -> Song | None:
        """Get a queued song by its ID."""
        return await self.execute("playlistid", song_id, decoder=parse_song_opt)

    async def playlists(self) -> list[Playlist]:
        """List stored playlists."""
        return await self.execute("listplaylists", decoder=parse_playlists)

    async def playlist(self, name: str) -> list[Song]:
        """Get the songs of a stored playlist."""
        return await self.execute("listplaylistinfo", name, decoder=parse_songs)

    # -------------------------------------------------------------------------
    # Outputs, Plugins & Storage
    # -------------------------------------------------------------------------

    async def outputs(self) -> list[Output]:
        """List audio outputs."""
        return await self.execute("outputs", decoder=parse_outputs)

    async def enableoutput(self, output_id: int) -> None:
        """Enable an audio output."""
        await self.execute("enableoutput", output_id)

    async def disableoutput(self, output_id: int) -> None:
        """Disable an audio output."""
        await self.execute("disableoutput", output_id)

    async def decoders(self) -> list[Plugin]:
        """List decoder plugins."""
        return await self.execute("decoders", decoder=parse_plugins)

    async def mounts(self) -> list[Mount]:
        """List mounted storages."""
        return await self.execute("listmounts", decoder=parse_mounts)

    async def neighbors(self) -> list[Neighbor]:
        """List storages found on the local network."""
        return await self.execute("listneighbors", decoder=parse_neighbors)

    async def mount(self, path: str, uri: str) -> None:
        """Mount a storage URI at a path in the music directory."""
        await self.execute("mount", path, uri)

    async def unmount(self, path: str) -> None:
        """Unmount the storage at a path."""
        await self.execute("unmount", path)

    async def update(self, path: str = "") -> int:
        """Start a database update.

        Args:
            path: Directory to update, or empty for the whole database.

        Returns:
            Job ID of the update.
        """
        if path:
            return await self.execute("update", path, decoder=parse_update_job)
        return await self.execute("update", decoder=parse_update_job)

    # -------------------------------------------------------------------------
    # Client-to-client Messages
    # -------------------------------------------------------------------------

    async def channels(self) -> list[Channel]:
        """List channels with at least one subscriber."""
        return await self.execute("channels", decoder=parse_channels)

    async def subscribe(self, channel: str) -> None:
        """Subscribe to a channel."""
        await self.execute("subscribe", channel)

    async def unsubscribe(self, channel: str) -> None:
        """Unsubscribe from a channel."""
        await self.execute("unsubscribe", channel)

    async def sendmessage(self, channel: str, message: str) -> None:
        """Send a message to a channel."""
        await self.execute("sendmessage", channel, message)

    async def readmessages(self) -> list[Message]:
        """Read and consume messages received on subscribed channels."""
        return await self.execute("readmessages", decoder=parse_messages)

    # -------------------------------------------------------------------------
    # Playback Control
    # -------------------------------------------------------------------------

    async def play(self, pos: int = -1) -> None:
        """Start playback.

        Args:
            pos: Position in queue to start from, or -1 for current.
        """
        if pos >= 0:
            await self.execute("play", pos)
        else:
            await self.execute("play")

    async def pause(self, state: bool | None = None) -> None:
        """Pause or resume playback.

        Args:
            state: True to pause, False to resume, None to toggle.
        """
        if state is None:
            await self.execute("pause")
        else:
            await self.execute("pause", state)

    async def stop(self) -> None:
        """Stop playback."""
        await self.execute("stop")

    async def next(self) -> None:
        """Skip to next track."""
        await self.execute("next")

    async def previous(self) -> None:
        """Skip to previous track."""
        await self.execute("previous")

    async def seekcur(self, time: float) -> None:
        """Seek to position in current track.

        Args:
            time: Position in seconds.
        """
        await self.execute("seekcur", time)

    async def setvol(self, volume: int) -> None:
        """Set volume.

        Args:
            volume: Volume level (0-100).
        """
        await self.execute("setvol", max(0, min(100, volume)))

    # -------------------------------------------------------------------------
    # Utility Commands
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        """Ping MPD server to check connection."""
        await self.execute("ping")

    async def clearerror(self) -> None:
        """Clear the last player error shown in status."""
        await self.execute("clearerror")
