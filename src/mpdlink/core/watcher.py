"""Qt-integrated watcher for MPD server changes.

IdleWatcher keeps one connection in idle and turns every wake-up into Qt
signals. It is the coordinating owner of that connection: stop() is the
only place that cancels the pending idle wait, by scheduling noidle on
the watcher's own event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Signal

from mpdlink.api.mpd import (
    MpdClient,
    MpdConnectionError,
    MpdError,
    MpdIdleError,
    MpdParseError,
    MpdProtocolError,
    Subsystem,
)
from mpdlink.api.mpd.client import COMMAND_TIMEOUT, CONNECT_TIMEOUT, DEFAULT_PORT

if TYPE_CHECKING:
    from mpdlink.core.config import ConfigManager

logger = logging.getLogger(__name__)

STOP_TIMEOUT = 5.0  # seconds

# Changes in these subsystems show up in the status response
STATUS_SUBSYSTEMS = frozenset({Subsystem.PLAYER, Subsystem.MIXER, Subsystem.OPTIONS, Subsystem.PLAYLIST})


class IdleWatcher(QObject):
    """Watch an MPD server for changes using idle.

    Runs an asyncio event loop in a background thread. The watcher does not
    reconnect: when the connection fails it reports the error and stops.

    Example:
        watcher = IdleWatcher("192.168.1.100")
        watcher.subsystems_changed.connect(lambda s: print(sorted(s)))
        watcher.status_changed.connect(lambda st: print(st.state))
        watcher.start()
    """

    # Emitted after each idle wake-up with changes
    # Parameter: frozenset[Subsystem]
    subsystems_changed = Signal(object)

    # Emitted on start and whenever a status-related subsystem changes
    # Parameter: Status
    status_changed = Signal(object)

    # Emitted on connection state change
    # Parameter: bool (True = connected)
    connection_changed = Signal(bool)

    # Emitted on error
    # Parameter: str (error message)
    error_occurred = Signal(str)

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: str = "",
        subsystems: Iterable[Subsystem] = (),
        connect_timeout: float = CONNECT_TIMEOUT,
        command_timeout: float = COMMAND_TIMEOUT,
        parent: QObject | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            host: MPD server hostname or IP.
            port: MPD server port.
            password: Optional password for authentication.
            subsystems: Subsystems to watch, all of them if empty.
            connect_timeout: Connect timeout in seconds.
            command_timeout: Response timeout for status queries.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._host = host
        self._port = port
        self._password = password
        self._subsystems = tuple(subsystems)
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout

        self._running = False
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: MpdClient | None = None

    @classmethod
    def from_config(cls, config: ConfigManager, parent: QObject | None = None) -> IdleWatcher:
        """Create a watcher for the server stored in the configuration."""
        return cls(
            config.get_mpd_host(),
            port=config.get_mpd_port(),
            password=config.get_mpd_password(),
            connect_timeout=config.get_connect_timeout(),
            command_timeout=config.get_command_timeout(),
            parent=parent,
        )

    @property
    def host(self) -> str:
        """Return the MPD host."""
        return self._host

    @property
    def port(self) -> int:
        """Return the MPD port."""
        return self._port

    @property
    def is_running(self) -> bool:
        """Return True while the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching."""
        if self.is_running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info("IdleWatcher started for %s:%d", self._host, self._port)

    def stop(self) -> None:
        """Stop watching, cancelling the pending idle wait."""
        self._running = False
        loop = self._loop
        if loop is not None and self.is_running:
            try:
                future = asyncio.run_coroutine_threadsafe(self._cancel_wait(), loop)
                future.result(timeout=STOP_TIMEOUT)
            except RuntimeError:
                # Loop closed between the check and scheduling
                logger.debug("Watcher loop already finished")
            except TimeoutError:
                logger.warning("Timed out cancelling idle wait")
            except (MpdConnectionError, MpdIdleError) as e:
                logger.debug("Idle wait already over: %s", e)
        if self._thread:
            self._thread.join(timeout=STOP_TIMEOUT)
            self._thread = None
            logger.info("IdleWatcher stopped")

    def _run_loop(self) -> None:
        """Background thread: run asyncio event loop."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._watch())
        finally:
            self._loop = None
            loop.close()

    async def _cancel_wait(self) -> None:
        """Runs on the watcher loop: end the pending idle wait, if any."""
        client = self._client
        if client is not None and client.is_idle:
            await client.noidle()

    async def _watch(self) -> None:
        """Async watch loop: connect, then idle until stopped."""
        client = MpdClient(
            self._host,
            self._port,
            self._password,
            connect_timeout=self._connect_timeout,
            command_timeout=self._command_timeout,
        )
        try:
            async with client:
                self._client = client
                self.connection_changed.emit(True)
                self.status_changed.emit(await client.status())

                while self._running:
                    changed = await client.idle(*self._subsystems)
                    if not changed:
                        continue
                    self.subsystems_changed.emit(changed)
                    if changed & STATUS_SUBSYSTEMS and self._running:
                        self.status_changed.emit(await client.status())

        except MpdConnectionError as e:
            logger.warning("MPD connection failed: %s", e)
            self.error_occurred.emit(str(e))

        except (MpdError, MpdProtocolError, MpdParseError) as e:
            logger.error("MPD protocol error: %s", e)
            self.error_occurred.emit(str(e))

        finally:
            if self._client is not None:
                self._client = None
                self.connection_changed.emit(False)
            self._running = False
