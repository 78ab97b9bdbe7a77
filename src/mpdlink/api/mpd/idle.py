"""Idle/noidle handling.

The idle command turns the connection into a long poll: the server keeps
the response open until one of the watched subsystems changes. The only
way to get the connection back early is the noidle command, written
while the idle read is still pending.

IdleController keeps that exchange explicit. It tracks whether the
connection is idling, refuses a second wait or a stray noidle, and records
the cancellation request so the waiting side can tell a server push from
a cancelled wait.

Caller contract: one outstanding wait per connection, and cancel() is
issued by whoever coordinates the waiting task, never by two callers at
once. From another thread, schedule cancel() on the connection's event
loop (asyncio.run_coroutine_threadsafe).
"""

import asyncio
import logging
from enum import Enum

from mpdlink.api.mpd.decode import parse_changed
from mpdlink.api.mpd.protocol import format_command, read_response
from mpdlink.api.mpd.transport import MpdTransport
from mpdlink.api.mpd.types import Subsystem

logger = logging.getLogger(__name__)


class MpdIdleError(Exception):
    """idle or noidle used in a state where it is not allowed."""


class IdleState(Enum):
    """Whether the connection is processing commands or waiting in idle."""

    ACTIVE = "active"
    IDLE = "idle"


class IdleController:
    """Run idle waits on a transport and cancel them on request."""

    def __init__(self, transport: MpdTransport) -> None:
        self._transport = transport
        self._state = IdleState.ACTIVE
        self._cancel = asyncio.Event()

    @property
    def state(self) -> IdleState:
        """Return the current state."""
        return self._state

    @property
    def cancelled(self) -> bool:
        """Return True if the current or last wait was cancelled with noidle."""
        return self._cancel.is_set()

    async def wait(self, *subsystems: Subsystem | str) -> frozenset[Subsystem]:
        """Send idle and block until the server reports changes.

        There is no timeout; the wait ends on a server push or after
        cancel(). A cancelled wait returns whatever the server reported
        in its answer to noidle, usually nothing.

        Args:
            *subsystems: Subsystems to watch. All of them if empty.

        Returns:
            The subsystems that changed.

        Raises:
            MpdIdleError: If a wait is already in progress.
            MpdError: If the server rejects the idle command.
        """
        if self._state is IdleState.IDLE:
            raise MpdIdleError("An idle wait is already in progress on this connection")

        self._cancel.clear()
        # The idle line is buffered before write_line first yields, so a
        # noidle sent from here on always follows it on the wire.
        self._state = IdleState.IDLE
        try:
            await self._transport.write_line(format_command("idle", *subsystems))
            logger.debug("Entered idle (%s)", ", ".join(subsystems) or "all subsystems")
            pairs = await read_response(self._transport)
        finally:
            self._state = IdleState.ACTIVE

        changed = parse_changed(pairs)
        if self._cancel.is_set():
            logger.debug("Idle cancelled, changed: %s", sorted(changed))
        else:
            logger.debug("Idle woke up, changed: %s", sorted(changed))
        return changed

    async def cancel(self) -> None:
        """Send noidle to end the pending wait.

        Raises:
            MpdIdleError: If no wait is pending, or it was already cancelled.
        """
        if self._state is not IdleState.IDLE:
            raise MpdIdleError("noidle sent while the connection is not idling")
        if self._cancel.is_set():
            raise MpdIdleError("The pending idle wait was already cancelled")

        self._cancel.set()
        await self._transport.write_line("noidle")
        logger.debug("Sent noidle")
