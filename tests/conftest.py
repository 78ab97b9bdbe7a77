"""Test fixtures for mpdlink tests."""

import asyncio
from collections.abc import Callable

import pytest
from PySide6.QtCore import QCoreApplication

from mpdlink.api.mpd.transport import MpdTransport

GREETING = b"OK MPD 0.23.5\n"


class MockStreamReader:
    """Mock asyncio StreamReader replaying canned chunks."""

    def __init__(self, responses: list[bytes]) -> None:
        self._responses = responses
        self._index = 0
        self._buffer = b""

    async def readline(self) -> bytes:
        """Read a line from mock data; returns the leftover at end of data."""
        while b"\n" not in self._buffer:
            if self._index >= len(self._responses):
                data, self._buffer = self._buffer, b""
                return data
            self._buffer += self._responses[self._index]
            self._index += 1

        line, self._buffer = self._buffer.split(b"\n", 1)
        return line + b"\n"

    @property
    def unread(self) -> bytes:
        """Return data not consumed yet."""
        return self._buffer + b"".join(self._responses[self._index :])


class MockStreamWriter:
    """Mock asyncio StreamWriter for testing."""

    def __init__(self) -> None:
        self.data: list[bytes] = []
        self._closed = False

    def write(self, data: bytes) -> None:
        """Record written data."""
        self.data.append(data)

    async def drain(self) -> None:
        """Mock drain."""

    def close(self) -> None:
        """Mark as closed."""
        self._closed = True

    async def wait_closed(self) -> None:
        """Mock wait_closed."""

    def is_closing(self) -> bool:
        """Check if closing."""
        return self._closed

    @property
    def lines(self) -> list[str]:
        """Return written command lines."""
        return b"".join(self.data).decode().splitlines()


class FakeMpdServer:
    """Scripted server side of a connection.

    Commands get the canned response registered for their name, or a bare
    OK. An idle command is held open until push_event() or noidle, like a
    real server does.
    """

    def __init__(self, greeting: bytes = GREETING) -> None:
        self.responses: dict[str, list[bytes]] = {}
        self.commands: list[str] = []
        self.idling = False
        self._pending: list[str] = []
        self._buffer = bytearray(greeting)
        self._ready = asyncio.Event()
        self._closed = False
        self.reader = _FakeReader(self)
        self.writer = _FakeWriter(self)

    def respond(self, command: str, *responses: bytes) -> None:
        """Queue responses for a command name, used in order."""
        self.responses.setdefault(command, []).extend(responses)

    def push_event(self, *subsystems: str) -> None:
        """Report changes; answers a pending idle right away."""
        self._pending.extend(subsystems)
        if self.idling:
            self._finish_idle()

    def _feed(self, data: bytes) -> None:
        self._buffer.extend(data)
        self._ready.set()

    def _finish_idle(self) -> None:
        body = b"".join(f"changed: {name}\n".encode() for name in self._pending)
        self._pending.clear()
        self.idling = False
        self._feed(body + b"OK\n")

    def _handle(self, line: str) -> None:
        self.commands.append(line)
        name = line.split(" ", 1)[0]
        if name == "idle":
            self.idling = True
            if self._pending:
                self._finish_idle()
        elif name == "noidle":
            if self.idling:
                self._finish_idle()
        elif self.responses.get(name):
            self._feed(self.responses[name].pop(0))
        else:
            self._feed(b"OK\n")


class _FakeReader:
    def __init__(self, server: FakeMpdServer) -> None:
        self._server = server

    async def readline(self) -> bytes:
        server = self._server
        while b"\n" not in server._buffer:
            if server._closed:
                data = bytes(server._buffer)
                server._buffer.clear()
                return data
            server._ready.clear()
            await server._ready.wait()
        index = server._buffer.index(b"\n") + 1
        line = bytes(server._buffer[:index])
        del server._buffer[:index]
        return line


class _FakeWriter:
    def __init__(self, server: FakeMpdServer) -> None:
        self._server = server
        self._partial = b""

    def write(self, data: bytes) -> None:
        self._partial += data
        while b"\n" in self._partial:
            line, self._partial = self._partial.split(b"\n", 1)
            self._server._handle(line.decode())

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self._server._closed = True
        self._server._ready.set()

    async def wait_closed(self) -> None:
        pass

    def is_closing(self) -> bool:
        return self._server._closed


@pytest.fixture
def mock_connection() -> Callable[[list[bytes]], tuple[MockStreamReader, MockStreamWriter]]:
    """Create mock connection for testing."""

    def _mock_connection(responses: list[bytes]) -> tuple[MockStreamReader, MockStreamWriter]:
        reader = MockStreamReader(responses)
        writer = MockStreamWriter()
        return reader, writer

    return _mock_connection


@pytest.fixture
def fake_server() -> FakeMpdServer:
    """Create a scripted MPD server connection."""
    return FakeMpdServer()


@pytest.fixture(scope="session")
def qapp_cls() -> type[QCoreApplication]:
    """Run Qt tests without a GUI application."""
    return QCoreApplication


@pytest.fixture
def make_transport() -> Callable[..., tuple[MpdTransport, MockStreamReader]]:
    """Create a transport reading canned chunks."""

    def _make_transport(*chunks: bytes) -> tuple[MpdTransport, MockStreamReader]:
        reader = MockStreamReader(list(chunks))
        return MpdTransport(reader, MockStreamWriter()), reader  # type: ignore[arg-type]

    return _make_transport
