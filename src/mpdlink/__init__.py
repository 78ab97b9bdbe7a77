"""mpdlink: asyncio client for the Music Player Daemon protocol."""

__version__ = "0.1.0"
