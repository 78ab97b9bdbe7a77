"""MPD client module.

This module provides an async client for the MPD text protocol, the
decoders behind it and the entity types it returns.

Example:
    from mpdlink.api.mpd import MpdClient

    async with MpdClient("192.168.1.100") as client:
        status = await client.status()
        queue = await client.queue()
        changed = await client.idle()
"""

from mpdlink.api.mpd.client import MpdClient
from mpdlink.api.mpd.idle import IdleController, IdleState, MpdIdleError
from mpdlink.api.mpd.protocol import (
    AckCode,
    MpdError,
    MpdMissingFieldError,
    MpdParseError,
    MpdProtocolError,
)
from mpdlink.api.mpd.transport import MpdConnectionError, MpdTransport
from mpdlink.api.mpd.types import (
    AudioFormat,
    Channel,
    Message,
    Mount,
    Neighbor,
    Output,
    Playlist,
    Plugin,
    QueuePlace,
    Range,
    ReplayGain,
    Song,
    State,
    Stats,
    Status,
    Subsystem,
    Version,
)

__all__ = [
    "AckCode",
    "AudioFormat",
    "Channel",
    "IdleController",
    "IdleState",
    "Message",
    "Mount",
    "MpdClient",
    "MpdConnectionError",
    "MpdError",
    "MpdIdleError",
    "MpdMissingFieldError",
    "MpdParseError",
    "MpdProtocolError",
    "MpdTransport",
    "Neighbor",
    "Output",
    "Playlist",
    "Plugin",
    "QueuePlace",
    "Range",
    "ReplayGain",
    "Song",
    "State",
    "Stats",
    "Status",
    "Subsystem",
    "Version",
]
