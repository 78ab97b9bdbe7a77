"""MPD protocol data types.

This module defines frozen dataclasses for MPD responses. Instances are
snapshots: once decoded they belong to the caller and never change.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType


class State(StrEnum):
    """Playback state."""

    STOP = "stop"
    PLAY = "play"
    PAUSE = "pause"


class ReplayGain(StrEnum):
    """Replay gain mode."""

    OFF = "off"
    TRACK = "track"
    ALBUM = "album"
    AUTO = "auto"


class Subsystem(StrEnum):
    """Server state categories reported by the idle command."""

    DATABASE = "database"
    UPDATE = "update"
    STORED_PLAYLIST = "stored_playlist"
    PLAYLIST = "playlist"
    PLAYER = "player"
    MIXER = "mixer"
    OUTPUT = "output"
    OPTIONS = "options"
    PARTITION = "partition"
    STICKER = "sticker"
    SUBSCRIPTION = "subscription"
    MESSAGE = "message"
    NEIGHBOR = "neighbor"
    MOUNT = "mount"


@dataclass(frozen=True, order=True)
class Version:
    """Protocol version announced in the connection greeting."""

    major: int
    minor: int
    patch: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class QueuePlace:
    """Place of a song in the play queue.

    Attributes:
        id: Song ID, stable while the song stays queued.
        pos: Zero-based position in the queue.
        prio: Playback priority, 0 when the server did not send one.
    """

    id: int = 0
    pos: int = 0
    prio: int = 0


@dataclass(frozen=True)
class Range:
    """Portion of a song to play, in seconds.

    An end of None means "until the end of the song".
    """

    start: int = 0
    end: int | None = None

    def __str__(self) -> str:
        # Form expected by the rangeid command
        end = "" if self.end is None else str(self.end)
        return f"{self.start}:{end}"


@dataclass(frozen=True)
class Song:
    """A song, either from the database or queued for playback.

    Attributes:
        file: Path to the audio file in MPD's music directory, or a URL.
        name: Stream name, for radio streams.
        title: Title tag.
        last_mod: Last modification time of the file.
        duration: Duration in whole seconds.
        place: Place in the queue, if the song is queued.
        range: Range to play, if one was set on the queued song.
        tags: Every other tag the server sent (Artist, Album, ...), read-only.
            Not part of the hash.
    """

    file: str = ""
    name: str | None = None
    title: str | None = None
    last_mod: datetime | None = None
    duration: int | None = None
    place: QueuePlace | None = None
    range: Range | None = None
    tags: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # Read-only view over a private copy
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @property
    def display_title(self) -> str:
        """Return title for display, with stream name and filename fallback."""
        if self.title:
            return self.title
        if self.name:
            return self.name
        # Extract filename without path and extension
        name = self.file.rsplit("/", 1)[-1]
        if "." in name:
            name = name.rsplit(".", 1)[0]
        return name

    @property
    def artist(self) -> str:
        """Return the artist tag, falling back to AlbumArtist."""
        return self.tags.get("Artist") or self.tags.get("AlbumArtist") or ""


@dataclass(frozen=True)
class AudioFormat:
    """Audio format of the current playback.

    Attributes:
        rate: Sample rate in Hz.
        bits: Sample resolution in bits, 0 for floating point samples.
        chans: Number of channels.
    """

    rate: int
    bits: int
    chans: int


@dataclass(frozen=True)
class Status:
    """MPD player status.

    Attributes:
        volume: Volume level (0-100), or -1 if the server has no mixer.
        repeat: Repeat mode enabled.
        random: Random/shuffle mode enabled.
        single: Single mode (stop after current track).
        consume: Consume mode (remove tracks after playing).
        queue_version: Queue version, bumped on every queue change.
        queue_len: Number of songs in the queue.
        state: Playback state.
        song: Queue place of the current song.
        nextsong: Queue place of the next song.
        time: Elapsed and total time of the current song, in seconds.
        elapsed: Elapsed time in milliseconds.
        duration: Duration of the current song in milliseconds.
        bitrate: Current bitrate in kbps.
        crossfade: Crossfade in seconds.
        mixrampdb: MixRamp threshold in dB.
        mixrampdelay: MixRamp delay in milliseconds.
        audio: Current audio format.
        updating_db: Job ID of a running database update.
        error: Last player error, cleared by the clearerror command.
        replaygain: Replay gain mode.
    """

    volume: int = -1
    repeat: bool = False
    random: bool = False
    single: bool = False
    consume: bool = False
    queue_version: int = 0
    queue_len: int = 0
    state: State = State.STOP
    song: QueuePlace | None = None
    nextsong: QueuePlace | None = None
    time: tuple[int, int] | None = None
    elapsed: int | None = None
    duration: int | None = None
    bitrate: int | None = None
    crossfade: int | None = None
    mixrampdb: float = 0.0
    mixrampdelay: int | None = None
    audio: AudioFormat | None = None
    updating_db: int | None = None
    error: str | None = None
    replaygain: ReplayGain | None = None

    @property
    def is_playing(self) -> bool:
        """Return True if currently playing."""
        return self.state is State.PLAY

    @property
    def is_paused(self) -> bool:
        """Return True if paused."""
        return self.state is State.PAUSE

    @property
    def is_stopped(self) -> bool:
        """Return True if stopped."""
        return self.state is State.STOP

    @property
    def progress(self) -> float:
        """Return playback progress as a fraction (0.0 to 1.0)."""
        if not self.duration or self.elapsed is None:
            return 0.0
        return min(1.0, self.elapsed / self.duration)


@dataclass(frozen=True)
class Output:
    """Audio output."""

    id: int
    name: str
    enabled: bool
    plugin: str = ""


@dataclass(frozen=True)
class Stats:
    """Database and uptime statistics.

    Attributes:
        artists: Number of distinct artists.
        albums: Number of distinct albums.
        songs: Number of songs.
        uptime: Daemon uptime in seconds.
        playtime: Time spent playing, in seconds.
        db_playtime: Sum of all song durations, in seconds.
        db_update: Time of the last database update.
    """

    artists: int
    albums: int
    songs: int
    uptime: int
    playtime: int
    db_playtime: int
    db_update: datetime


@dataclass(frozen=True)
class Playlist:
    """Stored playlist."""

    name: str
    last_mod: datetime | None = None


@dataclass(frozen=True)
class Plugin:
    """Decoder plugin with the suffixes and MIME types it handles."""

    name: str
    suffixes: tuple[str, ...] = ()
    mime_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class Mount:
    """Storage mounted into the music directory."""

    name: str
    storage: str


@dataclass(frozen=True)
class Neighbor:
    """Storage discovered on the local network."""

    name: str
    storage: str


@dataclass(frozen=True)
class Channel:
    """Client-to-client message channel."""

    name: str


@dataclass(frozen=True)
class Message:
    """Message received on a subscribed channel."""

    channel: str
    message: str
