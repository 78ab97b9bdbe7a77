"""Decoders turning response pairs into MPD entities.

Every response is a flat sequence of "key: value" pairs, so records are
told apart only by which keys they use. Two decoding shapes cover the
protocol:

- From-Map: records whose keys appear at most once (outputs, stats,
  mounts, ...) are collected into a FieldMap and fields are pulled out
  by name, failing with MpdMissingFieldError or MpdParseError.
- Sequential: records whose keys repeat or interleave (songs, status)
  are decoded pair by pair with a dispatch on the key.

Multi-record responses are split with split_records on the key that
opens each record. All decoders are plain functions of the pairs, so the
same recorded response always decodes to equal entities.
"""

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import TypeVar

from mpdlink.api.mpd.protocol import (
    MpdMissingFieldError,
    MpdParseError,
    MpdProtocolError,
    Pair,
)
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

logger = logging.getLogger(__name__)

T = TypeVar("T")
Decoder = Callable[[Sequence[Pair]], T]

_INT_PATTERN = re.compile(r"-?\d+")
_SECONDS_PATTERN = re.compile(r"\d+(?:\.\d*)?")
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# -----------------------------------------------------------------------------
# Value conversions
# -----------------------------------------------------------------------------


def to_int(value: str) -> int:
    """Parse a plain decimal integer, rejecting Python-only spellings."""
    if not _INT_PATTERN.fullmatch(value):
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


def to_flag(value: str) -> bool:
    """Parse a 0/1 flag; anything but "1" is off."""
    return value == "1"


def to_time(value: str) -> datetime:
    """Parse an ISO 8601 UTC timestamp as sent in Last-Modified."""
    return datetime.strptime(value, _TIME_FORMAT).replace(tzinfo=UTC)


def to_millis(value: str) -> int:
    """Convert fractional seconds to whole milliseconds, truncating."""
    return int(float(value) * 1000)


def to_timestamp(value: str) -> datetime:
    """Convert unix seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(to_int(value), UTC)


def convert(key: str, value: str, conv: Callable[[str], T]) -> T:
    """Apply a conversion, reporting failures with the offending key and value."""
    try:
        return conv(value)
    except (ValueError, OverflowError) as e:
        raise MpdParseError(key, value, str(e)) from e


def parse_range(value: str) -> Range:
    """Parse a song range in "start-end" form.

    Either side may be empty: an empty start means 0 and an empty end
    means the range runs to the end of the song. Newer servers send
    fractional seconds, which are truncated.
    """
    start, _, end = value.partition("-")
    return Range(start=_range_seconds(start) or 0, end=_range_seconds(end))


def _range_seconds(value: str) -> int | None:
    if not _SECONDS_PATTERN.fullmatch(value):
        return None
    return int(float(value))


def parse_audio_format(value: str) -> AudioFormat:
    """Parse an audio format in "rate:bits:channels" form.

    Floating point samples are announced as "f" and stored as 0 bits.
    """
    parts = value.split(":")
    if len(parts) < 3:
        raise ValueError(f"expected rate:bits:channels, got {value!r}")
    rate, bits, chans = parts[:3]
    return AudioFormat(
        rate=to_int(rate),
        bits=0 if bits == "f" else to_int(bits),
        chans=to_int(chans),
    )


def parse_version(value: str) -> Version:
    """Parse a protocol version such as "0.23.5".

    Raises:
        MpdParseError: If the version is not dotted integers.
    """
    parts = value.split(".")
    if not 2 <= len(parts) <= 3:
        raise MpdParseError("version", value, "expected major.minor[.patch]")
    numbers = [convert("version", part, to_int) for part in parts]
    return Version(*numbers)


# -----------------------------------------------------------------------------
# From-Map decoding
# -----------------------------------------------------------------------------


class FieldMap(Mapping[str, str]):
    """Record fields collected by key; later duplicates replace earlier ones."""

    def __init__(self, pairs: Iterable[Pair]) -> None:
        self._data = dict(pairs)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def require(self, key: str, conv: Callable[[str], T] = str) -> T:  # type: ignore[assignment]
        """Return a converted field that must be present.

        Raises:
            MpdMissingFieldError: If the key is absent.
            MpdParseError: If the value cannot be converted.
        """
        if key not in self._data:
            raise MpdMissingFieldError(key)
        return convert(key, self._data[key], conv)

    def optional(self, key: str, conv: Callable[[str], T] = str) -> T | None:  # type: ignore[assignment]
        """Return a converted field, or None if it is absent.

        Raises:
            MpdParseError: If the value is present but cannot be converted.
        """
        if key not in self._data:
            return None
        return convert(key, self._data[key], conv)


def from_map(build: Callable[[FieldMap], T]) -> Decoder[T]:
    """Turn a FieldMap builder into a decoder for a single record."""

    def decode(pairs: Sequence[Pair]) -> T:
        return build(FieldMap(pairs))

    return decode


def split_records(pairs: Iterable[Pair], first_key: str) -> list[list[Pair]]:
    """Split a multi-record response on the key that opens each record.

    Raises:
        MpdProtocolError: If pairs appear before the first opening key.
    """
    records: list[list[Pair]] = []
    for key, value in pairs:
        if key == first_key:
            records.append([(key, value)])
        elif records:
            records[-1].append((key, value))
        else:
            raise MpdProtocolError(f"Expected {first_key!r} to open a record, got {key!r}")
    return records


def records(first_key: str, decoder: Decoder[T]) -> Decoder[list[T]]:
    """Build a decoder for a list of records opened by first_key."""

    def decode(pairs: Sequence[Pair]) -> list[T]:
        return [decoder(record) for record in split_records(pairs, first_key)]

    return decode


def build_output(fields: FieldMap) -> Output:
    return Output(
        id=fields.require("outputid", to_int),
        name=fields.require("outputname"),
        enabled=fields.require("outputenabled", to_flag),
        plugin=fields.get("plugin", ""),
    )


def build_stats(fields: FieldMap) -> Stats:
    return Stats(
        artists=fields.require("artists", to_int),
        albums=fields.require("albums", to_int),
        songs=fields.require("songs", to_int),
        uptime=fields.require("uptime", to_int),
        playtime=fields.require("playtime", to_int),
        db_playtime=fields.require("db_playtime", to_int),
        db_update=fields.require("db_update", to_timestamp),
    )


def build_playlist(fields: FieldMap) -> Playlist:
    return Playlist(
        name=fields.require("playlist"),
        last_mod=fields.optional("Last-Modified", to_time),
    )


def build_mount(fields: FieldMap) -> Mount:
    return Mount(name=fields.require("mount"), storage=fields.require("storage"))


def build_neighbor(fields: FieldMap) -> Neighbor:
    return Neighbor(name=fields.require("name"), storage=fields.require("neighbor"))


def build_channel(fields: FieldMap) -> Channel:
    return Channel(name=fields.require("channel"))


def build_message(fields: FieldMap) -> Message:
    return Message(channel=fields.require("channel"), message=fields.require("message"))


def build_replay_gain(fields: FieldMap) -> ReplayGain:
    return fields.require("replay_gain_mode", ReplayGain)


def build_update_job(fields: FieldMap) -> int:
    return fields.require("updating_db", to_int)


parse_output = from_map(build_output)
parse_outputs = records("outputid", parse_output)
parse_stats = from_map(build_stats)
parse_playlists = records("playlist", from_map(build_playlist))
parse_mounts = records("mount", from_map(build_mount))
parse_neighbors = records("neighbor", from_map(build_neighbor))
parse_channels = records("channel", from_map(build_channel))
parse_messages = records("channel", from_map(build_message))
parse_replay_gain = from_map(build_replay_gain)
parse_update_job = from_map(build_update_job)


def parse_plugin(pairs: Sequence[Pair]) -> Plugin:
    """Decode one decoder plugin; suffix and mime_type repeat per plugin."""
    fields = FieldMap(pairs)
    suffixes = tuple(value for key, value in pairs if key == "suffix")
    mime_types = tuple(value for key, value in pairs if key == "mime_type")
    return Plugin(name=fields.require("plugin"), suffixes=suffixes, mime_types=mime_types)


parse_plugins = records("plugin", parse_plugin)


# -----------------------------------------------------------------------------
# Sequential decoding
# -----------------------------------------------------------------------------


def _place(place: QueuePlace | None, **changes: int) -> QueuePlace:
    """Merge queue placement sub-fields into one value, whatever their order."""
    return replace(place or QueuePlace(), **changes)


def parse_song(pairs: Iterable[Pair]) -> Song:
    """Decode one song.

    Keys this client does not model are kept in Song.tags, so tag types
    added by newer servers survive decoding.
    """
    fields: dict[str, object] = {}
    tags: dict[str, str] = {}
    place: QueuePlace | None = None

    for key, value in pairs:
        if key == "file":
            fields["file"] = value
        elif key == "Title":
            fields["title"] = value
        elif key == "Name":
            fields["name"] = value
        elif key == "Last-Modified":
            fields["last_mod"] = convert(key, value, to_time)
        elif key == "Time":
            fields["duration"] = convert(key, value, to_int)
        elif key == "Range":
            fields["range"] = parse_range(value)
        elif key == "Id":
            place = _place(place, id=convert(key, value, to_int))
        elif key == "Pos":
            place = _place(place, pos=convert(key, value, to_int))
        elif key == "Prio":
            place = _place(place, prio=convert(key, value, to_int))
        else:
            tags[key] = value

    return Song(place=place, tags=tags, **fields)  # type: ignore[arg-type]


def parse_song_opt(pairs: Sequence[Pair]) -> Song | None:
    """Decode a song, or None for an empty response (nothing current)."""
    if not pairs:
        return None
    return parse_song(pairs)


def parse_songs(pairs: Sequence[Pair]) -> list[Song]:
    """Decode a song listing, one record per "file" key."""
    return [parse_song(record) for record in split_records(pairs, "file")]


_STATUS_FLAGS = frozenset({"repeat", "random", "single", "consume"})

# Status keys that map onto a single field through one conversion
_STATUS_CONVERSIONS: dict[str, tuple[str, Callable[[str], object]]] = {
    "duration": ("duration", to_millis),
    "bitrate": ("bitrate", to_int),
    "xfade": ("crossfade", to_int),
    "mixrampdb": ("mixrampdb", float),
    "mixrampdelay": ("mixrampdelay", to_millis),
    "audio": ("audio", parse_audio_format),
    "updating_db": ("updating_db", to_int),
    "replay_gain_mode": ("replaygain", ReplayGain),
}


def _parse_time_pair(key: str, value: str) -> tuple[int, int] | None:
    elapsed, sep, total = value.partition(":")
    if not sep:
        convert(key, elapsed, to_int)
        return None
    return convert(key, elapsed, to_int), convert(key, total, to_int)


def _parse_elapsed(value: str) -> int | None:
    # Formatting of elapsed differs between server versions; a value that
    # does not parse is dropped instead of failing the whole status.
    try:
        return to_millis(value)
    except (ValueError, OverflowError):
        logger.debug("Ignoring unparsable elapsed time %r", value)
        return None


def parse_status(pairs: Iterable[Pair]) -> Status:
    """Decode the status response.

    Unknown keys are skipped: the status record is fixed, unlike songs,
    and new server fields carry nothing this client could represent.
    """
    fields: dict[str, object] = {}
    song: QueuePlace | None = None
    nextsong: QueuePlace | None = None

    for key, value in pairs:
        if key == "volume":
            fields["volume"] = convert(key, value, to_int)
        elif key in _STATUS_FLAGS:
            fields[key] = to_flag(value)
        elif key == "playlist":
            fields["queue_version"] = convert(key, value, to_int)
        elif key == "playlistlength":
            fields["queue_len"] = convert(key, value, to_int)
        elif key == "state":
            fields["state"] = convert(key, value, State)
        elif key == "songid":
            song = _place(song, id=convert(key, value, to_int))
        elif key == "song":
            song = _place(song, pos=convert(key, value, to_int))
        elif key == "nextsongid":
            nextsong = _place(nextsong, id=convert(key, value, to_int))
        elif key == "nextsong":
            nextsong = _place(nextsong, pos=convert(key, value, to_int))
        elif key == "time":
            fields["time"] = _parse_time_pair(key, value)
        elif key == "elapsed":
            fields["elapsed"] = _parse_elapsed(value)
        elif key in _STATUS_CONVERSIONS:
            field_name, conv = _STATUS_CONVERSIONS[key]
            fields[field_name] = convert(key, value, conv)
        elif key == "error":
            fields["error"] = value

    return Status(song=song, nextsong=nextsong, **fields)  # type: ignore[arg-type]


def parse_changed(pairs: Iterable[Pair]) -> frozenset[Subsystem]:
    """Decode the subsystem list returned by idle.

    Raises:
        MpdProtocolError: If a line other than "changed" appears.
        MpdParseError: If a subsystem name is not known.
    """
    changed: set[Subsystem] = set()
    for key, value in pairs:
        if key != "changed":
            raise MpdProtocolError(f"Unexpected key {key!r} in idle response")
        changed.add(convert(key, value, Subsystem))
    return frozenset(changed)
