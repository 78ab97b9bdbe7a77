"""Tests for MPD protocol parsing."""

import pytest

from mpdlink.api.mpd.protocol import (
    AckCode,
    MpdError,
    MpdProtocolError,
    escape_arg,
    format_command,
    is_ack,
    is_ok,
    parse_ack,
    parse_line,
    read_pairs,
    read_response,
)
from mpdlink.api.mpd.types import Range, Subsystem


class TestParseLine:
    """Tests for parse_line function."""

    def test_simple_pair(self) -> None:
        """Test splitting a key-value line."""
        assert parse_line("volume: 75") == ("volume", "75")

    def test_colon_in_value(self) -> None:
        """Test that only the first separator splits."""
        assert parse_line("file: /path/to/file: with colons.mp3") == (
            "file",
            "/path/to/file: with colons.mp3",
        )

    def test_empty_value(self) -> None:
        """Test a key with an empty value."""
        assert parse_line("mount: ") == ("mount", "")

    def test_keys_keep_case(self) -> None:
        """Test that keys are not normalized."""
        assert parse_line("Last-Modified: 2024-01-01T00:00:00Z")[0] == "Last-Modified"

    def test_missing_separator(self) -> None:
        """Test that a line without separator is a protocol error."""
        with pytest.raises(MpdProtocolError):
            parse_line("garbage")

    def test_colon_without_space(self) -> None:
        """Test that a bare colon is not a separator."""
        with pytest.raises(MpdProtocolError):
            parse_line("audio:44100:16:2")


class TestParseAck:
    """Tests for parse_ack function."""

    def test_parse_ack(self) -> None:
        """Test decoding a well-formed ACK line."""
        error = parse_ack("ACK [5@0] {play} song doesn't exist")
        assert error.code == 5
        assert error.command_index == 0
        assert error.current_command == "play"
        assert error.message == "song doesn't exist"
        assert error.ack_code is AckCode.UNKNOWN

    def test_command_list_index(self) -> None:
        """Test the command index of a failing command list entry."""
        error = parse_ack("ACK [50@2] {albumart} No file exists")
        assert error.command_index == 2
        assert error.ack_code is AckCode.NO_EXIST

    def test_empty_command(self) -> None:
        """Test an ACK without command name."""
        error = parse_ack("ACK [4@0] {} you don't have permission")
        assert error.current_command == ""
        assert error.message == "you don't have permission"

    def test_empty_message(self) -> None:
        """Test an ACK without message."""
        assert parse_ack("ACK [2@0] {setvol}").message == ""

    def test_unknown_code(self) -> None:
        """Test that unknown codes are kept as plain integers."""
        error = parse_ack("ACK [99@0] {foo} bar")
        assert error.code == 99
        assert error.ack_code is None

    def test_error_string(self) -> None:
        """Test the error description."""
        assert str(parse_ack("ACK [5@0] {play} nope")) == "MPD error 5 in play: nope"

    @pytest.mark.parametrize(
        "line",
        [
            "ACK 5@0 {play} missing brackets",
            "ACK [x@0] {play} bad code",
            "ACK [5@y] {play} bad index",
            "ACK [5] {play} no index",
            "ACK [5@0] play missing braces",
        ],
    )
    def test_malformed_ack(self, line: str) -> None:
        """Test that malformed ACK lines are protocol errors, not server errors."""
        with pytest.raises(MpdProtocolError):
            parse_ack(line)


class TestTerminators:
    """Tests for terminator detection."""

    def test_ok(self) -> None:
        """Test OK detection."""
        assert is_ok("OK")
        assert not is_ok("OK MPD 0.23.5")
        assert not is_ok("OKAY: 1")

    def test_ack(self) -> None:
        """Test ACK detection."""
        assert is_ack("ACK [5@0] {play} x")
        assert not is_ack("ACKNOWLEDGED: yes")


class TestReadPairs:
    """Tests for reading one response from a transport."""

    @pytest.mark.asyncio
    async def test_read_response(self, make_transport) -> None:
        """Test reading pairs up to OK."""
        transport, _ = make_transport(b"volume: 75\nstate: play\nOK\n")
        assert await read_response(transport) == [("volume", "75"), ("state", "play")]

    @pytest.mark.asyncio
    async def test_empty_response(self, make_transport) -> None:
        """Test a bare OK."""
        transport, _ = make_transport(b"OK\n")
        assert await read_response(transport) == []

    @pytest.mark.asyncio
    async def test_repeated_keys_kept(self, make_transport) -> None:
        """Test that duplicate keys survive in order."""
        transport, _ = make_transport(b"Id: 1\nPos: 0\nId: 2\nPos: 1\nOK\n")
        pairs = await read_response(transport)
        assert pairs == [("Id", "1"), ("Pos", "0"), ("Id", "2"), ("Pos", "1")]

    @pytest.mark.asyncio
    async def test_lines_split_across_reads(self, make_transport) -> None:
        """Test that partial reads are joined into lines."""
        transport, _ = make_transport(b"vol", b"ume: 7", b"5\nO", b"K\n")
        assert await read_response(transport) == [("volume", "75")]

    @pytest.mark.asyncio
    async def test_ack_raises(self, make_transport) -> None:
        """Test that an ACK terminator raises the decoded error."""
        transport, _ = make_transport(b"ACK [50@0] {listplaylist} No such playlist\n")
        with pytest.raises(MpdError) as excinfo:
            await read_response(transport)
        assert excinfo.value.code == 50
        assert excinfo.value.current_command == "listplaylist"

    @pytest.mark.asyncio
    async def test_pairs_then_ack(self, make_transport) -> None:
        """Test that pairs before the ACK are yielded first."""
        transport, _ = make_transport(b"file: a.mp3\nACK [5@0] {x} y\n")
        seen = []
        with pytest.raises(MpdError):
            async for pair in read_pairs(transport):
                seen.append(pair)
        assert seen == [("file", "a.mp3")]

    @pytest.mark.asyncio
    async def test_malformed_line(self, make_transport) -> None:
        """Test that a malformed line aborts the response."""
        transport, _ = make_transport(b"volume: 75\nnonsense\nOK\n")
        with pytest.raises(MpdProtocolError):
            await read_response(transport)

    @pytest.mark.asyncio
    async def test_missing_terminator(self, make_transport) -> None:
        """Test that end of stream before OK is a protocol error."""
        transport, _ = make_transport(b"volume: 75\nstate: play\n")
        with pytest.raises(MpdProtocolError, match="terminator"):
            await read_response(transport)

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self, make_transport) -> None:
        """Test that a trailing fragment without newline is not accepted as OK."""
        transport, _ = make_transport(b"volume: 75\nOK")
        with pytest.raises(MpdProtocolError):
            await read_response(transport)

    @pytest.mark.asyncio
    async def test_stops_at_terminator(self, make_transport) -> None:
        """Test that nothing after the terminator is consumed."""
        transport, reader = make_transport(b"volume: 75\nOK\nstate: stop\nOK\n")
        assert await read_response(transport) == [("volume", "75")]
        assert reader.unread == b"state: stop\nOK\n"
        assert await read_response(transport) == [("state", "stop")]


class TestEscapeArg:
    """Tests for escape_arg function."""

    def test_simple_arg(self) -> None:
        """Test that simple args are not modified."""
        assert escape_arg("simple") == "simple"
        assert escape_arg("path/to/file") == "path/to/file"

    def test_empty_arg(self) -> None:
        """Test empty arg is quoted."""
        assert escape_arg("") == '""'

    def test_arg_with_spaces(self) -> None:
        """Test arg with spaces is quoted."""
        assert escape_arg("with spaces") == '"with spaces"'

    def test_arg_with_quotes(self) -> None:
        """Test arg with quotes is escaped."""
        assert escape_arg('say "hello"') == '"say \\"hello\\""'

    def test_arg_with_single_quote(self) -> None:
        """Test arg with a single quote is quoted."""
        assert escape_arg("don't") == '"don\'t"'

    def test_arg_with_backslash(self) -> None:
        """Test arg with backslash is escaped."""
        assert escape_arg("path\\to\\file") == '"path\\\\to\\\\file"'

    def test_arg_with_newline(self) -> None:
        """Test that a line break cannot be smuggled into a command."""
        with pytest.raises(ValueError):
            escape_arg("a\nstatus")


class TestFormatCommand:
    """Tests for format_command function."""

    def test_command_without_args(self) -> None:
        """Test command without arguments."""
        assert format_command("status") == "status"

    def test_command_with_simple_arg(self) -> None:
        """Test command with simple argument."""
        assert format_command("listplaylistinfo", "favourites") == "listplaylistinfo favourites"

    def test_command_with_quoted_arg(self) -> None:
        """Test command with argument that needs quoting."""
        assert format_command("listplaylistinfo", "Late Night") == 'listplaylistinfo "Late Night"'

    def test_non_string_args(self) -> None:
        """Test that numbers, flags, ranges and subsystems are rendered."""
        assert format_command("play", 3) == "play 3"
        assert format_command("pause", True) == "pause 1"
        assert format_command("pause", False) == "pause 0"
        assert format_command("playlistinfo", Range(2, 5)) == "playlistinfo 2:5"
        assert format_command("playlistinfo", Range(2)) == "playlistinfo 2:"
        assert format_command("idle", Subsystem.PLAYER, Subsystem.MIXER) == "idle player mixer"

    def test_float_args_fixed_point(self) -> None:
        """Test that floats never go out in exponent notation."""
        assert format_command("seekcur", 0.00001) == "seekcur 0.00001"
        assert format_command("seekcur", 1e-7) == "seekcur 0"
        assert format_command("seekcur", 3.0) == "seekcur 3"
        assert format_command("seekcur", 42.5) == "seekcur 42.5"
        assert format_command("mixrampdb", -17.25) == "mixrampdb -17.25"
        assert format_command("seekcur", 1e16) == "seekcur 10000000000000000"
