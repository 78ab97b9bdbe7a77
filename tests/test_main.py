"""Tests for the command line entry point."""

import sys
from unittest.mock import patch

import pytest

from mpdlink.__main__ import build_parser, format_entity, main, print_result, resolve_server, run
from mpdlink.api.mpd import MpdConnectionError, Output, Song, Subsystem
from mpdlink.core.config import ConfigManager
from mpdlink.models.profile import ServerProfile


@pytest.fixture
def config() -> ConfigManager:
    """Return a fresh ConfigManager for each test."""
    config = ConfigManager("mpdlinkTest", "TestMain")
    config.clear()
    return config


class TestBuildParser:
    """Tests for argument parsing."""

    def test_query(self) -> None:
        """Test a query subcommand with connection flags."""
        args = build_parser().parse_args(["--host", "music.local", "--port", "6601", "status"])
        assert args.command == "status"
        assert args.host == "music.local"
        assert args.port == 6601
        assert args.password is None

    def test_idle_subsystems(self) -> None:
        """Test that idle subsystems are converted."""
        args = build_parser().parse_args(["idle", "player", "mixer"])
        assert args.subsystems == [Subsystem.PLAYER, Subsystem.MIXER]

    def test_idle_unknown_subsystem(self) -> None:
        """Test that unknown subsystems are rejected."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["idle", "teleporter"])

    def test_command_required(self) -> None:
        """Test that a subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestResolveServer:
    """Tests for picking the server to talk to."""

    def test_from_settings(self, config: ConfigManager) -> None:
        """Test that settings fill in missing flags."""
        config.set_mpd_host("music.local")
        config.set_mpd_password("pw")
        args = build_parser().parse_args(["status"])
        assert resolve_server(args, config) == ("music.local", 6600, "pw")

    def test_flags_win(self, config: ConfigManager) -> None:
        """Test that flags override everything else."""
        config.set_mpd_password("pw")
        args = build_parser().parse_args(["--host", "h", "--port", "1", "--password", "", "status"])
        assert resolve_server(args, config) == ("h", 1, "")

    def test_profile(self, config: ConfigManager) -> None:
        """Test connecting through a saved profile."""
        config.add_server_profile(ServerProfile(id="study", name="Study", host="10.0.0.2", port=6601))
        args = build_parser().parse_args(["--server", "study", "status"])
        assert resolve_server(args, config) == ("10.0.0.2", 6601, "")

    def test_unknown_profile(self, config: ConfigManager) -> None:
        """Test that a missing profile is reported."""
        args = build_parser().parse_args(["--server", "nope", "status"])
        with pytest.raises(MpdConnectionError, match="nope"):
            resolve_server(args, config)

    def test_profile_remembered(self, config: ConfigManager) -> None:
        """Test that the last profile used is the default for later runs."""
        config.set_mpd_host("music.local")
        config.add_server_profile(ServerProfile(id="study", name="Study", host="10.0.0.2", port=6601))
        resolve_server(build_parser().parse_args(["--server", "study", "status"]), config)
        assert config.get_last_server_id() == "study"

        args = build_parser().parse_args(["status"])
        assert resolve_server(args, config) == ("10.0.0.2", 6601, "")

        args = build_parser().parse_args(["--host", "other", "status"])
        assert resolve_server(args, config) == ("other", 6601, "")

    def test_removed_last_profile(self, config: ConfigManager) -> None:
        """Test that a last profile that no longer exists falls back to settings."""
        config.set_mpd_host("music.local")
        config.set_last_server_id("gone")
        args = build_parser().parse_args(["status"])
        assert resolve_server(args, config) == ("music.local", 6600, "")

    def test_unknown_profile_not_remembered(self, config: ConfigManager) -> None:
        """Test that a missing profile does not replace the last one."""
        config.set_last_server_id("study")
        args = build_parser().parse_args(["--server", "nope", "status"])
        with pytest.raises(MpdConnectionError):
            resolve_server(args, config)
        assert config.get_last_server_id() == "study"


class TestOutput:
    """Tests for printing results."""

    def test_format_entity(self) -> None:
        """Test that fields print one per line, skipping None."""
        text = format_entity(Song(file="a.mp3", title="A", tags={"Artist": "B"}))
        assert text.splitlines() == ["file: a.mp3", "title: A", "Artist: B"]

    def test_print_list(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that records are separated by blank lines."""
        print_result([Output(0, "A", True), Output(1, "B", False)])
        out = capsys.readouterr().out
        assert "\n\nid: 1\n" in out

    def test_print_changed(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that idle results print like the server sends them."""
        print_result(frozenset({Subsystem.PLAYER, Subsystem.MIXER}))
        assert capsys.readouterr().out == "changed: mixer\nchanged: player\n"


class TestRun:
    """Tests for running commands against a server."""

    @pytest.mark.asyncio
    async def test_run_query(self, config: ConfigManager, mock_connection) -> None:
        """Test that a query returns its decoded result."""
        reader, writer = mock_connection([b"OK MPD 0.23.5\n", b"channel: chat\nOK\n"])
        args = build_parser().parse_args(["channels"])

        with patch("asyncio.open_connection", return_value=(reader, writer)):
            result = await run(args, config)
        assert [channel.name for channel in result] == ["chat"]  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_run_idle(self, config: ConfigManager, mock_connection) -> None:
        """Test waiting for a change."""
        reader, writer = mock_connection([b"OK MPD 0.23.5\n", b"changed: mixer\nOK\n"])
        args = build_parser().parse_args(["idle", "mixer"])

        with patch("asyncio.open_connection", return_value=(reader, writer)):
            assert await run(args, config) == frozenset({Subsystem.MIXER})
        assert writer.lines == ["idle mixer"]

    def test_main_connection_error(self) -> None:
        """Test that connection failures give exit code 1."""
        with (
            patch.object(sys, "argv", ["mpdlink", "--host", "localhost", "status"]),
            patch("asyncio.open_connection", side_effect=OSError("Connection refused")),
        ):
            assert main() == 1
