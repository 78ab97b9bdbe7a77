"""Configuration manager using QSettings for persistent storage."""

import logging
from typing import cast

from PySide6.QtCore import QSettings

from mpdlink.models.profile import DEFAULT_PORT, ServerProfile

logger = logging.getLogger(__name__)

# Settings keys
_KEY_SERVERS = "servers"
_KEY_LAST_SERVER = "last_server"

# MPD connection
_KEY_MPD_HOST = "mpd/host"
_KEY_MPD_PORT = "mpd/port"
_KEY_MPD_PASSWORD = "mpd/password"
_KEY_MPD_CONNECT_TIMEOUT = "mpd/connect_timeout"
_KEY_MPD_COMMAND_TIMEOUT = "mpd/command_timeout"

DEFAULT_HOST = "localhost"
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_COMMAND_TIMEOUT = 10.0


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\mpdlink\\mpdlink
    - macOS: ~/Library/Preferences/com.mpdlink.mpdlink.plist
    - Linux: ~/.config/mpdlink/mpdlink.conf

    Example:
        config = ConfigManager()
        client = MpdClient(config.get_mpd_host(), config.get_mpd_port())
    """

    def __init__(self, organization: str = "mpdlink", application: str = "mpdlink") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Server profiles -------------------------------------------------------

    def get_server_profiles(self) -> list[ServerProfile]:
        """Load saved server profiles.

        Returns:
            List of ServerProfile objects, or empty list if none saved.
        """
        raw_data = self._settings.value(_KEY_SERVERS, [], list)
        profiles: list[ServerProfile] = []

        if not isinstance(raw_data, list):
            return profiles

        data = cast(list[object], raw_data)
        for raw_item in data:
            if not isinstance(raw_item, dict):
                continue
            item = cast(dict[str, object], raw_item)
            try:
                port_val = item.get("port", DEFAULT_PORT)
                profiles.append(
                    ServerProfile(
                        id=str(item.get("id") or ""),
                        name=str(item.get("name") or ""),
                        host=str(item.get("host") or ""),
                        port=int(port_val) if isinstance(port_val, int) else DEFAULT_PORT,
                        password=str(item.get("password") or ""),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid server profile entry: %s", e)
                continue

        return profiles

    def save_server_profiles(self, profiles: list[ServerProfile]) -> None:
        """Persist server profiles.

        Args:
            profiles: List of ServerProfile objects to save.
        """
        data = [
            {
                "id": p.id,
                "name": p.name,
                "host": p.host,
                "port": p.port,
                "password": p.password,
            }
            for p in profiles
        ]
        self._settings.setValue(_KEY_SERVERS, data)

    def add_server_profile(self, profile: ServerProfile) -> None:
        """Add a server profile (replacing if ID exists).

        Args:
            profile: ServerProfile to add.
        """
        profiles = [p for p in self.get_server_profiles() if p.id != profile.id]
        profiles.append(profile)
        self.save_server_profiles(profiles)

    def remove_server_profile(self, profile_id: str) -> bool:
        """Remove a server profile by ID.

        Args:
            profile_id: ID of the profile to remove.

        Returns:
            True if profile was removed, False if not found.
        """
        profiles = self.get_server_profiles()
        original_count = len(profiles)
        profiles = [p for p in profiles if p.id != profile_id]

        if len(profiles) < original_count:
            self.save_server_profiles(profiles)
            return True
        return False

    def get_profile(self, profile_id: str) -> ServerProfile | None:
        """Get a server profile by ID.

        Args:
            profile_id: ID of the profile to find.

        Returns:
            ServerProfile if found, else None.
        """
        for profile in self.get_server_profiles():
            if profile.id == profile_id:
                return profile
        return None

    def get_last_server_id(self) -> str | None:
        """Get the last connected server ID.

        Returns:
            Server ID string, or None if no last server.
        """
        value = self._settings.value(_KEY_LAST_SERVER, None, str)
        return str(value) if value else None

    def set_last_server_id(self, server_id: str) -> None:
        """Set the last connected server ID.

        Args:
            server_id: Server ID to save.
        """
        self._settings.setValue(_KEY_LAST_SERVER, server_id)

    # -- MPD settings ----------------------------------------------------------

    def get_mpd_host(self) -> str:
        """Return the MPD host.

        Returns:
            Host string (default "localhost").
        """
        value = self._settings.value(_KEY_MPD_HOST, DEFAULT_HOST, str)
        return str(value) if value else DEFAULT_HOST

    def set_mpd_host(self, host: str) -> None:
        """Set the MPD host.

        Args:
            host: Hostname or IP.
        """
        self._settings.setValue(_KEY_MPD_HOST, host)

    def get_mpd_port(self) -> int:
        """Return the MPD port.

        Returns:
            Port number (default 6600).
        """
        value = self._settings.value(_KEY_MPD_PORT, DEFAULT_PORT, int)
        return max(1, min(65535, int(value)))  # type: ignore[arg-type]

    def set_mpd_port(self, port: int) -> None:
        """Set the MPD port.

        Args:
            port: Port number (1-65535).
        """
        self._settings.setValue(_KEY_MPD_PORT, max(1, min(65535, port)))

    def get_mpd_password(self) -> str:
        """Return the MPD password, or empty string for none."""
        value = self._settings.value(_KEY_MPD_PASSWORD, "", str)
        return str(value) if value else ""

    def set_mpd_password(self, password: str) -> None:
        """Set the MPD password; empty string disables authentication."""
        self._settings.setValue(_KEY_MPD_PASSWORD, password)

    def get_connect_timeout(self) -> float:
        """Return the connect timeout in seconds.

        Returns:
            Timeout in seconds (default 5.0).
        """
        value = self._settings.value(_KEY_MPD_CONNECT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT, float)
        return max(0.5, min(60.0, float(value)))  # type: ignore[arg-type]

    def set_connect_timeout(self, seconds: float) -> None:
        """Set the connect timeout.

        Args:
            seconds: Timeout in seconds (0.5-60).
        """
        self._settings.setValue(_KEY_MPD_CONNECT_TIMEOUT, max(0.5, min(60.0, seconds)))

    def get_command_timeout(self) -> float:
        """Return the command response timeout in seconds.

        Returns:
            Timeout in seconds (default 10.0).
        """
        value = self._settings.value(_KEY_MPD_COMMAND_TIMEOUT, DEFAULT_COMMAND_TIMEOUT, float)
        return max(0.5, min(300.0, float(value)))  # type: ignore[arg-type]

    def set_command_timeout(self, seconds: float) -> None:
        """Set the command response timeout.

        Args:
            seconds: Timeout in seconds (0.5-300).
        """
        self._settings.setValue(_KEY_MPD_COMMAND_TIMEOUT, max(0.5, min(300.0, seconds)))

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        self._settings.sync()
