"""Server profile data model for connection configuration."""

import hashlib
from dataclasses import dataclass, replace
from typing import Self

DEFAULT_PORT = 6600


@dataclass(frozen=True)
class ServerProfile:
    """Connection profile for an MPD server.

    Attributes:
        id: Unique identifier for the profile.
        name: Human-readable name (e.g., "Living Room", "Basement").
        host: Server hostname or IP address.
        port: TCP port (default 6600).
        password: Password sent after connecting, empty for none.
    """

    id: str
    name: str
    host: str
    port: int = DEFAULT_PORT
    password: str = ""

    def with_password(self, password: str) -> Self:
        """Return a copy with the password changed.

        Args:
            password: New password, empty for none.

        Returns:
            New ServerProfile with updated password.
        """
        return replace(self, password=password)


def create_profile(
    name: str,
    host: str,
    port: int = DEFAULT_PORT,
    password: str = "",
) -> ServerProfile:
    """Create a new ServerProfile with a generated ID.

    Args:
        name: Human-readable name.
        host: Server hostname or IP.
        port: TCP port.
        password: Optional password.

    Returns:
        New ServerProfile with unique ID based on host:port.
    """
    profile_id = hashlib.md5(f"{host}:{port}".encode()).hexdigest()[:8]
    return ServerProfile(id=profile_id, name=name, host=host, port=port, password=password)
