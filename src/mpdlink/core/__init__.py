"""Application layer on top of the MPD client.

Classes:
    ConfigManager: QSettings wrapper for configuration.
    IdleWatcher: Qt object reporting server changes through idle.
"""

from mpdlink.core.config import ConfigManager
from mpdlink.core.watcher import IdleWatcher

__all__ = ["ConfigManager", "IdleWatcher"]
