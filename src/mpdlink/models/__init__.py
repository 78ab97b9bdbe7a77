"""Data models for the application layer."""

from mpdlink.models.profile import ServerProfile, create_profile

__all__ = ["ServerProfile", "create_profile"]
