"""modsync error hierarchy.

All modsync-specific errors inherit from ModSyncError for easy catching.
"""


class ModSyncError(Exception):
    """Base error for all modsync operations."""


class ConfigError(ModSyncError):
    """Invalid or missing configuration."""


class ProtocolError(ModSyncError):
    """A control or client message could not be understood."""


class ListenerError(ModSyncError):
    """The client-facing listener could not be started."""
