"""
Error types for the Talos Cluster MCP Server.

Every error raised by the config loader, the client adapter or the response
shaper derives from TalosMCPError so the tool layer can turn it into a
textual tool error in one place.
"""
from typing import Optional


class TalosMCPError(Exception):
    """Base class for all server errors."""


class ConfigError(TalosMCPError):
    """The talosconfig file is missing, unreadable or unusable."""


class ClusterConnectionError(TalosMCPError):
    """The cluster client could not be constructed."""


class RPCError(TalosMCPError):
    """A remote call against a node failed."""

    def __init__(self, message: str, node: Optional[str] = None):
        super().__init__(message)
        self.node = node


class CallerInputError(TalosMCPError):
    """A required tool argument is missing or invalid."""


class SerializationError(TalosMCPError):
    """A response could not be shaped or encoded."""


__all__ = [
    "TalosMCPError",
    "ConfigError",
    "ClusterConnectionError",
    "RPCError",
    "CallerInputError",
    "SerializationError",
]
