#!/usr/bin/env python3
"""
Configuration module for Talos Cluster MCP Server.

Centralizes environment settings, logging and loading of the talosconfig
file that names the active context, its endpoints and its target nodes.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Any

import yaml

from .errors import ConfigError


# =============================================================================
# Logging Setup
# =============================================================================

LOG_LEVEL = os.getenv("TALOS_MCP_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# basicConfig writes to stderr, stdout carries the MCP protocol
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger("talos-cluster-mcp")


# =============================================================================
# Environment Configuration
# =============================================================================

DEFAULT_TALOSCONFIG = "~/.talos/config"

# Reboot modes accepted by the machine API
REBOOT_MODES = ("default", "powercycle")


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass(frozen=True)
class ServerConfig:
    """Server settings read from environment variables."""

    # Talos client
    talosconfig_path: str = field(
        default_factory=lambda: os.getenv("TALOSCONFIG") or DEFAULT_TALOSCONFIG
    )
    context: Optional[str] = field(default_factory=lambda: os.getenv("TALOS_CONTEXT") or None)
    talosctl: str = field(default_factory=lambda: os.getenv("TALOSCTL_PATH", "talosctl"))

    # None leaves timeouts to the transport
    command_timeout: Optional[float] = field(
        default_factory=lambda: _optional_float("TALOS_CMD_TIMEOUT")
    )

    # Reboot
    reboot_mode: str = field(default_factory=lambda: os.getenv("TALOS_REBOOT_MODE", "powercycle"))

    # One-shot diagnostic run instead of the stdio server
    diagnose: bool = field(default_factory=lambda: bool(os.getenv("TALOS_MCP_DIAGNOSE")))


# Global config instance
config = ServerConfig()


def resolve_talosconfig_path(settings: Optional[ServerConfig] = None) -> Path:
    """Resolve the talosconfig path (TALOSCONFIG, else the talosctl default)."""
    settings = settings or config
    return Path(settings.talosconfig_path).expanduser()


# =============================================================================
# Cluster Context
# =============================================================================

@dataclass(frozen=True)
class ClusterContext:
    """Active talosconfig context: where to connect and which nodes to target."""
    name: str
    endpoints: Tuple[str, ...]
    nodes: Tuple[str, ...]
    config_path: Path

    @property
    def endpoint(self) -> str:
        """Endpoint used for all calls (the first one listed)."""
        return self.endpoints[0]


def _as_str_tuple(value: Any, key: str, context_name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ConfigError(f"context {context_name!r}: {key} must be a list")
    return tuple(str(item) for item in value)


def load_cluster_context(
    path: Optional[Path] = None,
    context_name: Optional[str] = None,
) -> ClusterContext:
    """
    Load the active context from a talosconfig file.

    Args:
        path: talosconfig file, defaults to resolve_talosconfig_path()
        context_name: context to use instead of the file's active context

    Raises:
        ConfigError: file missing, unreadable or unparseable, context absent,
            or context without endpoints
    """
    path = Path(path) if path is not None else resolve_talosconfig_path()

    try:
        raw = path.read_text()
    except FileNotFoundError:
        raise ConfigError(f"talos config file not found: {path}")
    except OSError as e:
        raise ConfigError(f"error when opening talos config file {path}: {e}")

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"error when parsing talos config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"talos config file {path} is not a mapping")

    name = context_name or data.get("context")
    if not name:
        raise ConfigError(f"talos config file {path} has no active context")

    contexts = data.get("contexts") or {}
    if not isinstance(contexts, dict) or name not in contexts:
        raise ConfigError(f"context {name!r} not found in {path}")

    ctx = contexts[name] or {}
    if not isinstance(ctx, dict):
        raise ConfigError(f"context {name!r} in {path} is not a mapping")

    endpoints = _as_str_tuple(ctx.get("endpoints"), "endpoints", name)
    if not endpoints:
        raise ConfigError(f"context {name!r} has no endpoints")
    nodes = _as_str_tuple(ctx.get("nodes"), "nodes", name)

    logger.debug(f"Loaded context {name} from {path}: endpoints={endpoints} nodes={nodes}")
    return ClusterContext(name=name, endpoints=endpoints, nodes=nodes, config_path=path)


def validate_node_name(node: Any) -> Tuple[bool, Optional[str]]:
    """Validate a caller-supplied node argument."""
    if not isinstance(node, str) or not node.strip():
        return False, "missing or invalid 'node' argument"
    return True, None


# =============================================================================
# Export All
# =============================================================================

__all__ = [
    # Configuration
    "config",
    "ServerConfig",
    "logger",
    "DEFAULT_TALOSCONFIG",
    "REBOOT_MODES",
    "resolve_talosconfig_path",
    # Context
    "ClusterContext",
    "load_cluster_context",
    # Validation
    "validate_node_name",
]
