"""
Talos Cluster MCP Server

Exposes Talos Linux cluster inspection and reboot as MCP tools.
"""

from .config import (
    config,
    ServerConfig,
    ClusterContext,
    load_cluster_context,
    resolve_talosconfig_path,
)
from .errors import (
    TalosMCPError,
    ConfigError,
    ClusterConnectionError,
    RPCError,
    CallerInputError,
    SerializationError,
)
from .client import (
    TalosClient,
    connect,
)
from .records import (
    DiskRecord,
    InterfaceRecord,
    MemoryRecord,
    CPURecord,
    NodeResult,
    serialize,
)
from .server import (
    ConnectionState,
    TalosClusterServer,
    list_disks,
    list_network_interfaces,
    list_memory,
    list_cpu,
    reboot_node,
    run_diagnostics,
    main,
)

__version__ = "1.0.0"
__all__ = [
    # Config
    "config",
    "ServerConfig",
    "ClusterContext",
    "load_cluster_context",
    "resolve_talosconfig_path",
    # Errors
    "TalosMCPError",
    "ConfigError",
    "ClusterConnectionError",
    "RPCError",
    "CallerInputError",
    "SerializationError",
    # Client
    "TalosClient",
    "connect",
    # Records
    "DiskRecord",
    "InterfaceRecord",
    "MemoryRecord",
    "CPURecord",
    "NodeResult",
    "serialize",
    # Server
    "ConnectionState",
    "TalosClusterServer",
    "list_disks",
    "list_network_interfaces",
    "list_memory",
    "list_cpu",
    "reboot_node",
    "run_diagnostics",
    "main",
]
