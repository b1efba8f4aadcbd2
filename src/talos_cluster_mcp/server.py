#!/usr/bin/env python3
"""
Talos Cluster MCP Server

Exposes Talos Linux cluster inspection and control to MCP clients over stdio.
Read tools run against every node of the active talosconfig context.

Tools:
- list_disks: Disk inventory per node
- list_network_interfaces: Network interface byte counters per node
- list_memory: Memory statistics per node
- list_cpu: CPU details per node
- reboot_node: Reboot one node
"""

import sys
from enum import Enum
from typing import Callable, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from .client import TalosClient, connect
from .config import (
    config,
    logger,
    ServerConfig,
    load_cluster_context,
    resolve_talosconfig_path,
    validate_node_name,
)
from .errors import CallerInputError, TalosMCPError
from .records import NodeResult, serialize


# =============================================================================
# MCP Server Setup
# =============================================================================

mcp = FastMCP("Talos Cluster Manager")


# =============================================================================
# Server Class
# =============================================================================

class ConnectionState(Enum):
    """Client connection state. There is no transition back to DISCONNECTED."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class TalosClusterServer:
    """MCP Server for Talos cluster operations."""

    def __init__(self, settings: Optional[ServerConfig] = None):
        self.settings = settings or config
        self._state = ConnectionState.DISCONNECTED
        self._client: Optional[TalosClient] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def client(self) -> TalosClient:
        """Lazy initialization of the Talos client.

        A failed connect leaves the server DISCONNECTED so the next call tries
        again. Once connected, the handle is kept even if later calls fail.
        """
        if self._state is ConnectionState.DISCONNECTED:
            context = load_cluster_context(
                resolve_talosconfig_path(self.settings),
                context_name=self.settings.context,
            )
            self._client = connect(context, self.settings)
            self._state = ConnectionState.CONNECTED
        return self._client

    def _read(self, fetch: Callable[[TalosClient], List[NodeResult]]) -> str:
        return serialize(fetch(self.client))

    def list_disks(self) -> str:
        return self._read(TalosClient.list_disks)

    def list_network_interfaces(self) -> str:
        return self._read(TalosClient.list_network_interfaces)

    def list_memory(self) -> str:
        return self._read(TalosClient.list_memory)

    def list_cpu(self) -> str:
        return self._read(TalosClient.list_cpu)

    def reboot_node(self, node: Optional[str]) -> str:
        """Reboot a node. Input is checked before connecting."""
        valid, error = validate_node_name(node)
        if not valid:
            raise CallerInputError(error)

        node = node.strip()
        self.client.reboot(node)
        return f"Node {node} rebooted successfully"


# Global server instance
_server: Optional[TalosClusterServer] = None


def get_server() -> TalosClusterServer:
    """Get or create server instance."""
    global _server
    if _server is None:
        _server = TalosClusterServer()
    return _server


def _call(failure: str, operation: Callable[[], str]) -> str:
    """Run a server operation, surfacing any failure as a tool error."""
    try:
        return operation()
    except TalosMCPError as e:
        logger.error(f"{failure}: {e}")
        raise ToolError(f"{failure}: {e}") from e


# =============================================================================
# MCP Tools
# =============================================================================

@mcp.tool(name="list_disks", description="List all disks in the Talos cluster")
async def list_disks() -> str:
    """
    List all disks in the Talos cluster.

    Returns a JSON list with one entry per node:
    {"node": ..., "disks": [{"device", "model", "size", "type", "uuid"}]}
    """
    return _call("failed to list disks", get_server().list_disks)


@mcp.tool(
    name="list_network_interfaces",
    description="List all network interfaces in the Talos cluster",
)
async def list_network_interfaces() -> str:
    """
    List all network interfaces in the Talos cluster.

    Returns a JSON list with one entry per node:
    {"node": ..., "interfaces": [{"name", "TxBytes", "RxBytes"}]}
    """
    return _call("failed to list network interfaces", get_server().list_network_interfaces)


@mcp.tool(
    name="list_memory",
    description="List memory information for all nodes in the Talos cluster",
)
async def list_memory() -> str:
    """List memory information (meminfo counters in kB) for every node."""
    return _call("failed to list memory", get_server().list_memory)


@mcp.tool(
    name="list_cpu",
    description="List CPU usage information for all nodes in the Talos cluster",
)
async def list_cpu() -> str:
    """List per-processor CPU information for every node."""
    return _call("failed to list CPU usage", get_server().list_cpu)


@mcp.tool(name="reboot_node", description="Reboot a specific node in the Talos cluster")
async def reboot_node(node: str) -> str:
    """
    Reboot a specific node in the Talos cluster.

    Parameters:
    - node (required): Node name or IP, as used by talosctl --nodes
    """
    return _call("failed to reboot node", lambda: get_server().reboot_node(node))


# =============================================================================
# Diagnostics
# =============================================================================

def run_diagnostics(server: Optional[TalosClusterServer] = None) -> int:
    """List network interfaces and disks once, print them, and return an exit code."""
    server = server or get_server()

    try:
        interfaces = server.list_network_interfaces()
    except TalosMCPError as e:
        print(f"Error listing network interfaces: {e}")
        return 1
    print(f"Network interfaces:\n{interfaces}")

    try:
        disks = server.list_disks()
    except TalosMCPError as e:
        print(f"Error listing disks: {e}")
        return 1
    print(f"Disks:\n{disks}")
    return 0


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Run the MCP server, or the one-shot diagnostics when requested."""
    if config.diagnose:
        logger.info("Running Talos Cluster MCP diagnostics")
        sys.exit(run_diagnostics())

    logger.info("Starting Talos Cluster MCP Server")
    mcp.run()


if __name__ == "__main__":
    main()
