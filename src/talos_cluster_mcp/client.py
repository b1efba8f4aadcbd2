#!/usr/bin/env python3
"""
Talos cluster client adapter.

Wraps the talosctl client, which owns the machine API transport and its
mutual TLS, behind typed calls scoped to one node at a time. Multi-node reads
walk the context's nodes sequentially and fail as a whole if any node fails.
"""

import shutil
import subprocess
from typing import Callable, List, Optional, Sequence, Tuple

from .config import (
    config,
    logger,
    ClusterContext,
    ServerConfig,
    REBOOT_MODES,
    validate_node_name,
)
from .errors import CallerInputError, ClusterConnectionError, RPCError
from .records import (
    CPURecord,
    DiskRecord,
    InterfaceRecord,
    MemoryRecord,
    NodeResult,
    aggregate,
    parse_cpuinfo,
    parse_disks,
    parse_meminfo,
    parse_net_dev,
)


# =============================================================================
# Connection
# =============================================================================

def connect(context: ClusterContext, settings: Optional[ServerConfig] = None) -> "TalosClient":
    """
    Create a client bound to a cluster context.

    Raises:
        ClusterConnectionError: talosctl cannot be found or the reboot mode
            is not one the machine API accepts
    """
    settings = settings or config

    talosctl = shutil.which(settings.talosctl)
    if not talosctl:
        raise ClusterConnectionError(
            f"error when instantiating talos client: {settings.talosctl!r} not found"
        )
    if settings.reboot_mode not in REBOOT_MODES:
        raise ClusterConnectionError(
            f"error when instantiating talos client: unknown reboot mode {settings.reboot_mode!r}"
        )

    logger.info(
        f"Talos client ready: context={context.name} endpoint={context.endpoint} "
        f"nodes={', '.join(context.nodes) or '(none)'}"
    )
    return TalosClient(context, talosctl, settings)


# =============================================================================
# Client
# =============================================================================

class TalosClient:
    """Handle bound to one context; issues one talosctl call per node."""

    def __init__(self, context: ClusterContext, talosctl: str, settings: Optional[ServerConfig] = None):
        self.context = context
        self.talosctl = talosctl
        self.settings = settings or config

    @property
    def nodes(self) -> Tuple[str, ...]:
        """Nodes targeted by multi-node reads."""
        return self.context.nodes

    def _base_args(self, node: str) -> List[str]:
        return [
            self.talosctl,
            "--talosconfig", str(self.context.config_path),
            "--context", self.context.name,
            "--endpoints", self.context.endpoint,
            "--nodes", node,
        ]

    def _run(self, node: str, args: Sequence[str], action: str) -> str:
        """Run one talosctl call against a node and return its stdout."""
        cmd = self._base_args(node) + list(args)
        logger.debug(f"Calling {' '.join(args)} on {node}")

        try:
            # SECURITY: Using list arguments, not shell=True
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.settings.command_timeout
            )
        except subprocess.TimeoutExpired:
            raise RPCError(
                f"failed to {action} for node {node}: timed out after {self.settings.command_timeout}s",
                node=node,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise RPCError(f"failed to {action} for node {node}: {e}", node=node)

        if result.returncode != 0:
            detail = (result.stderr or "").strip()[:500] or f"exit status {result.returncode}"
            logger.warning(f"talosctl {args[0]} failed on {node}: {detail}")
            raise RPCError(f"failed to {action} for node {node}: {detail}", node=node)

        return result.stdout

    # -------------------------------------------------------------------------
    # Single-node calls
    # -------------------------------------------------------------------------

    def disks(self, node: str) -> List[DiskRecord]:
        """Disk inventory of one node."""
        return parse_disks(self._run(node, ["get", "disks", "--output", "json"], "list disks"))

    def network_device_stats(self, node: str) -> List[InterfaceRecord]:
        """Network device counters of one node."""
        return parse_net_dev(self._run(node, ["read", "/proc/net/dev"], "list network interfaces"))

    def memory(self, node: str) -> List[MemoryRecord]:
        """Memory statistics of one node."""
        return parse_meminfo(self._run(node, ["read", "/proc/meminfo"], "list memory"))

    def cpu_info(self, node: str) -> List[CPURecord]:
        """CPU details of one node."""
        return parse_cpuinfo(self._run(node, ["read", "/proc/cpuinfo"], "list CPU usage"))

    def reboot(self, node: str) -> None:
        """Reboot one node. The node must be given explicitly."""
        valid, error = validate_node_name(node)
        if not valid:
            raise CallerInputError(error)

        node = node.strip()
        logger.info(f"Rebooting node {node} (mode={self.settings.reboot_mode})")
        self._run(
            node,
            ["reboot", "--wait=false", "--mode", self.settings.reboot_mode],
            "reboot node",
        )

    # -------------------------------------------------------------------------
    # Multi-node reads
    # -------------------------------------------------------------------------

    def _collect(self, key: str, fetch: Callable[[str], list]) -> List[NodeResult]:
        # Any node failing raises out of the loop, no partial aggregate
        per_node = [(node, fetch(node)) for node in self.nodes]
        return aggregate(key, per_node)

    def list_disks(self) -> List[NodeResult]:
        return self._collect("disks", self.disks)

    def list_network_interfaces(self) -> List[NodeResult]:
        return self._collect("interfaces", self.network_device_stats)

    def list_memory(self) -> List[NodeResult]:
        return self._collect("memory", self.memory)

    def list_cpu(self) -> List[NodeResult]:
        return self._collect("cpu", self.cpu_info)


__all__ = [
    "connect",
    "TalosClient",
]
