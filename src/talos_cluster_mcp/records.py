#!/usr/bin/env python3
"""
Response shaping for Talos node data.

Turns raw talosctl output into typed per-node records, groups them by node
and serializes the aggregate to indented JSON text.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Union

from .errors import SerializationError


# =============================================================================
# Record Types
# =============================================================================

@dataclass
class DiskRecord:
    """One block device on a node."""
    device: str
    model: str
    size: int
    type: str
    uuid: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device": self.device,
            "model": self.model,
            "size": self.size,
            "type": self.type,
            "uuid": self.uuid,
        }


@dataclass
class InterfaceRecord:
    """Traffic counters for one network interface."""
    name: str
    tx_bytes: int
    rx_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "TxBytes": self.tx_bytes,
            "RxBytes": self.rx_bytes,
        }


@dataclass
class MemoryRecord:
    """Memory counters of a node, in kB."""
    meminfo: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"Meminfo": dict(self.meminfo)}


@dataclass
class CPURecord:
    """Per-processor details of a node."""
    cpu_info: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"CPU": [dict(cpu) for cpu in self.cpu_info]}


NodeRecord = Union[DiskRecord, InterfaceRecord, MemoryRecord, CPURecord]


@dataclass
class NodeResult:
    """Records returned by one node, listed under a kind-specific key."""
    node: str
    key: str
    records: List[NodeRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": self.node,
            self.key: [record.to_dict() for record in self.records],
        }


# =============================================================================
# Disks
# =============================================================================

def disk_type(spec: Dict[str, Any]) -> str:
    """Classify a disk the way the legacy Talos disks API did."""
    if spec.get("cdrom"):
        return "CD"
    transport = (spec.get("transport") or "").lower()
    if transport == "nvme":
        return "NVME"
    if transport == "mmc":
        return "SD"
    if "rotational" not in spec and not transport:
        return "UNKNOWN"
    if spec.get("rotational"):
        return "HDD"
    return "SSD"


def _iter_json_documents(text: str):
    """Yield each JSON document from a stream of concatenated documents."""
    decoder = json.JSONDecoder()
    idx = 0
    end = len(text)
    while True:
        while idx < end and text[idx].isspace():
            idx += 1
        if idx >= end:
            return
        try:
            doc, idx = decoder.raw_decode(text, idx)
        except json.JSONDecodeError as e:
            raise SerializationError(f"invalid JSON in disk inventory: {e}")
        yield doc


def parse_disks(text: str) -> List[DiskRecord]:
    """Parse `talosctl get disks -o json` output into disk records."""
    disks: List[DiskRecord] = []
    for doc in _iter_json_documents(text):
        if not isinstance(doc, dict):
            raise SerializationError("unexpected disk inventory document")
        metadata = doc.get("metadata") or {}
        spec = doc.get("spec") or {}
        if not isinstance(metadata, dict) or not isinstance(spec, dict):
            raise SerializationError("disk inventory metadata and spec must be objects")
        if not isinstance(spec.get("transport") or "", str):
            raise SerializationError(f"invalid transport for disk: {spec['transport']!r}")

        device = spec.get("dev_path") or ""
        if not device and metadata.get("id"):
            device = f"/dev/{metadata['id']}"

        try:
            size = int(spec.get("size") or 0)
        except (TypeError, ValueError):
            raise SerializationError(f"invalid size for disk {device!r}: {spec.get('size')!r}")

        disks.append(DiskRecord(
            device=device,
            model=spec.get("model") or "",
            size=size,
            type=disk_type(spec),
            uuid=spec.get("uuid") or "",
        ))
    return disks


# =============================================================================
# Network Interfaces
# =============================================================================

# /proc/net/dev columns after the interface name
_RX_BYTES = 0
_TX_BYTES = 8


def parse_net_dev(text: str) -> List[InterfaceRecord]:
    """Parse /proc/net/dev into per-interface byte counters."""
    interfaces: List[InterfaceRecord] = []
    for line in text.splitlines():
        if ":" not in line:
            # Header lines
            continue
        name, _, counters = line.partition(":")
        name = name.strip()
        if not name or "|" in counters:
            continue
        fields = counters.split()
        if len(fields) <= _TX_BYTES:
            raise SerializationError(f"truncated counters for interface {name!r}")
        try:
            rx_bytes = int(fields[_RX_BYTES])
            tx_bytes = int(fields[_TX_BYTES])
        except ValueError:
            raise SerializationError(f"non-numeric counters for interface {name!r}")
        interfaces.append(InterfaceRecord(name=name, tx_bytes=tx_bytes, rx_bytes=rx_bytes))
    return interfaces


# =============================================================================
# Memory
# =============================================================================

def _meminfo_key(name: str) -> str:
    # MemTotal -> memtotal, Active(anon) -> activeanon, HugePages_Total -> hugepagestotal
    return re.sub(r"[^0-9a-z]", "", name.lower())


def parse_meminfo(text: str) -> List[MemoryRecord]:
    """Parse /proc/meminfo. Returns one record, or none for empty output."""
    meminfo: Dict[str, int] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise SerializationError(f"malformed meminfo line: {line!r}")
        parts = value.split()
        try:
            meminfo[_meminfo_key(name)] = int(parts[0]) if parts else 0
        except ValueError:
            raise SerializationError(f"non-numeric meminfo value: {line!r}")

    if not meminfo:
        return []
    return [MemoryRecord(meminfo=meminfo)]


# =============================================================================
# CPU
# =============================================================================

_CPU_INT_FIELDS = {
    "processor", "physical_id", "siblings", "core_id", "cpu_cores",
    "apicid", "initial_apicid", "cpuid_level", "clflush_size", "cache_alignment",
}
_CPU_FLOAT_FIELDS = {"cpu_mhz", "bogomips"}
_CPU_LIST_FIELDS = {"flags", "bugs", "features"}


def _cpuinfo_key(name: str) -> str:
    return re.sub(r"\s+", "_", name.strip().lower())


def _cpuinfo_value(key: str, value: str) -> Any:
    if key in _CPU_LIST_FIELDS:
        return value.split()
    try:
        if key in _CPU_INT_FIELDS:
            return int(value)
        if key in _CPU_FLOAT_FIELDS:
            return float(value)
    except ValueError:
        pass
    return value


def parse_cpuinfo(text: str) -> List[CPURecord]:
    """Parse /proc/cpuinfo. Returns one record, or none for empty output."""
    cpus: List[Dict[str, Any]] = []
    current: Dict[str, Any] = {}
    for line in text.splitlines():
        if not line.strip():
            if current:
                cpus.append(current)
                current = {}
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise SerializationError(f"malformed cpuinfo line: {line!r}")
        key = _cpuinfo_key(name)
        current[key] = _cpuinfo_value(key, value.strip())
    if current:
        cpus.append(current)

    if not cpus:
        return []
    return [CPURecord(cpu_info=cpus)]


# =============================================================================
# Aggregation & Serialization
# =============================================================================

def aggregate(key: str, per_node: Sequence[tuple]) -> List[NodeResult]:
    """Group (node, records) pairs into NodeResults, preserving call order."""
    return [NodeResult(node=node, key=key, records=list(records)) for node, records in per_node]


def serialize(results: Sequence[NodeResult]) -> str:
    """Serialize an aggregate to indented JSON text."""
    try:
        return json.dumps([result.to_dict() for result in results], indent=2)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to encode result: {e}")


__all__ = [
    "DiskRecord",
    "InterfaceRecord",
    "MemoryRecord",
    "CPURecord",
    "NodeRecord",
    "NodeResult",
    "disk_type",
    "parse_disks",
    "parse_net_dev",
    "parse_meminfo",
    "parse_cpuinfo",
    "aggregate",
    "serialize",
]
