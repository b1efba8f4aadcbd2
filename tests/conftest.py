"""Pytest configuration and fixtures for talos-cluster-mcp tests."""

import os
import pytest
from unittest.mock import patch, MagicMock

# Set test environment variables before importing modules
os.environ.pop("TALOS_MCP_DIAGNOSE", None)
os.environ.pop("TALOS_CONTEXT", None)
os.environ.setdefault("TALOS_MCP_LOG_LEVEL", "DEBUG")


TALOSCONFIG = """\
context: lab
contexts:
  lab:
    endpoints:
      - 10.5.0.2
      - 10.5.0.3
    nodes:
      - 10.5.0.2
      - 10.5.0.3
    ca: Y2E=
    crt: Y3J0
    key: a2V5
  other:
    endpoints:
      - 192.0.2.10
    nodes:
      - 192.0.2.11
"""

DISKS_JSON = """\
{
    "node": "10.5.0.2",
    "metadata": {"namespace": "runtime", "type": "Disks.block.talos.dev", "id": "sda"},
    "spec": {
        "dev_path": "/dev/sda",
        "model": "X",
        "size": 1024,
        "transport": "sata",
        "rotational": false,
        "uuid": "abc"
    }
}
{
    "node": "10.5.0.2",
    "metadata": {"namespace": "runtime", "type": "Disks.block.talos.dev", "id": "nvme0n1"},
    "spec": {
        "dev_path": "/dev/nvme0n1",
        "model": "Samsung SSD 980",
        "size": 500107862016,
        "transport": "nvme",
        "rotational": false
    }
}
"""

NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    1200      12    0    0    0     0          0         0     1200      12    0    0    0     0       0          0
  eth0: 9876543   54321    0    0    0     0          0         0  1234567   43210    0    0    0     0       0          0
"""

MEMINFO = """\
MemTotal:        4026532 kB
MemFree:         2013266 kB
MemAvailable:    3019899 kB
Active(anon):      12345 kB
HugePages_Total:       0
"""

CPUINFO = """\
processor\t: 0
vendor_id\t: GenuineIntel
cpu family\t: 6
model name\t: Intel(R) Xeon(R) CPU
cpu MHz\t\t: 2400.000
cpu cores\t: 2
flags\t\t: fpu vme de pse

processor\t: 1
vendor_id\t: GenuineIntel
cpu family\t: 6
model name\t: Intel(R) Xeon(R) CPU
cpu MHz\t\t: 2400.000
cpu cores\t: 2
flags\t\t: fpu vme de pse
"""


class FakeTalosctl:
    """Stand-in for subprocess.run answering talosctl calls per node."""

    def __init__(self):
        self.outputs = {
            ("get", "disks"): DISKS_JSON,
            ("read", "/proc/net/dev"): NET_DEV,
            ("read", "/proc/meminfo"): MEMINFO,
            ("read", "/proc/cpuinfo"): CPUINFO,
            ("reboot",): "",
        }
        self.failing_nodes = set()
        self.overrides = {}
        self.calls = []

    @staticmethod
    def node_of(cmd):
        return cmd[cmd.index("--nodes") + 1]

    @staticmethod
    def subcommand_of(cmd):
        return cmd[cmd.index("--nodes") + 2:]

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        node = self.node_of(cmd)
        sub = self.subcommand_of(cmd)

        if node in self.failing_nodes:
            return MagicMock(returncode=1, stdout="", stderr="rpc error: code = Unavailable")

        if (node, sub[0]) in self.overrides:
            return MagicMock(returncode=0, stdout=self.overrides[(node, sub[0])], stderr="")

        for key, output in self.outputs.items():
            if tuple(sub[:len(key)]) == key:
                return MagicMock(returncode=0, stdout=output, stderr="")
        return MagicMock(returncode=1, stdout="", stderr=f"unknown command {sub}")

    def nodes_called(self):
        return [self.node_of(cmd) for cmd in self.calls]


@pytest.fixture
def talosconfig(tmp_path):
    """Write a talosconfig with two nodes in the active context."""
    path = tmp_path / "talosconfig"
    path.write_text(TALOSCONFIG)
    return path


@pytest.fixture
def settings(talosconfig):
    """Server settings pointing at the temporary talosconfig."""
    from talos_cluster_mcp.config import ServerConfig
    return ServerConfig(talosconfig_path=str(talosconfig), context=None, talosctl="talosctl",
                        command_timeout=None, reboot_mode="powercycle", diagnose=False)


@pytest.fixture
def mock_which():
    """Pretend talosctl is installed."""
    with patch("shutil.which", return_value="/usr/local/bin/talosctl") as mock:
        yield mock


@pytest.fixture
def fake_talosctl(mock_which):
    """Mock subprocess.run with per-node talosctl output."""
    fake = FakeTalosctl()
    with patch("subprocess.run", side_effect=fake) as mock_run:
        fake.mock = mock_run
        yield fake


@pytest.fixture
def cluster_context(talosconfig):
    from talos_cluster_mcp.config import load_cluster_context
    return load_cluster_context(talosconfig)


@pytest.fixture
def server(settings):
    """Install a fresh global server bound to the test settings."""
    import talos_cluster_mcp.server as server_module
    server_module._server = server_module.TalosClusterServer(settings)
    yield server_module._server
    server_module._server = None
