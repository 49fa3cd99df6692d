"""
Shared pytest fixtures for the reconciler tests.

FakeCluster stands in for the data-plane transport: it keeps one membership
table per pod, renders it as CLUSTER NODES text and applies CLUSTER FORGET /
CLUSTER MEET the way a real node would from its own point of view.
"""

from pathlib import Path
import sys
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reconciler.models import PeerRef  # noqa: E402

PASSWORD = "s3cret"


def make_peers(addresses: List[str], prefix: str = "redis-cluster") -> List[PeerRef]:
    return [PeerRef(i, f"{prefix}-{i}", ip) for i, ip in enumerate(addresses)]


def node_line(node_id: str, address: str, flags: str = "master", link: str = "connected",
              slots: str = "") -> str:
    line = f"{node_id} {address}:6379@16379 {flags} - 0 1700000000000 1 {link}"
    return f"{line} {slots}" if slots else line


class FakeCluster:
    name = "fake"

    def __init__(self, password: str = PASSWORD):
        self.password = password
        # pod name -> {node_id: row dict}
        self.tables: Dict[str, Dict[str, dict]] = {}
        # live address -> node id actually listening there
        self.live: Dict[str, str] = {}
        self.unreachable = set()
        self.failing_commands = set()
        self.calls = []

    def add_pod(self, pod_name: str, node_id: str, address: str):
        self.live[address] = node_id
        self.tables.setdefault(pod_name, {})[node_id] = {
            "address": address, "flags": "myself,master", "link": "connected",
        }

    def knows(self, pod_name: str, node_id: str, address: str, flags: str = "master", link: str = "connected"):
        self.tables[pod_name][node_id] = {"address": address, "flags": flags, "link": link}

    def render(self, pod_name: str) -> str:
        return "\n".join(
            node_line(node_id, row["address"], row["flags"], row["link"])
            for node_id, row in self.tables[pod_name].items()
        ) + "\n"

    @property
    def mutations(self):
        return [c for c in self.calls if c[1][1] in ("FORGET", "MEET")]

    def execute(self, peer: PeerRef, password, args):
        self.calls.append((peer.name, list(args)))
        if peer.name in self.unreachable:
            return False, "error: unable to upgrade connection: container not found"
        if password != self.password:
            return False, "Authentication failed"

        command = args[1]
        if command == "NODES":
            return True, self.render(peer.name)
        if command in self.failing_commands:
            return False, "ERR simulated failure"

        table = self.tables[peer.name]
        if command == "FORGET":
            node_id = args[2]
            if node_id not in table:
                return False, "ERR Unknown node " + node_id
            if "myself" in table[node_id]["flags"]:
                return False, "ERR I tried hard but I can't forget myself..."
            del table[node_id]
            return True, "OK"
        if command == "MEET":
            address = args[2]
            node_id = self.live.get(address)
            if node_id is not None and "myself" not in table.get(node_id, {}).get("flags", ""):
                table[node_id] = {"address": address, "flags": "master", "link": "connected"}
            return True, "OK"

        return False, f"ERR unknown command '{command}'"


@pytest.fixture
def healthy_cluster():
    """Three pods that all agree on each other"""
    cluster = FakeCluster()
    peers = make_peers(["10.0.0.1", "10.0.0.2", "10.0.0.3"])
    for i, peer in enumerate(peers):
        cluster.add_pod(peer.name, f"node{i}", peer.address)
    for peer in peers:
        for i, other in enumerate(peers):
            if other.name != peer.name:
                cluster.knows(peer.name, f"node{i}", other.address)
    return cluster, peers


@pytest.fixture
def restarted_cluster():
    """Pod 2 restarted and moved from 10.0.0.3 to 10.0.0.9; pods 0 and 1 still hold the old IP"""
    cluster = FakeCluster()
    peers = make_peers(["10.0.0.1", "10.0.0.2", "10.0.0.9"])
    cluster.add_pod("redis-cluster-0", "node0", "10.0.0.1")
    cluster.add_pod("redis-cluster-1", "node1", "10.0.0.2")
    cluster.add_pod("redis-cluster-2", "node2", "10.0.0.9")

    cluster.knows("redis-cluster-0", "node1", "10.0.0.2")
    cluster.knows("redis-cluster-0", "node2", "10.0.0.3", flags="master,fail", link="disconnected")
    cluster.knows("redis-cluster-1", "node0", "10.0.0.1")
    cluster.knows("redis-cluster-1", "node2", "10.0.0.3", flags="master,fail", link="disconnected")
    cluster.knows("redis-cluster-2", "node0", "10.0.0.1")
    cluster.knows("redis-cluster-2", "node1", "10.0.0.2")
    return cluster, peers


@pytest.fixture
def fake_directory():
    def build(peers, password=PASSWORD):
        directory = MagicMock()
        directory.resolve_peers.return_value = peers
        directory.get_credential.return_value = password
        return directory
    return build


@pytest.fixture
def no_sleep():
    slept = []
    return slept, slept.append
