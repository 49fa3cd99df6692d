#!/usr/bin/env python3
"""
Value types shared by the reconciler components, plus the CLUSTER NODES parser.

Everything here is a point-in-time record: snapshots are re-read on every
pass and never persisted.
"""

import logging
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

# Link states
LINK_CONNECTED = "connected"
LINK_HANDSHAKE = "handshake"
LINK_FAIL = "fail"
LINK_OTHER = "other"

# Discrepancy kinds
MISSING = "missing"
ADDRESS_MISMATCH = "address_mismatch"
UNREACHABLE = "unreachable"


class PeerRef:
    def __init__(self, ordinal: int, name: str, address: str):
        self.ordinal = ordinal
        self.name = name
        self.address = address

    def __repr__(self):
        return f"PeerRef({self.name}, {self.address})"

    def __eq__(self, other):
        if not isinstance(other, PeerRef):
            return NotImplemented
        return (self.ordinal, self.name, self.address) == (other.ordinal, other.name, other.address)

    def __hash__(self):
        return hash((self.ordinal, self.name, self.address))


class NodeEntry:
    """One row of a peer's membership table, as that peer believes it"""

    def __init__(self, node_id: str, address: str, flags, link_state: str, port: Optional[int] = None):
        self.node_id = node_id
        self.address = address
        self.port = port
        self.flags = frozenset(flags)
        self.link_state = link_state

    @property
    def is_myself(self) -> bool:
        return "myself" in self.flags

    @property
    def is_master(self) -> bool:
        return "master" in self.flags

    @property
    def is_replica(self) -> bool:
        return "slave" in self.flags

    def __repr__(self):
        return f"NodeEntry({self.node_id[:8]}..., {self.address}, {self.link_state})"


class MembershipSnapshot:
    """Ordered NodeEntry rows keyed by node_id"""

    def __init__(self, entries: Optional[List[NodeEntry]] = None):
        self._entries: Dict[str, NodeEntry] = {}
        for entry in entries or []:
            # First row wins if a peer ever reports the same id twice
            if entry.node_id in self._entries:
                logger.debug(f"Duplicate node id {entry.node_id} in snapshot, keeping first row")
                continue
            self._entries[entry.node_id] = entry

    def __iter__(self) -> Iterator[NodeEntry]:
        return iter(self._entries.values())

    def __len__(self):
        return len(self._entries)

    def get(self, node_id: str) -> Optional[NodeEntry]:
        return self._entries.get(node_id)

    def node_ids(self) -> List[str]:
        return list(self._entries)

    def count_link_state(self, *states: str) -> int:
        return sum(1 for entry in self if entry.link_state in states)

    def sorted_by_address(self) -> List[NodeEntry]:
        return sorted(self, key=lambda e: tuple(_address_sort_key(e.address)))

    def __repr__(self):
        return f"MembershipSnapshot({len(self)} nodes)"


class Discrepancy:
    def __init__(self, peer_name: str, node_id: Optional[str], kind: str,
                 expected_address: Optional[str] = None, actual_address: Optional[str] = None):
        self.peer_name = peer_name
        self.node_id = node_id
        self.kind = kind
        self.expected_address = expected_address
        self.actual_address = actual_address

    def __repr__(self):
        return f"Discrepancy({self.peer_name}, {self.kind}, node={self.node_id})"

    def __eq__(self, other):
        if not isinstance(other, Discrepancy):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(tuple(self.to_dict().values()))

    def to_dict(self):
        return {
            "peer_name": self.peer_name,
            "node_id": self.node_id,
            "kind": self.kind,
            "expected_address": self.expected_address,
            "actual_address": self.actual_address,
        }


class CheckReport:
    def __init__(self, phase: str, reference_count: int = 0):
        self.phase = phase
        self.reference_count = reference_count
        self.discrepancies: List[Discrepancy] = []
        self.checked_peers: List[str] = []

    @property
    def unreachable_peers(self) -> List[str]:
        return [d.peer_name for d in self.discrepancies if d.kind == UNREACHABLE]

    @property
    def healthy(self) -> bool:
        return not self.discrepancies

    def inconsistent_peers(self) -> List[str]:
        """Peers that were read but disagree with the reference"""
        seen = []
        for d in self.discrepancies:
            if d.kind != UNREACHABLE and d.peer_name not in seen:
                seen.append(d.peer_name)
        return seen

    def for_peer(self, peer_name: str) -> List[Discrepancy]:
        return [d for d in self.discrepancies if d.peer_name == peer_name]

    def __repr__(self):
        return f"CheckReport({self.phase}, healthy={self.healthy}, discrepancies={len(self.discrepancies)})"


class RepairResult:
    def __init__(self, peer_name: str, dry_run: bool = False):
        self.peer_name = peer_name
        self.dry_run = dry_run
        self.forgotten_count = 0
        self.introduced_count = 0
        self.failed_commands = 0
        self.skipped = False

    def __repr__(self):
        return (f"RepairResult({self.peer_name}, forgotten={self.forgotten_count}, "
                f"introduced={self.introduced_count}, failed={self.failed_commands})")

    def to_dict(self):
        return {
            "peer_name": self.peer_name,
            "forgotten_count": self.forgotten_count,
            "introduced_count": self.introduced_count,
            "failed_commands": self.failed_commands,
            "dry_run": self.dry_run,
            "skipped": self.skipped,
        }


class ConvergenceResult:
    def __init__(self, converged: bool, elapsed_seconds: int, connected: int = 0, failed: int = 0):
        self.converged = converged
        self.elapsed_seconds = elapsed_seconds
        self.connected = connected
        self.failed = failed

    def __repr__(self):
        return f"ConvergenceResult(converged={self.converged}, elapsed={self.elapsed_seconds}s)"


def _address_sort_key(address: str):
    parts = address.split('.')
    if len(parts) == 4 and all(p.isdigit() for p in parts):
        return [(0, int(p)) for p in parts]
    return [(1, address)]


def _link_state(flags, fields: List[str]) -> str:
    if "handshake" in flags:
        return LINK_HANDSHAKE
    if "fail" in flags or "fail?" in flags:
        return LINK_FAIL
    # Field 8 is the link state; "disconnected" must not count as connected
    if len(fields) > 7:
        return LINK_CONNECTED if fields[7] == "connected" else LINK_OTHER
    return LINK_CONNECTED if "connected" in fields[3:] else LINK_OTHER


def parse_node_line(line: str) -> Optional[NodeEntry]:
    """Parse one CLUSTER NODES row, or return None if it is not a node row"""
    parts = line.split()
    if len(parts) < 3:
        return None

    node_id = parts[0]
    # ip:port@cport[,hostname]
    ip_port = parts[1].split('@')[0].split(',')[0]
    if ':' in ip_port:
        host, _, port = ip_port.rpartition(':')
    else:
        host, port = ip_port, ""
    flags = [f for f in parts[2].split(',') if f]

    return NodeEntry(
        node_id=node_id,
        address=host,
        flags=flags,
        link_state=_link_state(flags, parts),
        port=int(port) if port.isdigit() else None,
    )


def parse_cluster_nodes(output: str) -> MembershipSnapshot:
    """Parse raw CLUSTER NODES output into a snapshot"""
    entries = []
    for line in output.strip().split('\n'):
        line = line.strip()
        if not line:
            continue

        entry = parse_node_line(line)
        if entry is None:
            logger.warning(f"Invalid cluster nodes line: {line}")
            continue
        entries.append(entry)

    return MembershipSnapshot(entries)
